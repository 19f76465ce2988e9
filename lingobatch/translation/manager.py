"""
Translation Manager Module

Main TranslationManager class that drives a run:
- Iterate languages x input files, strictly one file at a time
- Decide which keys need (re)translation
- Batch them and dispatch through the bounded scheduler
- Merge results and write each file as soon as it resolves
- Report progress, honour cancellation and the run-wide error budget
"""

import asyncio
import time
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import httpx

from lingobatch.ai.client import BackendClient
from lingobatch.ai.exceptions import AuthenticationError, ResourceFormatError, RunAbortError
from lingobatch.config import RunConfig
from lingobatch.logger import get_logger
import lingobatch.language_codes as lc
from lingobatch.resources import (
    FileFormat,
    ResourceAdapter,
    ResourceFile,
    TEXT_KEY,
    get_adapter,
    list_input_files,
)
from lingobatch.translation.context import RunContext
from lingobatch.translation.decision import decide, empty_source_keys, keys_to_translate
from lingobatch.translation.progress import ProgressCallback, ProgressEvent, RunSummary
from lingobatch.translation.scheduler import merge_batch_result, run_batches
from lingobatch.translation.utils import batch_strings
from lingobatch.translation.validator import apply_glossary

logger = get_logger(__name__)


class TranslationManager:
    """
    Drives one translation run.

    Features:
    - Sequential across languages and files, bounded concurrency within a file
    - Incremental: existing translations of plausible length are kept
    - Partial progress survives an abort (each file is written when it resolves)
    """

    def __init__(
        self,
        config: RunConfig,
        input_dir: Union[str, Path],
        output_dir: Union[str, Path],
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize translation manager.

        Args:
            config: Validated run configuration
            input_dir: Directory holding the source resource files
            output_dir: Root of the per-language output directories
            transport: Optional httpx transport for the backend client
        """
        self.config = config
        self.input_dir = Path(input_dir)
        self.output_dir = Path(output_dir)
        self.transport = transport
        self.context = RunContext(config.keys, config.max_errors)
        self._on_progress: Optional[ProgressCallback] = None

    def request_cancel(self) -> None:
        """Stop before the next batch, file or language. In-flight calls finish or time out."""
        self.context.request_cancel()

    def _emit(self, message: str, **delta: Any) -> None:
        event = ProgressEvent(message=message, **delta)
        log = logger.error if event.error else logger.info
        log(message)
        if self._on_progress is not None:
            try:
                self._on_progress(event)
            except Exception:
                logger.exception("Progress callback failed")

    async def run(
        self,
        languages: Union[str, List[str]],
        file_format: Union[str, FileFormat],
        on_progress: Optional[ProgressCallback] = None,
    ) -> RunSummary:
        """
        Translate every input file into every language.

        Returns after completion or cancellation. AuthenticationError and
        RunAbortError (error budget, exhausted retries) propagate after a
        final progress event flagged ``error``.
        """
        self._on_progress = on_progress
        file_format = FileFormat.parse(file_format)
        adapter = get_adapter(file_format)
        codes = lc.parse_language_list(languages)
        files = list_input_files(self.input_dir)

        summary = RunSummary(languages=codes, file_format=file_format.value,
                             total_files=len(files) * len(codes))
        started = time.time()

        self._emit(f"Total files to process: {len(files)}", total_files=summary.total_files)

        try:
            async with BackendClient(self.config, self.context, transport=self.transport) as client:
                for code in codes:
                    if self.context.cancelled:
                        break
                    language_name = lc.get_language_name(code)
                    self._emit(f"Starting translation for language: {code} ({language_name})", language=code)

                    for file_name in files:
                        if self.context.cancelled:
                            break
                        self._emit(
                            f"Processing file: {file_name} as {file_format.value} for language: {code}",
                            current_file=file_name,
                            completed_files=summary.completed_files,
                            language=code,
                        )
                        count = await self._process_file(client, adapter, file_name, code, language_name, summary)
                        summary.completed_files += 1
                        summary.strings_translated += count
                        self._emit(
                            f"Completed {file_name}",
                            completed_files=summary.completed_files,
                            strings_translated=count,
                            file_completed=True,
                            language=code,
                        )

                    if not self.context.cancelled:
                        self._emit(f"Finished translation for language: {code}", language=code)
        except (AuthenticationError, RunAbortError) as e:
            summary.backend_calls = self.context.backend_calls
            summary.duration = time.time() - started
            if isinstance(e, RunAbortError) and e.reason == "cancelled":
                summary.cancelled = True
                self._emit("Translation cancelled")
                return summary
            summary.aborted = True
            summary.error = str(e)
            self._emit(f"Translation aborted: {e}", error=True)
            raise

        summary.backend_calls = self.context.backend_calls
        summary.duration = time.time() - started
        if self.context.cancelled:
            summary.cancelled = True
            self._emit("Translation cancelled")
        else:
            self._emit(
                f"All translations complete! Total: {summary.strings_translated} strings "
                f"in {summary.completed_files} files"
            )
        return summary

    async def _process_file(
        self,
        client: BackendClient,
        adapter: ResourceAdapter,
        file_name: str,
        code: str,
        language_name: str,
        summary: RunSummary,
    ) -> int:
        """Translate one file into one language; returns the string count written."""
        source_path = self.input_dir / file_name
        out_path = self.output_dir / code / file_name

        try:
            source = adapter.load(source_path)
        except (ResourceFormatError, OSError) as e:
            summary.failed_files.append(f"{code}/{file_name}")
            self._emit(f"Failed to load {file_name}: {e}", error=True, current_file=file_name)
            return 0
        self._emit(f"Successfully read {file_name}")

        if source.format == FileFormat.PLAIN_TEXT:
            return await self._process_text(client, adapter, source, out_path, code, language_name)

        existing = adapter.load_existing(out_path)
        if existing is not None:
            self._emit(f"Loaded {len(existing)} existing translations for {file_name}")

        records = decide(source.strings, existing)
        for record in records:
            if record.needs_translation and record.ratio is not None:
                logger.debug(f"Retranslating string: {record.key} (length ratio: {record.ratio:.2f}%)")
        pending = keys_to_translate(records)
        kept = len(records) - len(pending)
        self._emit(f"{file_name}: {len(pending)} strings to translate, {kept} kept")

        # Empty source strings need no backend call
        updates: Dict[str, str] = empty_source_keys(records)
        missing: List[str] = []

        def on_result(batch: Mapping[str, str], result: Mapping[str, Any]) -> None:
            written = merge_batch_result(batch, result, updates, missing)
            self._emit(f"Translated batch of {len(batch)} keys ({written} updated) for language: {code}")

        async def worker(batch: Dict[str, str]) -> Dict[str, str]:
            self._emit(f"Translating batch: {', '.join(batch)} for language: {code}")
            return await client.translate_batch(batch, language_name)

        batches = batch_strings(pending, self.config.max_batch_char_limit)
        completed = False
        count = len(existing) if existing else 0
        try:
            await run_batches(
                batches,
                worker,
                max_concurrency=self.config.max_concurrency,
                context=self.context,
                on_result=on_result,
            )
            completed = True
        finally:
            # Flush whatever resolved, even when the run is being aborted
            self._record_missing(summary, code, source, missing)
            if updates or (completed and existing is None):
                count = adapter.save(out_path, source, self._apply_glossary(updates, code))

        self._emit(f"Done: {file_name} for language: {code}")
        return count

    async def _process_text(
        self,
        client: BackendClient,
        adapter: ResourceAdapter,
        source: ResourceFile,
        out_path: Path,
        code: str,
        language_name: str,
    ) -> int:
        text = source.strings[TEXT_KEY]
        if self.context.cancelled:
            raise RunAbortError("Translation cancelled", reason="cancelled")
        self._emit(f"Translating text file: {source.path.name} to {language_name}")
        translated = await client.translate_text(text, language_name)
        translated = apply_glossary(translated, self.config.glossary, code)
        preview = translated[:100] + ("..." if len(translated) > 100 else "")
        self._emit(f"Translated content preview: {preview}")
        count = adapter.save(out_path, source, {TEXT_KEY: translated})
        self._emit(f"Done: {source.path.name} for language: {code}")
        return count

    def _apply_glossary(self, updates: Dict[str, str], code: str) -> Dict[str, str]:
        if not self.config.glossary:
            return updates
        return {k: apply_glossary(v, self.config.glossary, code) for k, v in updates.items()}

    def _record_missing(self, summary: RunSummary, code: str, source: ResourceFile, missing: List[str]) -> None:
        if not missing:
            return
        name = source.path.name
        for key in missing:
            self._emit(f"Missing translation for: {key} in language: {code} - keeping existing value")
        summary.missing_keys.setdefault(f"{code}/{name}", []).extend(missing)


def run_translation(
    languages: Union[str, List[str]],
    file_format: Union[str, FileFormat],
    config: RunConfig,
    on_progress: Optional[ProgressCallback] = None,
    input_dir: Union[str, Path, None] = None,
    output_dir: Union[str, Path, None] = None,
    manager: Optional[TranslationManager] = None,
) -> RunSummary:
    """
    Synchronous entry point: run a whole translation on a fresh event loop.

    Pass a prebuilt ``manager`` to keep a handle for ``request_cancel``.
    """
    if manager is None:
        if input_dir is None or output_dir is None:
            raise ValueError("input_dir and output_dir are required when no manager is given")
        manager = TranslationManager(config, input_dir, output_dir)
    return asyncio.run(manager.run(languages, file_format, on_progress))
