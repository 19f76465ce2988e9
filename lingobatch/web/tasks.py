"""
Background run helpers: one translation run at a time, executed in a daemon
thread, observed through an in-memory RunState.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from lingobatch.config import RunConfig
from lingobatch.core import database as db
from lingobatch.logger import get_logger
from lingobatch.resources import FileFormat
from lingobatch.translation.manager import TranslationManager, run_translation
from lingobatch.translation.progress import ProgressEvent

logger = get_logger(__name__)

MAX_LOG_ENTRIES = 500


@dataclass
class RunStats:
    files_processed: int = 0
    strings_translated: int = 0
    errors: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "filesProcessed": self.files_processed,
            "stringsTranslated": self.strings_translated,
            "errors": self.errors,
        }


@dataclass
class RunState:
    """In-memory view of the current (or last) run."""

    running: bool = False
    done: bool = False
    stop_requested: bool = False
    languages: str = ""
    file_format: str = ""
    model: str = ""
    log: List[str] = field(default_factory=list)
    total_files: int = 0
    completed_files: int = 0
    current_file: str = ""
    start_time: Optional[float] = None
    finish_time: Optional[float] = None
    stats: RunStats = field(default_factory=RunStats)
    summary: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def append_log(self, line: str) -> None:
        self.log.append(line)
        if len(self.log) > MAX_LOG_ENTRIES:
            del self.log[:-MAX_LOG_ENTRIES]

    def apply_event(self, event: ProgressEvent) -> None:
        """Fold a progress event into the counters."""
        self.append_log(event.message)
        if event.total_files:
            self.total_files = event.total_files
        if event.completed_files is not None:
            self.completed_files = event.completed_files
        if event.current_file:
            self.current_file = event.current_file
        if event.strings_translated:
            self.stats.strings_translated += event.strings_translated
        if event.error:
            self.stats.errors += 1
        if event.file_completed:
            self.stats.files_processed += 1

    @property
    def duration(self) -> int:
        if self.start_time is None:
            return 0
        end = self.finish_time or time.time()
        return int(round(end - self.start_time))

    @property
    def percent(self) -> int:
        if self.total_files <= 0:
            return 0
        return int(round(self.completed_files / self.total_files * 100))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "done": self.done,
            "log": list(self.log),
            "totalFiles": self.total_files,
            "completedFiles": self.completed_files,
            "currentFile": self.current_file,
            "startTime": self.start_time,
            "stats": self.stats.to_dict(),
            "summary": self.summary,
            "error": self.error,
        }

    def progress_dict(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "totalFiles": self.total_files,
            "completedFiles": self.completed_files,
            "currentFile": self.current_file,
            "percent": self.percent,
            "stats": self.stats.to_dict(),
        }


_state = RunState()
_manager: Optional[TranslationManager] = None
_state_lock = threading.Lock()


def build_manager(config: RunConfig, input_dir: Path, output_dir: Path) -> TranslationManager:
    """Create the manager for a new run."""
    return TranslationManager(config, input_dir, output_dir)


def get_state() -> Dict[str, Any]:
    with _state_lock:
        return _state.to_dict()


def get_progress() -> Dict[str, Any]:
    with _state_lock:
        return _state.progress_dict()


def is_running() -> bool:
    with _state_lock:
        return _state.running


def start_run(
    languages: str,
    file_format: FileFormat,
    config: RunConfig,
    input_dir: Path,
    output_dir: Path,
) -> bool:
    """
    Launch a translation run in a background thread.

    Returns:
        False if a run is already active, True once the new run is started
    """
    global _state, _manager

    with _state_lock:
        if _state.running:
            return False
        manager = build_manager(config, input_dir, output_dir)
        _manager = manager
        _state = RunState(
            running=True,
            languages=languages,
            file_format=file_format.value,
            model=config.active_model,
            start_time=time.time(),
        )
        state = _state

    thread = threading.Thread(
        target=_run_worker,
        args=(state, manager, languages, file_format, config),
        name="translation-run",
        daemon=True,
    )
    thread.start()
    logger.info("Translation run started (languages=%s, format=%s)", languages, file_format.value)
    return True


def stop_run() -> bool:
    """
    Request cancellation of the active run.

    In-flight backend calls finish or time out; the run then ends before its
    next batch. Returns False if nothing is running.
    """
    with _state_lock:
        if not _state.running or _manager is None:
            return False
        _state.stop_requested = True
        _state.append_log("Translation stopped by user")
        manager = _manager
    manager.request_cancel()
    logger.info("Cancellation requested for the active run")
    return True


def _run_worker(state: RunState, manager: TranslationManager, languages: str,
                file_format: FileFormat, config: RunConfig) -> None:
    """Worker function executed in a background thread."""

    def on_progress(event: ProgressEvent) -> None:
        with _state_lock:
            if state.stop_requested:
                return
            state.apply_event(event)

    success = False
    error: Optional[str] = None
    try:
        summary = run_translation(languages, file_format, config, on_progress=on_progress, manager=manager)
        with _state_lock:
            state.summary = summary.to_dict()
        success = summary.success
        if summary.cancelled:
            logger.info("Translation run cancelled after %s files", summary.completed_files)
    except Exception as exc:
        error = str(exc)
        logger.exception("Translation run failed: %s: %s", type(exc).__name__, exc)

    with _state_lock:
        state.finish_time = time.time()
        state.error = error
        if error is not None:
            state.append_log(f"Translation failed: {error}")
        elif not state.stop_requested:
            state.append_log(f"Translation complete! Duration: {state.duration}s")
        cancelled = state.stop_requested and error is None
        entry = dict(
            languages=languages,
            files_count=state.stats.files_processed,
            strings_translated=state.stats.strings_translated,
            duration=state.duration,
            model=config.active_model,
            success=success,
            error=error,
        )

    if not cancelled:
        try:
            db.add_history_entry(**entry)
        except Exception as e:
            logger.error(f"Failed to save run history: {e}")

    with _state_lock:
        state.running = False
        state.done = True
