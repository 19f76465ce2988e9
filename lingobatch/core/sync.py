"""
Locale merge module.

This module folds finished translations back into an existing locale tree:
- Overlaying a translated file onto the matching locale file
- Walking every language directory of a locale tree
"""

import json
from pathlib import Path
from typing import Any, Dict, Union

from lingobatch.ai.exceptions import ResourceFormatError
from lingobatch.logger import get_logger
from lingobatch.resources.base import FileFormat, atomic_write_text, read_text
from lingobatch.resources.keyed_array import parse_keyed_array, render_keyed_array

logger = get_logger(__name__)

# merge_locales statuses
MERGED = "merged"
UNCHANGED = "unchanged"
NO_TRANSLATION = "no_translation"
NO_ORIGINAL = "no_original"
FAILED = "failed"


def _load_document(path: Path, file_format: FileFormat) -> Dict[str, Any]:
    if file_format == FileFormat.KEYED_ARRAY:
        return parse_keyed_array(read_text(path), path)
    try:
        data = json.loads(read_text(path))
    except json.JSONDecodeError as e:
        raise ResourceFormatError(f"Error parsing JSON file {path}: {e}", path=path) from e
    if not isinstance(data, dict):
        raise ResourceFormatError(f"File {path} must contain a JSON object at the root", path=path)
    return data


def _render_document(data: Dict[str, Any], file_format: FileFormat) -> str:
    if file_format == FileFormat.KEYED_ARRAY:
        return render_keyed_array(data)
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def merge_translated_file(
    locale_path: Union[str, Path],
    translated_path: Union[str, Path],
    file_format: Union[str, FileFormat],
) -> bool:
    """
    Overlay a translated file onto a locale file.

    Top-level keys that are new or differ in the translated file replace the
    locale's values; keys only present in the locale file are kept. The
    locale file is rewritten only when something changed.

    Args:
        locale_path: Locale file updated in place
        translated_path: Freshly translated file (skipped when absent)
        file_format: keyed-array or nested-object (aliases php / json)

    Returns:
        True if the locale file was rewritten

    Raises:
        ResourceFormatError: If either file cannot be parsed
        ValueError: For plain-text, which has no keys to merge
    """
    file_format = FileFormat.parse(file_format)
    if file_format == FileFormat.PLAIN_TEXT:
        raise ValueError("Plain-text files cannot be merged key by key")

    locale_path = Path(locale_path)
    translated_path = Path(translated_path)
    if not translated_path.exists():
        return False

    original = _load_document(locale_path, file_format)
    translated = _load_document(translated_path, file_format)

    merged = dict(original)
    changed = False
    for key, value in translated.items():
        if key not in original or original[key] != value:
            merged[key] = value
            changed = True

    if not changed:
        logger.info(f"No changes: {locale_path}")
        return False

    atomic_write_text(locale_path, _render_document(merged, file_format))
    logger.info(f"Merged: {locale_path}")
    return True


def merge_locales(
    locales_dir: Union[str, Path],
    translated_dir: Union[str, Path],
    file_name: str,
    file_format: Union[str, FileFormat],
) -> Dict[str, str]:
    """
    Merge ``translated_dir/<lang>/<file_name>`` into ``locales_dir/<lang>/<file_name>``
    for every language directory under ``locales_dir``.

    A file that fails to parse is logged and reported as ``failed``; the
    remaining languages are still merged.

    Returns:
        Mapping of language directory -> status
    """
    locales_dir = Path(locales_dir)
    translated_dir = Path(translated_dir)
    results: Dict[str, str] = {}

    for lang_dir in sorted(p for p in locales_dir.iterdir() if p.is_dir()):
        lang = lang_dir.name
        locale_file = lang_dir / file_name
        translated_file = translated_dir / lang / file_name

        if not locale_file.exists():
            logger.warning(f"Skipped (no original): {locale_file}")
            results[lang] = NO_ORIGINAL
            continue
        if not translated_file.exists():
            results[lang] = NO_TRANSLATION
            continue

        try:
            changed = merge_translated_file(locale_file, translated_file, file_format)
        except ResourceFormatError as e:
            logger.error(f"Failed to merge {locale_file}: {e}")
            results[lang] = FAILED
            continue
        results[lang] = MERGED if changed else UNCHANGED

    return results
