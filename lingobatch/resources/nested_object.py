"""
Nested-object resource files (JSON locale files of arbitrary depth).
"""

import copy
import json
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from lingobatch.ai.exceptions import ResourceFormatError
from lingobatch.logger import get_logger
from lingobatch.resources.base import (
    FileFormat,
    ResourceAdapter,
    ResourceFile,
    atomic_write_text,
    read_text,
)
from lingobatch.translation.utils import (
    flatten_json,
    iter_string_leaves,
    join_path,
    set_nested_value,
    string_paths,
)

logger = get_logger(__name__)


def _parse_json(path: Path) -> Any:
    content = read_text(path)
    if not content.strip().startswith(("{", "[")):
        raise ResourceFormatError(f"File {path} does not appear to be valid JSON", path=path)
    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        raise ResourceFormatError(f"Error parsing JSON file {path}: {e}", path=path) from e


def _drop_untranslated(document: Dict[str, Any], updates: Mapping[str, str]) -> None:
    """
    Remove non-empty string leaves that have no translation in ``updates``.

    Object members are deleted. Array elements are blanked to ``""`` so the
    indexes of the remaining elements stay valid.
    """
    for path, value in list(iter_string_leaves(document)):
        if not value or join_path(path) in updates:
            continue
        parent: Any = document
        for segment in path[:-1]:
            parent = parent[segment]
        if isinstance(parent, list):
            parent[path[-1]] = ""
        else:
            del parent[path[-1]]


class NestedObjectAdapter(ResourceAdapter):
    format = FileFormat.NESTED_OBJECT

    def load(self, path: Path) -> ResourceFile:
        document = _parse_json(path)
        if not isinstance(document, dict):
            raise ResourceFormatError(f"File {path} must contain a JSON object at the root", path=path)
        return ResourceFile(
            path=Path(path),
            format=self.format,
            strings=flatten_json(document),
            document=document,
        )

    def _load_existing_document(self, path: Path) -> Optional[Dict[str, Any]]:
        if not Path(path).exists():
            return None
        try:
            document = _parse_json(path)
        except ResourceFormatError as e:
            logger.warning(f"Failed to load existing translations: {e}")
            return None
        if not isinstance(document, dict):
            logger.warning(f"Existing translations in {path} are not a JSON object, ignoring them")
            return None
        return document

    def load_existing(self, path: Path) -> Optional[Dict[str, str]]:
        document = self._load_existing_document(path)
        return flatten_json(document) if document is not None else None

    def save(self, path: Path, source: ResourceFile, updates: Mapping[str, str]) -> int:
        # Without usable prior output the source document is the skeleton:
        # non-string leaves are kept, untranslated source strings are not
        output = self._load_existing_document(path)
        if output is None:
            output = copy.deepcopy(source.document) if source.document is not None else {}
            _drop_untranslated(output, updates)

        # Dotted keys resolve to the source's own path segments, so literal
        # dots in member names and array indexes are written back in place
        paths = string_paths(output)
        paths.update(string_paths(source.document))
        for key, value in updates.items():
            set_nested_value(output, paths.get(key, key), value)

        atomic_write_text(path, json.dumps(output, indent=2, ensure_ascii=False) + "\n")
        return len(flatten_json(output))
