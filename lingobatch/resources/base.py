"""
Resource file model and shared file helpers.
"""

import os
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from lingobatch.ai.exceptions import ResourceFormatError


class FileFormat(str, Enum):
    KEYED_ARRAY = "keyed-array"
    NESTED_OBJECT = "nested-object"
    PLAIN_TEXT = "plain-text"

    @classmethod
    def parse(cls, value) -> "FileFormat":
        """Accept the canonical names and the short aliases ``php``, ``json`` and ``files``."""
        if isinstance(value, cls):
            return value
        name = str(value or "").strip().lower()
        aliases = {
            "php": cls.KEYED_ARRAY,
            "json": cls.NESTED_OBJECT,
            "files": cls.PLAIN_TEXT,
            "text": cls.PLAIN_TEXT,
        }
        if name in aliases:
            return aliases[name]
        try:
            return cls(name)
        except ValueError:
            raise ValueError(
                f"Unknown file format {value!r}; expected one of: "
                "php, json, files, keyed-array, nested-object, plain-text"
            ) from None


@dataclass
class ResourceFile:
    """A source resource flattened to ordered dotted key -> source text."""
    path: Path
    format: FileFormat
    strings: Dict[str, str] = field(default_factory=dict)
    # Parsed native document (nested-object skeleton); None for other formats
    document: Optional[Any] = None


class ResourceAdapter:
    """Read a resource into a ResourceFile and write merged output back."""

    format: FileFormat

    def load(self, path: Path) -> ResourceFile:
        raise NotImplementedError

    def load_existing(self, path: Path) -> Optional[Dict[str, str]]:
        """Flat mapping of a prior output file, or None when there is none."""
        raise NotImplementedError

    def save(self, path: Path, source: ResourceFile, updates: Mapping[str, str]) -> int:
        """
        Merge ``updates`` over the prior output at ``path`` and write it.

        Returns:
            Number of translatable strings in the written file
        """
        raise NotImplementedError

    @staticmethod
    def count_strings(source: ResourceFile) -> int:
        return len(source.strings)


def read_text(path: Path) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ResourceFormatError(f"File {path} is not valid UTF-8: {e}", path=path) from e


def atomic_write_text(path: Path, content: str) -> None:
    """Write via a temp file in the same directory, then replace."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as tmp:
            tmp.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def list_input_files(input_dir: Path) -> List[str]:
    """All files under ``input_dir`` as sorted relative POSIX paths (hidden files skipped)."""
    input_dir = Path(input_dir)
    if not input_dir.is_dir():
        return []
    files = []
    for path in input_dir.rglob("*"):
        relative = path.relative_to(input_dir)
        if any(part.startswith(".") for part in relative.parts):
            continue
        if path.is_file():
            files.append(relative.as_posix())
    return sorted(files)
