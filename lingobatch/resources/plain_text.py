"""
Plain-text resource files: the whole file is one translation unit.
"""

from pathlib import Path
from typing import Dict, Mapping, Optional

from lingobatch.resources.base import (
    FileFormat,
    ResourceAdapter,
    ResourceFile,
    atomic_write_text,
    read_text,
)

TEXT_KEY = "__text__"


class PlainTextAdapter(ResourceAdapter):
    format = FileFormat.PLAIN_TEXT

    def load(self, path: Path) -> ResourceFile:
        return ResourceFile(path=Path(path), format=self.format, strings={TEXT_KEY: read_text(path)})

    def load_existing(self, path: Path) -> Optional[Dict[str, str]]:
        # A text file is always retranslated as a whole
        return None

    def save(self, path: Path, source: ResourceFile, updates: Mapping[str, str]) -> int:
        if TEXT_KEY not in updates:
            return 0
        atomic_write_text(path, updates[TEXT_KEY])
        return self.count_strings(source)

    @staticmethod
    def count_strings(source: ResourceFile) -> int:
        """Non-blank source lines stand in for a string count."""
        text = source.strings.get(TEXT_KEY, "")
        return sum(1 for line in text.split("\n") if line.strip())
