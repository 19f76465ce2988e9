"""
Keyed-array resource files (Laravel style PHP language files).

    <?php

    return [
        'welcome' => 'Welcome, :name!',
        'bye' => "Good\nbye",
    ];

Only flat string => string pairs are supported. ``array(...)`` literals and
comments between entries are accepted on read; output is always written in
the ``[ ... ]`` form with single-quoted strings.
"""

import re
from pathlib import Path
from typing import Dict, Mapping, Optional

from lingobatch.ai.exceptions import ResourceFormatError
from lingobatch.logger import get_logger
from lingobatch.resources.base import (
    FileFormat,
    ResourceAdapter,
    ResourceFile,
    atomic_write_text,
    read_text,
)

logger = get_logger(__name__)

_STRING = r"""'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*\""""
_ENTRY = re.compile(rf"({_STRING})\s*=>\s*({_STRING})", re.DOTALL)
_RETURN = re.compile(r"\breturn\s*(\[|array\s*\()", re.IGNORECASE)
_COMMENT = re.compile(r"//[^\n]*|#[^\n]*|/\*.*?\*/", re.DOTALL)

_DOUBLE_QUOTED_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "\\": "\\",
    '"': '"',
    "$": "$",
}


def _strip_comments(code: str) -> str:
    """Remove comments outside string literals."""
    pieces = []
    pos = 0
    token = re.compile(rf"{_STRING}|//[^\n]*|#[^\n]*|/\*.*?\*/", re.DOTALL)
    for match in token.finditer(code):
        pieces.append(code[pos:match.start()])
        text = match.group(0)
        if _COMMENT.fullmatch(text):
            pieces.append(" ")
        else:
            pieces.append(text)
        pos = match.end()
    pieces.append(code[pos:])
    return "".join(pieces)


def unquote(literal: str) -> str:
    """Decode a PHP string literal."""
    quote, body = literal[0], literal[1:-1]
    if quote == "'":
        # Single quotes only know \' and \\
        return re.sub(r"\\(['\\])", r"\1", body)
    return re.sub(
        r"\\(.)",
        lambda m: _DOUBLE_QUOTED_ESCAPES.get(m.group(1), "\\" + m.group(1)),
        body,
        flags=re.DOTALL,
    )


def quote(value: str) -> str:
    """Encode a value as a single-quoted PHP literal."""
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def parse_keyed_array(code: str, path: Optional[Path] = None) -> Dict[str, str]:
    """Parse ``<?php return [...]`` source into an ordered dict."""
    if not code.lstrip().startswith("<?php"):
        raise ResourceFormatError(f"File {path} does not appear to be a valid PHP file (missing <?php)", path=path)

    code = _strip_comments(code)
    match = _RETURN.search(code)
    if not match:
        raise ResourceFormatError(f"File {path} does not contain a valid PHP return statement", path=path)

    body = code[match.end():]
    entries: Dict[str, str] = {}
    for entry in _ENTRY.finditer(body):
        entries[unquote(entry.group(1))] = unquote(entry.group(2))
    return entries


def render_keyed_array(data: Mapping[str, str]) -> str:
    lines = ["<?php", "", "return ["]
    for key, value in data.items():
        lines.append(f"    {quote(key)} => {quote(value)},")
    lines.append("];")
    return "\n".join(lines) + "\n"


class KeyedArrayAdapter(ResourceAdapter):
    format = FileFormat.KEYED_ARRAY

    def load(self, path: Path) -> ResourceFile:
        strings = parse_keyed_array(read_text(path), path)
        return ResourceFile(path=Path(path), format=self.format, strings=strings)

    def load_existing(self, path: Path) -> Optional[Dict[str, str]]:
        if not Path(path).exists():
            return None
        try:
            return parse_keyed_array(read_text(path), path)
        except ResourceFormatError as e:
            logger.warning(f"Ignoring unreadable existing translations: {e}")
            return None

    def save(self, path: Path, source: ResourceFile, updates: Mapping[str, str]) -> int:
        merged = dict(self.load_existing(path) or {})
        merged.update(updates)
        atomic_write_text(path, render_keyed_array(merged))
        return len(merged)
