"""
Resource adapters - read source files into flat key -> text mappings and
write merged translations back in each file's native shape.
"""

from lingobatch.resources.base import (
    FileFormat,
    ResourceAdapter,
    ResourceFile,
    atomic_write_text,
    list_input_files,
)
from lingobatch.resources.keyed_array import KeyedArrayAdapter
from lingobatch.resources.nested_object import NestedObjectAdapter
from lingobatch.resources.plain_text import PlainTextAdapter, TEXT_KEY

_ADAPTERS = {
    FileFormat.KEYED_ARRAY: KeyedArrayAdapter,
    FileFormat.NESTED_OBJECT: NestedObjectAdapter,
    FileFormat.PLAIN_TEXT: PlainTextAdapter,
}


def get_adapter(file_format) -> ResourceAdapter:
    """Adapter instance for a FileFormat or one of its aliases (php, json, files)."""
    return _ADAPTERS[FileFormat.parse(file_format)]()


__all__ = [
    "FileFormat",
    "ResourceAdapter",
    "ResourceFile",
    "KeyedArrayAdapter",
    "NestedObjectAdapter",
    "PlainTextAdapter",
    "TEXT_KEY",
    "atomic_write_text",
    "get_adapter",
    "list_input_files",
]
