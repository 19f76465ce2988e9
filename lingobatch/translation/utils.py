"""
Translation utility functions for flatten/rebuild, batching, and JSON extraction.
Provides capabilities for processing nested JSON structures and turning raw
model output into data.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union


PathSegment = Union[str, int]
KeyPath = Tuple[PathSegment, ...]


def iter_string_leaves(obj: Any, path: KeyPath = ()) -> Iterator[Tuple[KeyPath, str]]:
    """
    Yield ``(path, value)`` for every string leaf of a JSON document.

    Objects contribute their keys and arrays their indexes as path segments.
    Numbers, booleans and null are not translatable and are skipped.
    """
    if isinstance(obj, dict):
        items = obj.items()
    elif isinstance(obj, list):
        items = enumerate(obj)
    else:
        return

    for key, value in items:
        new_path = path + (key,)
        if isinstance(value, str):
            yield new_path, value
        elif isinstance(value, (dict, list)):
            yield from iter_string_leaves(value, new_path)


def join_path(path: KeyPath) -> str:
    return ".".join(str(segment) for segment in path)


def flatten_json(obj: Any) -> Dict[str, str]:
    """
    Flatten nested JSON into dotted key -> string pairs.

    Array elements use their index as a segment (``items.0``). Key order is
    first-seen traversal order; when two paths join to the same dotted key
    the first one wins.

    Example:
        >>> flatten_json({"home": {"title": "Hello", "count": 3}, "items": ["One"]})
        {'home.title': 'Hello', 'items.0': 'One'}
    """
    strings: Dict[str, str] = {}
    for path, value in iter_string_leaves(obj):
        strings.setdefault(join_path(path), value)
    return strings


def string_paths(obj: Any) -> Dict[str, KeyPath]:
    """Map each dotted key of ``flatten_json(obj)`` to its real path segments."""
    paths: Dict[str, KeyPath] = {}
    for path, _ in iter_string_leaves(obj):
        paths.setdefault(join_path(path), path)
    return paths


def _is_index(segment: PathSegment) -> bool:
    return isinstance(segment, int) or (isinstance(segment, str) and segment.isdigit())


def _assign(node: Any, key: PathSegment, value: Any) -> None:
    if isinstance(node, list):
        index = int(key)
        if index >= len(node):
            node.extend([None] * (index + 1 - len(node)))
        node[index] = value
    else:
        node[key] = value


def _child(node: Any, key: PathSegment, next_key: PathSegment) -> Any:
    if isinstance(node, list):
        index = int(key)
        current = node[index] if index < len(node) else None
    else:
        current = node.get(key)

    if isinstance(current, list) and _is_index(next_key):
        return current
    if isinstance(current, dict) and not isinstance(next_key, int):
        return current

    current = [] if isinstance(next_key, int) else {}
    _assign(node, key, current)
    return current


def set_nested_value(obj: Dict[str, Any], key_path: Union[str, Sequence[PathSegment]], value: Any) -> None:
    """
    Write ``value`` at a dotted path or a tuple of path segments.

    Missing intermediates are created (a list for an int segment, an object
    otherwise). Existing arrays are indexed into and padded with null when
    too short. An intermediate of the wrong kind is replaced.

    Example:
        >>> data = {"items": ["One", "Two"]}
        >>> set_nested_value(data, "items.1", "Zwei")
        >>> set_nested_value(data, ("auth.failed",), "Fehler")
        >>> data
        {'items': ['One', 'Zwei'], 'auth.failed': 'Fehler'}
    """
    keys = key_path.split('.') if isinstance(key_path, str) else list(key_path)
    node: Any = obj
    for key, next_key in zip(keys[:-1], keys[1:]):
        node = _child(node, key, next_key)
    _assign(node, keys[-1], value)


def batch_strings(data: Mapping[str, str], max_chars: int) -> List[Dict[str, str]]:
    """
    Split key-value pairs into batches whose total value length fits ``max_chars``.

    Greedy and insertion ordered. A value longer than the budget is never
    split: it becomes a batch of its own.

    Args:
        data: Ordered mapping of key -> source text
        max_chars: Character budget per batch

    Returns:
        List of batches, each an ordered dict
    """
    if not isinstance(max_chars, int) or isinstance(max_chars, bool) or max_chars < 1:
        raise ValueError(f"max_chars must be a positive integer, got {max_chars!r}")

    batches: List[Dict[str, str]] = []
    current: Dict[str, str] = {}
    current_size = 0

    for key, value in data.items():
        value_len = len(value)

        if value_len > max_chars:
            if current:
                batches.append(current)
            batches.append({key: value})
            current = {}
            current_size = 0
        elif current_size + value_len > max_chars:
            if current:
                batches.append(current)
            current = {key: value}
            current_size = value_len
        else:
            current[key] = value
            current_size += value_len

    if current:
        batches.append(current)

    return batches


# ============================================================
# Model output parsing
# ============================================================

@dataclass(frozen=True)
class Parsed:
    """Model output decoded as JSON."""
    value: Any


@dataclass(frozen=True)
class Malformed:
    """Model output that is not valid JSON, kept for secondary extraction."""
    raw_text: str
    reason: str = ""


ParseOutcome = Union[Parsed, Malformed]

_FENCE_START = re.compile(r'^```(?:json)?\s*', re.IGNORECASE)
_FENCE_END = re.compile(r'\s*```$')
_TRANSLATED_FIELD = re.compile(r'"translated"\s*:\s*"(.*?)"(?=\s*}$)', re.DOTALL)

_ESCAPES = {
    'n': '\n',
    'r': '\r',
    't': '\t',
    '"': '"',
    "'": "'",
    '\\': '\\',
}
_ESCAPE_SEQUENCE = re.compile(r'\\(["\'\\nrt])')


def strip_code_fence(text: str) -> str:
    """Remove a surrounding ``` or ```json fence, if any."""
    text = (text or "").strip()
    text = _FENCE_START.sub('', text)
    return _FENCE_END.sub('', text)


def parse_json_object(text: str) -> ParseOutcome:
    """Strict parse of model output (fence stripped first)."""
    cleaned = strip_code_fence(text)
    if not cleaned:
        return Malformed(cleaned, "empty")
    try:
        return Parsed(json.loads(cleaned))
    except json.JSONDecodeError as e:
        return Malformed(cleaned, str(e))


def unescape_control_chars(text: str) -> str:
    """Turn literal escape sequences (\\n, \\", \\\\ ...) left by the model into characters."""
    return _ESCAPE_SEQUENCE.sub(lambda m: _ESCAPES[m.group(1)], text)


def extract_translated_field(raw_text: str) -> Optional[str]:
    """
    Secondary parser for single-text replies that are not valid JSON.

    Models sometimes leave a quote unescaped inside the value, e.g.
    ``{"translated": "Say "hi""}``. The value is taken greedily up to the
    quote that closes the object.
    """
    match = _TRANSLATED_FIELD.search(raw_text.strip())
    if not match:
        return None
    return unescape_control_chars(match.group(1))


def sanitize_input(text: str) -> str:
    """Prepare a free text block for embedding inside a quoted prompt line."""
    text = text.replace('\r', '')
    text = text.replace('\\', '\\\\')
    text = text.replace('\n', '\\n')
    text = text.replace('"', '\\"')
    return re.sub(r'[\u0000-\u001F\u007F]', '', text)
