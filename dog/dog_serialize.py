from __future__ import annotations

import json
import re
from typing import Any, Optional

import yaml

from dog.dog_datatypes import Value


# --------------------------
# Helpers
# --------------------------

def _norm_text(data: bytes | bytearray | str, *, encoding: Optional[str] = None) -> str:
    if isinstance(data, (bytes, bytearray)):
        try:
            return data.decode(encoding or 'utf-8', errors='replace')
        except LookupError:
            return data.decode('utf-8', errors='replace')
    if isinstance(data, str):
        return data
    return str(data)


def _encoding_from_content_type(content_type: Optional[str]) -> Optional[str]:
    if not content_type:
        return None
    m = re.search(r'charset\s*=\s*([^\s;]+)', content_type, re.IGNORECASE)
    if m:
        return m.group(1).strip('"').strip("'")
    return None


def _to_builtin(obj: Any) -> Any:
    if isinstance(obj, Value):
        return obj.to_dict()
    if isinstance(obj, (list, tuple)):
        return [_to_builtin(x) for x in obj]
    if isinstance(obj, dict):
        return {k: _to_builtin(v) for k, v in obj.items()}
    return obj


def detect_format(content_type: Optional[str] = None, data_hint: Optional[str] = None) -> Optional[str]:
    """
    Returns 'json' or 'yaml' from the Content-Type, falling back to sniffing
    the data when given.
    """
    ct = (content_type or "").lower()
    if 'json' in ct:
        return 'json'
    if 'yaml' in ct:
        return 'yaml'
    if data_hint is not None:
        s = data_hint.lstrip()
        if s.startswith('{') or s.startswith('['):
            return 'json'
    return None


# --------------------------
# Public API
# --------------------------

def deserialize(data: bytes | bytearray | str,
                *,
                content_type: Optional[str] = None,
                fmt: Optional[str] = None) -> Any:
    """
    Convert wire data (bytes/string) to native Python structures.
    Supported fmt: 'json', 'yaml'. If fmt is None, uses content_type, then
    sniffing. Unknown formats and unparsable data return the raw text.
    """
    text = _norm_text(data, encoding=_encoding_from_content_type(content_type))
    f = fmt or detect_format(content_type, text)
    if f == 'json':
        try:
            return json.loads(text)
        except ValueError:
            # Declared JSON but YAML-like content
            try:
                return yaml.safe_load(text)
            except yaml.YAMLError:
                return text
    if f == 'yaml':
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError:
            return text
    return text


def serialize(value: Any, *, fmt: str = 'json', pretty: bool = True) -> str:
    """Convert a native value (Values become `{text, status}`) to 'json' or 'yaml' text."""
    f = (fmt or '').lower()
    built = _to_builtin(value)
    if f == 'json':
        return json.dumps(built, ensure_ascii=False, indent=2 if pretty else None)
    if f == 'yaml':
        return yaml.safe_dump(built, sort_keys=False)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


def dump_value(value: Value, fmt: str = 'json') -> str:
    return serialize(value, fmt=fmt, pretty=False)


def load_value(data: bytes | bytearray | str, fmt: Optional[str] = None) -> Value:
    """Reads a `{text, status}` mapping back into a Value."""
    parsed = deserialize(data, fmt=fmt or 'json')
    if not isinstance(parsed, dict):
        raise ValueError("expected a mapping with `text` and `status`")
    return Value.from_dict(parsed)


__all__ = [
    "deserialize",
    "serialize",
    "detect_format",
    "dump_value",
    "load_value",
]
