"""Thin orjson wrapper with str-returning dumps."""

from __future__ import annotations

from typing import Any

import orjson

JSONDecodeError = orjson.JSONDecodeError


def dumps(obj: Any, *, indent: bool = False, sort_keys: bool = False) -> str:
    """Serialize obj to a JSON string."""
    option = 0
    if indent:
        option |= orjson.OPT_INDENT_2
    if sort_keys:
        option |= orjson.OPT_SORT_KEYS
    return orjson.dumps(obj, option=option or None).decode("utf-8")


def dumpb(obj: Any) -> bytes:
    """Serialize obj to UTF-8 encoded JSON bytes."""
    return orjson.dumps(obj)


def loads(data: str | bytes | bytearray | memoryview) -> Any:
    """Deserialize JSON from str or bytes."""
    return orjson.loads(data)
