# datapath.py
# SPDX-License-Identifier: MIT
"""Dot-path addressing for nested metadata and aggregates.

Paths use ``.`` between object keys and a trailing ``[]`` on a segment to
expand every element of an array, e.g. ``commands[].options.input``.
Writers never mutate their input; they rebuild the containers along the
path and share everything else.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

__all__ = [
    "PathSegment",
    "parse_path",
    "collect_values",
    "get_value",
    "has_value",
    "set_value",
    "flatten_nested",
    "flatten_at",
    "MISSING",
]


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


@dataclass(frozen=True, slots=True)
class PathSegment:
    key: str
    expand: bool = False


def parse_path(path: str) -> tuple[PathSegment, ...]:
    """Split ``path`` into segments.

    Raises:
        ValueError: If the path is empty, has empty segments, or uses
            brackets anywhere other than a trailing ``[]``.
    """
    if not isinstance(path, str) or not path.strip():
        raise ValueError("path must be a non-empty string")
    segments: list[PathSegment] = []
    for raw in path.strip().split("."):
        expand = raw.endswith("[]")
        key = raw[:-2] if expand else raw
        if not key:
            raise ValueError(f"empty segment in path {path!r}")
        if "[" in key or "]" in key:
            raise ValueError(f"malformed array segment {raw!r} in path {path!r}")
        segments.append(PathSegment(key=key, expand=expand))
    return tuple(segments)


def collect_values(data: Any, path: str) -> list[Any]:
    """Collect every value reachable through ``path``.

    ``[]`` segments fan out over arrays. Array leaves are flattened one
    level and ``None`` values are skipped.
    """
    current: list[Any] = [data]
    for seg in parse_path(path):
        nxt: list[Any] = []
        for node in current:
            if not isinstance(node, Mapping) or seg.key not in node:
                continue
            value = node[seg.key]
            if seg.expand:
                if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
                    nxt.extend(value)
            else:
                nxt.append(value)
        current = nxt
    out: list[Any] = []
    for value in current:
        if value is None:
            continue
        if isinstance(value, list):
            out.extend(v for v in value if v is not None)
        else:
            out.append(value)
    return out


def get_value(data: Any, path: str, default: Any = MISSING) -> Any:
    """Return the single value at a plain dot path (no ``[]`` expansion)."""
    node = data
    for seg in parse_path(path):
        if seg.expand:
            raise ValueError(f"get_value does not expand arrays: {path!r}")
        if not isinstance(node, Mapping) or seg.key not in node:
            return default
        node = node[seg.key]
    return node


def has_value(data: Any, path: str) -> bool:
    return get_value(data, path) is not MISSING


def set_value(data: Mapping[str, Any], path: str, value: Any) -> dict[str, Any]:
    """Return a copy of ``data`` with ``value`` written at ``path``.

    Missing or non-object intermediates are replaced by empty objects.
    """
    segments = parse_path(path)
    if any(seg.expand for seg in segments):
        raise ValueError(f"cannot write through an array segment: {path!r}")
    return _set(dict(data), [seg.key for seg in segments], value)


def _set(node: dict[str, Any], keys: list[str], value: Any) -> dict[str, Any]:
    head, rest = keys[0], keys[1:]
    if not rest:
        node[head] = value
        return node
    child = node.get(head)
    child_copy = dict(child) if isinstance(child, Mapping) else {}
    node[head] = _set(child_copy, rest, value)
    return node


def flatten_nested(values: Sequence[Any]) -> list[Any]:
    """Expand nested lists into one flat list, depth first, keeping order."""
    out: list[Any] = []
    for item in values:
        if isinstance(item, list):
            out.extend(flatten_nested(item))
        else:
            out.append(item)
    return out


def flatten_at(data: Mapping[str, Any], path: str) -> Mapping[str, Any]:
    """Return ``data`` with the array at ``path`` flattened to a single level.

    Data holding no array at ``path`` is returned as given.
    """
    value = get_value(data, path, default=None)
    if not isinstance(value, list):
        return data
    return set_value(data, path, flatten_nested(value))
