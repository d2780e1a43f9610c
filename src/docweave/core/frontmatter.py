# frontmatter.py
# SPDX-License-Identifier: MIT
"""Metadata-block extraction for frontmatter documents.

Supports YAML blocks fenced by ``---`` lines and TOML blocks fenced by
``+++`` lines at the very start of the document.
"""

from __future__ import annotations

import re
from typing import Any, Optional

import yaml

try:  # pragma: no cover - optional dependency
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover
    try:
        import tomli as tomllib  # type: ignore[assignment]
    except Exception:  # pragma: no cover
        tomllib = None  # type: ignore[assignment]

from .errors import ExtractionError
from .interfaces import ExtractedBlock

__all__ = ["FrontmatterExtractor", "split_frontmatter"]

_FENCES = {"---": "yaml", "+++": "toml"}
_FENCE_RE = re.compile(r"^(---|\+\+\+)[ \t]*\r?\n")


def split_frontmatter(content: str) -> Optional[tuple[str, str, str]]:
    """Return ``(fmt, block, body)`` or ``None`` when no block is present."""
    text = content[1:] if content.startswith("\ufeff") else content
    m = _FENCE_RE.match(text)
    if not m:
        return None
    fence = m.group(1)
    rest = text[m.end():]
    closing = re.compile(rf"^{re.escape(fence)}[ \t]*(?:\r?\n|$)", re.MULTILINE)
    end = closing.search(rest)
    if end is None:
        return None
    return _FENCES[fence], rest[: end.start()], rest[end.end():]


class FrontmatterExtractor:
    """Default :class:`MetadataExtractor` implementation.

    Args:
        require_block (bool): When True (default) a document without a
            metadata block is an extraction failure; otherwise it yields
            empty metadata and the whole content as body.
    """

    def __init__(self, *, require_block: bool = True) -> None:
        self.require_block = require_block

    def extract(self, content: str, *, path: Optional[str] = None) -> ExtractedBlock:
        parts = split_frontmatter(content)
        if parts is None:
            if self.require_block:
                raise ExtractionError("no metadata block found", path=path)
            return ExtractedBlock(metadata={}, body=content, fmt="none")
        fmt, block, body = parts
        data = self._parse(fmt, block, path)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ExtractionError(
                f"metadata block must be a mapping, got {type(data).__name__}",
                path=path,
            )
        return ExtractedBlock(metadata={str(k): v for k, v in data.items()}, body=body, fmt=fmt)

    def _parse(self, fmt: str, block: str, path: Optional[str]) -> Any:
        if fmt == "toml":
            if tomllib is None:
                raise ExtractionError(
                    "TOML frontmatter requires Python 3.11+ (tomllib) or the 'tomli' package.",
                    path=path,
                )
            try:
                return tomllib.loads(block)
            except tomllib.TOMLDecodeError as exc:
                raise ExtractionError(f"invalid TOML metadata: {exc}", path=path) from exc
        try:
            return yaml.safe_load(block)
        except yaml.YAMLError as exc:
            raise ExtractionError(f"invalid YAML metadata: {exc}", path=path) from exc
