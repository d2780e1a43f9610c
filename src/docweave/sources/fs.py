# fs.py
# SPDX-License-Identifier: MIT
"""Filesystem file discovery and reading."""

from __future__ import annotations

import glob
import os
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from ..core.errors import FileNotFound, FilePathError, FileReadError, PermissionDenied
from ..core.log import get_logger

__all__ = [
    "DEFAULT_SKIP_DIRS",
    "GlobFileLister",
    "LocalFileReader",
]

log = get_logger(__name__)

# Common junk/build/metadata directories we always skip unless explicitly allowed
DEFAULT_SKIP_DIRS: frozenset[str] = frozenset({
    ".git",
    ".hg",
    ".svn",
    "__pycache__",
    ".mypy_cache",
    ".pytest_cache",
    ".tox",
    ".venv",
    "node_modules",
})


@dataclass(frozen=True)
class GlobFileLister:
    """Expand glob patterns (``**`` allowed) into a sorted, de-duplicated file list.

    Attributes:
        root_dir (Path | None): Base directory for relative patterns. When
            None, patterns are resolved against the working directory.
        skip_dirs (frozenset[str]): Directory names pruned from results.
        include_hidden (bool): Whether dotfiles match wildcards.
    """

    root_dir: Path | None = None
    skip_dirs: frozenset[str] = field(default=DEFAULT_SKIP_DIRS)
    include_hidden: bool = False

    def list_files(self, patterns: Sequence[str]) -> list[str]:
        if isinstance(patterns, str):
            patterns = [patterns]
        seen: set[str] = set()
        out: list[str] = []
        for pattern in patterns:
            if not pattern or not str(pattern).strip():
                raise FilePathError("empty file pattern")
            full = self._anchor(str(pattern))
            try:
                matches = glob.glob(full, recursive=True, include_hidden=self.include_hidden)
            except (OSError, ValueError) as exc:
                raise FilePathError(f"cannot expand pattern {pattern!r}: {exc}", path=str(pattern)) from exc
            for match in sorted(matches):
                if not os.path.isfile(match) or self._skipped(match):
                    continue
                norm = PurePosixPath(Path(match).as_posix()).as_posix()
                if norm not in seen:
                    seen.add(norm)
                    out.append(norm)
        log.debug("Discovered %d file(s) from %d pattern(s)", len(out), len(patterns))
        return out

    def _anchor(self, pattern: str) -> str:
        if self.root_dir is None or os.path.isabs(pattern):
            return pattern
        return str(Path(self.root_dir) / pattern)

    def _skipped(self, path: str) -> bool:
        return any(part in self.skip_dirs for part in Path(path).parts[:-1])


@dataclass(frozen=True)
class LocalFileReader:
    """Read whole files as text, mapping OS errors onto docweave errors."""

    encoding: str = "utf-8"
    max_bytes: int | None = 16 * 1024 * 1024

    def read_text(self, path: str) -> str:
        p = Path(path)
        try:
            if self.max_bytes is not None and p.stat().st_size > self.max_bytes:
                raise FileReadError(
                    f"file exceeds {self.max_bytes} bytes",
                    path=path,
                )
            return p.read_text(encoding=self.encoding)
        except FileNotFoundError as exc:
            raise FileNotFound(f"file not found: {path}", path=path) from exc
        except PermissionError as exc:
            raise PermissionDenied(f"permission denied: {path}", path=path) from exc
        except IsADirectoryError as exc:
            raise FileReadError(f"not a file: {path}", path=path) from exc
        except UnicodeDecodeError as exc:
            raise FileReadError(f"cannot decode {path} as {self.encoding}: {exc}", path=path) from exc
        except OSError as exc:
            raise FileReadError(f"cannot read {path}: {exc}", path=path) from exc
