# processor.py
# SPDX-License-Identifier: MIT
"""Turn one file path into one validated :class:`Document`."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import PurePath
from typing import Optional

from .datapath import flatten_at
from .errors import FilePathError
from .interfaces import Document, FileReader, MetadataExtractor
from .log import get_logger, resolve_logger
from .schema import ValidationRuleSet

log = get_logger(__name__)

__all__ = ["DocumentProcessor", "validate_path"]


def validate_path(path: str, allowed_suffixes: Optional[Iterable[str]] = None) -> str:
    """Normalize ``path`` to forward slashes and reject unusable values.

    Raises:
        FilePathError: If the path is empty, contains a NUL byte, names a
            directory, or has a suffix outside ``allowed_suffixes``.
    """
    if not isinstance(path, str) or not path.strip():
        raise FilePathError("file path must be a non-empty string", path=str(path))
    if "\x00" in path:
        raise FilePathError("file path contains a NUL byte", path=path)
    if path.endswith(("/", "\\")):
        raise FilePathError("file path names a directory", path=path)
    norm = path.replace("\\", "/")
    if allowed_suffixes is not None:
        suffixes = {s.lower() for s in allowed_suffixes}
        if PurePath(norm).suffix.lower() not in suffixes:
            raise FilePathError(
                f"unsupported file extension; expected one of {sorted(suffixes)}",
                path=path,
            )
    return norm


class DocumentProcessor:
    """Read, extract, and validate a single document.

    Each stage raises its own error type (path, read, extraction,
    validation); no partial document is ever returned.

    Args:
        reader (FileReader): Source of raw document text.
        extractor (MetadataExtractor): Splits metadata block and body.
        logger (logging.Logger | None): Defaults to the module logger.
        allowed_suffixes (Iterable[str] | None): Restrict accepted file
            extensions (for example ``{".md"}``); any extension when None.
        flatten_paths (Iterable[str]): Metadata paths whose nested arrays
            are flattened before validation.
    """

    def __init__(
        self,
        reader: FileReader,
        extractor: MetadataExtractor,
        *,
        logger: Optional[logging.Logger] = None,
        allowed_suffixes: Optional[Iterable[str]] = None,
        flatten_paths: Iterable[str] = (),
    ) -> None:
        self.reader = reader
        self.extractor = extractor
        self.log = resolve_logger(logger, log)
        self.allowed_suffixes = frozenset(allowed_suffixes) if allowed_suffixes is not None else None
        self.flatten_paths = tuple(flatten_paths)

    def process(self, path: str, rules: Optional[ValidationRuleSet] = None) -> Document:
        norm = validate_path(path, self.allowed_suffixes)
        self.log.debug("Reading %s", norm)
        content = self.reader.read_text(norm)
        block = self.extractor.extract(content, path=norm)
        metadata = block.metadata
        self.log.debug("Extracted %d metadata key(s) from %s", len(metadata), norm)
        for flatten_path in self.flatten_paths:
            metadata = flatten_at(metadata, flatten_path)
        if rules is not None and len(rules):
            rules.validate(metadata, path=norm)
        return Document(path=norm, metadata=metadata, body=block.body)
