# interfaces.py
# SPDX-License-Identifier: MIT
"""Shared data types and the collaborator protocols consumed by the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import (
    Any,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    TYPE_CHECKING,
    runtime_checkable,
)

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from .schema import BasePropertyRule, DerivationRule, ValidationRuleSet


# -----------------------------------------------------------------------------
# Shared data types
# -----------------------------------------------------------------------------

# Aggregates and metadata blocks are loose JSON-like mappings with string keys.
Metadata = Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class Document:
    """
    One validated source document.

    Attributes:
        path (str): Path the document was read from, as given to the
            processor (forward slashes on every platform).
        metadata (Mapping[str, Any]): Metadata block after validation.
            Exposed read-only; use :meth:`with_metadata` to derive a new
            document.
        body (str): Text remaining after the metadata block.
    """

    path: str
    metadata: Metadata = field(default_factory=dict)
    body: str = ""

    def __post_init__(self) -> None:
        if not self.path:
            raise ValueError("Document requires a non-empty path")
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    def with_metadata(self, metadata: Metadata) -> "Document":
        """Return a copy of this document carrying ``metadata``."""
        return Document(path=self.path, metadata=metadata, body=self.body)

    def metadata_dict(self) -> dict[str, Any]:
        """Return a plain mutable copy of the metadata block."""
        return dict(self.metadata)


@dataclass(frozen=True, slots=True)
class ExtractedBlock:
    """Metadata block and body separated by a :class:`MetadataExtractor`."""

    metadata: dict[str, Any]
    body: str
    fmt: str = "yaml"


# -----------------------------------------------------------------------------
# Collaborator protocols
# -----------------------------------------------------------------------------


@runtime_checkable
class FileLister(Protocol):
    """Expands patterns into concrete file paths."""

    def list_files(self, patterns: Sequence[str]) -> list[str]:
        """
        Return the files matching ``patterns``.

        Raises:
            FilePathError: When a pattern cannot be expanded.
        """
        ...


@runtime_checkable
class FileReader(Protocol):
    """Reads one file as text."""

    def read_text(self, path: str) -> str:
        """
        Return the decoded content of ``path``.

        Raises:
            FileNotFound: When the file does not exist.
            PermissionDenied: When the file cannot be opened for reading.
            FileReadError: For any other I/O or decoding failure.
        """
        ...


@runtime_checkable
class MetadataExtractor(Protocol):
    """Splits raw document content into a metadata block and a body."""

    def extract(self, content: str, *, path: Optional[str] = None) -> ExtractedBlock:
        """
        Parse the leading metadata block of ``content``.

        Raises:
            ExtractionError: When the block is missing or malformed.
        """
        ...


@runtime_checkable
class SchemaAccessor(Protocol):
    """Read-only view of the schema facts the pipeline needs."""

    @property
    def collection_target(self) -> Optional[str]:
        """Dot path of the array built from one element per document, if any."""
        ...

    def derivation_rules(self) -> Sequence["DerivationRule"]:
        ...

    def base_property_rules(self) -> Sequence["BasePropertyRule"]:
        ...

    def validation_rules(self) -> "ValidationRuleSet":
        """Rules each document is validated against (item rules when a target exists)."""
        ...


@runtime_checkable
class TemplateRenderer(Protocol):
    """Renders the aggregate through a loaded template."""

    def load(self, path: str) -> Any:
        ...

    def render(self, template: Any, data: Metadata) -> str:
        ...


__all__ = [
    "Metadata",
    "Document",
    "ExtractedBlock",
    "FileLister",
    "FileReader",
    "MetadataExtractor",
    "SchemaAccessor",
    "TemplateRenderer",
]
