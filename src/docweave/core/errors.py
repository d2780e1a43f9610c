# errors.py
# SPDX-License-Identifier: MIT
"""Exception hierarchy shared by every docweave stage.

Each error carries a short ``kind`` tag so that recovered per-file errors
can be counted and reported without isinstance chains.
"""

from __future__ import annotations

from typing import Any


class DocweaveError(RuntimeError):
    """Base class for all docweave failures."""

    kind = "error"

    def __init__(self, message: str, *, path: str | None = None, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.path = path
        self.details = dict(details)

    def as_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly description of the error."""
        data: dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.path is not None:
            data["path"] = self.path
        if self.details:
            data["details"] = {k: repr(v) if not isinstance(v, (str, int, float, bool)) else v
                               for k, v in self.details.items()}
        return data


class ConfigurationError(DocweaveError, ValueError):
    """Raised for invalid run configuration or schema declarations."""

    kind = "configuration"


class FilePathError(DocweaveError):
    """Raised when a path cannot be resolved into a readable file location."""

    kind = "path"


class FileReadError(DocweaveError):
    """Raised when reading a file fails for a reason other than absence/permission."""

    kind = "read"


class FileNotFound(FileReadError):
    kind = "not_found"


class PermissionDenied(FileReadError):
    kind = "permission"


class ExtractionError(DocweaveError):
    """Raised when a metadata block cannot be located or parsed."""

    kind = "extraction"


class ValidationError(DocweaveError):
    """Raised when document metadata violates the active rule set.

    Attributes:
        violations (tuple[str, ...]): One message per failed field rule.
    """

    kind = "validation"

    def __init__(self, message: str, *, path: str | None = None, violations=(), **details: Any) -> None:
        super().__init__(message, path=path, **details)
        self.violations = tuple(violations)


class BoundsViolation(DocweaveError):
    """Raised (or recorded) when processing exceeds a configured resource bound."""

    kind = "bounds"


class AggregationError(DocweaveError):
    """Raised when documents cannot be merged into an aggregate."""

    kind = "aggregation"


class TemplateError(DocweaveError):
    kind = "template"


class ProcessingError(DocweaveError):
    """Wraps an unexpected exception raised while handling a document or phase.

    The original exception is chained as ``__cause__``.
    """

    kind = "unexpected"

    @classmethod
    def wrap(cls, exc: BaseException, *, path: str | None = None) -> "ProcessingError":
        err = cls(f"{type(exc).__name__}: {exc}", path=path, cause=type(exc).__name__)
        err.__cause__ = exc
        return err


class TransitionRejected(DocweaveError):
    """Raised when the pipeline state machine refuses an event.

    Attributes:
        expected (str): Event (or state class) the machine would accept.
        actual (str): Event that was offered.
        state (str): Name of the state that rejected the event.
    """

    kind = "state_transition"

    def __init__(self, *, state: str, expected: str, actual: str) -> None:
        super().__init__(
            f"State {state} expected event {expected}, got {actual}",
            state=state,
            expected=expected,
            actual=actual,
        )
        self.state = state
        self.expected = expected
        self.actual = actual


__all__ = [
    "DocweaveError",
    "ConfigurationError",
    "FilePathError",
    "FileReadError",
    "FileNotFound",
    "PermissionDenied",
    "ExtractionError",
    "ValidationError",
    "BoundsViolation",
    "AggregationError",
    "TemplateError",
    "ProcessingError",
    "TransitionRejected",
]
