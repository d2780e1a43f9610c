# __init__.py
# SPDX-License-Identifier: MIT
"""
Top-level package exports for :mod:`docweave`.

docweave reads many small frontmatter documents, validates each against a
JSON-Schema-like schema, and aggregates them into one schema-shaped
structure for rendering.

Typical use:

- Build a :class:`DocweaveConfig` or load one from TOML/JSON with
  :func:`load_config_from_path`.
- Run it with :class:`DocumentPipeline` (or :func:`build` for the common
  case) and inspect the returned :class:`RunResult`.

Examples:
    Aggregate a directory of command docs::

        >>> from docweave import build
        >>> result = build("schema.json", ["docs/**/*.md"], output_path="out.json")
        >>> result.ok
        True
"""

from __future__ import annotations

try:
    from importlib.metadata import version as _pkg_version

    __version__ = _pkg_version("docweave")
except Exception:  # PackageNotFoundError or runtime env oddities
    __version__ = "0.0.0+unknown"


from .cli.runner import build, make_build_config, run_config, validate
from .core.config import (
    AdaptiveConfig,
    BoundsConfig,
    DocweaveConfig,
    LoggingConfig,
    OutputConfig,
    PipelineMode,
    ProcessingConfig,
    SourceConfig,
    StrategyProfile,
    load_config_from_path,
)
from .core.errors import (
    AggregationError,
    BoundsViolation,
    ConfigurationError,
    DocweaveError,
    ExtractionError,
    FileNotFound,
    FilePathError,
    FileReadError,
    PermissionDenied,
    ProcessingError,
    TemplateError,
    TransitionRejected,
    ValidationError,
)
from .core.interfaces import Document
from .core.log import configure_logging, get_logger
from .core.pipeline import DocumentPipeline, ProcessingOutcome, RunResult
from .core.schema import Schema

PRIMARY_API = [
    "DocweaveConfig",
    "load_config_from_path",
    "DocumentPipeline",
    "RunResult",
    "build",
    "validate",
]

__all__ = [
    "__version__",
    "PRIMARY_API",
    "build",
    "validate",
    "make_build_config",
    "run_config",
    "AdaptiveConfig",
    "BoundsConfig",
    "DocweaveConfig",
    "LoggingConfig",
    "OutputConfig",
    "PipelineMode",
    "ProcessingConfig",
    "SourceConfig",
    "StrategyProfile",
    "load_config_from_path",
    "AggregationError",
    "BoundsViolation",
    "ConfigurationError",
    "DocweaveError",
    "ExtractionError",
    "FileNotFound",
    "FilePathError",
    "FileReadError",
    "PermissionDenied",
    "ProcessingError",
    "TemplateError",
    "TransitionRejected",
    "ValidationError",
    "Document",
    "configure_logging",
    "get_logger",
    "DocumentPipeline",
    "ProcessingOutcome",
    "RunResult",
    "Schema",
]
