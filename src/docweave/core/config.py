# config.py
# SPDX-License-Identifier: MIT
"""Configuration models and helpers for docweave runs.

This module defines declarative dataclasses for sources, processing
strategy, resource bounds, output, and logging, along with helpers for
serializing and loading configurations from JSON and TOML.
"""
from __future__ import annotations

import json
try:  # pragma: no cover - optional dependency
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover
    try:
        import tomli as tomllib  # type: ignore[assignment]
    except Exception:  # pragma: no cover
        tomllib = None  # type: ignore[assignment]
from collections.abc import Sequence as ABCSequence
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Type, TypeVar, Union, get_args, get_origin, get_type_hints

from .errors import ConfigurationError
from .log import DEFAULT_FORMAT, PACKAGE_LOGGER_NAME, configure_logging

# ---------------------------------------------------------------------------
# Pipeline mode helpers
# ---------------------------------------------------------------------------


class PipelineMode:
    """Supported run modes.

    Modes:
    * ``FULL``: Validate every document and render the aggregate.
    * ``VALIDATION_ONLY``: Stop after validation; no template is loaded.
    * ``TEMPLATE_ONLY``: Skip the validation phase and render parsed data.
    """

    FULL = "full"
    VALIDATION_ONLY = "validation-only"
    TEMPLATE_ONLY = "template-only"
    ALL = {FULL, VALIDATION_ONLY, TEMPLATE_ONLY}

    @classmethod
    def normalize(cls, value: Optional[str]) -> str:
        mode = (value or cls.FULL).strip().lower().replace("_", "-")
        if mode == "standard":
            mode = cls.FULL
        if mode not in cls.ALL:
            raise ConfigurationError(f"Invalid pipeline mode: {value!r}. Expected one of {sorted(cls.ALL)}")
        return mode


# ---------------------------------------------------------------------------
# Section configs
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class SourceConfig:
    """Where documents come from.

    Attributes:
        patterns (list[str]): Glob patterns (``**`` allowed) naming the
            input documents.
        root_dir (Path | None): Base directory for relative patterns.
        encoding (str): Text encoding used to read documents.
        require_frontmatter (bool): Whether a document without a metadata
            block is an extraction failure.
    """
    patterns: List[str] = field(default_factory=list)
    root_dir: Optional[Path] = None
    encoding: str = "utf-8"
    require_frontmatter: bool = True


@dataclass(slots=True)
class AdaptiveConfig:
    """Adaptive strategy: go parallel only above ``max_file_threshold`` files."""
    base_workers: int = 4
    max_file_threshold: int = 10


@dataclass(slots=True)
class ProcessingConfig:
    """Caller-supplied strategy options.

    Attributes:
        parallel (bool): Request parallel processing.
        max_workers (int | None): Worker count for parallel runs; falls back
            to the strategy profile when unset.
        adaptive (AdaptiveConfig | None): When set, overrides ``parallel``.
    """
    parallel: bool = False
    max_workers: Optional[int] = None
    adaptive: Optional[AdaptiveConfig] = None


@dataclass(slots=True)
class StrategyProfile:
    """Thresholds the strategy selector falls back on."""
    min_files_for_parallel: int = 2
    default_max_workers: int = 4

    @classmethod
    def preset(cls, name: str) -> "StrategyProfile":
        """Return a named profile (``conservative``, ``balanced`` or ``aggressive``)."""
        key = (name or "").strip().lower()
        try:
            min_files, workers = _PROFILE_PRESETS[key]
        except KeyError:
            raise ConfigurationError(
                f"Unknown strategy profile {name!r}. Expected one of {sorted(_PROFILE_PRESETS)}"
            ) from None
        return cls(min_files_for_parallel=min_files, default_max_workers=workers)

    def validate(self) -> None:
        if not 1 <= self.min_files_for_parallel <= 100:
            raise ConfigurationError("profile.min_files_for_parallel must be between 1 and 100.")
        if not 1 <= self.default_max_workers <= 32:
            raise ConfigurationError("profile.default_max_workers must be between 1 and 32.")


_PROFILE_PRESETS: Dict[str, Tuple[int, int]] = {
    "conservative": (5, 2),
    "balanced": (2, 4),
    "aggressive": (1, 8),
}


@dataclass(slots=True)
class BoundsConfig:
    """Explicit resource limits; unset limits fall back to file-count defaults.

    Attributes:
        memory_limit_mb (float | None): Process RSS ceiling in MB.
        file_limit (int | None): Maximum number of files processed.
        time_limit_s (float | None): Wall-clock budget in seconds.
        unbounded (bool): Disable every limit.
    """
    memory_limit_mb: Optional[float] = None
    file_limit: Optional[int] = None
    time_limit_s: Optional[float] = None
    unbounded: bool = False

    def is_explicit(self) -> bool:
        return any(v is not None for v in (self.memory_limit_mb, self.file_limit, self.time_limit_s))

    def validate(self) -> None:
        for name in ("memory_limit_mb", "file_limit", "time_limit_s"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ConfigurationError(f"bounds.{name} must be positive when set; got {value!r}.")


@dataclass(slots=True)
class OutputConfig:
    """Rendering and output destination.

    ``template_path`` overrides the schema's ``x-template`` directive.
    Without any template the aggregate is serialized in ``format``.
    """
    template_path: Optional[str] = None
    output_path: Optional[str] = None
    format: str = "json"


@dataclass(slots=True)
class LoggingConfig:
    """Controls the package logger; set propagate=True/logger_name to
    integrate with host apps.
    """
    level: Union[int, str] = "INFO"
    propagate: bool = False
    fmt: Optional[str] = DEFAULT_FORMAT
    logger_name: str = PACKAGE_LOGGER_NAME

    def apply(self) -> None:
        """Apply this logging configuration to the package logger."""
        configure_logging(
            level=self.level,
            propagate=self.propagate,
            fmt=self.fmt,
            logger_name=self.logger_name or PACKAGE_LOGGER_NAME,
        )


# ---------------------------------------------------------------------------
# Master config
# ---------------------------------------------------------------------------

T = TypeVar("T")

OUTPUT_FORMATS = {"json", "yaml"}


@dataclass(slots=True)
class DocweaveConfig:
    """Declarative spec for a docweave run.

    This object holds only configuration knobs and plain values. Readers,
    extractors, renderers, and loggers are wired by the pipeline at run
    time, never stored here.
    """
    schema_path: Optional[str] = None
    mode: str = PipelineMode.FULL
    profile_name: Optional[str] = None
    sources: SourceConfig = field(default_factory=SourceConfig)
    processing: ProcessingConfig = field(default_factory=ProcessingConfig)
    profile: StrategyProfile = field(default_factory=StrategyProfile)
    bounds: BoundsConfig = field(default_factory=BoundsConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> None:
        """Validate the configuration for internal consistency.

        Normalizes ``mode`` and ``output.format`` and resolves
        ``profile_name`` into ``profile``.

        Raises:
            ConfigurationError: On the first inconsistent setting.
        """
        if not self.schema_path:
            raise ConfigurationError("schema_path is required.")
        self.mode = PipelineMode.normalize(self.mode)
        if self.profile_name:
            self.profile = StrategyProfile.preset(self.profile_name)
        self.profile.validate()
        proc = self.processing
        if proc.max_workers is not None and proc.max_workers < 1:
            raise ConfigurationError("processing.max_workers must be >= 1 when set.")
        if proc.adaptive is not None:
            if proc.adaptive.base_workers < 1:
                raise ConfigurationError("processing.adaptive.base_workers must be >= 1.")
            if proc.adaptive.max_file_threshold < 0:
                raise ConfigurationError("processing.adaptive.max_file_threshold must be >= 0.")
        self.bounds.validate()
        fmt = (self.output.format or "json").strip().lower()
        if fmt == "yml":
            fmt = "yaml"
        if fmt not in OUTPUT_FORMATS:
            raise ConfigurationError(f"output.format must be one of {sorted(OUTPUT_FORMATS)}; got {self.output.format!r}.")
        self.output.format = fmt

    # -------------------------
    # Serialization helpers
    # -------------------------
    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-serializable representation of this configuration."""
        return _dataclass_to_dict(self)

    def to_json(self, path: Path | str, *, indent: int = 2) -> str:
        """Serialize the configuration to JSON and write it to disk.

        Returns:
            str: String path to the written file.
        """
        target = Path(path)
        target.write_text(json.dumps(self.to_dict(), indent=indent, sort_keys=True), encoding="utf-8")
        return str(target)

    @classmethod
    def from_dict(cls: Type[T], data: Mapping[str, Any]) -> T:
        """Instantiate a DocweaveConfig from a mapping.

        Raises:
            ConfigurationError: If the mapping has unknown top-level keys.
        """
        validate_options_for_dataclass(cls, options=data, context="docweave config")
        return _dataclass_from_dict(cls, data)

    @classmethod
    def from_json(cls: Type[T], path: Path | str) -> T:
        """Load a configuration from a JSON file."""
        try:
            payload = json.loads(Path(path).read_text(encoding="utf-8"))
        except ValueError as exc:
            raise ConfigurationError(f"Invalid JSON config {path}: {exc}", path=str(path)) from exc
        if not isinstance(payload, Mapping):
            raise ConfigurationError(f"Top-level JSON document must be an object; got {type(payload).__name__}.")
        return cls.from_dict(payload)

    @classmethod
    def from_toml(cls: Type[T], path: Path | str) -> T:
        """
        Load a DocweaveConfig from a TOML file.

        The TOML layout mirrors the structure of this dataclass: top-level
        keys like ``schema_path`` and ``mode`` plus tables like [sources],
        [processing], [bounds], [output], and [logging].
        """
        if tomllib is None:
            raise ConfigurationError(
                "TOML support requires Python 3.11+ (tomllib) or installing the 'tomli' package."
            )
        raw = Path(path).read_bytes()
        try:
            data = tomllib.loads(raw.decode("utf-8"))
        except tomllib.TOMLDecodeError as exc:
            raise ConfigurationError(f"Invalid TOML config {path}: {exc}", path=str(path)) from exc
        return cls.from_dict(data)


def load_config_from_path(path: str | Path) -> DocweaveConfig:
    """Load a DocweaveConfig from a JSON or TOML file.

    Relative ``schema_path``, ``sources.root_dir`` and output paths are resolved
    against the config file's directory.

    Raises:
        ConfigurationError: If the file is missing or its extension is not
            ``.toml`` or ``.json``.
    """
    p = Path(path)
    if not p.is_file():
        raise ConfigurationError(f"Config file not found: {p}", path=str(p))
    suffix = p.suffix.lower()
    if suffix == ".toml":
        cfg = DocweaveConfig.from_toml(p)
    elif suffix == ".json":
        cfg = DocweaveConfig.from_json(p)
    else:
        raise ConfigurationError(f"Unsupported config extension {p.suffix!r}; expected .toml or .json.")
    base = p.parent
    if cfg.schema_path and not Path(cfg.schema_path).is_absolute():
        cfg.schema_path = str(base / cfg.schema_path)
    if cfg.sources.root_dir is None:
        cfg.sources.root_dir = base
    elif not cfg.sources.root_dir.is_absolute():
        cfg.sources.root_dir = base / cfg.sources.root_dir
    for name in ("template_path", "output_path"):
        value = getattr(cfg.output, name)
        if value and not Path(value).is_absolute():
            setattr(cfg.output, name, str(base / value))
    return cfg


C = TypeVar("C")


def validate_options_for_dataclass(
    cfg_type: Type[C],
    *,
    options: Mapping[str, Any] | None,
    ignore_keys: Iterable[str] = (),
    context: str | None = None,
) -> None:
    """
    Validate that options only contain known dataclass fields or ignore_keys.

    Raises:
        ConfigurationError: If unknown option keys are present.
    """
    if not options:
        return

    field_names = {f.name for f in fields(cfg_type)}
    allowed = field_names | set(ignore_keys)
    unknown = sorted(k for k in options.keys() if k not in allowed)

    if unknown:
        label = context or cfg_type.__name__
        raise ConfigurationError(
            f"Unsupported options for {label}: {', '.join(unknown)}. "
            f"Allowed keys: {', '.join(sorted(allowed))}"
        )


def _dataclass_to_dict(obj: Any) -> Dict[str, Any]:
    """Serialize dataclasses to JSON-friendly dicts, skipping None fields."""
    result: Dict[str, Any] = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if value is None:
            continue
        serialized = _serialize_value(value)
        if serialized is not None:
            result[f.name] = serialized
    return result


def _serialize_value(value: Any) -> Any:
    """Best-effort JSON-friendly coercion; drops values that cannot be serialized."""
    if value is None:
        return None
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_serialize_value(v) for v in value]
    if isinstance(value, dict):
        out: Dict[str, Any] = {}
        for k, v in value.items():
            serialized = _serialize_value(v)
            if serialized is not None:
                out[str(k)] = serialized
        return out
    if is_dataclass(value):
        return _dataclass_to_dict(value)
    return None


def _dataclass_from_dict(cls: Type[T], data: Mapping[str, Any] | None) -> T:
    """Instantiate a dataclass of type `cls` from a mapping.

    Unknown keys are ignored; nested dataclasses are built recursively.
    """
    if data is None:
        return cls()  # type: ignore[call-arg]
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Expected a table for {cls.__name__}; got {type(data).__name__}.")
    type_hints = get_type_hints(cls)

    kwargs: Dict[str, Any] = {}
    for f in fields(cls):
        if f.name not in data:
            continue
        field_type = type_hints.get(f.name, f.type)
        try:
            kwargs[f.name] = _coerce_value(field_type, data[f.name])
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid value for {cls.__name__}.{f.name}: {exc}") from exc
    return cls(**kwargs)  # type: ignore[arg-type]


def _coerce_value(expected_type: Any, value: Any) -> Any:
    """Coerce `value` into the shape implied by `expected_type`.

    This handles nested dataclasses, container types, optionals, and
    Paths, recursing into sequences and mappings when necessary.
    """
    base_type, _ = _strip_optional(expected_type)
    if value is None:
        return None
    if is_dataclass_type(base_type):
        return _dataclass_from_dict(base_type, value)
    origin = get_origin(base_type)
    if origin in (list, tuple, ABCSequence):
        if isinstance(value, str):
            value = [value]
        args = get_args(base_type)
        inner = args[0] if args else Any
        items = [_coerce_value(inner, v) for v in value]
        return tuple(items) if origin is tuple else list(items)
    if origin is dict:
        key_type, val_type = get_args(base_type) if get_args(base_type) else (Any, Any)
        return {_coerce_value(key_type, k): _coerce_value(val_type, v) for k, v in value.items()}
    if base_type is Path:
        return Path(value)
    if base_type is bool and isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    if base_type in {str, int, float, bool}:
        return base_type(value)
    return value


def _strip_optional(typ: Any) -> Tuple[Any, bool]:
    """Strip Optional from a type annotation.

    Returns:
        tuple[Any, bool]: A pair ``(base_type, is_optional)`` where
        ``is_optional`` is True if ``None`` was present in the union.
    """
    origin = get_origin(typ)
    if origin is Union:
        args = [arg for arg in get_args(typ) if arg is not type(None)]
        if len(args) == 1:
            base, _ = _strip_optional(args[0])
            return base, True
    return typ, False


def is_dataclass_type(typ: Any) -> bool:
    """Return True if `typ` is a dataclass type (not an instance)."""
    return isinstance(typ, type) and is_dataclass(typ)


__all__ = [
    "PipelineMode",
    "SourceConfig",
    "AdaptiveConfig",
    "ProcessingConfig",
    "StrategyProfile",
    "BoundsConfig",
    "OutputConfig",
    "LoggingConfig",
    "DocweaveConfig",
    "load_config_from_path",
    "validate_options_for_dataclass",
]
