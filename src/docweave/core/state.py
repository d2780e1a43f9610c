# state.py
# SPDX-License-Identifier: MIT
"""Execution-phase state machine for a pipeline run.

A run moves through a strict chain of phases::

    Idle -> Initializing -> LoadingSchema -> SchemaLoaded
         -> ParsingFrontmatter -> FrontmatterParsed -> ValidatingData
         -> DataValidated -> LoadingTemplate -> TemplateLoaded
         -> GeneratingOutput -> OutputGenerated -> Completed

Every state is an immutable dataclass holding only what is known at that
phase. ``Fail`` moves any non-terminal state to ``Failed``; the terminal
states accept nothing. Two modes shorten the chain: ``template-only``
skips ``ValidatingData`` and ``validation-only`` jumps from
``DataValidated`` straight to ``OutputGenerated``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Union

from .bounds import MB, process_rss_bytes
from .config import PipelineMode
from .errors import TransitionRejected
from .log import get_logger, resolve_logger

log = get_logger(__name__)

VALIDATION_ONLY_OUTPUT = "Validation completed successfully"


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Results and errors carried by states
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ExecutionError:
    """Why a run failed.

    Attributes:
        phase (str): Name of the state the run was in.
        message (str): Human-readable description.
        cause (BaseException | None): Underlying exception, if any.
        timestamp (datetime): When the failure was recorded (UTC).
    """

    phase: str
    message: str
    cause: Optional[BaseException] = None
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True, slots=True)
class PipelineMetadata:
    execution_time_ms: float
    states_traversed: int
    memory_used_mb: float
    schema_validations: int
    templates_processed: int


@dataclass(frozen=True, slots=True)
class PipelineResult:
    output: str
    metadata: PipelineMetadata


# ---------------------------------------------------------------------------
# States
# ---------------------------------------------------------------------------


class _Named:
    __slots__ = ()

    @property
    def kind(self) -> str:
        return type(self).__name__


@dataclass(frozen=True, slots=True)
class Idle(_Named):
    pass


@dataclass(frozen=True, slots=True)
class Initializing(_Named):
    config: Any


@dataclass(frozen=True, slots=True)
class LoadingSchema(_Named):
    config: Any
    schema_path: str


@dataclass(frozen=True, slots=True)
class SchemaLoaded(_Named):
    config: Any
    schema: Any


@dataclass(frozen=True, slots=True)
class ParsingFrontmatter(_Named):
    config: Any
    schema: Any
    content: Any


@dataclass(frozen=True, slots=True)
class FrontmatterParsed(_Named):
    config: Any
    schema: Any
    frontmatter: Any


@dataclass(frozen=True, slots=True)
class ValidatingData(_Named):
    config: Any
    schema: Any
    frontmatter: Any


@dataclass(frozen=True, slots=True)
class DataValidated(_Named):
    config: Any
    schema: Any
    validated_data: Any


@dataclass(frozen=True, slots=True)
class LoadingTemplate(_Named):
    config: Any
    schema: Any
    validated_data: Any
    template_path: str


@dataclass(frozen=True, slots=True)
class TemplateLoaded(_Named):
    config: Any
    schema: Any
    validated_data: Any
    template: Any


@dataclass(frozen=True, slots=True)
class GeneratingOutput(_Named):
    config: Any
    schema: Any
    validated_data: Any
    template: Any


@dataclass(frozen=True, slots=True)
class OutputGenerated(_Named):
    config: Any
    output: str


@dataclass(frozen=True, slots=True)
class Completed(_Named):
    result: PipelineResult


@dataclass(frozen=True, slots=True)
class Failed(_Named):
    error: ExecutionError
    previous_state: Optional["PipelineExecutionState"] = None


PipelineExecutionState = Union[
    Idle,
    Initializing,
    LoadingSchema,
    SchemaLoaded,
    ParsingFrontmatter,
    FrontmatterParsed,
    ValidatingData,
    DataValidated,
    LoadingTemplate,
    TemplateLoaded,
    GeneratingOutput,
    OutputGenerated,
    Completed,
    Failed,
]

TERMINAL_STATES = (Completed, Failed)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Initialize(_Named):
    config: Any


@dataclass(frozen=True, slots=True)
class LoadSchema(_Named):
    path: str


@dataclass(frozen=True, slots=True)
class SchemaLoadComplete(_Named):
    schema: Any


@dataclass(frozen=True, slots=True)
class ParseFrontmatter(_Named):
    content: Any


@dataclass(frozen=True, slots=True)
class FrontmatterParseComplete(_Named):
    data: Any


@dataclass(frozen=True, slots=True)
class ValidateData(_Named):
    pass


@dataclass(frozen=True, slots=True)
class ValidationComplete(_Named):
    validated_data: Any


@dataclass(frozen=True, slots=True)
class LoadTemplate(_Named):
    path: str


@dataclass(frozen=True, slots=True)
class TemplateLoadComplete(_Named):
    template: Any


@dataclass(frozen=True, slots=True)
class GenerateOutput(_Named):
    pass


@dataclass(frozen=True, slots=True)
class OutputGenerationComplete(_Named):
    output: str


@dataclass(frozen=True, slots=True)
class Complete(_Named):
    pass


@dataclass(frozen=True, slots=True)
class Fail(_Named):
    error: ExecutionError


StateTransitionEvent = Union[
    Initialize,
    LoadSchema,
    SchemaLoadComplete,
    ParseFrontmatter,
    FrontmatterParseComplete,
    ValidateData,
    ValidationComplete,
    LoadTemplate,
    TemplateLoadComplete,
    GenerateOutput,
    OutputGenerationComplete,
    Complete,
    Fail,
]


@dataclass(frozen=True, slots=True)
class TransitionRecord:
    from_state: str
    to_state: str
    event: str
    timestamp: datetime


# ---------------------------------------------------------------------------
# Machine
# ---------------------------------------------------------------------------


def _mode_of(config: Any) -> str:
    raw = config.get("mode") if isinstance(config, Mapping) else getattr(config, "mode", None)
    return PipelineMode.normalize(raw)


class PipelineStateMachine:
    """Owns the current execution state and its history.

    History and transition log are append-only during a run and exposed as
    tuples; :meth:`reset` clears both and returns to :class:`Idle`.

    Args:
        logger (logging.Logger | None): Defaults to the module logger.
        memory_probe (Callable[[], int] | None): Bytes in use, reported in the
            completion metadata. Defaults to process RSS.
    """

    def __init__(
        self,
        *,
        logger: Optional[logging.Logger] = None,
        memory_probe: Optional[Callable[[], int]] = None,
    ) -> None:
        self.log = resolve_logger(logger, log)
        self._probe = memory_probe or process_rss_bytes
        self._handlers: dict[type, Callable[[Any, Any], PipelineExecutionState]] = {
            Idle: self._from_idle,
            Initializing: self._from_initializing,
            LoadingSchema: self._from_loading_schema,
            SchemaLoaded: self._from_schema_loaded,
            ParsingFrontmatter: self._from_parsing_frontmatter,
            FrontmatterParsed: self._from_frontmatter_parsed,
            ValidatingData: self._from_validating_data,
            DataValidated: self._from_data_validated,
            LoadingTemplate: self._from_loading_template,
            TemplateLoaded: self._from_template_loaded,
            GeneratingOutput: self._from_generating_output,
            OutputGenerated: self._from_output_generated,
        }
        self.reset()

    # -- public API ---------------------------------------------------------

    @property
    def current_state(self) -> PipelineExecutionState:
        return self._state

    @property
    def history(self) -> tuple[PipelineExecutionState, ...]:
        return tuple(self._history)

    @property
    def transition_log(self) -> tuple[TransitionRecord, ...]:
        return tuple(self._log)

    def is_complete(self) -> bool:
        """True once the machine reached a terminal state (completed or failed)."""
        return isinstance(self._state, TERMINAL_STATES)

    def can_proceed(self) -> bool:
        return not self.is_complete()

    def reset(self) -> None:
        self._state: PipelineExecutionState = Idle()
        self._history: list[PipelineExecutionState] = [self._state]
        self._log: list[TransitionRecord] = []
        self._started: Optional[float] = None

    def transition(self, event: StateTransitionEvent) -> PipelineExecutionState:
        """Apply ``event`` and return the new state.

        Raises:
            TransitionRejected: If the current state does not accept ``event``.
        """
        current = self._state
        if isinstance(event, Fail) and not self.is_complete():
            new_state: PipelineExecutionState = Failed(error=event.error, previous_state=current)
        else:
            handler = self._handlers.get(type(current))
            if handler is None:
                raise TransitionRejected(state=current.kind, expected="none (terminal state)", actual=event.kind)
            new_state = handler(current, event)
        if isinstance(current, Idle):
            self._started = time.monotonic()
        self._state = new_state
        self._history.append(new_state)
        self._log.append(
            TransitionRecord(from_state=current.kind, to_state=new_state.kind, event=event.kind, timestamp=_now())
        )
        self.log.debug("Pipeline state %s -> %s on %s", current.kind, new_state.kind, event.kind)
        return new_state

    # -- handlers -----------------------------------------------------------

    @staticmethod
    def _reject(state: Any, expected: str, event: Any) -> TransitionRejected:
        return TransitionRejected(state=state.kind, expected=expected, actual=event.kind)

    def _from_idle(self, state: Idle, event: Any) -> PipelineExecutionState:
        if isinstance(event, Initialize):
            return Initializing(config=event.config)
        raise self._reject(state, "Initialize", event)

    def _from_initializing(self, state: Initializing, event: Any) -> PipelineExecutionState:
        if isinstance(event, LoadSchema):
            return LoadingSchema(config=state.config, schema_path=event.path)
        raise self._reject(state, "LoadSchema", event)

    def _from_loading_schema(self, state: LoadingSchema, event: Any) -> PipelineExecutionState:
        if isinstance(event, SchemaLoadComplete):
            return SchemaLoaded(config=state.config, schema=event.schema)
        raise self._reject(state, "SchemaLoadComplete", event)

    def _from_schema_loaded(self, state: SchemaLoaded, event: Any) -> PipelineExecutionState:
        if isinstance(event, ParseFrontmatter):
            return ParsingFrontmatter(config=state.config, schema=state.schema, content=event.content)
        raise self._reject(state, "ParseFrontmatter", event)

    def _from_parsing_frontmatter(self, state: ParsingFrontmatter, event: Any) -> PipelineExecutionState:
        if isinstance(event, FrontmatterParseComplete):
            return FrontmatterParsed(config=state.config, schema=state.schema, frontmatter=event.data)
        raise self._reject(state, "FrontmatterParseComplete", event)

    def _from_frontmatter_parsed(self, state: FrontmatterParsed, event: Any) -> PipelineExecutionState:
        if isinstance(event, ValidateData):
            if _mode_of(state.config) == PipelineMode.TEMPLATE_ONLY:
                return DataValidated(config=state.config, schema=state.schema, validated_data=state.frontmatter)
            return ValidatingData(config=state.config, schema=state.schema, frontmatter=state.frontmatter)
        raise self._reject(state, "ValidateData", event)

    def _from_validating_data(self, state: ValidatingData, event: Any) -> PipelineExecutionState:
        if isinstance(event, ValidationComplete):
            return DataValidated(config=state.config, schema=state.schema, validated_data=event.validated_data)
        raise self._reject(state, "ValidationComplete", event)

    def _from_data_validated(self, state: DataValidated, event: Any) -> PipelineExecutionState:
        if isinstance(event, LoadTemplate):
            if _mode_of(state.config) == PipelineMode.VALIDATION_ONLY:
                return OutputGenerated(config=state.config, output=VALIDATION_ONLY_OUTPUT)
            return LoadingTemplate(
                config=state.config,
                schema=state.schema,
                validated_data=state.validated_data,
                template_path=event.path,
            )
        raise self._reject(state, "LoadTemplate", event)

    def _from_loading_template(self, state: LoadingTemplate, event: Any) -> PipelineExecutionState:
        if isinstance(event, TemplateLoadComplete):
            return TemplateLoaded(
                config=state.config,
                schema=state.schema,
                validated_data=state.validated_data,
                template=event.template,
            )
        raise self._reject(state, "TemplateLoadComplete", event)

    def _from_template_loaded(self, state: TemplateLoaded, event: Any) -> PipelineExecutionState:
        if isinstance(event, GenerateOutput):
            return GeneratingOutput(
                config=state.config,
                schema=state.schema,
                validated_data=state.validated_data,
                template=state.template,
            )
        raise self._reject(state, "GenerateOutput", event)

    def _from_generating_output(self, state: GeneratingOutput, event: Any) -> PipelineExecutionState:
        if isinstance(event, OutputGenerationComplete):
            return OutputGenerated(config=state.config, output=event.output)
        raise self._reject(state, "OutputGenerationComplete", event)

    def _from_output_generated(self, state: OutputGenerated, event: Any) -> PipelineExecutionState:
        if isinstance(event, Complete):
            mode = _mode_of(state.config)
            elapsed = time.monotonic() - self._started if self._started is not None else 0.0
            metadata = PipelineMetadata(
                execution_time_ms=elapsed * 1000.0,
                states_traversed=len(self._history),
                memory_used_mb=self._probe() / MB,
                schema_validations=0 if mode == PipelineMode.TEMPLATE_ONLY else 1,
                templates_processed=0 if mode == PipelineMode.VALIDATION_ONLY else 1,
            )
            return Completed(result=PipelineResult(output=state.output, metadata=metadata))
        raise self._reject(state, "Complete", event)


__all__ = [
    "VALIDATION_ONLY_OUTPUT",
    "ExecutionError",
    "PipelineMetadata",
    "PipelineResult",
    "Idle",
    "Initializing",
    "LoadingSchema",
    "SchemaLoaded",
    "ParsingFrontmatter",
    "FrontmatterParsed",
    "ValidatingData",
    "DataValidated",
    "LoadingTemplate",
    "TemplateLoaded",
    "GeneratingOutput",
    "OutputGenerated",
    "Completed",
    "Failed",
    "PipelineExecutionState",
    "TERMINAL_STATES",
    "Initialize",
    "LoadSchema",
    "SchemaLoadComplete",
    "ParseFrontmatter",
    "FrontmatterParseComplete",
    "ValidateData",
    "ValidationComplete",
    "LoadTemplate",
    "TemplateLoadComplete",
    "GenerateOutput",
    "OutputGenerationComplete",
    "Complete",
    "Fail",
    "StateTransitionEvent",
    "TransitionRecord",
    "PipelineStateMachine",
]
