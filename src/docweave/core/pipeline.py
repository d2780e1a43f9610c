# pipeline.py
# SPDX-License-Identifier: MIT
"""Pipeline facade coordinating processing, aggregation, and rendering."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, cast

from .aggregation import AggregationReport, Aggregator
from .base_properties import BasePropertyPopulator
from .bounds import BoundsMonitor, ProcessingBounds, resolve_bounds
from .config import DocweaveConfig, PipelineMode, ProcessingConfig, StrategyProfile
from .errors import ConfigurationError, DocweaveError, ProcessingError
from .executors import ExecutionResult, run_batches, run_sequential
from .extraction import extract_parts
from .frontmatter import FrontmatterExtractor
from .interfaces import Document, FileLister, FileReader, MetadataExtractor, TemplateRenderer
from .log import get_logger, resolve_logger
from .processor import DocumentProcessor
from .render import PlaceholderRenderer, serialize, write_output
from .schema import Schema, ValidationRuleSet
from .state import (
    Complete,
    Completed,
    ExecutionError,
    Fail,
    FrontmatterParseComplete,
    GenerateOutput,
    Idle,
    Initialize,
    Initializing,
    LoadingTemplate,
    LoadSchema,
    LoadTemplate,
    OutputGenerationComplete,
    ParseFrontmatter,
    PipelineExecutionState,
    PipelineStateMachine,
    SchemaLoadComplete,
    StateTransitionEvent,
    TemplateLoadComplete,
    ValidateData,
    ValidatingData,
    ValidationComplete,
)
from .strategy import ProcessingStrategy, select_strategy
from ..sources.fs import GlobFileLister, LocalFileReader

log = get_logger(__name__)

__all__ = ["ProcessingOutcome", "RunResult", "DocumentPipeline"]


@dataclass(slots=True)
class ProcessingOutcome:
    """Result of processing a set of files into one aggregate.

    A run that recovered from per-file failures still succeeds; compare
    ``len(documents)`` with ``file_count`` or inspect ``errors`` to detect
    degradation.
    """

    aggregated_data: dict[str, Any]
    documents: list[Document]
    errors: list[DocweaveError]
    strategy: ProcessingStrategy
    file_count: int
    report: AggregationReport = field(default_factory=AggregationReport)

    @property
    def degraded(self) -> bool:
        return bool(self.errors)

    def as_dict(self) -> dict[str, object]:
        """Return a stable summary shape for reporting."""
        return {
            "files": self.file_count,
            "documents": len(self.documents),
            "errors": [err.as_dict() for err in self.errors],
            "strategy": "parallel" if self.strategy.use_parallel else "sequential",
            "max_workers": self.strategy.max_workers,
            "derived_fields": list(self.report.derived),
            "failed_rules": [rule for rule, _ in self.report.failed_rules],
        }


@dataclass(slots=True)
class RunResult:
    """Outcome of :meth:`DocumentPipeline.run`; never raised, always returned."""

    ok: bool
    state: PipelineExecutionState
    output: Optional[str] = None
    output_path: Optional[str] = None
    outcome: Optional[ProcessingOutcome] = None
    error: Optional[DocweaveError] = None

    def as_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"ok": self.ok, "state": self.state.kind}
        if self.output_path:
            data["output_path"] = self.output_path
        if self.outcome is not None:
            data.update(self.outcome.as_dict())
        if self.error is not None:
            data["error"] = self.error.as_dict()
        if isinstance(self.state, Completed):
            meta = self.state.result.metadata
            data["execution_time_ms"] = round(meta.execution_time_ms, 3)
            data["states_traversed"] = meta.states_traversed
        return data


class DocumentPipeline:
    """Run documents through processing, aggregation, and rendering.

    Collaborators default to the filesystem lister and reader, the
    frontmatter extractor, and the placeholder renderer. Tests inject
    stubs, a fake memory probe, and a fake clock.

    Args:
        config (DocweaveConfig | None): Run configuration.
        schema (Schema | None): Pre-loaded schema; loaded from
            ``config.schema_path`` when omitted.
        lister, reader, extractor, renderer: Collaborator overrides.
        logger (logging.Logger | None): Defaults to the module logger.
        memory_probe (Callable[[], int] | None): Passed to the bounds
            monitor and the state machine.
        clock (Callable[[], float] | None): Passed to the bounds monitor.
    """

    def __init__(
        self,
        config: Optional[DocweaveConfig] = None,
        *,
        schema: Optional[Schema] = None,
        lister: Optional[FileLister] = None,
        reader: Optional[FileReader] = None,
        extractor: Optional[MetadataExtractor] = None,
        renderer: Optional[TemplateRenderer] = None,
        logger: Optional[logging.Logger] = None,
        memory_probe: Optional[Callable[[], int]] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.config = config or DocweaveConfig()
        self.profile: StrategyProfile = self.config.profile
        self.schema = schema
        self._injected_schema = schema
        self._injected_lister = lister
        self._injected_reader = reader
        self._injected_extractor = extractor
        self._bind_sources()
        self.renderer = renderer or PlaceholderRenderer(logger=logger)
        self.log = resolve_logger(logger, log)
        self._memory_probe = memory_probe
        self._clock = clock
        self.machine = PipelineStateMachine(logger=self.log, memory_probe=memory_probe)

    def _bind_sources(self) -> None:
        """Build the lister, reader, and extractor from ``config.sources``.

        Injected collaborators are kept as given.
        """
        src = self.config.sources
        self.lister = self._injected_lister
        if self.lister is None:
            self.lister = GlobFileLister(root_dir=src.root_dir)
        self.reader = self._injected_reader
        if self.reader is None:
            self.reader = LocalFileReader(encoding=src.encoding)
        self.extractor = self._injected_extractor
        if self.extractor is None:
            self.extractor = FrontmatterExtractor(require_block=src.require_frontmatter)

    # -- state machine facade ------------------------------------------------

    def initialize(
        self,
        config: Optional[DocweaveConfig] = None,
        strategy_profile: Optional[StrategyProfile] = None,
    ) -> PipelineExecutionState:
        """Reset the state machine and enter ``Initializing`` with ``config``."""
        if config is not None:
            if config is not self.config:
                self.config = config
                self.schema = self._injected_schema
                self._bind_sources()
            self.profile = config.profile
        if strategy_profile is not None:
            self.profile = strategy_profile
        self.machine.reset()
        return self.machine.transition(Initialize(config=self.config))

    def transition(self, event: StateTransitionEvent) -> PipelineExecutionState:
        return self.machine.transition(event)

    def get_current_state(self) -> PipelineExecutionState:
        return self.machine.current_state

    def is_complete(self) -> bool:
        return self.machine.is_complete()

    def can_proceed(self) -> bool:
        return self.machine.can_proceed()

    def get_state_history(self) -> tuple[PipelineExecutionState, ...]:
        return self.machine.history

    # -- processing ----------------------------------------------------------

    def process_documents(
        self,
        files: Sequence[str],
        rules: Optional[ValidationRuleSet] = None,
        bounds: Optional[ProcessingBounds] = None,
        strategy_options: Optional[ProcessingConfig] = None,
    ) -> ProcessingOutcome:
        """Process ``files`` into one aggregate.

        Per-file failures are recovered and reported in the outcome.

        Raises:
            ConfigurationError: If no schema has been loaded or it declares
                an invalid ``x-flatten-arrays`` path.
            BoundsViolation: If a sequential run exceeds its bounds.
            DocweaveError: The first per-file error when every file failed.
        """
        schema = self.schema
        if schema is None:
            raise ConfigurationError("no schema loaded; pass schema= or run load first")
        files = list(files)
        file_count = len(files)
        if bounds is None:
            bounds = resolve_bounds(file_count, self.config.bounds)
        monitor = BoundsMonitor.create(bounds, memory_probe=self._memory_probe, clock=self._clock)
        options = strategy_options if strategy_options is not None else self.config.processing
        strategy = select_strategy(file_count, options, profile=self.profile, logger=self.log)
        self.log.info(
            "Processing %d file(s) %s (%s)",
            file_count,
            "in parallel" if strategy.use_parallel else "sequentially",
            strategy.reason,
        )

        processor = DocumentProcessor(
            self.reader,
            self.extractor,
            logger=self.log,
            flatten_paths=schema.flatten_paths(),
        )

        def _process_one(path: str) -> Document:
            return processor.process(path, rules)

        execution: ExecutionResult[Document]
        if not files:
            execution = ExecutionResult()
        elif strategy.use_parallel:
            execution = run_batches(files, _process_one, strategy.max_workers, monitor, self.log)
        else:
            execution = run_sequential(files, _process_one, monitor, self.log)

        documents = list(execution.results)
        elements = extract_parts([doc.metadata_dict() for doc in documents], schema, logger=self.log)
        aggregation = Aggregator(schema, logger=self.log).aggregate(elements)
        populated = BasePropertyPopulator.from_schema(schema, logger=self.log).populate(aggregation.data)
        if execution.errors:
            self.log.warning(
                "Recovered from %d error(s); %d of %d file(s) aggregated",
                len(execution.errors),
                len(documents),
                file_count,
            )
        return ProcessingOutcome(
            aggregated_data=populated,
            documents=documents,
            errors=list(execution.errors),
            strategy=strategy,
            file_count=file_count,
            report=aggregation.report,
        )

    # -- full run ------------------------------------------------------------

    def run(self) -> RunResult:
        """Drive a complete run through every pipeline phase.

        Any failure moves the machine to ``Failed`` and is returned in the
        result rather than raised. Exceptions that are not a
        :class:`DocweaveError` are wrapped in :class:`ProcessingError`.
        """
        if not isinstance(self.machine.current_state, (Idle, Initializing)):
            self.machine.reset()
        outcome: Optional[ProcessingOutcome] = None
        output_path: Optional[str] = None
        try:
            cfg = self.config
            cfg.validate()
            self.profile = cfg.profile
            if isinstance(self.machine.current_state, Idle):
                self.initialize(cfg)
            mode = cfg.mode

            self.transition(LoadSchema(path=str(cfg.schema_path)))
            if self.schema is None:
                self.schema = Schema.load(str(cfg.schema_path))
            schema = self.schema
            self.transition(SchemaLoadComplete(schema=schema))

            files = self.lister.list_files(cfg.sources.patterns)
            self.log.info("Discovered %d file(s)", len(files))
            self.transition(ParseFrontmatter(content=tuple(files)))
            rules = None if mode == PipelineMode.TEMPLATE_ONLY else schema.validation_rules()
            outcome = self.process_documents(files, rules)
            data = outcome.aggregated_data
            self.transition(FrontmatterParseComplete(data=data))

            if isinstance(self.transition(ValidateData()), ValidatingData):
                self.transition(ValidationComplete(validated_data=data))

            template_path = self._template_path(schema)
            if isinstance(self.transition(LoadTemplate(path=template_path or "")), LoadingTemplate):
                template = self.renderer.load(template_path) if template_path else None
                self.transition(TemplateLoadComplete(template=template))
                self.transition(GenerateOutput())
                if template is not None:
                    text = self.renderer.render(template, data)
                else:
                    text = serialize(data, cfg.output.format)
                if cfg.output.output_path:
                    output_path = write_output(text, cfg.output.output_path)
                    self.log.info("Wrote output to %s", output_path)
                self.transition(OutputGenerationComplete(output=text))

            final = cast(Completed, self.transition(Complete()))
            return RunResult(
                ok=True,
                state=final,
                output=final.result.output,
                output_path=output_path,
                outcome=outcome,
            )
        except DocweaveError as exc:
            return self._fail(exc, output_path, outcome)
        except Exception as exc:
            self.log.exception("Unexpected failure in %s", self.machine.current_state.kind)
            return self._fail(ProcessingError.wrap(exc), output_path, outcome)

    def _fail(
        self,
        exc: DocweaveError,
        output_path: Optional[str],
        outcome: Optional[ProcessingOutcome],
    ) -> RunResult:
        self.log.error("Pipeline failed in %s: %s", self.machine.current_state.kind, exc)
        if self.machine.can_proceed():
            error = ExecutionError(phase=self.machine.current_state.kind, message=str(exc), cause=exc)
            self.transition(Fail(error=error))
        return RunResult(
            ok=False,
            state=self.machine.current_state,
            output_path=output_path,
            outcome=outcome,
            error=exc,
        )

    def _template_path(self, schema: Schema) -> Optional[str]:
        explicit = self.config.output.template_path
        if explicit:
            return explicit
        declared = schema.template_path
        if not declared:
            return None
        if schema.source_path and not Path(declared).is_absolute():
            return str(Path(schema.source_path).parent / declared)
        return declared
