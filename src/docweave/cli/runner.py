# runner.py
# SPDX-License-Identifier: MIT
"""Convenience entry points that assemble a config and run the pipeline."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

from ..core.config import DocweaveConfig, PipelineMode
from ..core.log import get_logger
from ..core.pipeline import DocumentPipeline, RunResult

log = get_logger(__name__)

__all__ = ["make_build_config", "run_config", "build", "validate"]


def make_build_config(
    schema_path: str | Path,
    patterns: Sequence[str],
    *,
    output_path: Optional[str | Path] = None,
    template_path: Optional[str | Path] = None,
    output_format: str = "json",
    parallel: bool = False,
    max_workers: Optional[int] = None,
    mode: str = PipelineMode.FULL,
    profile_name: Optional[str] = None,
    base_config: Optional[DocweaveConfig] = None,
) -> DocweaveConfig:
    """Layer command-line style arguments over an optional base config."""
    cfg = base_config or DocweaveConfig()
    cfg.schema_path = str(schema_path)
    cfg.sources.patterns = list(patterns)
    cfg.mode = mode
    if profile_name:
        cfg.profile_name = profile_name
    if output_path is not None:
        cfg.output.output_path = str(output_path)
    if template_path is not None:
        cfg.output.template_path = str(template_path)
    cfg.output.format = output_format
    if parallel:
        cfg.processing.parallel = True
    if max_workers is not None:
        cfg.processing.max_workers = int(max_workers)
    return cfg


def run_config(cfg: DocweaveConfig) -> RunResult:
    """Run one pipeline for ``cfg`` and log a one-line summary."""
    result = DocumentPipeline(cfg).run()
    if result.ok and result.outcome is not None:
        log.info(
            "Aggregated %d of %d document(s) (%d error(s))",
            len(result.outcome.documents),
            result.outcome.file_count,
            len(result.outcome.errors),
        )
    return result


def build(schema_path: str | Path, patterns: Sequence[str], **kwargs) -> RunResult:
    """Aggregate documents matching ``patterns`` and render the result."""
    return run_config(make_build_config(schema_path, patterns, **kwargs))


def validate(schema_path: str | Path, patterns: Sequence[str], **kwargs) -> RunResult:
    """Validate documents matching ``patterns`` without rendering."""
    kwargs["mode"] = PipelineMode.VALIDATION_ONLY
    return run_config(make_build_config(schema_path, patterns, **kwargs))
