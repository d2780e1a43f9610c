# main.py
# SPDX-License-Identifier: MIT

from __future__ import annotations

import argparse
import json
import sys
from typing import Optional, Sequence

from ..core.bounds import BoundedProcessing, resolve_bounds
from ..core.config import DocweaveConfig, PipelineMode, StrategyProfile, load_config_from_path
from ..core.errors import DocweaveError
from ..core.log import configure_logging
from ..core.pipeline import RunResult
from ..core.strategy import select_strategy, strategy_stats
from ..sources.fs import GlobFileLister
from .runner import build, run_config, validate


def _build_parser() -> argparse.ArgumentParser:
    """Build the top-level docweave CLI argument parser.

    Returns:
        argparse.ArgumentParser: Configured argument parser for the CLI.
    """
    parser = argparse.ArgumentParser(prog="docweave", description="docweave CLI")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level (e.g., DEBUG, INFO, WARNING).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_p = subparsers.add_parser("run", help="Run from a config file")
    run_p.add_argument("-c", "--config", required=True, help="Path to config file (TOML or JSON).")
    run_p.add_argument("--override-max-workers", type=int, help="Override processing.max_workers.")
    run_p.add_argument("--override-parallel", action="store_true", help="Force processing.parallel on.")
    run_p.add_argument("--dry-run", action="store_true", help="Validate and print config, then exit.")

    build_p = subparsers.add_parser("build", help="Aggregate documents into one output.")
    build_p.add_argument("schema", help="Schema file (JSON or YAML).")
    build_p.add_argument("patterns", nargs="+", help="Glob pattern(s) for input documents.")
    build_p.add_argument("-o", "--output", help="Output path (defaults to stdout).")
    build_p.add_argument("--template", help="Template file; overrides the schema's x-template.")
    build_p.add_argument("--format", choices=["json", "yaml"], default="json", help="Output format without a template.")
    build_p.add_argument("--parallel", action="store_true", help="Process files in parallel batches.")
    build_p.add_argument("--max-workers", type=int, help="Worker count for parallel runs.")
    build_p.add_argument("--profile", choices=["conservative", "balanced", "aggressive"], help="Strategy profile.")
    build_p.add_argument(
        "--mode",
        choices=sorted(PipelineMode.ALL),
        default=PipelineMode.FULL,
        help="Pipeline mode.",
    )

    val_p = subparsers.add_parser("validate", help="Validate documents against a schema.")
    val_p.add_argument("schema", help="Schema file (JSON or YAML).")
    val_p.add_argument("patterns", nargs="+", help="Glob pattern(s) for input documents.")

    plan_p = subparsers.add_parser("plan", help="Show the processing strategy and bounds for a file set.")
    plan_p.add_argument("patterns", nargs="+", help="Glob pattern(s) for input documents.")
    plan_p.add_argument("--parallel", action="store_true", help="Request parallel processing.")
    plan_p.add_argument("--max-workers", type=int, help="Worker count for parallel runs.")
    plan_p.add_argument("--profile", choices=["conservative", "balanced", "aggressive"], help="Strategy profile.")

    return parser


def _apply_processing_overrides(cfg: DocweaveConfig, args: argparse.Namespace) -> None:
    """Apply processing-related CLI overrides to a config object in place."""
    if getattr(args, "override_max_workers", None) is not None:
        cfg.processing.max_workers = int(args.override_max_workers)
    if getattr(args, "override_parallel", False):
        cfg.processing.parallel = True


def _report(result: RunResult, *, print_output: bool) -> int:
    if print_output and result.ok and result.output is not None:
        sys.stdout.write(result.output)
        if not result.output.endswith("\n"):
            sys.stdout.write("\n")
    else:
        print(json.dumps(result.as_dict(), indent=2, default=str))
    if not result.ok and result.error is not None:
        print(f"Error: {result.error}", file=sys.stderr)
    return 0 if result.ok else 1


def _cmd_plan(args: argparse.Namespace) -> int:
    files = GlobFileLister().list_files(args.patterns)
    cfg = DocweaveConfig()
    cfg.processing.parallel = bool(args.parallel)
    cfg.processing.max_workers = args.max_workers
    profile = StrategyProfile.preset(args.profile) if args.profile else StrategyProfile()
    strategy = select_strategy(len(files), cfg.processing, profile=profile)
    bounds = resolve_bounds(len(files))
    plan = {
        "files": len(files),
        "strategy": "parallel" if strategy.use_parallel else "sequential",
        "max_workers": strategy.max_workers,
        "reason": strategy.reason,
        "stats": strategy_stats(len(files), profile=profile),
        "bounds": {"kind": bounds.kind},
    }
    if isinstance(bounds, BoundedProcessing):
        plan["bounds"].update(
            memory_limit_mb=bounds.memory_limit_mb,
            file_limit=bounds.file_limit,
            time_limit_s=bounds.time_limit_s,
        )
    print(json.dumps(plan, indent=2))
    return 0


def _dispatch(args: argparse.Namespace) -> int:
    """Dispatch a parsed CLI command to the appropriate handler.

    Returns:
        int: Process exit code, where 0 indicates success and non-zero
        values indicate failure.
    """
    configure_logging(level=args.log_level)
    cmd = args.command

    if cmd == "run":
        cfg = load_config_from_path(args.config)
        _apply_processing_overrides(cfg, args)
        if args.dry_run:
            cfg.validate()
            print(json.dumps(cfg.to_dict(), indent=2))
            return 0
        cfg.logging.apply()
        return _report(run_config(cfg), print_output=not cfg.output.output_path)

    if cmd == "build":
        result = build(
            args.schema,
            args.patterns,
            output_path=args.output,
            template_path=args.template,
            output_format=args.format,
            parallel=args.parallel,
            max_workers=args.max_workers,
            mode=args.mode,
            profile_name=args.profile,
        )
        return _report(result, print_output=not args.output and args.mode != PipelineMode.VALIDATION_ONLY)

    if cmd == "validate":
        return _report(validate(args.schema, args.patterns), print_output=False)

    if cmd == "plan":
        return _cmd_plan(args)

    print(f"Unknown command: {cmd}", file=sys.stderr)
    return 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the docweave command-line interface.

    Args:
        argv (Sequence[str] | None): Optional list of argument strings to
            parse instead of ``sys.argv[1:]``. Primarily useful for tests.

    Returns:
        int: Process exit code, where 0 indicates success and non-zero
        values indicate failure.
    """
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    try:
        return _dispatch(args)
    except DocweaveError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
