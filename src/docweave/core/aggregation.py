# aggregation.py
# SPDX-License-Identifier: MIT
"""Schema-driven aggregation of document metadata.

Without a collection target, documents are merged left to right (later
documents win, shallow per top-level key). With one, the documents become
the elements of the array at the target path. Derivation rules then fill
fields from values found anywhere in the aggregate.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

from .datapath import collect_values, set_value
from .errors import ConfigurationError
from .interfaces import SchemaAccessor
from .log import get_logger, resolve_logger
from .schema import DerivationRule

log = get_logger(__name__)

__all__ = ["AggregationReport", "Aggregation", "Aggregator", "dedupe"]


@dataclass(slots=True)
class AggregationReport:
    """What happened while aggregating.

    Attributes:
        elements (int): Number of input items aggregated.
        derived (list[str]): Target fields written by derivation rules.
        failed_rules (list[tuple[str, str]]): ``(rule, reason)`` for every
            derivation rule that was skipped.
    """

    elements: int = 0
    derived: list[str] = field(default_factory=list)
    failed_rules: list[tuple[str, str]] = field(default_factory=list)


@dataclass(slots=True)
class Aggregation:
    data: dict[str, Any]
    report: AggregationReport


def dedupe(values: Sequence[Any]) -> list[Any]:
    """Remove duplicates, keeping the first occurrence of each value."""
    out: list[Any] = []
    seen: set[Any] = set()
    for value in values:
        key = (type(value), value)
        try:
            if key in seen:
                continue
            seen.add(key)
        except TypeError:
            # unhashable (dicts, lists)
            if value in out:
                continue
        out.append(value)
    return out


class Aggregator:
    """Build one aggregate from many metadata mappings.

    Args:
        schema (SchemaAccessor): Supplies the collection target and the
            derivation rules.
        logger (logging.Logger | None): Defaults to the module logger.
    """

    def __init__(self, schema: SchemaAccessor, *, logger: Optional[logging.Logger] = None) -> None:
        self.schema = schema
        self.log = resolve_logger(logger, log)

    def aggregate(self, items: Sequence[Mapping[str, Any]]) -> Aggregation:
        report = AggregationReport(elements=len(items))
        target = self.schema.collection_target
        if target:
            data = set_value({}, target, [dict(item) for item in items if isinstance(item, Mapping)])
        else:
            data = {}
            for item in items:
                if isinstance(item, Mapping):
                    data.update(item)
        data = self._derive(data, report)
        self.log.debug(
            "Aggregated %d item(s); derived %d field(s); %d rule(s) failed",
            report.elements,
            len(report.derived),
            len(report.failed_rules),
        )
        return Aggregation(data=data, report=report)

    def _derive(self, data: dict[str, Any], report: AggregationReport) -> dict[str, Any]:
        for spec in self.schema.derivation_rules():
            label = f"{getattr(spec, 'source_path', spec)!s} -> {getattr(spec, 'target_field', '?')!s}"
            try:
                rule = spec if isinstance(spec, DerivationRule) else DerivationRule.create(*spec)
                values = collect_values(data, rule.source_path)
                if rule.unique:
                    values = dedupe(values)
                data = set_value(data, rule.target_field, values)
            except (ConfigurationError, TypeError, ValueError) as exc:
                self.log.warning("Skipping derivation rule %s: %s", label, exc)
                report.failed_rules.append((label, str(exc)))
                continue
            report.derived.append(rule.target_field)
        return data
