# base_properties.py
# SPDX-License-Identifier: MIT
"""Fill ``x-base-property`` fields of the aggregate with their defaults."""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import Any, Optional, Sequence

from .datapath import has_value, set_value
from .errors import ConfigurationError
from .log import get_logger, resolve_logger
from .schema import BasePropertyRule

log = get_logger(__name__)

__all__ = ["BasePropertyPopulator"]


class BasePropertyPopulator:
    """Apply base-property defaults to an aggregate.

    Rules are checked when the populator is created: a base property that
    declares no default is a schema error and raises immediately.
    Population only writes absent fields, so applying it twice is the same
    as applying it once.
    """

    def __init__(self, rules: Sequence[BasePropertyRule], *, logger: Optional[logging.Logger] = None) -> None:
        missing = [rule.path for rule in rules if not rule.has_default]
        if missing:
            raise ConfigurationError(
                f"base property without a default value: {', '.join(missing)}",
                fields=missing,
            )
        self.rules = tuple(rules)
        self.log = resolve_logger(logger, log)

    @classmethod
    def from_schema(cls, schema: Any, *, logger: Optional[logging.Logger] = None) -> "BasePropertyPopulator":
        return cls(schema.base_property_rules(), logger=logger)

    def populate(self, data: Mapping[str, Any]) -> dict[str, Any]:
        out = dict(data)
        for rule in self.rules:
            if has_value(out, rule.path):
                continue
            out = set_value(out, rule.path, copy.deepcopy(rule.default))
            self.log.debug("Set base property %s to its default", rule.path)
        return out
