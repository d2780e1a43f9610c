# extraction.py
# SPDX-License-Identifier: MIT
"""Turn per-document metadata into collection elements."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Optional

from .datapath import get_value
from .interfaces import SchemaAccessor
from .log import get_logger, resolve_logger

log = get_logger(__name__)

__all__ = ["extract_parts"]


def extract_parts(
    documents_data: Sequence[Any],
    schema: SchemaAccessor,
    *,
    logger: Optional[logging.Logger] = None,
) -> list[Any]:
    """Return the collection elements contributed by ``documents_data``.

    Without a collection target the input is returned as a new list,
    unchanged. With one, every document's metadata mapping becomes one
    element. A document that already holds an array at the target path
    contributes each mapping in that array instead. Non-mapping elements
    are dropped; if nothing valid remains, the original list is returned.
    """
    logger = resolve_logger(logger, log)
    target = schema.collection_target
    if not target:
        return list(documents_data)

    elements: list[dict[str, Any]] = []
    skipped = 0
    for data in documents_data:
        if not isinstance(data, Mapping):
            skipped += 1
            continue
        nested = get_value(data, target)
        if isinstance(nested, list):
            for item in nested:
                if isinstance(item, Mapping):
                    elements.append(dict(item))
                else:
                    skipped += 1
            continue
        elements.append(dict(data))

    if skipped:
        logger.debug("Dropped %d non-object element(s) for %s", skipped, target)
    if not elements:
        logger.debug("No object elements for %s; keeping input as-is", target)
        return list(documents_data)
    return elements
