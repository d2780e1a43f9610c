# render.py
# SPDX-License-Identifier: MIT
"""Minimal placeholder templates and aggregate serialization.

A template is a JSON or YAML document (or, for any other extension, plain
text) in which ``{dot.path}`` placeholders are replaced by values from the
aggregate. A string consisting of a single placeholder is replaced by the
value itself, keeping its type, so ``"{commands}"`` yields the whole array.
Unknown placeholders are left untouched.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .datapath import MISSING, collect_values, get_value
from .errors import TemplateError
from .log import get_logger, resolve_logger

log = get_logger(__name__)

__all__ = ["Template", "PlaceholderRenderer", "serialize", "write_output"]

_PLACEHOLDER = re.compile(r"\{([A-Za-z_][\w-]*(?:\[\])?(?:\.[A-Za-z_][\w-]*(?:\[\])?)*)\}")
_FORMATS = {".json": "json", ".yml": "yaml", ".yaml": "yaml"}


@dataclass(frozen=True, slots=True)
class Template:
    """A loaded template.

    Attributes:
        path (str): File the template came from.
        fmt (str): ``"json"``, ``"yaml"`` or ``"text"``.
        body (Any): Parsed structure for json/yaml, raw text otherwise.
    """

    path: str
    fmt: str
    body: Any


def serialize(data: Any, fmt: str = "json") -> str:
    """Serialize ``data`` as JSON or YAML; dates and other scalars become strings."""
    if fmt == "yaml":
        return yaml.safe_dump(_plain(data), sort_keys=False, allow_unicode=True, default_flow_style=False)
    return json.dumps(data, indent=2, ensure_ascii=False, default=str) + "\n"


def _plain(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def write_output(text: str, path: str | Path) -> str:
    """Write rendered output, creating parent directories.

    Raises:
        TemplateError: When the destination cannot be written.
    """
    target = Path(path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise TemplateError(f"cannot write output {target}: {exc}", path=str(target)) from exc
    return str(target)


class PlaceholderRenderer:
    """Default :class:`TemplateRenderer`."""

    def __init__(self, *, logger: Optional[logging.Logger] = None) -> None:
        self.log = resolve_logger(logger, log)

    def load(self, path: str) -> Template:
        """Read and parse a template file.

        Raises:
            TemplateError: If the file is missing or cannot be parsed.
        """
        p = Path(path)
        try:
            raw = p.read_text(encoding="utf-8")
        except OSError as exc:
            raise TemplateError(f"cannot read template {p}: {exc}", path=str(p)) from exc
        fmt = _FORMATS.get(p.suffix.lower(), "text")
        try:
            if fmt == "json":
                body: Any = json.loads(raw)
            elif fmt == "yaml":
                body = yaml.safe_load(raw)
            else:
                body = raw
        except (ValueError, yaml.YAMLError) as exc:
            raise TemplateError(f"cannot parse template {p}: {exc}", path=str(p)) from exc
        self.log.debug("Loaded %s template %s", fmt, p)
        return Template(path=str(p), fmt=fmt, body=body)

    def render(self, template: Template, data: Mapping[str, Any]) -> str:
        if template.fmt == "text":
            return _PLACEHOLDER.sub(lambda m: _as_text(_lookup(data, m.group(1)), m.group(0)), template.body)
        rendered = self._fill(template.body, data)
        return serialize(rendered, template.fmt)

    def _fill(self, node: Any, data: Mapping[str, Any]) -> Any:
        if isinstance(node, Mapping):
            return {k: self._fill(v, data) for k, v in node.items()}
        if isinstance(node, list):
            return [self._fill(v, data) for v in node]
        if not isinstance(node, str):
            return node
        whole = _PLACEHOLDER.fullmatch(node)
        if whole:
            value = _lookup(data, whole.group(1))
            return node if value is MISSING else value
        return _PLACEHOLDER.sub(lambda m: _as_text(_lookup(data, m.group(1)), m.group(0)), node)


def _lookup(data: Mapping[str, Any], path: str) -> Any:
    if "[]" in path:
        return collect_values(data, path)
    return get_value(data, path)


def _as_text(value: Any, original: str) -> str:
    if value is MISSING:
        return original
    if isinstance(value, (Mapping, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)
