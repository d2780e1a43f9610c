# schema.py
# SPDX-License-Identifier: MIT
"""Schema loading and the rule objects derived from it.

A docweave schema is a JSON-Schema-shaped document (JSON or YAML) extended
with a handful of ``x-`` directives:

* ``x-frontmatter-part: true`` on an array property marks the collection
  target: the output array built from one element per input document. Its
  ``items`` sub-schema becomes the per-document validation schema.
* ``x-derived-from: "<path>"`` on a property fills it with the values found
  at ``<path>`` across the aggregate; ``x-derived-unique: true`` removes
  duplicates.
* ``x-base-property: true`` with ``x-default-value`` (or ``default``) fills
  the property after aggregation when it is absent.
* ``x-flatten-arrays: "<path>"`` flattens nested arrays found at ``<path>``
  in each document's metadata before it is validated and aggregated.

Local ``$ref`` pointers (``#/definitions/...``, ``#/$defs/...``) and
relative file references are resolved once, at load time.
"""

from __future__ import annotations

import copy
import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, NamedTuple, Optional

import yaml

from .datapath import MISSING, get_value, parse_path, set_value
from .errors import ConfigurationError, ValidationError
from .log import get_logger

log = get_logger(__name__)

FRONTMATTER_PART = "x-frontmatter-part"
DERIVED_FROM = "x-derived-from"
DERIVED_UNIQUE = "x-derived-unique"
BASE_PROPERTY = "x-base-property"
DEFAULT_VALUE = "x-default-value"
TEMPLATE = "x-template"
FLATTEN_ARRAYS = "x-flatten-arrays"

_JSON_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "number": (int, float),
    "integer": (int,),
    "boolean": (bool,),
    "array": (list, tuple),
    "object": (Mapping,),
}


# ---------------------------------------------------------------------------
# Rule objects
# ---------------------------------------------------------------------------


def _type_matches(value: Any, type_name: str) -> bool:
    if type_name == "null":
        return value is None
    expected = _JSON_TYPES.get(type_name)
    if expected is None:
        # Unknown type names are not enforced.
        return True
    if isinstance(value, bool) and type_name in {"number", "integer"}:
        return False
    if type_name == "integer" and isinstance(value, float):
        return value.is_integer()
    return isinstance(value, expected)


@dataclass(frozen=True, slots=True)
class FieldRule:
    """Constraint on one metadata field.

    Attributes:
        path (str): Dot path of the field inside a document's metadata.
        expected_type (tuple[str, ...]): Accepted JSON type names; empty
            means any type.
        required (bool): Whether absence is a violation.
        default (Any): Declared default, or ``MISSING``.
        enum (tuple | None): Allowed values, when declared.
        item_type (str | None): Element type for arrays.
    """

    path: str
    expected_type: tuple[str, ...] = ()
    required: bool = False
    default: Any = MISSING
    enum: Optional[tuple[Any, ...]] = None
    item_type: Optional[str] = None

    def check(self, metadata: Mapping[str, Any]) -> Optional[str]:
        """Return a violation message, or ``None`` when the rule holds."""
        value = get_value(metadata, self.path)
        if value is MISSING:
            return f"{self.path}: required field is missing" if self.required else None
        if self.expected_type and not any(_type_matches(value, t) for t in self.expected_type):
            return (
                f"{self.path}: expected {' | '.join(self.expected_type)}, "
                f"got {type(value).__name__}"
            )
        if self.enum is not None and value not in self.enum:
            return f"{self.path}: {value!r} is not one of {list(self.enum)!r}"
        if self.item_type and isinstance(value, (list, tuple)):
            for idx, item in enumerate(value):
                if not _type_matches(item, self.item_type):
                    return f"{self.path}[{idx}]: expected {self.item_type}, got {type(item).__name__}"
        return None


@dataclass(frozen=True, slots=True)
class ValidationRuleSet:
    """Ordered, read-only field rules applied to each document."""

    rules: tuple[FieldRule, ...] = ()
    scope: str = "root"

    def __len__(self) -> int:
        return len(self.rules)

    def violations(self, metadata: Mapping[str, Any]) -> list[str]:
        problems: list[str] = []
        for rule in self.rules:
            parent = rule.path.rpartition(".")[0]
            # Nested rules only apply when their parent object is present.
            if parent and not isinstance(get_value(metadata, parent), Mapping):
                continue
            msg = rule.check(metadata)
            if msg:
                problems.append(msg)
        return problems

    def validate(self, metadata: Mapping[str, Any], *, path: str | None = None) -> None:
        """Raise :class:`ValidationError` listing every failed rule."""
        if not isinstance(metadata, Mapping):
            raise ValidationError(
                f"metadata must be an object, got {type(metadata).__name__}",
                path=path,
            )
        problems = self.violations(metadata)
        if problems:
            raise ValidationError(
                f"{len(problems)} validation error(s): {'; '.join(problems)}",
                path=path,
                violations=problems,
            )


class DerivationSpec(NamedTuple):
    """Raw ``x-derived-from`` declaration as found in the schema."""

    source_path: Any
    target_field: Any
    unique: Any = False


@dataclass(frozen=True, slots=True)
class DerivationRule:
    """Copy values found at ``source_path`` into ``target_field``."""

    source_path: str
    target_field: str
    unique: bool = False

    @classmethod
    def create(cls, source_path: Any, target_field: Any, unique: Any = False) -> "DerivationRule":
        """Validate raw values and build a rule.

        Raises:
            ConfigurationError: If either path is missing or malformed, or
                the target path contains an array segment.
        """
        if not isinstance(source_path, str) or not source_path.strip():
            raise ConfigurationError(f"derivation source path must be a non-empty string, got {source_path!r}")
        if not isinstance(target_field, str) or not target_field.strip():
            raise ConfigurationError(f"derivation target must be a non-empty string, got {target_field!r}")
        try:
            parse_path(source_path)
            target_segments = parse_path(target_field)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        if any(seg.expand for seg in target_segments):
            raise ConfigurationError(f"derivation target cannot expand arrays: {target_field!r}")
        return cls(source_path=source_path.strip(), target_field=target_field.strip(), unique=bool(unique))


@dataclass(frozen=True, slots=True)
class BasePropertyRule:
    path: str
    default: Any = None
    has_default: bool = False


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


@dataclass
class Schema:
    """Loaded schema with ``$ref`` pointers resolved.

    Attributes:
        definition (dict): Resolved schema document.
        source_path (str | None): File the schema was loaded from.
    """

    definition: dict[str, Any]
    source_path: Optional[str] = None
    _target: Any = field(default=MISSING, init=False, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.definition, Mapping):
            raise ConfigurationError("schema must be an object")
        base_dir = Path(self.source_path).parent if self.source_path else None
        self.definition = _resolve_refs(dict(self.definition), self.definition, base_dir, ())

    # -- construction ---------------------------------------------------

    @classmethod
    def from_dict(cls, definition: Mapping[str, Any]) -> "Schema":
        return cls(definition=copy.deepcopy(dict(definition)))

    @classmethod
    def load(cls, path: str | Path) -> "Schema":
        """Load a schema from a ``.json``, ``.yml`` or ``.yaml`` file.

        Raises:
            ConfigurationError: If the file is missing or unparsable.
        """
        p = Path(path)
        data = _load_document(p)
        log.debug("Loaded schema %s", p)
        return cls(definition=data, source_path=str(p))

    # -- directives -----------------------------------------------------

    @property
    def collection_target(self) -> Optional[str]:
        """Dot path of the ``x-frontmatter-part`` array, or ``None``."""
        if self._target is MISSING:
            found = _find_frontmatter_part(self.definition, ())
            self._target = ".".join(found) if found else None
        return self._target

    @property
    def template_path(self) -> Optional[str]:
        value = self.definition.get(TEMPLATE)
        return str(value) if value else None

    def property_schema(self, path: str) -> Optional[dict[str, Any]]:
        node: Any = self.definition
        for seg in parse_path(path):
            props = node.get("properties") if isinstance(node, Mapping) else None
            if not isinstance(props, Mapping) or seg.key not in props:
                return None
            node = props[seg.key]
        return node if isinstance(node, dict) else None

    def item_schema(self) -> Optional[dict[str, Any]]:
        """Return the ``items`` schema of the collection target."""
        target = self.collection_target
        if not target:
            return None
        prop = self.property_schema(target) or {}
        items = prop.get("items")
        return items if isinstance(items, dict) else {}

    def derivation_rules(self) -> list[DerivationSpec]:
        """Return raw derivation declarations in schema order."""
        specs: list[DerivationSpec] = []
        for path, prop in _walk_properties(self.definition, ()):
            if DERIVED_FROM in prop:
                specs.append(
                    DerivationSpec(
                        source_path=prop.get(DERIVED_FROM),
                        target_field=".".join(path),
                        unique=prop.get(DERIVED_UNIQUE, False),
                    )
                )
        return specs

    def base_property_rules(self) -> list[BasePropertyRule]:
        rules: list[BasePropertyRule] = []
        for path, prop in _walk_properties(self.definition, ()):
            if not prop.get(BASE_PROPERTY):
                continue
            if DEFAULT_VALUE in prop:
                rules.append(BasePropertyRule(".".join(path), prop[DEFAULT_VALUE], True))
            elif "default" in prop:
                rules.append(BasePropertyRule(".".join(path), prop["default"], True))
            else:
                rules.append(BasePropertyRule(".".join(path)))
        return rules

    def flatten_paths(self) -> list[str]:
        """Return the ``x-flatten-arrays`` paths declared anywhere in the schema.

        Each path addresses an array inside a document's metadata, so the
        declaration may sit on a collection item property or at top level.

        Raises:
            ConfigurationError: If a declaration is not a plain dot path.
        """
        paths: list[str] = []
        for value in _directive_values(self.definition, FLATTEN_ARRAYS):
            if not isinstance(value, str):
                raise ConfigurationError(
                    f"{FLATTEN_ARRAYS} expects a dot path string, got {type(value).__name__}"
                )
            try:
                segments = parse_path(value)
            except ValueError as exc:
                raise ConfigurationError(f"invalid {FLATTEN_ARRAYS} path: {exc}") from exc
            if any(seg.expand for seg in segments):
                raise ConfigurationError(f"{FLATTEN_ARRAYS} path cannot expand arrays: {value!r}")
            path = value.strip()
            if path not in paths:
                paths.append(path)
        return paths

    def validation_rules(self) -> ValidationRuleSet:
        """Build the per-document rule set.

        With a collection target, rules come from the target's item schema
        because each document becomes one array element.
        """
        if self.collection_target:
            return ValidationRuleSet(
                rules=tuple(_field_rules(self.item_schema() or {}, ())),
                scope=f"{self.collection_target}[]",
            )
        return ValidationRuleSet(rules=tuple(_field_rules(self.definition, ())), scope="root")

    def empty_structure(self) -> dict[str, Any]:
        """Return an aggregate shaped by the schema but holding no elements."""
        target = self.collection_target
        if not target:
            return {}
        return set_value({}, target, [])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_document(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigurationError(f"schema file not found: {path}", path=str(path)) from exc
    except OSError as exc:
        raise ConfigurationError(f"cannot read schema {path}: {exc}", path=str(path)) from exc
    try:
        if path.suffix.lower() in {".yml", ".yaml"}:
            data = yaml.safe_load(raw)
        else:
            data = json.loads(raw)
    except (ValueError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"cannot parse schema {path}: {exc}", path=str(path)) from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"schema root must be an object: {path}", path=str(path))
    return data


def _resolve_pointer(root: Mapping[str, Any], pointer: str) -> Any:
    node: Any = root
    for part in pointer.lstrip("/").split("/"):
        if not part:
            continue
        part = part.replace("~1", "/").replace("~0", "~")
        if not isinstance(node, Mapping) or part not in node:
            raise ConfigurationError(f"unresolvable $ref pointer: #/{pointer.lstrip('/')}")
        node = node[part]
    return node


def _resolve_refs(node: Any, root: Mapping[str, Any], base_dir: Optional[Path], seen: tuple[str, ...]) -> Any:
    if isinstance(node, list):
        return [_resolve_refs(item, root, base_dir, seen) for item in node]
    if not isinstance(node, Mapping):
        return node
    ref = node.get("$ref")
    if isinstance(ref, str):
        if ref in seen:
            raise ConfigurationError(f"circular $ref: {' -> '.join(seen + (ref,))}")
        file_part, _, pointer = ref.partition("#")
        if file_part:
            if base_dir is None:
                raise ConfigurationError(f"relative $ref {ref!r} needs a schema loaded from a file")
            ref_path = (base_dir / file_part).resolve()
            ref_root = _load_document(ref_path)
            target = _resolve_pointer(ref_root, pointer) if pointer else ref_root
            resolved = _resolve_refs(target, ref_root, ref_path.parent, seen + (ref,))
        else:
            target = _resolve_pointer(root, pointer)
            resolved = _resolve_refs(target, root, base_dir, seen + (ref,))
        siblings = {k: v for k, v in node.items() if k != "$ref"}
        if isinstance(resolved, Mapping):
            merged = dict(resolved)
            merged.update(_resolve_refs(siblings, root, base_dir, seen))
            return merged
        return resolved
    return {k: _resolve_refs(v, root, base_dir, seen) for k, v in node.items()}


def _walk_properties(node: Mapping[str, Any], prefix: tuple[str, ...]):
    """Yield ``(path, property_schema)`` for object properties, depth first.

    Does not descend into array items, so directives inside the collection
    item schema are not reported at aggregate level.
    """
    props = node.get("properties") if isinstance(node, Mapping) else None
    if not isinstance(props, Mapping):
        return
    for key, prop in props.items():
        if not isinstance(prop, Mapping):
            continue
        path = prefix + (str(key),)
        yield path, prop
        yield from _walk_properties(prop, path)


def _directive_values(node: Any, key: str):
    """Yield every value stored under ``key`` in the schema tree."""
    if isinstance(node, Mapping):
        for name, child in node.items():
            if name == key:
                yield child
            else:
                yield from _directive_values(child, key)
    elif isinstance(node, list):
        for child in node:
            yield from _directive_values(child, key)


def _find_frontmatter_part(node: Mapping[str, Any], prefix: tuple[str, ...]) -> Optional[tuple[str, ...]]:
    for path, prop in _walk_properties(node, prefix):
        if prop.get(FRONTMATTER_PART) is True:
            return path
    return None


def _types_of(prop: Mapping[str, Any]) -> tuple[str, ...]:
    raw = prop.get("type")
    if isinstance(raw, str):
        return (raw,)
    if isinstance(raw, Sequence):
        return tuple(str(t) for t in raw)
    return ()


def _field_rules(node: Mapping[str, Any], prefix: tuple[str, ...]) -> list[FieldRule]:
    props = node.get("properties")
    if not isinstance(props, Mapping):
        return []
    raw_required = node.get("required")
    required = set(raw_required) if isinstance(raw_required, list) else set()
    rules: list[FieldRule] = []
    for key, prop in props.items():
        if not isinstance(prop, Mapping):
            continue
        # Derived and collection fields are outputs, not document inputs.
        if DERIVED_FROM in prop or prop.get(FRONTMATTER_PART) is True:
            continue
        path = prefix + (str(key),)
        items = prop.get("items")
        item_type = items.get("type") if isinstance(items, Mapping) and isinstance(items.get("type"), str) else None
        enum = prop.get("enum")
        rules.append(
            FieldRule(
                path=".".join(path),
                expected_type=_types_of(prop),
                required=key in required,
                default=prop.get("default", MISSING),
                enum=tuple(enum) if isinstance(enum, list) else None,
                item_type=item_type,
            )
        )
        rules.extend(_field_rules(prop, path))
    return rules


__all__ = [
    "FieldRule",
    "ValidationRuleSet",
    "DerivationSpec",
    "DerivationRule",
    "BasePropertyRule",
    "Schema",
]
