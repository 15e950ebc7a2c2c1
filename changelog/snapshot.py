"""Snapshot model: structural state of one extracted component.

Raw extraction payloads are loosely typed. Everything that is compared goes
through ``canonicalize`` first so equality never depends on key order, number
representation or the bytes of the raw payload.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import yaml

from changelog.errors import MalformedSnapshot

logger = logging.getLogger(__name__)

PROPERTIES = "properties"
VARIABLES = "variables"

# Payload keys that never take part in structural comparison
_TRANSIENT_KEYS = {"thumbnailBytes"}

_TYPE_KEYS = ("type",)
_DEFAULT_KEYS = ("defaultValue", "default")
_OPTION_KEYS = ("variantOptions", "preferredValues", "options", "possibleValues")


def canonicalize(value: Any) -> tuple:
    """Return a hashable, totally ordered form of a JSON-like value.

    Every node is tagged with its kind so values of different types still
    compare. Mapping keys are sorted and integral floats fold into ints.
    """
    if value is None:
        return ("null",)
    if isinstance(value, bool):
        return ("bool", value)
    if isinstance(value, (int, float)):
        if isinstance(value, float):
            if math.isnan(value) or math.isinf(value):
                raise MalformedSnapshot(f"non-finite number {value!r}")
            value = int(value) if value.is_integer() else round(value, 6)
        return ("num", value)
    if isinstance(value, str):
        return ("str", value)
    if isinstance(value, Mapping):
        pairs = []
        for key, item in value.items():
            if not isinstance(key, str):
                raise MalformedSnapshot(f"non-string key {key!r}")
            pairs.append((key, canonicalize(item)))
        return ("map", tuple(sorted(pairs)))
    if isinstance(value, (list, tuple)):
        return ("list", tuple(canonicalize(item) for item in value))
    if isinstance(value, (set, frozenset)):
        return ("set", tuple(sorted(canonicalize(item) for item in value)))
    raise MalformedSnapshot(f"unsupported value of type {type(value).__name__}")


def to_plain(canonical: tuple) -> Any:
    """Turn a canonical form back into plain JSON-serializable data."""
    tag = canonical[0]
    if tag == "null":
        return None
    if tag in ("bool", "num", "str"):
        return canonical[1]
    if tag == "map":
        return {key: to_plain(item) for key, item in canonical[1]}
    return [to_plain(item) for item in canonical[1]]


@dataclass(frozen=True)
class PropertyDefinition:
    type: str | None = None
    default: Any = None
    options: tuple = ()

    def canonical(self) -> tuple:
        return (
            self.type or "",
            canonicalize(self.default),
            tuple(sorted(canonicalize(option) for option in self.options)),
        )

    def to_dict(self) -> dict:
        return {"type": self.type, "default": self.default, "options": list(self.options)}


@dataclass(frozen=True)
class Geometry:
    width: float | None = None
    height: float | None = None
    layout_mode: str | None = None

    def canonical(self) -> tuple:
        return (
            canonicalize(self.width),
            canonicalize(self.height),
            canonicalize(self.layout_mode),
        )

    def to_dict(self) -> dict:
        return {"width": self.width, "height": self.height, "layoutMode": self.layout_mode}


@dataclass(frozen=True, eq=False)
class Snapshot:
    """Immutable structural record of a component at one point in time.

    ``raw`` keeps the payload the snapshot was built from and is never used
    for comparison. ``opaque`` names the sides (``properties``/``variables``)
    whose source field had an unknown shape; those are not diffed.
    """

    component_key: str
    property_definitions: Mapping[str, PropertyDefinition] = field(default_factory=dict)
    variables_used: Mapping[str, str | tuple[str, ...]] = field(default_factory=dict)
    geometry: Geometry | None = None
    raw: Any = None
    opaque: frozenset[str] = frozenset()

    @classmethod
    def from_extracted(cls, data: Any) -> Snapshot:
        """Build a snapshot from raw extracted data. Never raises."""
        if not isinstance(data, Mapping):
            logger.warning("Snapshot payload is %s, treating it as opaque", type(data).__name__)
            return cls(component_key="", raw=data, opaque=frozenset({PROPERTIES, VARIABLES}))

        raw = {k: v for k, v in data.items() if k not in _TRANSIENT_KEYS}
        opaque: set[str] = set()

        key = data.get("componentKey", data.get("key"))
        component_key = key if isinstance(key, str) else ("" if key is None else str(key))

        properties, ok = _parse_mapping(data.get("propertyDefinitions"), _parse_property, component_key)
        if not ok:
            opaque.add(PROPERTIES)
        variables, ok = _parse_mapping(data.get("variablesUsed"), _parse_binding, component_key)
        if not ok:
            opaque.add(VARIABLES)

        return cls(
            component_key=component_key,
            property_definitions=properties,
            variables_used=variables,
            geometry=_parse_geometry(data),
            raw=raw,
            opaque=frozenset(opaque),
        )

    @property
    def document(self) -> Any:
        """The exported node document used for reconstruction, if any."""
        if isinstance(self.raw, Mapping):
            return self.raw.get("snapshot")
        return None

    def canonical(self) -> tuple:
        return (
            self.component_key,
            tuple(sorted((name, d.canonical()) for name, d in self.property_definitions.items())),
            tuple(sorted((slot, canonicalize(v)) for slot, v in self.variables_used.items())),
            self.geometry.canonical() if self.geometry else None,
            tuple(sorted(self.opaque)),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Snapshot):
            return NotImplemented
        return self.canonical() == other.canonical()

    def __hash__(self) -> int:
        return hash(self.canonical())

    def to_dict(self) -> dict:
        return {
            "componentKey": self.component_key,
            "propertyDefinitions": {
                name: d.to_dict() for name, d in sorted(self.property_definitions.items())
            },
            "variablesUsed": {
                slot: list(v) if isinstance(v, tuple) else v
                for slot, v in sorted(self.variables_used.items())
            },
            "geometry": self.geometry.to_dict() if self.geometry else None,
        }


def load_snapshot(path: str) -> Snapshot:
    """Load an extracted component payload from a YAML or JSON file."""
    with open(path) as f:
        return Snapshot.from_extracted(yaml.safe_load(f))


def _parse_mapping(source: Any, parse_value, component_key: str) -> tuple[dict, bool]:
    """Parse a name -> value mapping, dropping entries that fail to normalize.

    Returns the parsed mapping and whether the source had a usable shape.
    ``None`` is an empty mapping (variant children carry no definitions).
    """
    if source is None:
        return {}, True
    if not isinstance(source, Mapping):
        logger.warning(
            "Component %s: expected a mapping, got %s; side left opaque",
            component_key, type(source).__name__,
        )
        return {}, False

    parsed = {}
    for name, value in source.items():
        if not isinstance(name, str):
            logger.warning("Component %s: skipping non-string key %r", component_key, name)
            continue
        try:
            parsed[name] = parse_value(value)
        except MalformedSnapshot as exc:
            logger.warning("Component %s: skipping %s (%s)", component_key, name, exc)
    return parsed, True


def _first(value: Mapping, keys: tuple[str, ...], default: Any = None) -> Any:
    for key in keys:
        if key in value:
            return value[key]
    return default


def _parse_property(value: Any) -> PropertyDefinition:
    is_definition = isinstance(value, Mapping) and any(
        key in value for key in _TYPE_KEYS + _DEFAULT_KEYS + _OPTION_KEYS
    )
    if not is_definition:
        canonicalize(value)
        return PropertyDefinition(default=value)

    prop_type = _first(value, _TYPE_KEYS)
    if prop_type is not None and not isinstance(prop_type, str):
        raise MalformedSnapshot(f"property type {prop_type!r} is not a string")
    default = _first(value, _DEFAULT_KEYS)
    canonicalize(default)

    options = _first(value, _OPTION_KEYS, ())
    if options is None:
        options = ()
    if not isinstance(options, (list, tuple)):
        raise MalformedSnapshot("property options are not a list")
    ordered = sorted(options, key=canonicalize)
    return PropertyDefinition(type=prop_type, default=default, options=tuple(ordered))


def _parse_binding(value: Any) -> str | tuple[str, ...]:
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        variable_id = value.get("id")
        if isinstance(variable_id, str):
            return variable_id
        raise MalformedSnapshot("variable binding has no id")
    if isinstance(value, (list, tuple)):
        ids = []
        for item in value:
            parsed = _parse_binding(item)
            ids.extend(parsed if isinstance(parsed, tuple) else (parsed,))
        return tuple(ids)
    raise MalformedSnapshot(f"unsupported variable binding {type(value).__name__}")


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        return None
    return round(float(value), 2)


def _parse_geometry(data: Mapping) -> Geometry | None:
    source = data.get("geometry")
    if isinstance(source, Mapping):
        width, height = source.get("width"), source.get("height")
        layout_mode = source.get("layoutMode", source.get("layout_mode"))
    else:
        document = data.get("snapshot")
        if isinstance(document, Mapping) and isinstance(document.get("document"), Mapping):
            document = document["document"]
        if not isinstance(document, Mapping):
            return None
        box = document.get("absoluteBoundingBox")
        if not isinstance(box, Mapping):
            box = document.get("size") if isinstance(document.get("size"), Mapping) else {}
        width, height = box.get("width"), box.get("height")
        layout_mode = document.get("layoutMode")

    geometry = Geometry(
        width=_number(width),
        height=_number(height),
        layout_mode=layout_mode if isinstance(layout_mode, str) else None,
    )
    if geometry == Geometry():
        return None
    return geometry
