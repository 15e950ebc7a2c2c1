"""Group a flat component listing into component sets by naming convention."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

VARIANT_SEPARATOR = " / "


@dataclass
class ComponentGroup:
    base_name: str
    variants: list[Any] = field(default_factory=list)
    thumbnail_url: str | None = None
    component_set_id: str | None = None
    standalone: bool = False

    @property
    def key(self) -> str:
        """Selection key: the set id, else the first variant's key or base name."""
        if self.component_set_id:
            return self.component_set_id
        first = self.variants[0] if self.variants else None
        if isinstance(first, Mapping) and isinstance(first.get("key"), str):
            return first["key"]
        return self.base_name

    @property
    def node_ids(self) -> list[str]:
        return [
            v["nodeId"] for v in self.variants
            if isinstance(v, Mapping) and isinstance(v.get("nodeId"), str)
        ]

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "baseName": self.base_name,
            "variants": list(self.variants),
            "thumbnailUrl": self.thumbnail_url,
            "componentSetId": self.component_set_id,
            "standalone": self.standalone,
            "nodeIds": self.node_ids,
        }


def split_name(name: Any) -> tuple[str, str | None]:
    """Split ``"<base> / <variant>"`` on the first separator.

    Names without the separator, with a blank base, or that are not strings
    are standalone and return ``(name, None)``.
    """
    if not isinstance(name, str):
        return "", None
    base, sep, variant = name.partition(VARIANT_SEPARATOR)
    if not sep or not base.strip():
        return name, None
    return base, variant


def _field(component: Any, *names: str) -> Any:
    if not isinstance(component, Mapping):
        return None
    for name in names:
        value = component.get(name)
        if value is not None:
            return value
    return None


def group_components(components: Iterable[Any]) -> list[ComponentGroup]:
    """Partition components into groups.

    Groups appear in order of first occurrence of their base name; variants
    keep input order. Standalone components always form their own group.
    """
    groups: list[ComponentGroup] = []
    by_base: dict[str, ComponentGroup] = {}

    for component in list(components):
        if not isinstance(component, Mapping):
            logger.warning("Grouping: unknown component shape %s kept standalone", type(component).__name__)
        name = _field(component, "name")
        base, variant = split_name(name)
        thumbnail = _field(component, "thumbnailUrl", "thumbnail_url")
        set_id = _field(component, "componentSetId", "component_set_id")

        if variant is None:
            groups.append(ComponentGroup(
                base_name=base,
                variants=[component],
                thumbnail_url=thumbnail,
                standalone=True,
            ))
            continue

        group = by_base.get(base)
        if group is None:
            group = ComponentGroup(base_name=base, thumbnail_url=thumbnail)
            by_base[base] = group
            groups.append(group)
        group.variants.append(component)
        if group.component_set_id is None and isinstance(set_id, str) and set_id:
            group.component_set_id = set_id

    return groups
