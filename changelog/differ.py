"""Snapshot differ: detects structural changes between two component snapshots."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from changelog.snapshot import PROPERTIES, VARIABLES, Snapshot, canonicalize

GEOMETRY_KEY = "__geometry__"


class BumpType(str, enum.Enum):
    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"


class EntryKind(str, enum.Enum):
    PROPERTY = "property"
    VARIABLE = "variable"
    GEOMETRY = "geometry"


_KIND_ORDER = {EntryKind.PROPERTY: 0, EntryKind.VARIABLE: 1, EntryKind.GEOMETRY: 2}


def _entry_order(entry):
    return (_KIND_ORDER[entry.kind], entry.key)


@dataclass(frozen=True)
class DiffEntry:
    kind: EntryKind
    key: str            # property name, variable slot, or "__geometry__"
    before: Any = None
    after: Any = None

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "key": self.key, "before": self.before, "after": self.after}


@dataclass(frozen=True)
class SnapshotDiff:
    added: tuple[DiffEntry, ...] = ()
    changed: tuple[DiffEntry, ...] = ()
    removed: tuple[DiffEntry, ...] = ()
    bump: BumpType | None = None
    initial: bool = False

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.changed or self.removed)

    @property
    def entries(self) -> list[DiffEntry]:
        return [*self.added, *self.changed, *self.removed]

    def to_dict(self) -> dict:
        return {
            "added": [e.to_dict() for e in self.added],
            "changed": [e.to_dict() for e in self.changed],
            "removed": [e.to_dict() for e in self.removed],
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> SnapshotDiff | None:
        """Rebuild a stored diff; the bump is recomputed from the entries."""
        if data is None:
            return None

        def entries(name: str) -> tuple[DiffEntry, ...]:
            return tuple(
                DiffEntry(
                    kind=EntryKind(item["kind"]),
                    key=item["key"],
                    before=item.get("before"),
                    after=item.get("after"),
                )
                for item in data.get(name, [])
            )

        added, changed, removed = entries("added"), entries("changed"), entries("removed")
        return cls(
            added=added,
            changed=changed,
            removed=removed,
            bump=recommend_bump(added, changed, removed),
        )


def recommend_bump(
    added: tuple[DiffEntry, ...],
    changed: tuple[DiffEntry, ...],
    removed: tuple[DiffEntry, ...],
) -> BumpType | None:
    """Removal is breaking, addition is additive, anything else is a patch."""
    if removed:
        return BumpType.MAJOR
    if added:
        return BumpType.MINOR
    if changed:
        return BumpType.PATCH
    return None


def _diff_mapping(
    kind: EntryKind,
    old: dict,
    new: dict,
    canonical,
    plain,
    added: list[DiffEntry],
    changed: list[DiffEntry],
    removed: list[DiffEntry],
) -> None:
    for key in sorted(set(new) - set(old)):
        added.append(DiffEntry(kind=kind, key=key, before=None, after=plain(new[key])))
    for key in sorted(set(old) & set(new)):
        if canonical(old[key]) != canonical(new[key]):
            changed.append(DiffEntry(kind=kind, key=key, before=plain(old[key]), after=plain(new[key])))
    for key in sorted(set(old) - set(new)):
        removed.append(DiffEntry(kind=kind, key=key, before=plain(old[key]), after=None))


def _plain_binding(value):
    return list(value) if isinstance(value, tuple) else value


def diff_snapshots(previous: Snapshot | None, current: Snapshot) -> SnapshotDiff:
    """Compare two snapshots and recommend a bump.

    A missing previous snapshot means an initial version: the diff is empty
    and there is no bump. Sides marked opaque on either snapshot are treated
    as unchanged.
    """
    if previous is None:
        return SnapshotDiff(initial=True)

    added: list[DiffEntry] = []
    changed: list[DiffEntry] = []
    removed: list[DiffEntry] = []
    skipped = previous.opaque | current.opaque

    if PROPERTIES not in skipped:
        _diff_mapping(
            EntryKind.PROPERTY,
            dict(previous.property_definitions),
            dict(current.property_definitions),
            lambda d: d.canonical(),
            lambda d: d.to_dict(),
            added, changed, removed,
        )
    if VARIABLES not in skipped:
        _diff_mapping(
            EntryKind.VARIABLE,
            dict(previous.variables_used),
            dict(current.variables_used),
            canonicalize,
            _plain_binding,
            added, changed, removed,
        )

    old_geometry = previous.geometry.canonical() if previous.geometry else None
    new_geometry = current.geometry.canonical() if current.geometry else None
    if old_geometry != new_geometry:
        changed.append(DiffEntry(
            kind=EntryKind.GEOMETRY,
            key=GEOMETRY_KEY,
            before=previous.geometry.to_dict() if previous.geometry else None,
            after=current.geometry.to_dict() if current.geometry else None,
        ))

    added.sort(key=_entry_order)
    changed.sort(key=_entry_order)
    removed.sort(key=_entry_order)

    return SnapshotDiff(
        added=tuple(added),
        changed=tuple(changed),
        removed=tuple(removed),
        bump=recommend_bump(tuple(added), tuple(changed), tuple(removed)),
    )
