"""Classify snapshot diffs into a bump, a summary, and semantic version steps."""

from __future__ import annotations

import re
from dataclasses import dataclass

from changelog.differ import BumpType, DiffEntry, EntryKind, SnapshotDiff

INITIAL_VERSION = "1.0.0"

_SEMVER_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")

_KIND_LABELS = {
    EntryKind.PROPERTY: ("property", "properties"),
    EntryKind.VARIABLE: ("variable binding", "variable bindings"),
}


@dataclass
class ClassifiedDiff:
    bump: BumpType | None
    is_breaking: bool
    summary: str
    changed_fields: list[dict]
    diff: SnapshotDiff


def _label(kind: EntryKind, count: int) -> str:
    singular, plural = _KIND_LABELS[kind]
    return singular if count == 1 else plural


def _describe(verb: str, entries: tuple[DiffEntry, ...]) -> list[str]:
    parts = []
    for kind in EntryKind:
        keys = [e.key for e in entries if e.kind == kind]
        if not keys:
            continue
        if kind == EntryKind.GEOMETRY:
            parts.append(f"{verb} geometry")
        else:
            parts.append(f"{verb} {_label(kind, len(keys))}: {', '.join(keys)}")
    return parts


def classify_diff(diff: SnapshotDiff) -> ClassifiedDiff:
    """Summarize a diff for changelog display."""
    if diff.initial:
        summary = "Initial version"
    elif diff.is_empty:
        summary = "No changes detected"
    else:
        parts = (
            _describe("Removed", diff.removed)
            + _describe("Added", diff.added)
            + _describe("Changed", diff.changed)
        )
        summary = "; ".join(parts)

    changed_fields = [
        {"change": change, **entry.to_dict()}
        for change, entries in (("added", diff.added), ("changed", diff.changed), ("removed", diff.removed))
        for entry in entries
    ]

    return ClassifiedDiff(
        bump=diff.bump,
        is_breaking=diff.bump == BumpType.MAJOR,
        summary=summary,
        changed_fields=changed_fields,
        diff=diff,
    )


def next_version(current: str | None, bump: BumpType | str) -> str:
    """Apply a bump to a semantic version string.

    A missing or malformed current version yields the initial version.
    """
    if current is None:
        return INITIAL_VERSION
    match = _SEMVER_RE.match(current.strip())
    if not match:
        return INITIAL_VERSION
    major, minor, patch = (int(part) for part in match.groups())

    bump = BumpType(bump)
    if bump == BumpType.MAJOR:
        return f"{major + 1}.0.0"
    if bump == BumpType.MINOR:
        return f"{major}.{minor + 1}.0"
    return f"{major}.{minor}.{patch + 1}"
