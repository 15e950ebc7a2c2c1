"""Tests for the snapshot differ module."""

from changelog.differ import (
    GEOMETRY_KEY,
    BumpType,
    EntryKind,
    SnapshotDiff,
    diff_snapshots,
    recommend_bump,
)
from changelog.snapshot import Snapshot


def _snap(props=None, variables=None, width=100, height=40, **extra):
    payload = {
        "componentKey": "card",
        "propertyDefinitions": props if props is not None else {
            "Title": {"type": "TEXT", "defaultValue": "Hello"},
            "Elevation": {"type": "VARIANT", "defaultValue": "low", "variantOptions": ["low", "high"]},
        },
        "variablesUsed": variables if variables is not None else {"Card.fills": "VariableID:bg"},
        "geometry": {"width": width, "height": height},
    }
    payload.update(extra)
    return Snapshot.from_extracted(payload)


class TestDiffSnapshots:
    def test_no_previous_is_initial(self):
        diff = diff_snapshots(None, _snap())
        assert diff.initial is True
        assert diff.is_empty
        assert diff.bump is None

    def test_identical_snapshots_have_no_bump(self):
        diff = diff_snapshots(_snap(), _snap())
        assert diff.is_empty
        assert diff.bump is None

    def test_raw_only_changes_are_ignored(self):
        diff = diff_snapshots(_snap(), _snap(description="new docs"))
        assert diff.is_empty

    def test_added_property_is_minor(self):
        props = {
            "Title": {"type": "TEXT", "defaultValue": "Hello"},
            "Elevation": {"type": "VARIANT", "defaultValue": "low", "variantOptions": ["low", "high"]},
            "Icon": {"type": "BOOLEAN", "defaultValue": False},
        }
        diff = diff_snapshots(_snap(), _snap(props=props))
        assert diff.bump == BumpType.MINOR
        assert [e.key for e in diff.added] == ["Icon"]
        assert diff.added[0].before is None
        assert diff.added[0].after == {"type": "BOOLEAN", "default": False, "options": []}

    def test_removed_property_is_major(self):
        props = {"Title": {"type": "TEXT", "defaultValue": "Hello"}}
        diff = diff_snapshots(_snap(), _snap(props=props))
        assert diff.bump == BumpType.MAJOR
        assert [e.key for e in diff.removed] == ["Elevation"]
        assert diff.removed[0].after is None

    def test_removal_outranks_addition(self):
        props = {"Title": {"type": "TEXT", "defaultValue": "Hello"}, "New": {"type": "TEXT", "defaultValue": ""}}
        diff = diff_snapshots(_snap(), _snap(props=props))
        assert diff.bump == BumpType.MAJOR
        assert len(diff.added) == 1 and len(diff.removed) == 1

    def test_changed_default_is_patch(self):
        props = {
            "Title": {"type": "TEXT", "defaultValue": "Hi"},
            "Elevation": {"type": "VARIANT", "defaultValue": "low", "variantOptions": ["low", "high"]},
        }
        diff = diff_snapshots(_snap(), _snap(props=props))
        assert diff.bump == BumpType.PATCH
        assert diff.changed[0].key == "Title"
        assert diff.changed[0].before["default"] == "Hello"
        assert diff.changed[0].after["default"] == "Hi"

    def test_option_order_is_not_a_change(self):
        props = {
            "Title": {"type": "TEXT", "defaultValue": "Hello"},
            "Elevation": {"type": "VARIANT", "defaultValue": "low", "variantOptions": ["high", "low"]},
        }
        assert diff_snapshots(_snap(), _snap(props=props)).is_empty

    def test_variable_rebinding_is_patch(self):
        diff = diff_snapshots(_snap(), _snap(variables={"Card.fills": "VariableID:other"}))
        assert diff.bump == BumpType.PATCH
        assert diff.changed[0].kind == EntryKind.VARIABLE
        assert diff.changed[0].before == "VariableID:bg"

    def test_variable_binding_removed_is_major(self):
        diff = diff_snapshots(_snap(), _snap(variables={}))
        assert diff.bump == BumpType.MAJOR
        assert diff.removed[0].kind == EntryKind.VARIABLE

    def test_geometry_change_is_single_patch_entry(self):
        diff = diff_snapshots(_snap(), _snap(width=120, height=48))
        assert diff.bump == BumpType.PATCH
        assert len(diff.changed) == 1
        entry = diff.changed[0]
        assert entry.kind == EntryKind.GEOMETRY
        assert entry.key == GEOMETRY_KEY
        assert entry.before["width"] == 100.0
        assert entry.after["width"] == 120.0

    def test_geometry_entry_kept_alongside_other_changes(self):
        diff = diff_snapshots(_snap(), _snap(variables={"Card.fills": "VariableID:other"}, width=90))
        assert [e.kind for e in diff.changed] == [EntryKind.VARIABLE, EntryKind.GEOMETRY]

    def test_entries_sorted_by_kind_then_key(self):
        before = _snap(props={}, variables={})
        after = _snap(
            props={"b": {"type": "TEXT", "defaultValue": ""}, "a": {"type": "TEXT", "defaultValue": ""}},
            variables={"x.fills": "VariableID:1"},
        )
        diff = diff_snapshots(before, after)
        assert [(e.kind, e.key) for e in diff.added] == [
            (EntryKind.PROPERTY, "a"),
            (EntryKind.PROPERTY, "b"),
            (EntryKind.VARIABLE, "x.fills"),
        ]

    def test_opaque_side_is_not_diffed(self):
        broken = _snap(props="garbage")
        diff = diff_snapshots(_snap(), broken)
        assert diff.is_empty

    def test_diff_is_deterministic(self):
        props = {"Title": {"type": "TEXT", "defaultValue": "x"}, "Z": {"type": "TEXT", "defaultValue": "z"}}
        first = diff_snapshots(_snap(), _snap(props=props)).to_dict()
        second = diff_snapshots(_snap(), _snap(props=props)).to_dict()
        assert first == second


class TestRecommendBump:
    def test_nothing_is_none(self):
        assert recommend_bump((), (), ()) is None

    def test_from_dict_recomputes_bump(self):
        props = {"Title": {"type": "TEXT", "defaultValue": "Hello"}}
        diff = diff_snapshots(_snap(), _snap(props=props))
        restored = SnapshotDiff.from_dict(diff.to_dict())
        assert restored.bump == BumpType.MAJOR
        assert restored.removed == diff.removed

    def test_from_dict_none(self):
        assert SnapshotDiff.from_dict(None) is None
