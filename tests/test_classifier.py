"""Tests for the diff classifier and version arithmetic."""

import pytest

from changelog.classifier import INITIAL_VERSION, classify_diff, next_version
from changelog.differ import BumpType, SnapshotDiff, diff_snapshots
from changelog.snapshot import Snapshot


def _snap(props, variables=None, width=10):
    return Snapshot.from_extracted({
        "componentKey": "chip",
        "propertyDefinitions": props,
        "variablesUsed": variables or {},
        "geometry": {"width": width, "height": 10},
    })


BASE = {"Label": {"type": "TEXT", "defaultValue": "Chip"}, "Closable": {"type": "BOOLEAN", "defaultValue": False}}


class TestClassifyDiff:
    def test_initial(self):
        result = classify_diff(SnapshotDiff(initial=True))
        assert result.summary == "Initial version"
        assert result.bump is None
        assert result.is_breaking is False

    def test_empty(self):
        result = classify_diff(diff_snapshots(_snap(BASE), _snap(BASE)))
        assert result.summary == "No changes detected"
        assert result.changed_fields == []

    def test_removed_is_breaking(self):
        result = classify_diff(diff_snapshots(_snap(BASE), _snap({"Label": BASE["Label"]})))
        assert result.is_breaking is True
        assert result.bump == BumpType.MAJOR
        assert result.summary == "Removed property: Closable"

    def test_summary_orders_removed_added_changed(self):
        after = {"Label": {"type": "TEXT", "defaultValue": "Tag"}, "Icon": {"type": "BOOLEAN", "defaultValue": True}}
        result = classify_diff(diff_snapshots(_snap(BASE), _snap(after, width=12)))
        assert result.summary == (
            "Removed property: Closable; Added property: Icon; "
            "Changed property: Label; Changed geometry"
        )

    def test_plural_labels(self):
        result = classify_diff(diff_snapshots(_snap({}), _snap(BASE, {"a.fills": "V:1", "b.fills": "V:2"})))
        assert result.summary == "Added properties: Closable, Label; Added variable bindings: a.fills, b.fills"

    def test_changed_fields_carry_change_type(self):
        result = classify_diff(diff_snapshots(_snap(BASE), _snap({"Label": BASE["Label"]})))
        assert result.changed_fields == [{
            "change": "removed",
            "kind": "property",
            "key": "Closable",
            "before": {"type": "BOOLEAN", "default": False, "options": []},
            "after": None,
        }]


class TestNextVersion:
    @pytest.mark.parametrize("current,bump,expected", [
        ("1.2.3", BumpType.PATCH, "1.2.4"),
        ("1.2.3", BumpType.MINOR, "1.3.0"),
        ("1.2.3", BumpType.MAJOR, "2.0.0"),
        ("0.0.0", "minor", "0.1.0"),
        ("9.9.9", "patch", "9.9.10"),
    ])
    def test_bumps(self, current, bump, expected):
        assert next_version(current, bump) == expected

    @pytest.mark.parametrize("current", [None, "", "1.2", "v1.2.3", "1.2.3.4", "a.b.c"])
    def test_malformed_current_yields_initial(self, current):
        assert next_version(current, BumpType.MAJOR) == INITIAL_VERSION

    def test_invalid_bump_raises(self):
        with pytest.raises(ValueError):
            next_version("1.0.0", "huge")
