"""Tests for recording extracted components against version history."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from changelog.lifecycle import VersionLifecycle
from changelog.messages import ExtractedComponent
from changelog.models import VersionStatus
from changelog.snapshot import Snapshot
from changelog.store import InMemoryVersionStore
from changelog.sync import record_extracted

PROJECT = "proj-1"


def _component(label="Go", key="button", name="Button", node_id="1:0"):
    return ExtractedComponent(
        key=key,
        name=name,
        node_id=node_id,
        property_definitions={"Label": {"type": "TEXT", "defaultValue": label}},
        thumbnail_bytes=[137, 80, 78, 71],
    )


def _library(snapshot=None, error=None):
    library = MagicMock()
    library.get_component_snapshot = AsyncMock(return_value=snapshot, side_effect=error)
    return library


@pytest.fixture
def lifecycle():
    return VersionLifecycle(InMemoryVersionStore())


async def _publish(lifecycle, version_id):
    await lifecycle.submit(version_id, "designer")
    await lifecycle.approve(version_id, "lead")
    return await lifecycle.publish(version_id, "lead")


class TestRecordExtracted:
    @pytest.mark.asyncio
    async def test_new_components_become_drafts(self, lifecycle):
        result = await record_extracted(
            lifecycle, PROJECT, [_component(), _component(key="tag", name="Tag")], "designer",
        )
        assert [v.component_key for v in result.created] == ["button", "tag"]
        assert all(v.status == VersionStatus.DRAFT for v in result.created)
        assert result.created[0].snapshot.property_definitions["Label"].default == "Go"
        assert result.unchanged == []
        assert result.conflicts == {}

    @pytest.mark.asyncio
    async def test_unchanged_and_pending_components_are_not_new(self, lifecycle):
        first = await record_extracted(lifecycle, PROJECT, [_component(), _component(key="tag")], "designer")
        await _publish(lifecycle, first.created[0].id)

        again = await record_extracted(lifecycle, PROJECT, [_component(), _component(key="tag")], "designer")

        assert again.created == []
        assert again.unchanged == ["button", "tag"]

    @pytest.mark.asyncio
    async def test_conflicting_draft_is_skipped(self, lifecycle):
        await record_extracted(lifecycle, PROJECT, [_component()], "designer")
        result = await record_extracted(
            lifecycle, PROJECT, [_component(label="Send"), _component(key="tag")], "designer",
        )
        assert list(result.conflicts) == ["button"]
        assert [v.component_key for v in result.created] == ["tag"]

    @pytest.mark.asyncio
    async def test_library_copy_seeds_first_sync(self, lifecycle):
        library = _library(Snapshot.from_extracted(_component().snapshot_payload()))
        result = await record_extracted(
            lifecycle, PROJECT, [_component()], "designer", library=library, library_file_key="LIB",
        )
        library.get_component_snapshot.assert_awaited_once_with("LIB", "1:0", "button")
        assert result.unchanged == ["button"]
        assert await lifecycle.history(PROJECT, "button") == []

    @pytest.mark.asyncio
    async def test_library_not_consulted_once_history_exists(self, lifecycle):
        await record_extracted(lifecycle, PROJECT, [_component()], "designer")
        library = _library()
        await record_extracted(
            lifecycle, PROJECT, [_component()], "designer", library=library, library_file_key="LIB",
        )
        library.get_component_snapshot.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unreachable_library_versions_as_new(self, lifecycle):
        library = _library(error=httpx.ConnectError("down"))
        result = await record_extracted(
            lifecycle, PROJECT, [_component()], "designer", library=library, library_file_key="LIB",
        )
        assert [v.version for v in result.created] == ["1.0.0"]
