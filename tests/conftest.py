"""Shared fixtures: an in-memory scene graph for the extraction sandbox."""

from __future__ import annotations

import asyncio

import pytest

from changelog.sandbox import COMPONENT_SET, SceneComponent
from changelog.transport import Endpoint, MessageChannel


class FakeScene:
    """Scene graph double; components are keyed by node id."""

    def __init__(self, components: list[SceneComponent] | None = None):
        self.user_name = "Ana"
        self.file_key = "FILE1"
        self.components = components or []
        self.navigated: list[str] = []
        self.failing: set[str] = set()
        self.find_error: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.entered = asyncio.Event()
        self.local: list[dict] = []

    async def find_components(self, node_ids):
        if self.find_error is not None:
            raise self.find_error
        if not node_ids:
            return list(self.components)
        return [c for c in self.components if c.node_id in node_ids or c.parent_set_id in node_ids]

    async def export_snapshot(self, node):
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if node.node_id in self.failing:
            raise RuntimeError(f"cannot export {node.node_id}")
        return {
            "document": {
                "name": node.name,
                "absoluteBoundingBox": {"width": 100, "height": 32},
                "boundVariables": {"fills": [{"id": f"VariableID:{node.node_id}"}]},
                "children": [{"name": "Label", "boundVariables": {"characters": {"id": "VariableID:text"}}}],
            },
        }

    async def export_thumbnail(self, node):
        return b"\x89PNG"

    async def publish_status(self, node):
        return "UNPUBLISHED"

    async def local_components(self):
        return list(self.local)

    async def navigate(self, node_id):
        self.navigated.append(node_id)

    async def reconstruct(self, snapshot):
        raise NotImplementedError


def button_set() -> list[SceneComponent]:
    return [
        SceneComponent(
            node_id="1:0", key="button-set", name="Button", node_type=COMPONENT_SET,
            property_definitions={"Size": {"type": "VARIANT", "defaultValue": "md", "variantOptions": ["sm", "md"]}},
        ),
        SceneComponent(
            node_id="1:1", key="button-sm", name="Size=sm",
            parent_set_id="1:0", parent_set_name="Button",
        ),
        SceneComponent(
            node_id="2:0", key="avatar", name="Avatar",
            property_definitions={"Initials": {"type": "TEXT", "defaultValue": "AB"}},
        ),
    ]


def drain(endpoint: Endpoint) -> list[str]:
    """Everything already delivered to ``endpoint``."""
    messages = []
    while endpoint.pending():
        messages.append(endpoint._inbox.get_nowait())
    return messages


@pytest.fixture
def channel():
    return MessageChannel()


@pytest.fixture
def scene():
    return FakeScene(button_set())
