"""Sandbox side of the extraction protocol.

The sandbox owns scene-graph access. It answers surface requests, walks
components for extraction and reports progress. Cancellation is cooperative:
it is checked between nodes and after it no message for that session is sent.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from pydantic import ValidationError

from changelog.grouping import group_components
from changelog.messages import (
    CancelExtraction,
    ClearSettings,
    ErrorMessage,
    ExtractedComponent,
    ExtractionCancelled,
    ExtractionComplete,
    ExtractionProgress,
    ExtractSelected,
    ExtractSingle,
    Init,
    LoadSettings,
    Navigate,
    Reconstruct,
    ReconstructionComplete,
    SaveSettings,
    ScanLocalComponents,
    SettingsLoaded,
    LocalComponents,
    WireModel,
    decode_surface_message,
)
from changelog.transport import Endpoint

logger = logging.getLogger(__name__)

COMPONENT = "COMPONENT"
COMPONENT_SET = "COMPONENT_SET"

_SETTINGS_KEYS = {"token": "token", "file_key": "fileKey", "user_name": "userName"}


@dataclass
class SceneComponent:
    """A component or component-set node as the scene graph reports it."""

    node_id: str
    key: str
    name: str
    node_type: str = COMPONENT
    parent_set_id: str | None = None
    parent_set_name: str | None = None
    property_definitions: Any = None


class SceneGraph(Protocol):
    user_name: str
    file_key: str

    async def find_components(self, node_ids: list[str] | None) -> list[SceneComponent]:
        """Component and component-set nodes under ``node_ids`` (whole page when None)."""
        ...

    async def export_snapshot(self, node: SceneComponent) -> Any: ...

    async def export_thumbnail(self, node: SceneComponent) -> bytes: ...

    async def publish_status(self, node: SceneComponent) -> str: ...

    async def local_components(self) -> list[dict]: ...

    async def navigate(self, node_id: str) -> None: ...

    async def reconstruct(self, snapshot: Any) -> str:
        """Rebuild a node from a stored snapshot and return its node id."""
        ...


class ClientStorage(Protocol):
    async def get(self, key: str) -> Any: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def delete(self, key: str) -> None: ...


@dataclass
class MemoryStorage:
    values: dict[str, Any] = field(default_factory=dict)

    async def get(self, key: str) -> Any:
        return self.values.get(key)

    async def set(self, key: str, value: Any) -> None:
        self.values[key] = value

    async def delete(self, key: str) -> None:
        self.values.pop(key, None)


def component_name(node: SceneComponent) -> str:
    """Variants are named after their component set."""
    if node.node_type == COMPONENT and node.parent_set_name:
        return node.parent_set_name
    return node.name


def dedupe_component_sets(nodes: list[SceneComponent]) -> list[SceneComponent]:
    """Drop components whose parent set is itself in the batch."""
    set_ids = {n.node_id for n in nodes if n.node_type == COMPONENT_SET}
    return [
        n for n in nodes
        if not (n.node_type == COMPONENT and n.parent_set_id in set_ids)
    ]


def collect_bound_variables(node: Any) -> dict[str, Any]:
    """Collect ``boundVariables`` from an exported node tree.

    Keys are ``"<node name>.<property>"``; children override parents on clash.
    """
    found: dict[str, Any] = {}
    if not isinstance(node, Mapping):
        return found
    if isinstance(node.get("document"), Mapping):
        node = node["document"]
    bound = node.get("boundVariables")
    if isinstance(bound, Mapping):
        for prop, binding in bound.items():
            if binding:
                found[f"{node.get('name', '')}.{prop}"] = binding
    for child in node.get("children") or []:
        found.update(collect_bound_variables(child))
    return found


class SandboxHost:
    """Serves surface requests against a scene graph."""

    def __init__(self, scene: SceneGraph, endpoint: Endpoint, storage: ClientStorage | None = None):
        self.scene = scene
        self.endpoint = endpoint
        self.storage = storage or MemoryStorage()
        self._cancelled: set[str] = set()
        self._tasks: dict[str, asyncio.Task] = {}

    def _emit(self, message: WireModel, session_id: str | None = None) -> bool:
        if session_id is not None and session_id in self._cancelled:
            return False
        self.endpoint.send(message)
        return True

    async def _saved_settings(self) -> dict[str, Any]:
        return {name: await self.storage.get(key) for name, key in _SETTINGS_KEYS.items()}

    async def start(self) -> None:
        saved = await self._saved_settings()
        self._emit(Init(
            user_name=self.scene.user_name or "unknown",
            file_key=self.scene.file_key,
            saved_token=saved["token"],
            saved_file_key=saved["file_key"],
            saved_user_name=saved["user_name"],
        ))

    async def serve(self) -> None:
        """Send ``init`` then handle messages until the surface closes."""
        await self.start()
        while True:
            raw = await self.endpoint.receive()
            if raw is None:
                break
            await self.handle(raw)
        await self.drain()

    async def drain(self) -> None:
        """Wait for running extractions to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def handle(self, raw: str | dict) -> None:
        try:
            message = decode_surface_message(raw)
        except ValidationError as exc:
            logger.warning("Dropping malformed surface message: %s", exc)
            return

        if isinstance(message, (ExtractSelected, ExtractSingle)):
            self._start_extraction(message)
        elif isinstance(message, CancelExtraction):
            self._cancel(message.session_id)
        elif isinstance(message, Navigate):
            await self.scene.navigate(message.node_id)
        elif isinstance(message, SaveSettings):
            for name, key in _SETTINGS_KEYS.items():
                await self.storage.set(key, getattr(message, name))
        elif isinstance(message, LoadSettings):
            self._emit(SettingsLoaded(**await self._saved_settings()))
        elif isinstance(message, ClearSettings):
            for key in _SETTINGS_KEYS.values():
                await self.storage.delete(key)
        elif isinstance(message, Reconstruct):
            await self._reconstruct(message.snapshot)
        elif isinstance(message, ScanLocalComponents):
            await self._scan_local()

    def _start_extraction(self, message: ExtractSelected | ExtractSingle) -> None:
        running = []
        for sid, task in self._tasks.items():
            if task.done():
                continue
            if sid in self._cancelled:
                # Acknowledged as cancelled; stop it instead of waiting for the next node
                task.cancel()
            else:
                running.append(sid)
        if running:
            self._emit(
                ErrorMessage(message=f"Extraction {running[0]} is still running", session_id=message.session_id),
                message.session_id,
            )
            return
        if isinstance(message, ExtractSingle):
            coro = self._extract(message.session_id, [message.node_id], single=True)
        else:
            coro = self._extract(message.session_id, message.node_ids or None)
        task = asyncio.create_task(coro)
        task.add_done_callback(lambda done, sid=message.session_id: self._forget(sid, done))
        self._tasks[message.session_id] = task

    def _forget(self, session_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(session_id) is task:
            del self._tasks[session_id]
        self._cancelled.discard(session_id)

    def _cancel(self, session_id: str) -> None:
        if session_id in self._cancelled:
            return
        self._emit(ExtractionCancelled(session_id=session_id), session_id)
        task = self._tasks.get(session_id)
        if task is not None and not task.done():
            self._cancelled.add(session_id)
        logger.info("Extraction session %s cancelled", session_id)

    def _progress(self, session_id: str, message: str, percent: float) -> None:
        self._emit(ExtractionProgress(session_id=session_id, message=message, percent=percent), session_id)

    async def _extract_one(self, node: SceneComponent) -> ExtractedComponent:
        snapshot = await self.scene.export_snapshot(node)
        thumbnail = await self.scene.export_thumbnail(node)
        # Definitions live on the set or on a standalone component, not on variants
        definitions = None
        if node.node_type == COMPONENT_SET or node.parent_set_id is None:
            definitions = node.property_definitions
        return ExtractedComponent(
            key=node.key,
            name=component_name(node),
            node_id=node.node_id,
            snapshot=snapshot,
            property_definitions=definitions,
            variables_used=collect_bound_variables(snapshot),
            thumbnail_bytes=list(thumbnail or b""),
            publish_status=await self.scene.publish_status(node),
            component_set_id=node.parent_set_id,
        )

    async def _extract(self, session_id: str, node_ids: list[str] | None, single: bool = False) -> None:
        try:
            self._progress(session_id, "Discovering components...", 5)
            nodes = dedupe_component_sets(await self.scene.find_components(node_ids))
            if single:
                nodes = [n for n in nodes if n.node_id == node_ids[0]]
                if not nodes:
                    self._emit(ErrorMessage(message="Node is not a component.", session_id=session_id), session_id)
                    return
            elif not nodes:
                self._emit(
                    ErrorMessage(message="No components found in the selected scope.", session_id=session_id),
                    session_id,
                )
                return

            self._progress(session_id, f"Found {len(nodes)} components", 10)
            extracted: list[ExtractedComponent] = []
            for i, node in enumerate(nodes):
                if session_id in self._cancelled:
                    return
                name = component_name(node)
                self._progress(session_id, f"Extracting: {name} ({i + 1}/{len(nodes)})", 10 + round(i / len(nodes) * 80))
                try:
                    extracted.append(await self._extract_one(node))
                except Exception as exc:
                    logger.warning("Failed to extract %s: %s", name, exc)
                await asyncio.sleep(0)

            if session_id in self._cancelled:
                return
            self._progress(session_id, "Extraction complete!", 100)
            self._emit(ExtractionComplete(session_id=session_id, components=extracted), session_id)
            logger.info("Extraction session %s completed with %d component(s)", session_id, len(extracted))
        except Exception as exc:
            logger.exception("Extraction session %s failed", session_id)
            self._emit(ErrorMessage(message=f"Extraction failed: {exc}", session_id=session_id), session_id)

    async def _reconstruct(self, snapshot: Any) -> None:
        try:
            node_id = await self.scene.reconstruct(snapshot)
        except NotImplementedError:
            self._emit(ErrorMessage(message="Reconstruction not yet implemented."))
            return
        except Exception as exc:
            logger.warning("Reconstruction failed: %s", exc)
            self._emit(ErrorMessage(message=f"Reconstruction failed: {exc}"))
            return
        self._emit(ReconstructionComplete(node_id=node_id))

    async def _scan_local(self) -> None:
        try:
            components = await self.scene.local_components()
        except Exception as exc:
            logger.warning("Local component scan failed: %s", exc)
            self._emit(ErrorMessage(message=f"Scan failed: {exc}"))
            return
        groups = group_components(components)
        self._emit(LocalComponents(groups=[g.to_dict() for g in groups]))
