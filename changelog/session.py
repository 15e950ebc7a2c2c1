"""Surface side of the extraction protocol.

    idle -> requested -> running -> completed | failed | cancelled

Only one session is active per client. Every extraction message carries its
session id; messages for any other session are dropped.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import uuid

from pydantic import ValidationError

from changelog.errors import ExtractionCancelled as SessionCancelled
from changelog.errors import ExtractionFailed, InvalidTransition, SessionBusy
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
    LocalComponents,
    Navigate,
    Reconstruct,
    ReconstructionComplete,
    SaveSettings,
    ScanLocalComponents,
    SettingsLoaded,
    decode_sandbox_message,
)
from changelog.transport import Endpoint

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    IDLE = "idle"
    REQUESTED = "requested"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = {SessionState.COMPLETED, SessionState.FAILED, SessionState.CANCELLED}


class ExtractionSession:
    """One extraction conversation, tracked from the surface."""

    def __init__(self, node_ids: list[str] | None = None, single: bool = False, session_id: str | None = None):
        if single and (not node_ids or len(node_ids) != 1):
            raise ValueError("single extraction needs exactly one node id")
        self.id = session_id or uuid.uuid4().hex
        self.node_ids = list(node_ids) if node_ids else None
        self.single = single
        self.state = SessionState.IDLE
        self.percent = 0.0
        self.status_message = ""
        self.progress_events: list[tuple[float, str]] = []
        self.components: list[ExtractedComponent] | None = None
        self.error: str | None = None
        self.timed_out = False
        self._done = asyncio.Event()

    @property
    def is_active(self) -> bool:
        return self.state in (SessionState.REQUESTED, SessionState.RUNNING)

    def request(self) -> ExtractSelected | ExtractSingle:
        if self.state != SessionState.IDLE:
            raise InvalidTransition(self.state.value, "request")
        self.state = SessionState.REQUESTED
        if self.single:
            return ExtractSingle(session_id=self.id, node_id=self.node_ids[0])
        return ExtractSelected(session_id=self.id, node_ids=self.node_ids)

    def cancel(self) -> CancelExtraction | None:
        """Cancel the session; returns the message to send, if any."""
        if self.state in TERMINAL_STATES:
            return None
        was_requested = self.is_active
        self._finish(SessionState.CANCELLED)
        return CancelExtraction(session_id=self.id) if was_requested else None

    def _finish(self, state: SessionState) -> None:
        self.state = state
        self._done.set()

    def handle(self, message) -> bool:
        """Apply a sandbox message. Returns False when it was ignored."""
        if getattr(message, "session_id", None) != self.id or not self.is_active:
            return False
        if self.state == SessionState.REQUESTED:
            self.state = SessionState.RUNNING

        if isinstance(message, ExtractionProgress):
            percent = min(max(message.percent, 0.0), 100.0)
            self.percent = max(self.percent, percent)
            self.status_message = message.message
            self.progress_events.append((self.percent, message.message))
        elif isinstance(message, ExtractionComplete):
            self.components = list(message.components)
            self.percent = 100.0
            self._finish(SessionState.COMPLETED)
        elif isinstance(message, ErrorMessage):
            self.error = message.message
            self.components = None
            self._finish(SessionState.FAILED)
        elif isinstance(message, ExtractionCancelled):
            self._finish(SessionState.CANCELLED)
        else:
            return False
        return True

    def fail(self, reason: str) -> None:
        """Mark a live session failed from the surface side (e.g. host timeout)."""
        if self.is_active:
            self.error = reason
            self.components = None
            self._finish(SessionState.FAILED)

    async def wait(self, timeout: float | None = None) -> list[ExtractedComponent]:
        try:
            await asyncio.wait_for(self._done.wait(), timeout)
        except asyncio.TimeoutError:
            if self.is_active:
                self.timed_out = True
            self.fail(f"No result within {timeout}s")
        if self.state == SessionState.COMPLETED:
            return list(self.components or [])
        if self.state == SessionState.CANCELLED:
            raise SessionCancelled(self.id)
        raise ExtractionFailed(self.error or "Extraction failed", session_id=self.id)


class ExtractionClient:
    """The interactive surface's view of the sandbox."""

    def __init__(self, endpoint: Endpoint):
        self.endpoint = endpoint
        self.active: ExtractionSession | None = None
        self.init: Init | None = None
        self.settings: SettingsLoaded | None = None
        self.last_error: str | None = None
        self._pending_scan: asyncio.Future | None = None
        self._pending_settings: asyncio.Future | None = None
        self._listener: asyncio.Task | None = None

    async def __aenter__(self) -> ExtractionClient:
        self._listener = asyncio.create_task(self.listen())
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass

    async def listen(self) -> None:
        while True:
            raw = await self.endpoint.receive()
            if raw is None:
                return
            self.dispatch(raw)

    def dispatch(self, raw: str | dict) -> None:
        try:
            message = decode_sandbox_message(raw)
        except ValidationError as exc:
            logger.warning("Dropping malformed sandbox message: %s", exc)
            return

        if isinstance(message, Init):
            self.init = message
        elif isinstance(message, SettingsLoaded):
            self.settings = message
            if self._pending_settings and not self._pending_settings.done():
                self._pending_settings.set_result(message)
        elif isinstance(message, LocalComponents):
            if self._pending_scan and not self._pending_scan.done():
                self._pending_scan.set_result(message.groups)
        elif isinstance(message, ReconstructionComplete):
            logger.info("Reconstructed snapshot as node %s", message.node_id)
        elif isinstance(message, ErrorMessage) and message.session_id is None:
            self.last_error = message.message
            logger.warning("Sandbox error: %s", message.message)
        else:
            session = self.active
            if session is None or not session.handle(message):
                logger.debug("Ignoring %s for session %s", message.type, getattr(message, "session_id", None))
            elif session.state in TERMINAL_STATES:
                logger.info("Extraction session %s %s", session.id, session.state.value)

    def start(self, node_ids: list[str] | None = None, single: bool = False) -> ExtractionSession:
        """Begin a new session; rejects with SessionBusy while one is live."""
        if self.active is not None and self.active.is_active:
            raise SessionBusy(self.active.id)
        session = ExtractionSession(node_ids=node_ids, single=single)
        self.active = session
        self.endpoint.send(session.request())
        return session

    async def wait(self, session: ExtractionSession, timeout: float | None = None) -> list[ExtractedComponent]:
        """Wait for a session's result, stopping the sandbox if the wait ends early.

        A host timeout or a cancelled caller both send ``cancel-extraction``
        so the sandbox is free for the next session.
        """
        try:
            return await session.wait(timeout)
        except asyncio.CancelledError:
            self._send_cancel(session)
            raise
        except ExtractionFailed:
            if session.timed_out:
                logger.warning("Extraction session %s timed out, cancelling it", session.id)
                self.endpoint.send(CancelExtraction(session_id=session.id))
            raise

    async def extract(self, node_ids: list[str] | None = None, timeout: float | None = None) -> list[ExtractedComponent]:
        return await self.wait(self.start(node_ids), timeout)

    async def extract_single(self, node_id: str, timeout: float | None = None) -> list[ExtractedComponent]:
        return await self.wait(self.start([node_id], single=True), timeout)

    def _send_cancel(self, session: ExtractionSession) -> None:
        message = session.cancel()
        if message is not None:
            self.endpoint.send(message)

    def cancel(self) -> None:
        if self.active is not None:
            self._send_cancel(self.active)

    async def scan_local_components(self) -> list[dict]:
        self._pending_scan = asyncio.get_running_loop().create_future()
        self.endpoint.send(ScanLocalComponents())
        return await self._pending_scan

    async def load_settings(self) -> SettingsLoaded:
        self._pending_settings = asyncio.get_running_loop().create_future()
        self.endpoint.send(LoadSettings())
        return await self._pending_settings

    def save_settings(self, token: str, file_key: str, user_name: str) -> None:
        self.endpoint.send(SaveSettings(token=token, file_key=file_key, user_name=user_name))

    def clear_settings(self) -> None:
        self.endpoint.send(ClearSettings())

    def navigate(self, node_id: str) -> None:
        self.endpoint.send(Navigate(node_id=node_id))

    def reconstruct(self, snapshot) -> None:
        self.endpoint.send(Reconstruct(snapshot=snapshot))
