"""In-process message channel with no shared objects between the two sides.

Messages are serialized to JSON on send and parsed by the receiver, so each
side only ever sees its own copies. Each direction is FIFO.
"""

from __future__ import annotations

import asyncio
import logging

from changelog.messages import WireModel

logger = logging.getLogger(__name__)


class Endpoint:
    def __init__(self, name: str, outbox: asyncio.Queue, inbox: asyncio.Queue):
        self.name = name
        self._outbox = outbox
        self._inbox = inbox

    def send(self, message: WireModel) -> None:
        """Post a message; delivery is asynchronous and never blocks."""
        self._outbox.put_nowait(message.to_json())

    async def receive(self) -> str | None:
        """Next raw message, or None once the peer closed the channel."""
        return await self._inbox.get()

    def pending(self) -> int:
        """Messages waiting to be received."""
        return self._inbox.qsize()

    def close(self) -> None:
        self._outbox.put_nowait(None)


class MessageChannel:
    """A pair of one-way queues linking the surface and the sandbox."""

    def __init__(self):
        self._to_sandbox: asyncio.Queue = asyncio.Queue()
        self._to_surface: asyncio.Queue = asyncio.Queue()
        self.surface = Endpoint("surface", self._to_sandbox, self._to_surface)
        self.sandbox = Endpoint("sandbox", self._to_surface, self._to_sandbox)
