"""
Build change feed and readiness state.

Observers register on the session's BuildEventBus instead of a global
emitter. Readiness is an explicit state value: the scan phase plus the number
of compiles in flight.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from appbuilder.core.fileinfo import FileInfo

logger = logging.getLogger(__name__)


# =============================================================================
# Event Types
# =============================================================================


class BuildEventType(StrEnum):
    """Build event types."""

    BUILD = "build"  # compile started
    CHANGED = "changed"  # artifact updated after readiness
    READY = "ready"  # in-flight counter drained after the initial scan


@dataclass
class BuildEvent:
    """A build event."""

    event_type: BuildEventType
    file_info: FileInfo | None = None
    timestamp: float = field(default_factory=time.time)

    @property
    def path(self) -> str | None:
        """Output path of the affected artifact."""
        return self.file_info.output_path if self.file_info else None

    def to_message(self) -> dict[str, str | None]:
        """Live-reload wire frame."""
        return {"action": self.event_type.value, "path": self.path}


EventHandler = Callable[[BuildEvent], Awaitable[None]]
SyncEventHandler = Callable[[BuildEvent], None]


# =============================================================================
# Event Bus
# =============================================================================


@dataclass
class BuildEventBus:
    """
    Publishes build events to registered observers.

    Handler failures are logged and never interrupt the build.
    """

    _handlers: dict[BuildEventType, list[EventHandler]] = field(default_factory=dict)
    _sync_handlers: dict[BuildEventType, list[SyncEventHandler]] = field(default_factory=dict)

    def add_handler(self, event_type: BuildEventType, handler: EventHandler) -> None:
        """Add an async event handler."""
        self._handlers.setdefault(event_type, []).append(handler)

    def add_sync_handler(self, event_type: BuildEventType, handler: SyncEventHandler) -> None:
        """Add a sync event handler."""
        self._sync_handlers.setdefault(event_type, []).append(handler)

    def remove_handler(self, event_type: BuildEventType, handler: EventHandler) -> None:
        """Remove an async event handler."""
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def remove_sync_handler(self, event_type: BuildEventType, handler: SyncEventHandler) -> None:
        """Remove a sync event handler."""
        handlers = self._sync_handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def handler_count(self, event_type: BuildEventType) -> int:
        return len(self._handlers.get(event_type, [])) + len(
            self._sync_handlers.get(event_type, [])
        )

    async def emit(self, event: BuildEvent) -> None:
        """Deliver an event to sync handlers, then async handlers."""
        for handler in list(self._sync_handlers.get(event.event_type, [])):
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Sync build handler %s failed for %s",
                    getattr(handler, "__name__", handler),
                    event.event_type.value,
                )

        for async_handler in list(self._handlers.get(event.event_type, [])):
            try:
                await async_handler(event)
            except Exception:
                logger.exception(
                    "Async build handler %s failed for %s",
                    getattr(async_handler, "__name__", async_handler),
                    event.event_type.value,
                )


# =============================================================================
# Readiness
# =============================================================================


class ReadinessPhase(StrEnum):
    SCANNING = "scanning"
    READY = "ready"


class Readiness:
    """
    Session readiness: ready once the initial scan has completed and no
    compile is in flight.
    """

    def __init__(self) -> None:
        self.phase = ReadinessPhase.SCANNING
        self.building = 0
        self._quiet = asyncio.Event()

    @property
    def scanned(self) -> bool:
        return self.phase == ReadinessPhase.READY

    @property
    def is_ready(self) -> bool:
        return self.scanned and self.building == 0

    def begin(self) -> None:
        self.building += 1
        self._quiet.clear()

    def end(self) -> bool:
        """Finish one compile. Returns True if the session just became quiescent."""
        self.building = max(0, self.building - 1)
        return self._update()

    def mark_scanned(self) -> bool:
        self.phase = ReadinessPhase.READY
        return self._update()

    def _update(self) -> bool:
        if self.is_ready:
            self._quiet.set()
            return True
        self._quiet.clear()
        return False

    async def wait(self) -> None:
        """Wait until the session is ready."""
        while not self.is_ready:
            await self._quiet.wait()

    def snapshot(self) -> dict[str, object]:
        return {"phase": self.phase.value, "building": self.building, "ready": self.is_ready}
