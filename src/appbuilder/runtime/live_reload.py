"""
Live reload for the development server.

Coordinates the file watcher, incremental rebuilds and browser
notification: a watched change rebuilds the affected node through the
session, and every ``changed`` build event is forwarded to each connected
socket as ``{"action": "changed", "path": <output path>}``.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any

from starlette.websockets import WebSocket, WebSocketDisconnect

from appbuilder.core.events import BuildEvent, BuildEventType
from appbuilder.runtime.watcher import FileWatcher, WatchAction

if TYPE_CHECKING:
    from appbuilder.core.session import BuildSession

logger = logging.getLogger(__name__)

LIVE_RELOAD_PATH = "/livereload"


class LiveReloadManager:
    """
    Manages live reload for one build session.

    Args:
        session: The build session to watch and rebuild
        poll_interval: Watcher polling interval (seconds)
    """

    def __init__(self, session: BuildSession, poll_interval: float = 0.5):
        self.session = session
        self.poll_interval = poll_interval
        self._connections: dict[str, WebSocket] = {}
        self._watcher: FileWatcher | None = None
        self._subscribed = False

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    @property
    def watching(self) -> bool:
        return self._watcher is not None and self._watcher.running

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def subscribe(self) -> None:
        """Forward the session's change feed to connected sockets."""
        if not self._subscribed:
            self.session.events.add_handler(BuildEventType.CHANGED, self._on_build_changed)
            self._subscribed = True

    async def start(self, watch: bool = True) -> None:
        """Subscribe to build events and, with ``watch``, start the file watcher."""
        self.subscribe()
        if watch and self._watcher is None:
            self._watcher = FileWatcher(
                self.session.options.input_dir,
                self._on_file_change,
                poll_interval=self.poll_interval,
            )
            await self._watcher.start()
            logger.info("Live reload: watching %s", self.session.options.input_dir)

    async def stop(self) -> None:
        if self._watcher is not None:
            await self._watcher.stop()
            self._watcher = None
        if self._subscribed:
            self.session.events.remove_handler(BuildEventType.CHANGED, self._on_build_changed)
            self._subscribed = False
        self.session.close()

    async def _on_file_change(self, action: WatchAction, rel_path: str) -> None:
        if action == WatchAction.DELETED:
            logger.debug("file: %s deleted", rel_path)
            return
        await self.session.rebuild_path(rel_path)

    async def _on_build_changed(self, event: BuildEvent) -> None:
        if event.path:
            await self.broadcast(event.to_message())

    # =========================================================================
    # Sockets
    # =========================================================================

    async def connect(self, websocket: WebSocket) -> str:
        await websocket.accept()
        connection_id = str(uuid.uuid4())
        self._connections[connection_id] = websocket
        logger.debug("Live reload client %s connected", connection_id)
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        self._connections.pop(connection_id, None)

    async def handle(self, websocket: WebSocket) -> None:
        """Serve one socket: incoming frames are echoed back until it closes."""
        connection_id = await self.connect(websocket)
        try:
            while True:
                message = await websocket.receive_text()
                await websocket.send_text(message)
        except WebSocketDisconnect:
            pass
        finally:
            self.disconnect(connection_id)

    async def broadcast(self, message: dict[str, Any]) -> int:
        """
        Send a message to every connected socket.

        Returns:
            Number of sockets the message was sent to
        """
        sent_count = 0
        for connection_id, websocket in list(self._connections.items()):
            try:
                await websocket.send_json(message)
                sent_count += 1
            except Exception as e:
                logger.debug("Dropping live reload client %s: %s", connection_id, e)
                self.disconnect(connection_id)
        return sent_count

    def get_stats(self) -> dict[str, Any]:
        return {
            "connections": self.connection_count,
            "watching": self.watching,
            "ready": self.session.readiness.is_ready,
        }
