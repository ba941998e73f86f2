"""Tests for the live-reload manager."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from appbuilder.core.events import BuildEventType
from appbuilder.runtime.live_reload import LiveReloadManager
from appbuilder.runtime.watcher import WatchAction

PAGE = "<html><head></head><body></body></html>"


@pytest.fixture
def app_tree(write_app):
    write_app("index.html", PAGE)
    write_app("index.js", "import t3 from './t3'\n")
    return write_app("t3.js", "export default 3\n")


def _websocket():
    websocket = MagicMock()
    websocket.accept = AsyncMock()
    websocket.send_json = AsyncMock()
    return websocket


class TestLiveReloadManager:
    """Tests for rebuild and broadcast wiring."""

    @pytest.mark.asyncio
    async def test_change_is_rebuilt_and_broadcast(self, app_tree, make_session, bump_mtime):
        session = make_session(live=True)
        await session.build()
        manager = LiveReloadManager(session)
        await manager.start(watch=False)
        websocket = _websocket()
        await manager.connect(websocket)

        app_tree.write_text("export default 4\n")
        bump_mtime(app_tree)
        await manager._on_file_change(WatchAction.CHANGED, "t3.js")

        messages = [c.args[0] for c in websocket.send_json.await_args_list]
        assert messages == [{"action": "changed", "path": "t3.js"}]

    @pytest.mark.asyncio
    async def test_deleted_files_are_not_rebuilt(self, app_tree, make_session):
        session = make_session()
        await session.build()
        count = session.compile_count
        manager = LiveReloadManager(session)

        await manager._on_file_change(WatchAction.DELETED, "t3.js")

        assert session.compile_count == count

    @pytest.mark.asyncio
    async def test_subscribe_is_idempotent(self, make_session):
        session = make_session()
        manager = LiveReloadManager(session)

        manager.subscribe()
        manager.subscribe()
        assert session.events.handler_count(BuildEventType.CHANGED) == 1

        await manager.stop()
        assert session.events.handler_count(BuildEventType.CHANGED) == 0
        assert session.closed

    @pytest.mark.asyncio
    async def test_broadcast_drops_failed_sockets(self, make_session):
        manager = LiveReloadManager(make_session())
        good, bad = _websocket(), _websocket()
        bad.send_json.side_effect = RuntimeError("gone")
        await manager.connect(good)
        await manager.connect(bad)

        sent = await manager.broadcast({"action": "changed", "path": "a.js"})

        assert sent == 1
        assert manager.connection_count == 1

    @pytest.mark.asyncio
    async def test_stats(self, make_session, project):
        session = make_session()
        manager = LiveReloadManager(session, poll_interval=0.01)
        await manager.start(watch=True)
        try:
            stats = manager.get_stats()
            assert stats == {"connections": 0, "watching": True, "ready": False}
        finally:
            await manager.stop()
        assert not manager.watching
