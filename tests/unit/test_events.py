"""Tests for the build event bus and readiness state."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from appbuilder.core.events import BuildEvent, BuildEventBus, BuildEventType, Readiness
from appbuilder.core.fileinfo import FileInfo


class TestBuildEvent:
    def test_to_message(self):
        info = FileInfo(name="t3", input_path="t3.js", output_path="t3.js")
        event = BuildEvent(BuildEventType.CHANGED, info)
        assert event.to_message() == {"action": "changed", "path": "t3.js"}

    def test_path_without_file(self):
        assert BuildEvent(BuildEventType.READY).path is None


class TestBuildEventBus:
    """Tests for handler registration and delivery."""

    @pytest.mark.asyncio
    async def test_emit_reaches_sync_and_async_handlers(self):
        bus = BuildEventBus()
        sync_handler = MagicMock()
        async_handler = AsyncMock()
        bus.add_sync_handler(BuildEventType.BUILD, sync_handler)
        bus.add_handler(BuildEventType.BUILD, async_handler)

        event = BuildEvent(BuildEventType.BUILD)
        await bus.emit(event)

        sync_handler.assert_called_once_with(event)
        async_handler.assert_awaited_once_with(event)
        assert bus.handler_count(BuildEventType.BUILD) == 2

    @pytest.mark.asyncio
    async def test_other_event_types_are_not_delivered(self):
        bus = BuildEventBus()
        handler = AsyncMock()
        bus.add_handler(BuildEventType.CHANGED, handler)

        await bus.emit(BuildEvent(BuildEventType.READY))

        handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_delivery(self, caplog):
        bus = BuildEventBus()
        failing = MagicMock(side_effect=RuntimeError("boom"))
        after = AsyncMock()
        bus.add_sync_handler(BuildEventType.CHANGED, failing)
        bus.add_handler(BuildEventType.CHANGED, after)

        await bus.emit(BuildEvent(BuildEventType.CHANGED))

        after.assert_awaited_once()
        assert "failed for changed" in caplog.text

    @pytest.mark.asyncio
    async def test_remove_handler(self):
        bus = BuildEventBus()
        handler = AsyncMock()
        bus.add_handler(BuildEventType.CHANGED, handler)
        bus.remove_handler(BuildEventType.CHANGED, handler)

        await bus.emit(BuildEvent(BuildEventType.CHANGED))

        handler.assert_not_awaited()
        assert bus.handler_count(BuildEventType.CHANGED) == 0


class TestReadiness:
    """Tests for the scan phase and in-flight counter."""

    def test_not_ready_until_scanned(self):
        readiness = Readiness()
        assert not readiness.is_ready
        assert readiness.mark_scanned()
        assert readiness.is_ready

    def test_in_flight_compiles_block_readiness(self):
        readiness = Readiness()
        readiness.begin()
        assert not readiness.mark_scanned()
        assert readiness.snapshot() == {"phase": "ready", "building": 1, "ready": False}
        assert readiness.end()
        assert readiness.is_ready

    def test_end_before_scan_is_not_ready(self):
        readiness = Readiness()
        readiness.begin()
        assert not readiness.end()

    @pytest.mark.asyncio
    async def test_wait_resumes_when_ready(self):
        readiness = Readiness()
        readiness.begin()
        readiness.mark_scanned()

        waiter = asyncio.create_task(readiness.wait())
        await asyncio.sleep(0)
        assert not waiter.done()

        readiness.end()
        await asyncio.wait_for(waiter, timeout=1)
