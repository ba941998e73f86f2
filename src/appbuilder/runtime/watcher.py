"""
File watcher for the development server.

Polls the input tree on the event loop (mtime snapshot, no external
dependencies) and reports ``created``, ``changed`` and ``deleted`` actions
with input-relative POSIX paths.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum
from pathlib import Path

logger = logging.getLogger(__name__)


class WatchAction(StrEnum):
    CREATED = "created"
    CHANGED = "changed"
    DELETED = "deleted"


ChangeCallback = Callable[[WatchAction, str], Awaitable[None]]


class FileWatcher:
    """
    Watches a directory tree for changes using polling.

    Args:
        root: Directory to watch
        on_change: Coroutine called with the action and the relative path
        poll_interval: How often to check for changes (seconds)
        ignore: Relative path prefixes to skip (e.g. the output directory)
    """

    def __init__(
        self,
        root: Path,
        on_change: ChangeCallback,
        poll_interval: float = 0.5,
        ignore: list[str] | None = None,
    ):
        self.root = root
        self.on_change = on_change
        self.poll_interval = poll_interval
        self.ignore = ignore or []

        self._task: asyncio.Task[None] | None = None
        self._file_mtimes: dict[str, float] = {}

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Take the initial snapshot and start polling."""
        self._file_mtimes = await asyncio.to_thread(self._scan_files)
        self._task = asyncio.create_task(self._watch_loop())
        logger.debug("Watching %s (%d files)", self.root, len(self._file_mtimes))

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    def _scan_files(self) -> dict[str, float]:
        """Relative path -> mtime for every file under the root."""
        mtimes: dict[str, float] = {}
        if not self.root.is_dir():
            return mtimes
        for file_path in self.root.rglob("*"):
            rel_path = file_path.relative_to(self.root).as_posix()
            if any(rel_path.startswith(prefix) for prefix in self.ignore):
                continue
            try:
                if file_path.is_file():
                    mtimes[rel_path] = file_path.stat().st_mtime
            except OSError:
                continue  # removed between listing and stat
        return mtimes

    async def poll(self) -> list[tuple[WatchAction, str]]:
        """Compare against the previous snapshot and report every difference."""
        current = await asyncio.to_thread(self._scan_files)
        events: list[tuple[WatchAction, str]] = []

        for rel_path, mtime in current.items():
            previous = self._file_mtimes.get(rel_path)
            if previous is None:
                events.append((WatchAction.CREATED, rel_path))
            elif mtime != previous:
                events.append((WatchAction.CHANGED, rel_path))
        for rel_path in self._file_mtimes:
            if rel_path not in current:
                events.append((WatchAction.DELETED, rel_path))

        self._file_mtimes = current
        return events

    async def _watch_loop(self) -> None:
        while True:
            try:
                for action, rel_path in await self.poll():
                    try:
                        await self.on_change(action, rel_path)
                    except Exception:
                        logger.exception("Error in change callback for %s", rel_path)
            except Exception:
                logger.exception("File watcher error")
            await asyncio.sleep(self.poll_interval)
