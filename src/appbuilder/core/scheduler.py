"""
Build scheduler.

Decides whether a node is stale, runs its compiler, writes every artifact the
compile produced and keeps the in-flight counter that drives readiness.

Every compile registers a completion event. A requester that finds a node
still compiling waits for it, unless waiting would close a cycle: each task
records the task it is waiting on, and a wait that leads back to the waiting
task is skipped (the node is returned as-is, as for a cyclic import in a
single chain).
"""

from __future__ import annotations

import asyncio
import logging
import stat as stat_module
from pathlib import Path
from typing import TYPE_CHECKING

from appbuilder.compilers.base import CompileRequest
from appbuilder.core.errors import (
    CompileError,
    DownloadError,
    ErrorContext,
    NotFoundError,
    UnsupportedTypeError,
    make_compile_error,
)
from appbuilder.core.events import BuildEvent, BuildEventType
from appbuilder.core.fileinfo import (
    ARTIFACT_EXTENSIONS,
    ArtifactKind,
    FileInfo,
    change_extension,
)
from appbuilder.core.io import seconds

if TYPE_CHECKING:
    from appbuilder.core.session import BuildSession

logger = logging.getLogger(__name__)


class BuildScheduler:
    """Compiles nodes of a session's graph."""

    def __init__(self, session: BuildSession):
        self.session = session
        self.compile_count = 0
        self._building: dict[int, asyncio.Event] = {}
        self._builders: dict[int, asyncio.Task | None] = {}
        self._waiting: dict[asyncio.Task, asyncio.Task] = {}
        self._built: set[int] = set()
        self._compiled: set[int] = set()

    # =========================================================================
    # Waiting
    # =========================================================================

    def _would_deadlock(self, current: asyncio.Task | None, builder: asyncio.Task | None) -> bool:
        if current is None or builder is None:
            return True
        seen: set[asyncio.Task] = set()
        task: asyncio.Task | None = builder
        while task is not None and task not in seen:
            if task is current:
                return True
            seen.add(task)
            task = self._waiting.get(task)
        return False

    async def wait_built(self, info: FileInfo) -> None:
        """Wait for an in-flight compile of ``info`` to finish."""
        event = self._building.get(info.id)
        if event is None or event.is_set():
            return
        current = asyncio.current_task()
        if self._would_deadlock(current, self._builders.get(info.id)):
            return
        builder = self._builders[info.id]
        assert current is not None and builder is not None
        self._waiting[current] = builder
        try:
            await event.wait()
        finally:
            self._waiting.pop(current, None)

    # =========================================================================
    # Staleness
    # =========================================================================

    def artifact_paths(self, info: FileInfo) -> list[str]:
        """Every output path a compile of ``info`` may write."""
        paths = [info.output_path]
        if info.compiler is None:
            return paths
        for kind in ARTIFACT_EXTENSIONS:
            if kind in info.compiler.produces:
                path = self._artifact_path(info, kind)
                if path not in paths:
                    paths.append(path)
        return paths

    def _artifact_path(self, info: FileInfo, kind: ArtifactKind) -> str:
        ext = ARTIFACT_EXTENSIONS[kind]
        if ext == info.output_ext:
            return info.output_path
        return change_extension(info.output_path, ext)

    async def is_stale(self, info: FileInfo, source_mtime: float | None = None) -> bool:
        """True if any artifact is missing or older than the source."""
        session = self.session
        if source_mtime is None:
            source_stat = await session.fs.stat(session.input_file(info.input_path))
            if source_stat is None:
                return False
            source_mtime = source_stat.st_mtime
        for path in self.artifact_paths(info):
            output_stat = await session.fs.stat(session.output_file(path))
            if output_stat is None or output_stat.st_mtime < source_mtime:
                return True
        return False

    # =========================================================================
    # Compile
    # =========================================================================

    async def ensure_built(
        self,
        info: FileInfo,
        requesting: FileInfo | None = None,
        force: bool = False,
    ) -> bool:
        """
        Compile ``info`` if stale (or always with ``force`` / ``rebuild``).

        Returns:
            True if the node was compiled

        Raises:
            NotFoundError: the source disappeared
            CompileError: the compiler failed, carrying the asset name
        """
        session = self.session
        if session.closed or info.compiler is None:
            return False
        if info.id in self._building:
            await self.wait_built(info)
            return False
        if not force and info.id in self._built:
            return False

        source = session.input_file(info.input_path)
        source_stat = await session.fs.stat(source)
        if source_stat is None or stat_module.S_ISDIR(source_stat.st_mode):
            raise NotFoundError(
                f'File "{info.input_path}" not found',
                ErrorContext(asset=info.name, input_path=info.input_path),
            )
        info.time = seconds(source_stat.st_mtime)

        event = asyncio.Event()
        self._building[info.id] = event
        self._builders[info.id] = asyncio.current_task()
        try:
            rebuild = force or session.options.rebuild or session.strategy.rebuild_always
            if not rebuild and not await self.is_stale(info, source_stat.st_mtime):
                if not await self._dependencies_changed(info):
                    self._built.add(info.id)
                    return False
            await self._build(info, source)
        finally:
            self._building.pop(info.id, None)
            self._builders.pop(info.id, None)
            event.set()
        return True

    async def _dependencies_changed(self, info: FileInfo) -> bool:
        """
        Resolve the references ``info`` had when it was last compiled.

        True if one of them was compiled by this session, has gone, or
        nothing is recorded for ``info``.
        """
        session = self.session
        names = session.manifest.recorded(info)
        if names is None:
            return True
        changed = False
        for name in names:
            try:
                dependency = await session.resolve(name, info)
            except NotFoundError:
                logger.debug("%s: dependency %s is gone", info.name, name)
                changed = True
                continue
            if dependency.id in self._compiled:
                changed = True
        return changed

    async def _build(self, info: FileInfo, source: Path) -> None:
        session = self.session
        compiler = info.compiler
        assert compiler is not None
        session.readiness.begin()
        self.compile_count += 1
        try:
            await session.events.emit(BuildEvent(BuildEventType.BUILD, info))
            if compiler.passthrough:
                content = await session.fs.read_bytes(source)
                if await session.update_output(info.output_path, content):
                    session.log_file(info.name, info.output_path)
                    await session.notify_changed(info)
            else:
                await self._compile(info, source)
            self._built.add(info.id)
            self._compiled.add(info.id)
            session.manifest.record(info)
        finally:
            if session.readiness.end():
                await session.events.emit(BuildEvent(BuildEventType.READY))

    async def _compile(self, info: FileInfo, source: Path) -> None:
        session = self.session
        compiler = info.compiler
        assert compiler is not None

        text = await session.fs.read(source)
        try:
            result = await compiler.compile(CompileRequest(text, info, session))
        except (CompileError, NotFoundError, UnsupportedTypeError, DownloadError):
            raise
        except Exception as e:
            raise make_compile_error(info.name, e, info.input_path) from e

        if result.errors:
            raise CompileError(
                "; ".join(result.errors),
                ErrorContext(asset=info.name, input_path=info.input_path),
            )
        for warning in result.warnings:
            logger.warning("%s: %s", info.name, warning)

        for kind, content in result.artifacts().items():
            path = self._artifact_path(info, kind)
            if kind == ArtifactKind.SCRIPT:
                content = session.declare(info, content)
            written = await session.update_output(path, content)
            if written:
                session.log_file(info.name, path)

            if path == info.output_path:
                target = info
            else:
                target = session.graph.get(path)
                if target is None:
                    target = session.graph.add(
                        FileInfo(
                            name=info.name,
                            input_path=info.input_path,
                            output_path=path,
                            ext=info.ext,
                            module_id=info.module_id,
                            vendor=info.vendor,
                            source_id=info.id,
                        )
                    )
                session.graph.depends(target, info)
            target.time = info.time
            if written:
                await session.notify_changed(target)

    async def propagate(self, info: FileInfo) -> list[FileInfo]:
        """
        Recompile every compiled node that transitively depends on ``info``.

        Returns:
            The nodes that were rebuilt, dependency-first
        """
        rebuilt: list[FileInfo] = []
        for dependent in self.session.graph.dependents(info):
            if dependent.compiler is None or dependent.is_secondary:
                continue
            if await self.ensure_built(dependent, force=True):
                rebuilt.append(dependent)
        return rebuilt
