"""
Build session.

The session is the context object every compiler receives: it owns the
options, the filesystem capability, the dependency graph, readiness and the
change feed, the compiler registry and the build-mode strategy.

Example:
    session = BuildSession(BuildOptions(mode=BuildMode.DEVELOPER))
    await session.build()
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from appbuilder.compilers import Compiler, default_compilers
from appbuilder.compilers.script import ScriptCompiler
from appbuilder.core.config import BuildOptions
from appbuilder.core.errors import AppBuilderError
from appbuilder.core.events import BuildEvent, BuildEventBus, BuildEventType, Readiness
from appbuilder.core.fileinfo import FileInfo, Reference, extension_of
from appbuilder.core.graph import DependencyGraph
from appbuilder.core.io import FileSystem
from appbuilder.core.manifest import DependencyManifest
from appbuilder.core.resolver import ModuleResolver
from appbuilder.core.scheduler import BuildScheduler
from appbuilder.modes import BuildStrategy, get_strategy

logger = logging.getLogger(__name__)


class BuildSession:
    """
    One build of one project.

    Args:
        options: Build options (defaults apply when omitted)
        fs: Filesystem and network capability
        strategy: Build-mode strategy (chosen from ``options.mode`` by default)
    """

    def __init__(
        self,
        options: BuildOptions | None = None,
        fs: FileSystem | None = None,
        strategy: BuildStrategy | None = None,
    ):
        self.options = options or BuildOptions()
        self.fs = fs or FileSystem(
            max_download_bytes=self.options.max_download_bytes,
            timeout=self.options.download_timeout,
        )
        self.graph = DependencyGraph()
        self.events = BuildEventBus()
        self.readiness = Readiness()
        self.strategy = strategy or get_strategy(self.options.mode, self)
        self.compilers: dict[str, Compiler] = {}
        self.resolver = ModuleResolver(self)
        self.scheduler = BuildScheduler(self)
        self.manifest = DependencyManifest(self)
        self.closed = False
        self._unused: set[str] = set()

    # =========================================================================
    # Setup
    # =========================================================================

    def bind(self) -> None:
        """Build the compiler registry (once per session)."""
        if self.compilers:
            return
        registry = default_compilers()
        registry.update(self.strategy.compiler_overrides())
        self.compilers = registry

    @property
    def compile_count(self) -> int:
        """Number of compiles run by this session."""
        return self.scheduler.compile_count

    # =========================================================================
    # Build
    # =========================================================================

    async def build(self) -> None:
        """
        Scan the input root and build every entry point.

        Per-entry failures are logged and do not stop the other entries.
        """
        self.bind()
        await self.manifest.load()
        await self.strategy.pre_build()
        if len(self.graph):
            await self.refresh()

        options = self.options
        entries = [
            path
            for path in await self.fs.walk(options.input_dir)
            if extension_of(path) in options.build_files
        ]
        logger.debug("Building %d entries from %s", len(entries), options.input_dir)
        await asyncio.gather(*(self._build_entry(entry) for entry in entries))
        await self.manifest.save()

        if self.readiness.mark_scanned():
            await self.events.emit(BuildEvent(BuildEventType.READY))
        await self.strategy.post_build()

    async def _build_entry(self, entry: str) -> None:
        if self.closed:
            return
        try:
            await self.resolve(entry)
        except AppBuilderError as e:
            logger.error("%s", e)
        except Exception:
            logger.exception("Failed to build %s", entry)

    async def refresh(self) -> list[FileInfo]:
        """
        Rebuild known nodes whose sources changed since the last build.

        Returns:
            Every node that was recompiled
        """
        rebuilt: list[FileInfo] = []
        done: set[int] = set()
        for info in list(self.graph):
            if info.compiler is None or info.is_secondary or info.id in done:
                continue
            if not await self.scheduler.is_stale(info):
                continue
            for node in await self.rebuild(info):
                done.add(node.id)
                rebuilt.append(node)
        return rebuilt

    async def rebuild(self, info: FileInfo) -> list[FileInfo]:
        """Recompile a node and everything that depends on it."""
        rebuilt: list[FileInfo] = []
        if await self.scheduler.ensure_built(info, force=True):
            rebuilt.append(info)
        rebuilt.extend(await self.scheduler.propagate(info))
        return rebuilt

    async def rebuild_path(self, rel_path: str) -> FileInfo | None:
        """
        Rebuild the node for an input-relative path after it changed on disk.

        Failures are logged. Paths that are not part of the graph are
        reported once.
        """
        if self.closed:
            return None
        info = self.graph.lookup(rel_path)
        if info is None:
            if rel_path not in self._unused:
                self._unused.add(rel_path)
                logger.info("file: %s is not used", rel_path)
            return None
        self._unused.discard(rel_path)
        logger.info("building: %s", rel_path)
        try:
            await self.rebuild(info)
        except AppBuilderError as e:
            logger.error("%s", e)
        except Exception:
            logger.exception("Failed to rebuild %s", rel_path)
        await self.manifest.save()
        return info

    async def resolve(
        self,
        reference: str | Reference,
        requesting: FileInfo | None = None,
    ) -> FileInfo:
        """Resolve (and build) a reference requested by ``requesting``."""
        self.bind()
        return await self.resolver.resolve(reference, requesting)

    async def ensure_built(
        self,
        info: FileInfo,
        requesting: FileInfo | None = None,
        force: bool = False,
    ) -> bool:
        self.bind()
        return await self.scheduler.ensure_built(info, requesting, force)

    def ordered_dependencies(self, output_path: str) -> list[FileInfo]:
        return self.graph.ordered_dependencies(output_path)

    async def wait_ready(self) -> None:
        await self.readiness.wait()

    def close(self) -> None:
        """Stop scheduling new work; in-flight compiles finish."""
        self.closed = True

    async def cleanup(self) -> None:
        """Remove the build output directory."""
        await self.fs.remove(self.options.output_dir)

    async def notify_changed(self, info: FileInfo) -> None:
        """Publish a change for an artifact written after the initial scan."""
        if self.readiness.scanned:
            await self.events.emit(BuildEvent(BuildEventType.CHANGED, info))

    # =========================================================================
    # Module declarations
    # =========================================================================

    @property
    def script_compiler(self) -> ScriptCompiler:
        self.bind()
        compiler = self.compilers["js"]
        assert isinstance(compiler, ScriptCompiler)
        return compiler

    def declare(self, info: FileInfo, content: str) -> str:
        """Wrap script content in the loader's module declaration."""
        return self.script_compiler.declare(info.module_id, content, self.options.require_name)

    def require_expression(self, info: FileInfo) -> str:
        return self.script_compiler.require_expression(info.module_id)

    # =========================================================================
    # Files
    # =========================================================================

    def input_file(self, rel_path: str) -> Path:
        return self.options.input_dir / rel_path

    def output_file(self, rel_path: str) -> Path:
        return self.options.output_dir / rel_path

    def dist_file(self, rel_path: str) -> Path:
        return self.options.dist_dir / rel_path

    async def read_output(self, info: FileInfo | str) -> str:
        path = info if isinstance(info, str) else info.output_path
        return await self.fs.read(self.output_file(path))

    async def write_output(self, rel_path: str, content: str | bytes) -> None:
        await self.fs.write(self.output_file(rel_path), content)

    async def update_output(self, rel_path: str, content: str | bytes) -> bool:
        """
        Write an artifact unless the file already holds ``content``.

        An unchanged artifact is only touched so it stays newer than its source.

        Returns:
            True if the content changed
        """
        path = self.output_file(rel_path)
        data = content.encode("utf-8") if isinstance(content, str) else content
        if await self.fs.exists(path) and await self.fs.read_bytes(path) == data:
            await self.fs.touch(path)
            return False
        await self.fs.write(path, data)
        return True

    async def write_dist(self, rel_path: str, content: str | bytes) -> None:
        await self.fs.write(self.dist_file(rel_path), content)

    def log_file(self, name: str, output_path: str | None = None) -> None:
        if self.options.log:
            logger.info("[BUILD] %s => %s", name, output_path or name)
