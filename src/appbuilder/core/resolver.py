"""
Module resolver.

Resolution order for a reference name:

1. Memoized: return the cached node and add a dependency edge.
2. Remote URL: content-addressed output, fetched once.
3. Vendor module: project vendor directory, installed ``node_modules``
   package, then the CDN (cached on disk).
4. Local project file, trying the lookup suffixes for extensionless or
   directory references.

Concurrent first-time resolutions of one name share a single in-flight
future, so every name is located and compiled exactly once per session.
"""

from __future__ import annotations

import asyncio
import json
import logging
import stat as stat_module
from pathlib import Path
from typing import TYPE_CHECKING

from appbuilder.core.errors import (
    DownloadError,
    ErrorContext,
    NotFoundError,
    UnsupportedTypeError,
)
from appbuilder.core.fileinfo import (
    FileInfo,
    Reference,
    change_extension,
    extension_of,
    url_basename,
    url_output_name,
)
from appbuilder.core.io import seconds

if TYPE_CHECKING:
    from appbuilder.core.session import BuildSession

logger = logging.getLogger(__name__)

# Keys of package.json that may point at a browser build
_PACKAGE_ENTRY_KEYS = ("browser", "unpkg", "jsdelivr", "main")


class ModuleResolver:
    """Resolves reference names to build nodes."""

    def __init__(self, session: BuildSession):
        self.session = session
        self._pending: dict[str, asyncio.Future[FileInfo]] = {}

    async def resolve(
        self,
        reference: str | Reference,
        requesting: FileInfo | None = None,
    ) -> FileInfo:
        """
        Resolve a reference requested by ``requesting``.

        Raises:
            NotFoundError: no asset on any resolution path
            UnsupportedTypeError: no compiler for the resolved extension
            DownloadError: a remote fetch failed
            CompileError: the asset (or one of its dependencies) failed to compile
        """
        if isinstance(reference, str):
            reference = Reference.parse(reference, requesting.input_path if requesting else None)
        graph = self.session.graph
        name = reference.name

        info = graph.lookup(name)
        if info is None and name in self._pending:
            info = await asyncio.shield(self._pending[name])
        if info is not None:
            graph.depends(info, requesting)
            await self.session.scheduler.wait_built(info)
            return info

        future: asyncio.Future[FileInfo] = asyncio.get_running_loop().create_future()
        self._pending[name] = future
        try:
            if reference.url:
                info = await self._resolve_url(reference)
            elif reference.vendor:
                info = await self._resolve_vendor(reference)
            else:
                info = await self._locate_local(reference)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            future.exception()  # waiters re-raise it; nobody else needs to retrieve it
            raise
        finally:
            self._pending.pop(name, None)
        future.set_result(info)

        graph.depends(info, requesting)
        if info.compiler is not None:
            await self.session.scheduler.ensure_built(info, requesting)
        return info

    # =========================================================================
    # Remote URLs
    # =========================================================================

    async def _resolve_url(self, reference: Reference) -> FileInfo:
        session = self.session
        url = reference.url or reference.name
        info = FileInfo(name=reference.name, input_path=reference.name, ext=reference.ext, url=url)

        if reference.ext in ("js", "css", "json"):
            info.vendor = True
            content_name = url_output_name(url, reference.ext)
            info.output_path = f"{session.options.vendor}/{content_name}".lower()
        else:
            info.output_path = url_basename(url)
        session.strategy.assign_identity(info)

        existing = session.graph.get(info.output_path)
        if existing is not None:
            session.graph.remember(existing, reference.name)
            return existing

        output = session.output_file(info.output_path)
        output_stat = await session.fs.stat(output)
        if output_stat is None:
            body = await session.fs.download(url)
            if reference.ext == "json":
                text = body.decode("utf-8")
                declared = session.declare(info, f"module.exports={text.strip()}")
                await session.fs.write(output, declared)
            elif reference.ext == "js":
                await session.fs.write(output, session.declare(info, body.decode("utf-8")))
            else:
                await session.fs.write(output, body)
            session.log_file(url, info.output_path)
            output_stat = await session.fs.stat(output)
            if output_stat is None:
                raise DownloadError(
                    f'Download "{url}" failed', ErrorContext(asset=info.name, url=url)
                )

        info.time = seconds(output_stat.st_ctime)
        info = session.graph.add(info)
        session.graph.remember(info, reference.name)
        await session.notify_changed(info)
        return info

    # =========================================================================
    # Vendor modules
    # =========================================================================

    def _vendor_extensions(self) -> list[str]:
        if self.session.options.minify:
            return [".min.js", ".umd.js", ".js"]
        return [".js", ".min.js", ".umd.js"]

    async def _find_in(self, directory: Path, name: str, extensions: list[str]) -> Path | None:
        for ext in extensions:
            candidate = directory / f"{name}{ext}"
            candidate_stat = await self.session.fs.stat(candidate)
            if candidate_stat is not None and stat_module.S_ISREG(candidate_stat.st_mode):
                return candidate
        return None

    async def _package_dirs(self, name: str) -> list[Path]:
        """Directories of an installed ``node_modules`` package that may hold a browser build."""
        fs = self.session.fs
        base = self.session.options.base_path.resolve()
        for parent in (base, *base.parents):
            package = parent / "node_modules" / name
            if not await fs.exists(package):
                continue
            dirs = [package / "dist", package]
            manifest = package / "package.json"
            if await fs.exists(manifest):
                try:
                    data = json.loads(await fs.read(manifest))
                except json.JSONDecodeError:
                    logger.warning("Ignoring malformed %s", manifest)
                    data = {}
                for key in _PACKAGE_ENTRY_KEYS:
                    entry = data.get(key)
                    if isinstance(entry, str):
                        dirs.append((package / entry).parent)
            unique: list[Path] = []
            for d in dirs:
                if d not in unique:
                    unique.append(d)
            return unique
        return []

    async def _resolve_vendor(self, reference: Reference) -> FileInfo:
        session = self.session
        options = session.options
        name = reference.name
        extensions = self._vendor_extensions()

        source = await self._find_in(options.input_dir / options.vendor, name, extensions)
        from_package = False
        if source is None:
            for directory in await self._package_dirs(name):
                source = await self._find_in(directory, name, extensions)
                if source is not None:
                    from_package = True
                    break

        file_name = source.name if source is not None else f"{name}.min.js"
        info = FileInfo(
            name=name,
            input_path=f"{options.vendor}/{file_name}",
            output_path=f"{options.vendor}/{file_name}".lower(),
            ext="js",
            vendor=True,
        )
        session.strategy.assign_identity(info)
        output = session.output_file(info.output_path)

        if source is None:
            source_time = await self._fetch_from_cdn(info, output)
        else:
            source_stat = await session.fs.stat(source)
            output_stat = await session.fs.stat(output)
            if source_stat is None:
                raise NotFoundError(f'Module "{name}" not found', ErrorContext(asset=name))
            if output_stat is None or output_stat.st_mtime < source_stat.st_mtime:
                content = await session.fs.read(source)
                await session.fs.write(output, session.declare(info, content))
                session.log_file(file_name, info.output_path)
            source_time = seconds(source_stat.st_mtime)
        info.time = source_time

        style = await self._vendor_style(name, source, from_package)
        info = session.graph.add(info)
        if style is not None:
            session.graph.depends(style, info)
        session.graph.remember(info, name, info.input_path)
        await session.notify_changed(info)
        return info

    async def _fetch_from_cdn(self, info: FileInfo, output: Path) -> int:
        session = self.session
        options = session.options
        name = info.name
        base_url = f"{options.cdn_url.rstrip('/')}/{name}/dist/"

        output_stat = await session.fs.stat(output)
        if output_stat is None or not output_stat.st_size:
            content: str | None = None
            last_error: DownloadError | None = None
            for candidate in (f"{name}.min.js", f"{name}.umd.js"):
                try:
                    content = await session.fs.download_text(base_url + candidate)
                except DownloadError as e:
                    last_error = e
                    continue
                session.log_file(candidate, info.output_path)
                break
            if content is None:
                context = ErrorContext(asset=name)
                raise NotFoundError(f'Module "{name}" not found', context) from last_error
            await session.fs.write(output, session.declare(info, content))

            style_path = f"{options.vendor}/{name}.min.css".lower()
            try:
                style_url = base_url + f"{name}.min.css"
                await session.fs.download(style_url, session.output_file(style_path))
                session.log_file(f"{name}.min.css", style_path)
            except DownloadError as e:
                logger.debug("No style sheet for %s on the CDN: %s", name, e)
            output_stat = await session.fs.stat(output)
            if output_stat is None:
                raise NotFoundError(f'Module "{name}" not found', ErrorContext(asset=name))
        return seconds(output_stat.st_ctime)

    async def _vendor_style(
        self, name: str, source: Path | None, from_package: bool
    ) -> FileInfo | None:
        """Style sheet shipped next to a vendor script, copied into the vendor output directory."""
        session = self.session
        options = session.options
        fs = session.fs

        if source is None:
            output_path = f"{options.vendor}/{name}.min.css".lower()
            output_stat = await fs.stat(session.output_file(output_path))
            if output_stat is None:
                return None
            time = seconds(output_stat.st_ctime)
        else:
            style_source = await self._find_in(source.parent, name, [".min.css", ".css"])
            if style_source is None:
                return None
            output_path = f"{options.vendor}/{style_source.name}".lower()
            output = session.output_file(output_path)
            source_stat = await fs.stat(style_source)
            output_stat = await fs.stat(output)
            if source_stat is None:
                return None
            if output_stat is None or output_stat.st_mtime < source_stat.st_mtime:
                await fs.copy(style_source, output)
                session.log_file(style_source.name, output_path)
            time = seconds(source_stat.st_mtime)

        existing = session.graph.get(output_path)
        if existing is not None:
            return existing
        style = FileInfo(
            name=f"{name}.css",
            input_path=output_path if not from_package else f"{options.vendor}/{name}.css",
            output_path=output_path,
            ext="css",
            vendor=True,
            time=time,
        )
        style = session.graph.add(style)
        await session.notify_changed(style)
        return style

    # =========================================================================
    # Local files
    # =========================================================================

    async def _locate_local(self, reference: Reference) -> FileInfo:
        session = self.session
        options = session.options
        fs = session.fs
        context = ErrorContext(asset=reference.name, input_path=reference.input_path)

        input_path = reference.input_path
        source_stat = await fs.stat(options.input_dir / input_path)
        if source_stat is None or stat_module.S_ISDIR(source_stat.st_mode):
            for suffix in options.lookup_files:
                candidate = reference.input_path + suffix
                source_stat = await fs.stat(options.input_dir / candidate)
                if source_stat is not None and not stat_module.S_ISDIR(source_stat.st_mode):
                    input_path = candidate
                    break
        if source_stat is None or stat_module.S_ISDIR(source_stat.st_mode):
            raise NotFoundError(f'File "{reference.input_path}" not found', context)

        existing = session.graph.lookup(input_path)
        if existing is not None:
            session.graph.remember(existing, reference.name)
            return existing

        ext = extension_of(input_path)
        compiler = session.compilers.get(ext)
        if compiler is None:
            raise UnsupportedTypeError(f'File "{input_path}" not supported', context)

        info = FileInfo(
            name=reference.name,
            input_path=input_path,
            output_path=change_extension(input_path, compiler.output_extension(ext)).lower(),
            ext=ext,
            compiler=compiler,
            time=seconds(source_stat.st_mtime),
        )
        session.strategy.assign_identity(info)
        info = session.graph.add(info)
        session.graph.remember(info, reference.name, input_path)
        return info
