"""
Filesystem and network capability used by the build session.

Blocking filesystem calls run in a worker thread so that many resolutions can
be suspended at once on the event loop. Downloads go through httpx.
"""

from __future__ import annotations

import asyncio
import logging
import math
import os
import shutil
from collections.abc import Awaitable, Callable
from pathlib import Path

import httpx

from appbuilder.core.errors import DownloadError, ErrorContext

logger = logging.getLogger(__name__)

Writer = Callable[[str], Awaitable[None]]
WriterCallback = Callable[[Writer], Awaitable[None]]


def seconds(timestamp: float) -> int:
    """Integer staleness marker (seconds, rounded up)."""
    return math.ceil(timestamp)


class FileSystem:
    """
    Async I/O capability.

    Args:
        transport: Optional httpx transport (tests inject ``httpx.MockTransport``)
        max_download_bytes: Size limit for a single download
        timeout: Download timeout in seconds
    """

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        max_download_bytes: int = 32 * 1024 * 1024,
        timeout: float = 60.0,
    ):
        self.transport = transport
        self.max_download_bytes = max_download_bytes
        self.timeout = timeout
        self.download_count = 0

    # =========================================================================
    # Filesystem
    # =========================================================================

    async def exists(self, path: Path) -> bool:
        return await asyncio.to_thread(path.exists)

    async def stat(self, path: Path) -> os.stat_result | None:
        """stat() the path, or None if it does not exist."""
        try:
            return await asyncio.to_thread(path.stat)
        except (FileNotFoundError, NotADirectoryError):
            return None

    async def read(self, path: Path) -> str:
        return await asyncio.to_thread(path.read_text, encoding="utf-8")

    async def read_bytes(self, path: Path) -> bytes:
        return await asyncio.to_thread(path.read_bytes)

    async def write(self, path: Path, content: str | bytes | WriterCallback) -> None:
        """
        Write a file, creating parent directories.

        ``content`` may be text, bytes, or an async callback receiving a
        ``write(chunk)`` coroutine for streamed output.
        """
        await self.mkdir(path.parent)
        if callable(content):
            chunks: list[str] = []

            async def write_chunk(chunk: str) -> None:
                chunks.append(chunk)

            await content(write_chunk)
            content = "".join(chunks)

        if isinstance(content, bytes):
            await asyncio.to_thread(path.write_bytes, content)
        else:
            await asyncio.to_thread(path.write_text, content, encoding="utf-8")

    async def touch(self, path: Path) -> None:
        await asyncio.to_thread(path.touch)

    async def mkdir(self, path: Path) -> None:
        await asyncio.to_thread(path.mkdir, parents=True, exist_ok=True)

    async def remove(self, path: Path) -> None:
        """Remove a file or a directory tree (missing paths are ignored)."""

        def _remove() -> None:
            if path.is_dir():
                shutil.rmtree(path)
            elif path.exists():
                path.unlink()

        await asyncio.to_thread(_remove)

    async def copy(self, src: Path, dst: Path) -> None:
        await self.mkdir(dst.parent)
        await asyncio.to_thread(shutil.copyfile, src, dst)

    async def walk(self, root: Path) -> list[str]:
        """Every file below ``root`` as a sorted list of POSIX relative paths."""

        def _walk() -> list[str]:
            if not root.is_dir():
                return []
            return sorted(p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file())

        return await asyncio.to_thread(_walk)

    # =========================================================================
    # Network
    # =========================================================================

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self.transport,
            timeout=self.timeout,
            follow_redirects=True,
        )

    async def download(self, url: str, dest: Path | None = None) -> bytes:
        """
        Fetch a URL.

        Args:
            url: Remote location
            dest: Optional file to write the body to

        Returns:
            The response body

        Raises:
            DownloadError: non-2xx status, size limit exceeded or transport failure
        """
        context = ErrorContext(asset=url, url=url)
        self.download_count += 1
        try:
            async with self._client() as client:
                async with client.stream("GET", url) as response:
                    if not response.is_success:
                        raise DownloadError(f"HTTP {response.status_code}", context)
                    body = bytearray()
                    async for chunk in response.aiter_bytes():
                        body.extend(chunk)
                        if len(body) > self.max_download_bytes:
                            raise DownloadError(
                                f"response exceeds {self.max_download_bytes} bytes", context
                            )
        except httpx.HTTPError as e:
            raise DownloadError(str(e) or type(e).__name__, context) from e

        data = bytes(body)
        if dest is not None:
            await self.write(dest, data)
        logger.debug("Downloaded %s (%d bytes)", url, len(data))
        return data

    async def download_text(self, url: str) -> str:
        return (await self.download(url)).decode("utf-8")
