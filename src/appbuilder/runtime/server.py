"""
Development server.

Serves the build output behind a readiness gate (requests wait until the
session has finished its initial scan and no compile is in flight), the
project assets directory, the live-reload socket and optional reverse
proxies to a backend.

Usage:
    app = create_dev_app(BuildOptions(mode=BuildMode.DEVELOPER, live=True))
    uvicorn.run(app, port=3000)
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import httpx
from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import Response
from starlette.staticfiles import StaticFiles
from starlette.types import Receive, Scope, Send

from appbuilder.core.config import BuildOptions
from appbuilder.core.io import FileSystem
from appbuilder.core.session import BuildSession
from appbuilder.runtime.live_reload import LIVE_RELOAD_PATH, LiveReloadManager

logger = logging.getLogger(__name__)

_FAVICON = Path(__file__).parent / "static" / "favicon.ico"

# Request headers forwarded to a proxied backend
_PROXY_REQUEST_HEADERS = ("content-type", "authorization", "accept", "cookie")

# Response headers never copied back from a proxied backend
_HOP_BY_HOP = frozenset({"transfer-encoding", "connection", "content-encoding", "content-length"})


class BuildOutputFiles(StaticFiles):
    """
    Build output served once the session is ready.

    Extra directories (e.g. a public directory) are checked after the build
    output (first match wins). Responses are never cached by the browser so
    that a reload always sees the latest artifacts.
    """

    def __init__(
        self,
        session: BuildSession,
        directories: list[Path] | None = None,
        **kwargs: Any,
    ) -> None:
        self.session = session
        self._extra_dirs = [d for d in directories or [] if d.is_dir()]
        kwargs.setdefault("html", True)
        kwargs.setdefault("check_dir", False)
        super().__init__(directory=str(session.options.output_dir), **kwargs)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.session.wait_ready()
        # an input tree without entries leaves no output directory behind
        await self.session.fs.mkdir(self.session.options.output_dir)
        await super().__call__(scope, receive, send)

    def lookup_path(self, path: str) -> tuple[str, os.stat_result | None]:
        """Check the build output first, then the extra directories."""
        full_path, stat_result = super().lookup_path(path)
        if stat_result is not None:
            return full_path, stat_result
        for d in self._extra_dirs:
            full = d / path.lstrip("/")
            try:
                if full.resolve().is_relative_to(d.resolve()):
                    return str(full), full.stat()
            except (FileNotFoundError, PermissionError, NotADirectoryError):
                continue
        return full_path, stat_result

    def file_response(
        self,
        full_path: Any,
        stat_result: os.stat_result,
        scope: Any,
        status_code: int = 200,
    ) -> Response:
        response = super().file_response(full_path, stat_result, scope, status_code)
        response.headers["Cache-Control"] = "no-cache"
        return response


def register_with_server(
    app: FastAPI,
    session: BuildSession,
    public: Path | None = None,
) -> LiveReloadManager:
    """
    Attach a build session to a FastAPI app.

    Registers, in order: the live-reload socket (when ``live`` is on), the
    assets directory and a catch-all mount of the build output. Call it
    after every other route of the app, the catch-all mount shadows routes
    added later.

    Returns:
        The LiveReloadManager; start it (e.g. in the app lifespan) to watch
        the input tree
    """
    options = session.options
    manager = LiveReloadManager(session)

    if options.live:

        async def live_reload_endpoint(websocket: WebSocket) -> None:
            await manager.handle(websocket)

        app.add_api_websocket_route(LIVE_RELOAD_PATH, live_reload_endpoint)
        manager.subscribe()

    if options.assets and options.assets_dir.is_dir():
        app.mount(
            f"/{options.assets}",
            StaticFiles(directory=str(options.assets_dir)),
            name="assets",
        )

    extra = [public] if public is not None else []
    app.mount("/", BuildOutputFiles(session, extra), name="build")
    return manager


def _add_proxy(app: FastAPI, prefix: str, target: str) -> None:
    """Forward ``<prefix>/<path>`` to ``<target>/<path>``."""
    prefix = "/" + prefix.strip("/")
    target = target.rstrip("/")

    async def proxy(request: Request, path: str = "") -> Response:
        url = f"{target}/{path}"
        if request.url.query:
            url = f"{url}?{request.url.query}"
        headers = {
            name: value
            for name, value in request.headers.items()
            if name.lower() in _PROXY_REQUEST_HEADERS
        }
        try:
            async with httpx.AsyncClient(timeout=30.0) as client:
                upstream = await client.request(
                    request.method, url, headers=headers, content=await request.body()
                )
        except httpx.HTTPError as e:
            logger.warning("Proxy %s failed: %s", url, e)
            return Response(f"Bad gateway: {e}", status_code=502)
        response_headers = {
            name: value
            for name, value in upstream.headers.items()
            if name.lower() not in _HOP_BY_HOP
        }
        return Response(upstream.content, upstream.status_code, headers=response_headers)

    app.add_api_route(
        f"{prefix}/{{path:path}}",
        proxy,
        methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        include_in_schema=False,
    )
    logger.info("Proxy %s -> %s", prefix, target)


def create_dev_app(
    options: BuildOptions,
    *,
    cors: bool = True,
    public: Path | None = None,
    proxies: dict[str, str] | None = None,
    watch: bool = True,
    fs: FileSystem | None = None,
) -> FastAPI:
    """
    Create the development server app for a project.

    The lifespan builds the session in the background (requests wait on the
    readiness gate) and starts the live-reload watcher once the build is
    done.

    Args:
        options: Build options
        cors: Allow cross-origin requests
        public: Extra directory served after the build output
        proxies: URL prefix -> backend URL
        watch: Watch the input tree for changes
        fs: Filesystem capability (tests inject one with a mock transport)
    """
    session = BuildSession(options, fs=fs)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        async def build_and_watch() -> None:
            await session.build()
            await manager.start(watch=watch and options.live)
            logger.info("Build ready: %s", options.output_dir)

        build_task = asyncio.create_task(build_and_watch())
        yield

        build_task.cancel()
        try:
            await build_task
        except asyncio.CancelledError:
            pass
        await manager.stop()

    app = FastAPI(title="appbuilder dev server", lifespan=lifespan)
    app.state.session = session

    if cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.get("/favicon.ico", include_in_schema=False)
    async def favicon() -> Response:
        return Response(
            _FAVICON.read_bytes(),
            media_type="image/x-icon",
            headers={"Cache-Control": "no-cache"},
        )

    for prefix, target in (proxies or {}).items():
        _add_proxy(app, prefix, target)

    manager = register_with_server(app, session, public=public)
    app.state.live_reload = manager
    return app


def run_dev_server(
    options: BuildOptions,
    host: str = "127.0.0.1",
    port: int = 3000,
    **kwargs: Any,
) -> None:
    """Run the development server with uvicorn (blocks until interrupted)."""
    import uvicorn

    app = create_dev_app(options, **kwargs)
    logger.info("Server listening on http://%s:%d", host, port)
    uvicorn.run(app, host=host, port=port, log_level="warning")
