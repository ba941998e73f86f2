"""Shared fixtures: a temporary project tree, a fake CDN and session factories."""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import httpx
import pytest

from appbuilder.core.config import BuildMode, BuildOptions
from appbuilder.core.io import FileSystem
from appbuilder.core.session import BuildSession


class FakeCdn:
    """httpx mock transport serving registered URLs and counting requests."""

    def __init__(self) -> None:
        self.routes: dict[str, tuple[int, bytes]] = {}
        self.requests: list[str] = []
        self.transport = httpx.MockTransport(self._handle)

    def add(self, url: str, body: str | bytes, status: int = 200) -> None:
        data = body.encode("utf-8") if isinstance(body, str) else body
        self.routes[url] = (status, data)

    def count(self, url: str) -> int:
        return self.requests.count(url)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        status, body = self.routes.get(url, (404, b"not found"))
        return httpx.Response(status, content=body)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Project root with an empty ``app/`` input directory."""
    (tmp_path / "app").mkdir()
    return tmp_path


@pytest.fixture
def write_app(project: Path) -> Callable[[str, str], Path]:
    """Write a file below ``app/``."""

    def write(rel_path: str, content: str) -> Path:
        path = project / "app" / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return write


@pytest.fixture
def cdn() -> FakeCdn:
    return FakeCdn()


@pytest.fixture
def make_options(project: Path) -> Callable[..., BuildOptions]:
    def factory(**overrides: Any) -> BuildOptions:
        values: dict[str, Any] = {
            "base_path": project,
            "mode": BuildMode.DEVELOPER,
            "minify": False,
            "log": False,
        }
        values.update(overrides)
        return BuildOptions(**values)

    return factory


@pytest.fixture
def make_session(
    make_options: Callable[..., BuildOptions], cdn: FakeCdn
) -> Callable[..., BuildSession]:
    """Build sessions over the project, with network access through the fake CDN."""

    def factory(**overrides: Any) -> BuildSession:
        return BuildSession(make_options(**overrides), fs=FileSystem(transport=cdn.transport))

    return factory


def _bump_mtime(path: Path, seconds: float = 10.0) -> None:
    future = time.time() + seconds
    os.utime(path, (future, future))


@pytest.fixture
def bump_mtime() -> Callable[..., None]:
    """Move a file's mtime into the future so its artifacts become stale."""
    return _bump_mtime


@pytest.fixture
def reset_appbuilder_logger() -> Iterator[None]:
    """Undo ``setup_logging`` so later tests see the default logger tree."""
    yield
    logger = logging.getLogger("appbuilder")
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
