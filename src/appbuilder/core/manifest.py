"""
Dependency manifest.

The build directory keeps a record of the references each compiled output
depends on, so a new session can tell that an up-to-date artifact has a
dependency that changed since the last build without compiling it first.

Example ``build/.appbuilder.json``:

    {"version": 1, "dependencies": {"index.js": ["~/a"], "a.js": ["~/b", "vue"]}}

References are stored root-anchored (``~/path``) for project files and as
written for vendor modules and URLs, so they resolve the same way from any
requesting file.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from appbuilder.core.fileinfo import FileInfo

if TYPE_CHECKING:
    from appbuilder.core.session import BuildSession

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = ".appbuilder.json"
MANIFEST_VERSION = 1


def reference_name(info: FileInfo) -> str:
    """A reference to ``info`` that resolves to it from any requesting file."""
    if info.vendor or info.url:
        return info.name
    return f"~/{info.name}"


class DependencyManifest:
    """Recorded dependency references per output path."""

    def __init__(self, session: BuildSession):
        self.session = session
        self.dependencies: dict[str, list[str]] = {}
        self._loaded = False
        self._dirty = False

    @property
    def path(self) -> Path:
        return self.session.output_file(MANIFEST_FILENAME)

    async def load(self) -> None:
        """Read the manifest of the previous build (once per session)."""
        if self._loaded:
            return
        self._loaded = True
        fs = self.session.fs
        if not await fs.exists(self.path):
            return
        try:
            data = json.loads(await fs.read(self.path))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable %s: %s", MANIFEST_FILENAME, e)
            return
        if not isinstance(data, dict) or data.get("version") != MANIFEST_VERSION:
            logger.debug("Ignoring %s with another format version", MANIFEST_FILENAME)
            return
        recorded = data.get("dependencies", {})
        for output_path, names in recorded.items():
            self.dependencies.setdefault(output_path, list(names))

    def recorded(self, info: FileInfo) -> list[str] | None:
        """References ``info`` depended on when it was last compiled, if known."""
        return self.dependencies.get(info.output_path)

    def record(self, info: FileInfo) -> None:
        graph = self.session.graph
        names = sorted(
            reference_name(dependency)
            for dependency in (graph.node(node_id) for node_id in info.deps)
            if not dependency.is_secondary
        )
        if self.dependencies.get(info.output_path) != names:
            self.dependencies[info.output_path] = names
            self._dirty = True

    async def save(self) -> None:
        if not self._dirty:
            return
        await self.load()
        self._dirty = False
        data = {"version": MANIFEST_VERSION, "dependencies": self.dependencies}
        await self.session.fs.write(self.path, json.dumps(data, indent=2, sort_keys=True))
