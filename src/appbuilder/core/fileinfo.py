"""
File identity model.

A FileInfo is the unit of resolution and build: one record per unique
resolved name/output path for the lifetime of a build session.
"""

from __future__ import annotations

import hashlib
import posixpath
import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from appbuilder.compilers.base import Compiler


class ArtifactKind(StrEnum):
    """Kinds of compiled artifacts a compiler may produce."""

    SCRIPT = "script"
    STYLE = "style"
    TEMPLATE = "template"
    MARKUP = "markup"


# Output extension per artifact kind (declaration order is the write order)
ARTIFACT_EXTENSIONS: dict[ArtifactKind, str] = {
    ArtifactKind.SCRIPT: "js",
    ArtifactKind.STYLE: "css",
    ArtifactKind.TEMPLATE: "template",
    ArtifactKind.MARKUP: "html",
}

_URL_RE = re.compile(r"^https?://.+$", re.IGNORECASE)
_VENDOR_RE = re.compile(r"^[^./]+$")


@dataclass(eq=False)
class FileInfo:
    """
    A build node.

    Attributes:
        name: Logical reference name (memo key)
        input_path: Project relative source location
        output_path: Project relative artifact location (lower-cased)
        ext: Source extension, selects the compiler
        module_id: Identity used in module declarations
        compiler: Bound compiler (None for downloaded raw files)
        vendor: Resolved as a third-party dependency
        url: Remote location, if fetched over the network
        time: Staleness marker in integer seconds
        deps: Arena ids of the outputs this output depends on
        source_id: For secondary artifacts, the id of the node that produced it
    """

    name: str
    input_path: str
    output_path: str = ""
    ext: str = ""
    module_id: str = ""
    compiler: Compiler | None = None
    vendor: bool = False
    url: str | None = None
    time: int = 0
    deps: set[int] = field(default_factory=set)
    source_id: int | None = None
    id: int = -1

    def __post_init__(self) -> None:
        if not self.ext:
            self.ext = extension_of(self.input_path)
        if not self.module_id:
            self.module_id = self.name

    @property
    def output_ext(self) -> str:
        return extension_of(self.output_path)

    @property
    def is_secondary(self) -> bool:
        return self.source_id is not None

    def __repr__(self) -> str:
        return f"FileInfo(#{self.id} {self.name!r} -> {self.output_path!r})"


@dataclass
class Reference:
    """A normalised module reference, as written in a requesting file."""

    name: str
    input_path: str
    ext: str
    vendor: bool = False
    url: str | None = None

    @classmethod
    def parse(cls, name: str, requesting_path: str | None = None) -> Reference:
        """
        Normalise a reference name.

        ``./x`` is relative to the requesting file's directory, ``../x`` is
        normalised against it, ``~/x`` and ``/x`` are relative to the input
        root, URLs are remote and bare names without ``.`` or ``/`` are vendor
        modules.
        """
        base_dir = posixpath.dirname(requesting_path) if requesting_path else ""

        if _URL_RE.match(name):
            url_path = name.split("?", 1)[0].split("#", 1)[0]
            ext = extension_of(url_path)
            return cls(name=name, input_path=name, ext=ext, vendor=True, url=name)

        if _VENDOR_RE.match(name):
            return cls(name=name, input_path=f"{name}.js", ext="js", vendor=True)

        if name.startswith("./") and base_dir:
            name = posixpath.join(base_dir, name[2:])
        elif name.startswith("../"):
            name = posixpath.normpath(posixpath.join(base_dir, name))
            # Clamp to the input root
            segments = name.split("/")
            while segments and segments[0] == "..":
                del segments[0]
            name = "/".join(segments)
        elif name.startswith(("~/", "./")):
            name = name[2:]
        name = name.lstrip("/")
        return cls(name=name, input_path=name, ext=extension_of(name))


def extension_of(path: str) -> str:
    """Extension without the dot, or '' (``a/b.min.js`` -> ``js``)."""
    ext = posixpath.splitext(path)[1]
    return ext[1:].lower() if ext else ""


def change_extension(path: str, ext: str) -> str:
    """Replace the last extension of ``path`` (or append one)."""
    root, current = posixpath.splitext(path)
    if current:
        return f"{root}.{ext}"
    return f"{path}.{ext}"


def url_output_name(url: str, ext: str) -> str:
    """Content addressed output name for a downloaded script, style sheet or JSON file."""
    digest = hashlib.md5(url.encode("utf-8")).hexdigest()
    return f"{digest}.{'js' if ext == 'json' else ext}"


def url_basename(url: str) -> str:
    """Last path segment of a URL, lower-cased, without query string."""
    path = url.split("?", 1)[0].split("#", 1)[0].rstrip("/")
    return path.rsplit("/", 1)[-1].lower()


_DIGITS32 = "0123456789abcdefghijklmnopqrstuv"


def to_base32(value: int) -> str:
    """Render a non-negative integer in base 32 (digits 0-9a-v)."""
    if value < 0:
        raise ValueError("base-32 identities are non-negative")
    if value == 0:
        return "0"
    chars = []
    while value:
        value, rem = divmod(value, 32)
        chars.append(_DIGITS32[rem])
    return "".join(reversed(chars))
