"""
Compiler contract.

A compiler declares which artifact kinds it may produce and, optionally, an
async ``compile`` step. Compilers without a compile step are pass-through
assets: the source is copied byte-for-byte to its output location.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar

from appbuilder.core.fileinfo import ARTIFACT_EXTENSIONS, ArtifactKind

if TYPE_CHECKING:
    from appbuilder.core.config import BuildOptions
    from appbuilder.core.fileinfo import FileInfo
    from appbuilder.core.session import BuildSession


@dataclass
class CompileRequest:
    """Input to a compile step."""

    source_text: str
    file_info: FileInfo
    session: BuildSession

    @property
    def options(self) -> BuildOptions:
        return self.session.options


@dataclass
class CompileResult:
    """Artifacts produced by a compile step, keyed by kind."""

    script: str | None = None
    style: str | None = None
    template: str | None = None
    markup: str | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def artifacts(self) -> dict[ArtifactKind, str]:
        """Non-empty artifacts in write order."""
        produced: dict[ArtifactKind, str] = {}
        for kind in ARTIFACT_EXTENSIONS:
            content = getattr(self, kind.value)
            if content:
                produced[kind] = content
        return produced


class Compiler:
    """
    Base compiler.

    Subclasses set ``produces`` and override ``compile`` unless they are
    pass-through (``passthrough = True``).
    """

    name: ClassVar[str] = "raw"
    produces: ClassVar[frozenset[ArtifactKind]] = frozenset()
    passthrough: ClassVar[bool] = False

    @property
    def primary_kind(self) -> ArtifactKind | None:
        """Kind that decides the output extension (script, then style, else raw)."""
        for kind in (ArtifactKind.SCRIPT, ArtifactKind.STYLE):
            if kind in self.produces:
                return kind
        return None

    def output_extension(self, source_ext: str) -> str:
        kind = self.primary_kind
        return ARTIFACT_EXTENSIONS[kind] if kind else source_ext

    async def compile_text(self, source_text: str, request: CompileRequest) -> str:
        """Compile an embedded style block (e.g. from a component document)."""
        if self.passthrough:
            return source_text
        embedded = CompileRequest(source_text, request.file_info, request.session)
        return (await self.compile(embedded)).style or ""

    async def compile(self, request: CompileRequest) -> CompileResult:
        raise NotImplementedError(f"{type(self).__name__} has no compile step")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class PassthroughCompiler(Compiler):
    """Asset copied byte-for-byte to its output location."""

    passthrough = True
