"""Style sheet compilers."""

from __future__ import annotations

import asyncio

import sass

from appbuilder.compilers.base import (
    Compiler,
    CompileRequest,
    CompileResult,
    PassthroughCompiler,
)
from appbuilder.core.fileinfo import ArtifactKind


class StyleCompiler(PassthroughCompiler):
    """Plain CSS, copied as-is."""

    name = "css"
    produces = frozenset({ArtifactKind.STYLE})


class SassCompiler(Compiler):
    """
    SCSS / indented Sass through libsass.

    Imports are looked up next to the source file and in the input root.
    """

    name = "scss"
    produces = frozenset({ArtifactKind.STYLE})
    indented = False

    async def compile_text(self, source_text: str, request: CompileRequest) -> str:
        options = request.session.options
        source_dir = (options.input_dir / request.file_info.input_path).parent
        return await asyncio.to_thread(
            sass.compile,
            string=source_text,
            include_paths=[str(source_dir), str(options.input_dir)],
            indented=self.indented,
        )

    async def compile(self, request: CompileRequest) -> CompileResult:
        return CompileResult(style=await self.compile_text(request.source_text, request))


class IndentedSassCompiler(SassCompiler):
    """Indented (.sass) syntax."""

    name = "sass"
    indented = True
