"""
Compiler registry.

The registry is a mapping literal built at session start; the build-mode
strategy may replace entries (e.g. production's markup compiler). It is
read-only once a build has started.
"""

from __future__ import annotations

from appbuilder.compilers.base import (
    Compiler,
    CompileRequest,
    CompileResult,
    PassthroughCompiler,
)
from appbuilder.compilers.component import ComponentCompiler
from appbuilder.compilers.markup import MarkupCompiler
from appbuilder.compilers.script import JsonCompiler, ScriptCompiler
from appbuilder.compilers.style import IndentedSassCompiler, SassCompiler, StyleCompiler
from appbuilder.core.fileinfo import ArtifactKind


class TemplateCompiler(PassthroughCompiler):
    """HTML template fragments, inlined into the markup that needs them."""

    name = "template"
    produces = frozenset({ArtifactKind.TEMPLATE})


class RawCompiler(PassthroughCompiler):
    """Binary and text assets copied under their own extension."""

    name = "raw"


RAW_EXTENSIONS = (
    "png", "jpg", "jpeg", "gif", "svg", "webp", "ico",
    "woff", "woff2", "ttf", "eot", "txt",
)


def default_compilers() -> dict[str, Compiler]:
    """Compilers keyed by source extension."""
    raw = RawCompiler()
    registry: dict[str, Compiler] = {
        "js": ScriptCompiler(),
        "json": JsonCompiler(),
        "css": StyleCompiler(),
        "scss": SassCompiler(),
        "sass": IndentedSassCompiler(),
        "vue": ComponentCompiler(),
        "template": TemplateCompiler(),
        "html": MarkupCompiler(),
    }
    for ext in RAW_EXTENSIONS:
        registry[ext] = raw
    return registry


__all__ = [
    "Compiler",
    "CompileRequest",
    "CompileResult",
    "ComponentCompiler",
    "JsonCompiler",
    "MarkupCompiler",
    "PassthroughCompiler",
    "RawCompiler",
    "SassCompiler",
    "ScriptCompiler",
    "StyleCompiler",
    "TemplateCompiler",
    "default_compilers",
]
