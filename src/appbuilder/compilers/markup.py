"""
Markup entry point compiler.

An entry ``index.html`` is paired with ``index.js`` next to it. The script is
resolved, its ordered transitive dependencies are collected, and one tag per
compiled output is inserted into the document head: ``<link>`` for style
sheets, ``<script src>`` for scripts, inline content for templates. The module
loader runtime precedes the tags and, in live mode, the live-reload client
follows it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from appbuilder.compilers.base import Compiler, CompileRequest, CompileResult
from appbuilder.compilers.script import quote_module_id
from appbuilder.core.errors import ErrorContext, MarkupAssemblyError
from appbuilder.core.fileinfo import ArtifactKind, change_extension
from appbuilder.runtime.client_assets import live_reload_client, module_loader

if TYPE_CHECKING:
    from appbuilder.core.fileinfo import FileInfo
    from appbuilder.core.session import BuildSession

HEAD_CLOSE = "</head>"
SCRIPT_CLOSE = "</script>"


def insertion_point(markup: str, asset: str = "markup") -> int:
    """
    Position for generated tags: after the last ``</script>`` inside the head,
    or just before ``</head>``.

    Raises:
        MarkupAssemblyError: the document has no ``</head>``
    """
    head_end = markup.find(HEAD_CLOSE)
    if head_end < 0:
        raise MarkupAssemblyError("Html head not found", ErrorContext(asset=asset))
    script_end = markup.rfind(SCRIPT_CLOSE, 0, head_end)
    if script_end > 0:
        return script_end + len(SCRIPT_CLOSE)
    return head_end


def insert_tags(markup: str, tags: list[str], asset: str = "markup") -> str:
    pos = insertion_point(markup, asset)
    block = "\n  ".join(["", *tags, ""])
    return markup[:pos] + block + markup[pos:]


def bootstrap_script(require_name: str, entry_id: str) -> str:
    """Start the entry module once the document is parsed."""
    return (
        "document.addEventListener('DOMContentLoaded',function(){"
        f"{require_name}({quote_module_id(entry_id)})}});"
    )


def link_tag(href: str) -> str:
    return f'<link rel="stylesheet" href="{href}">'


def script_tag(src: str) -> str:
    return f'<script src="{src}"></script>'


def inline_script(content: str) -> str:
    return f"<script>{content}</script>"


class MarkupCompiler(Compiler):
    """Developer markup assembly: one tag per resolved module."""

    name = "html"
    produces = frozenset({ArtifactKind.MARKUP})

    async def entry_script(self, request: CompileRequest) -> FileInfo | None:
        """Resolve the script paired with the entry, if it exists."""
        session = request.session
        js_path = change_extension(request.file_info.input_path, "js")
        if await session.fs.stat(session.options.input_dir / js_path) is None:
            return None
        return await session.resolve(js_path, request.file_info)

    def runtime_tags(self, session: BuildSession, entry: FileInfo) -> list[str]:
        require_name = session.options.require_name
        loader = module_loader(require_name) + bootstrap_script(require_name, entry.module_id)
        tags = [inline_script(loader)]
        if session.options.live:
            tags.append(inline_script(live_reload_client(require_name)))
        return tags

    async def compile(self, request: CompileRequest) -> CompileResult:
        session = request.session
        entry = await self.entry_script(request)
        if entry is None:
            return CompileResult(markup=request.source_text)

        tags = self.runtime_tags(session, entry)
        for info in session.graph.ordered_dependencies(entry.output_path):
            ext = info.output_ext
            if ext == "css":
                tags.append(link_tag(info.output_path))
            elif ext == "js":
                tags.append(script_tag(info.output_path))
            elif ext == "template":
                tags.append(await session.read_output(info))

        return CompileResult(
            markup=insert_tags(request.source_text, tags, request.file_info.name)
        )
