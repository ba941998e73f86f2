"""
Single-file UI component compiler (``.vue``).

A component document holds a ``<template>``, a ``<script>`` and any number of
``<style>`` blocks. The script block is delegated to the registered script
compiler with the template attached as ``module.exports.template``; style
blocks are delegated to the style compiler named by their ``lang``/``type``
attribute and joined into one style artifact.

The live-reload client hashes a component's module text up to the
``exports.template=`` marker: when only the template changed, components are
re-rendered in place instead of reloading the page.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field

from appbuilder.compilers.base import Compiler, CompileRequest, CompileResult
from appbuilder.core.fileinfo import ArtifactKind

TEMPLATE_MARKER = "exports.template="

_OPEN_RE = re.compile(r"<(template|script|style)(\s[^>]*)?>", re.I)
_ATTR_RE = re.compile(r"([\w:@.-]+)(?:\s*=\s*(?:\"([^\"]*)\"|'([^']*)'|([^\s\"'>]+)))?")
_TEMPLATE_TAG_RE = re.compile(r"<(/?)template(?=[\s>/])[^>]*>", re.I)


@dataclass
class Block:
    """A top-level block of a component document."""

    tag: str
    content: str
    attrs: dict[str, str] = field(default_factory=dict)

    @property
    def lang(self) -> str:
        lang = (self.attrs.get("lang") or self.attrs.get("type") or "").lower()
        return lang.rsplit("/", 1)[-1]


def _parse_attrs(text: str | None) -> dict[str, str]:
    attrs: dict[str, str] = {}
    for match in _ATTR_RE.finditer(text or ""):
        value = next((g for g in match.groups()[1:] if g is not None), "")
        attrs[match.group(1).lower()] = value
    return attrs


def _template_end(source: str, start: int) -> tuple[int, int]:
    """Find the ``</template>`` matching an opening tag that ends at ``start``."""
    depth = 1
    for match in _TEMPLATE_TAG_RE.finditer(source, start):
        if match.group(0).endswith("/>"):
            continue
        depth += -1 if match.group(1) else 1
        if depth == 0:
            return match.start(), match.end()
    raise ValueError("unterminated <template> block")


def parse_component(source: str) -> list[Block]:
    """Split a component document into its top-level blocks."""
    blocks: list[Block] = []
    pos = 0
    while True:
        match = _OPEN_RE.search(source, pos)
        if match is None:
            return blocks
        tag = match.group(1).lower()
        attrs = _parse_attrs(match.group(2))
        if tag == "template":
            end, pos = _template_end(source, match.end())
        else:
            close = source.lower().find(f"</{tag}>", match.end())
            if close < 0:
                raise ValueError(f"unterminated <{tag}> block")
            end, pos = close, close + len(tag) + 3
        blocks.append(Block(tag=tag, content=source[match.end() : end], attrs=attrs))


class ComponentCompiler(Compiler):
    """Compiles component documents into a script and a style artifact."""

    name = "vue"
    produces = frozenset({ArtifactKind.SCRIPT, ArtifactKind.STYLE})

    async def compile(self, request: CompileRequest) -> CompileResult:
        session = request.session
        info = request.file_info
        blocks = parse_component(request.source_text)

        template = next((b for b in blocks if b.tag == "template"), None)
        script_block = next((b for b in blocks if b.tag == "script"), None)

        result = CompileResult()
        if script_block is not None or template is not None:
            script = script_block.content if script_block is not None else "module.exports={}"
            if template is not None and template.content.strip():
                script += f"\n;module.{TEMPLATE_MARKER}{json.dumps(template.content.strip())}"
            script_compiler = session.compilers["js"]
            compiled = await script_compiler.compile(
                CompileRequest(source_text=script, file_info=info, session=session)
            )
            result.script = compiled.script

        styles: list[str] = []
        for block in blocks:
            if block.tag != "style":
                continue
            lang = block.lang or "css"
            compiler = session.compilers.get(lang)
            if compiler is None or ArtifactKind.STYLE not in compiler.produces:
                raise ValueError(f"Style type={lang} not supported in {info.name}")
            styles.append(await compiler.compile_text(block.content, request))
        if styles:
            result.style = "\n".join(s for s in styles if s)

        return result
