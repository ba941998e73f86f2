"""
Script compilers.

The script compiler rewrites module references into calls to the module
loader runtime:

    import x from './a'        ->  var x = require('a')
    import {a as b} from 'm'   ->  var {a: b} = require('m')
    import * as ns from './c'  ->  var ns = require('c')
    require('./d')             ->  require('d')
    export default expr        ->  module.exports=expr
    export function f(...)     ->  module.exports.f=function f(...)

Each referenced module is resolved through the session before the
dependent's artifact is finalized. Comments and string literals are skipped.
"""

from __future__ import annotations

import re

from appbuilder.compilers.base import Compiler, CompileRequest, CompileResult
from appbuilder.core.fileinfo import ArtifactKind, Reference

_TOKEN_RE = re.compile(
    r"/\*[\s\S]*?\*/"
    r"|//[^\r\n]*"
    r"|(?P<str>\"(?:[^\"\\]*(?:\\.[^\"\\]*)*)\"|'(?:[^'\\]*(?:\\.[^'\\]*)*)')"
    r"|\bimport\s+(?:(?P<vars>[^'\"]+?)\s+from\s+)?['\"](?P<imp>[^'\"]+)['\"]"
    r"|\brequire\s*\(\s*['\"](?P<req>[^'\"]+)['\"]\s*\)"
    r"|(?P<asname>[\w$*]+)\s+as\s+(?P<asalias>[\w$]+)"
)
_AS_RE = re.compile(r"([\w$*]+)\s+as\s+([\w$]+)")
_EXPORT_LIST_RE = re.compile(r"^(\s*)export\s*\{([^}]*)\}\s*;?", re.M)
_EXPORT_DEFAULT_RE = re.compile(r"^(\s*)export\s+default\s+", re.M)
_EXPORT_FUNCTION_RE = re.compile(r"^(\s*)export\s+(async\s+)?function\s+([\w$]+)", re.M)
_EXPORT_CLASS_RE = re.compile(r"^(\s*)export\s+class\s+([\w$]+)", re.M)
_EXPORT_BINDING_RE = re.compile(r"^(\s*)export\s+(const|let|var)\s+([\w$]+)\s*=", re.M)

# Outputs that are linked from the markup rather than loaded as modules
_NON_SCRIPT_OUTPUTS = ("css", "template")


def quote_module_id(module_id: str) -> str:
    """Numeric identities stay bare, everything else is single-quoted."""
    if module_id.isdigit():
        return module_id
    escaped = module_id.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def _rename_as(vars_text: str) -> str:
    return _AS_RE.sub(
        lambda m: m.group(2) if m.group(1) == "*" else f"{m.group(1)}: {m.group(2)}", vars_text
    )


def _rewrite_export_list(match: re.Match[str]) -> str:
    entries = []
    for item in match.group(2).split(","):
        item = item.strip()
        if not item:
            continue
        local, _, exported = (part.strip() for part in item.partition(" as "))
        entries.append(f"{exported}: {local}" if exported else local)
    return f"{match.group(1)}Object.assign(module.exports,{{{', '.join(entries)}}});"


def rewrite_exports(content: str) -> str:
    content = _EXPORT_DEFAULT_RE.sub(r"\1module.exports=", content)
    content = _EXPORT_FUNCTION_RE.sub(r"\1module.exports.\3=\2function \3", content)
    content = _EXPORT_CLASS_RE.sub(r"\1module.exports.\2=class \2", content)
    content = _EXPORT_BINDING_RE.sub(r"\1\2 \3=module.exports.\3=", content)
    return content


class ScriptCompiler(Compiler):
    """Rewrites ES module syntax into loader calls and resolves references."""

    name = "js"
    produces = frozenset({ArtifactKind.SCRIPT})

    def declare(self, module_id: str, content: str, require_name: str = "$req") -> str:
        """Wrap compiled script content in a module declaration."""
        return (
            f"{require_name}({quote_module_id(module_id)},"
            f"function(module,exports,require){{{content}\n}})"
        )

    def require_expression(self, module_id: str) -> str:
        return f"require({quote_module_id(module_id)})"

    async def compile(self, request: CompileRequest) -> CompileResult:
        source = _EXPORT_LIST_RE.sub(_rewrite_export_list, request.source_text)
        requesting = request.file_info

        parts: list[str | tuple[Reference, str | None]] = []
        last = 0
        for match in _TOKEN_RE.finditer(source):
            if match.group("str") is None and not any(
                match.group(g) for g in ("imp", "req", "asname")
            ):
                continue  # comment
            parts.append(source[last : match.start()])
            last = match.end()

            if match.group("str") is not None:
                parts.append(match.group("str"))
            elif match.group("asname"):
                parts.append(_rename_as(match.group(0)))
            else:
                name = match.group("imp") or match.group("req")
                vars_text = match.group("vars")
                reference = Reference.parse(name, requesting.input_path)
                parts.append((reference, _rename_as(vars_text) if vars_text else None))
        parts.append(source[last:])

        chunks: list[str] = []
        for part in parts:
            if isinstance(part, str):
                chunks.append(part)
                continue
            reference, vars_text = part
            dependency = await request.session.resolve(reference, requesting)
            statement = self.require_expression(dependency.module_id)
            if vars_text:
                statement = f"var {vars_text} = {statement}"
            if dependency.output_ext in _NON_SCRIPT_OUTPUTS:
                statement = f"// {statement}"
            chunks.append(statement)

        return CompileResult(script=rewrite_exports("".join(chunks)))


class JsonCompiler(Compiler):
    """JSON documents become modules exporting the parsed value."""

    name = "json"
    produces = frozenset({ArtifactKind.SCRIPT})

    async def compile(self, request: CompileRequest) -> CompileResult:
        return CompileResult(script=f"module.exports={request.source_text.strip()}")

