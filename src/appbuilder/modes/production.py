"""
Production mode.

Module identities are short base-32 counters. Each markup entry gets one
concatenated script and one concatenated style sheet in ``dist/``, stamped
with the project license and minified when ``minify`` is on. Vendor modules
go into a shared ``vendor.js`` / ``vendor.css`` bundle that is written once
and rewritten only when an entry brings in a vendor module it lacks.
"""

from __future__ import annotations

import logging
import math
import re
import time
from typing import TYPE_CHECKING

from appbuilder.compilers.base import Compiler, CompileRequest, CompileResult
from appbuilder.compilers.markup import (
    MarkupCompiler,
    bootstrap_script,
    insert_tags,
    link_tag,
    script_tag,
)
from appbuilder.core.config import BuildMode
from appbuilder.core.fileinfo import FileInfo, change_extension, to_base32
from appbuilder.modes.base import BuildStrategy
from appbuilder.modes.minify import (
    build_flags,
    license_excerpt,
    minify_modules,
    minify_style,
    script_license_header,
    style_license_header,
    substitute_flags,
)
from appbuilder.runtime.client_assets import compact_module_loader

if TYPE_CHECKING:
    from appbuilder.core.session import BuildSession

logger = logging.getLogger(__name__)

LICENSE_FILENAME = "LICENSE"

_FIRST_COMMENT_RE = re.compile(r"/\*[\s\S]+?\*/")


class ProductionStrategy(BuildStrategy):
    mode = BuildMode.PRODUCTION
    # Counter identities differ between sessions
    rebuild_always = True

    def __init__(self, session: BuildSession):
        super().__init__(session)
        self._counter = 0
        self._license: str | None = None
        self._license_loaded = False
        self.vendor_scripts: list[str] = []
        self.vendor_styles: list[str] = []

    def assign_identity(self, info: FileInfo) -> None:
        if info.vendor:
            info.module_id = info.name
            return
        self._counter += 1
        info.module_id = to_base32(self._counter)

    def compiler_overrides(self) -> dict[str, Compiler]:
        return {"html": ProductionMarkupCompiler()}

    async def pre_build(self) -> None:
        await self.session.fs.mkdir(self.session.options.dist_dir)

    async def post_build(self) -> None:
        """Copy the assets directory into the distribution directory."""
        session = self.session
        options = session.options
        source_dir = options.assets_dir
        if not await session.fs.exists(source_dir):
            return
        for rel_path in await session.fs.walk(source_dir):
            target = f"{options.assets}/{rel_path}"
            await session.fs.copy(source_dir / rel_path, session.dist_file(target))
            session.log_file(rel_path, target)

    async def license_text(self) -> str | None:
        """License excerpt from ``<base>/LICENSE`` (read once per session)."""
        if not self._license_loaded:
            self._license_loaded = True
            path = self.session.options.base_path / LICENSE_FILENAME
            if await self.session.fs.exists(path):
                self._license = license_excerpt(await self.session.fs.read(path))
            else:
                logger.warning(
                    "No %s in %s, bundles carry no license header", LICENSE_FILENAME, path.parent
                )
        return self._license

    async def update_vendor_bundle(self, scripts: list[FileInfo], styles: list[FileInfo]) -> None:
        """Add vendor outputs to the shared bundle, rewriting it when something new appears."""
        session = self.session
        vendor = session.options.vendor
        new_scripts = [i.output_path for i in scripts if i.output_path not in self.vendor_scripts]
        new_styles = [i.output_path for i in styles if i.output_path not in self.vendor_styles]
        bundle = session.dist_file(f"{vendor}.js")

        if new_scripts or (scripts and not await session.fs.exists(bundle)):
            self.vendor_scripts.extend(new_scripts)
            parts = [compact_module_loader(session.options.require_name)]
            for path in self.vendor_scripts:
                content = await session.read_output(path)
                parts.append(_FIRST_COMMENT_RE.sub("", content, count=1))
            await session.write_dist(f"{vendor}.js", "\n".join(parts) + "\n")
            session.log_file(f"{vendor}.js")

        if new_styles:
            self.vendor_styles.extend(new_styles)
            parts = []
            for path in self.vendor_styles:
                content = await session.read_output(path)
                parts.append(_FIRST_COMMENT_RE.sub("", content, count=1))
            await session.write_dist(f"{vendor}.css", "\n".join(parts))
            session.log_file(f"{vendor}.css")


class ProductionMarkupCompiler(MarkupCompiler):
    """Bundles, stamps and minifies the modules of one markup entry."""

    async def compile(self, request: CompileRequest) -> CompileResult:
        session = request.session
        options = session.options
        strategy = session.strategy
        assert isinstance(strategy, ProductionStrategy)
        markup_info = request.file_info

        entry = await self.entry_script(request)
        if entry is None:
            await session.write_dist(markup_info.output_path, request.source_text)
            return CompileResult(markup=request.source_text)

        suffix = f"?{math.ceil(time.time())}"
        vendor_js: list[FileInfo] = []
        vendor_css: list[FileInfo] = []
        scripts: list[FileInfo] = []
        styles: list[FileInfo] = []
        templates: list[FileInfo] = []
        for info in session.graph.ordered_dependencies(entry.output_path):
            ext = info.output_ext
            if info.vendor:
                if ext == "css":
                    vendor_css.append(info)
                elif ext == "js":
                    vendor_js.append(info)
            elif ext == "css":
                styles.append(info)
            elif ext == "js":
                scripts.append(info)
            elif ext == "template":
                templates.append(info)

        license_text = await strategy.license_text()
        tags: list[str] = []

        if vendor_js or vendor_css:
            await strategy.update_vendor_bundle(vendor_js, vendor_css)
            if vendor_js:
                tags.append(script_tag(f"{options.vendor}.js{suffix}"))
            if vendor_css:
                tags.append(link_tag(f"{options.vendor}.css{suffix}"))

        if styles:
            css_name = change_extension(markup_info.output_path, "css")
            parts = []
            for info in styles:
                parts.append(f"/* {info.input_path} */\n{await session.read_output(info)}")
            css = "\n".join(parts)
            await session.write_output(f"{markup_info.output_path}.css", css)
            if options.minify:
                css = minify_style(css, css_name)
            if license_text:
                css = style_license_header(license_text) + css
            await session.write_dist(css_name, css)
            session.log_file(css_name)
            tags.append(link_tag(f"{css_name}{suffix}"))

        js_name = change_extension(markup_info.output_path, "js")
        modules: list[tuple[str, str]] = []
        if not vendor_js:
            modules.append((js_name, compact_module_loader(options.require_name)))
        for info in scripts:
            content = await session.read_output(info)
            modules.append((info.input_path, f"/* {info.input_path} */\n{content}"))
        modules.append((js_name, bootstrap_script(options.require_name, entry.module_id)))
        js = "\n".join(source for _, source in modules)
        await session.write_output(f"{markup_info.output_path}.js", js)
        if options.minify:
            flags = build_flags(options)
            js = minify_modules([(asset, substitute_flags(src, flags)) for asset, src in modules])
        if license_text:
            js = script_license_header(license_text) + js
        await session.write_dist(js_name, js)
        session.log_file(js_name)
        tags.append(script_tag(f"{js_name}{suffix}"))

        for info in templates:
            tags.append(await session.read_output(info))

        markup = insert_tags(request.source_text, tags, markup_info.name)
        await session.write_dist(markup_info.output_path, markup)
        return CompileResult(markup=markup)
