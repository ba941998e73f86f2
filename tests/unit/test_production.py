"""Tests for production bundles."""

import re

import pytest

from appbuilder.core.config import BuildMode

PAGE = "<html>\n<head>\n  <title>app</title>\n</head>\n<body></body>\n</html>\n"

LICENSE = """MIT License

Copyright (c) 2024 Example Corp

Permission is hereby granted, free of charge, to any person obtaining a copy
"""


@pytest.fixture
def app_tree(write_app, project):
    (project / "LICENSE").write_text(LICENSE)
    write_app("index.html", PAGE)
    write_app(
        "index.js",
        "import helper from './helper_module'\n"
        "import Vue from 'vue'\n"
        "import './theme.css'\n"
        "if (DEBUG) { console.log('debug build') }\n"
        "console.log(helper(), Vue)\n",
    )
    write_app("helper_module.js", "// helper\nexport default function () { return 42 }\n")
    write_app("theme.css", "body { color: red; }\n")
    write_app("vendor/vue.js", "/* Vue v2 */\nwindow.Vue = {}\n")
    write_app("vendor/vue.css", ".v { margin: 0 }\n")
    write_app("assets/img/logo.txt", "logo")


@pytest.fixture
def build_production(make_session):
    async def build(**overrides):
        values = {"mode": BuildMode.PRODUCTION, "minify": True}
        values.update(overrides)
        session = make_session(**values)
        await session.build()
        return session

    return build


class TestProductionBundle:
    """Tests for the entry bundle."""

    @pytest.mark.asyncio
    async def test_minified_script_hides_module_names(self, app_tree, build_production, project):
        await build_production()

        js = (project / "dist" / "index.js").read_text()
        assert "helper_module" not in js
        assert "theme.css" not in js
        assert js.count("@license") == 1
        assert js.startswith("/** @license\nMIT License\n\nCopyright (c) 2024 Example Corp\n*/\n")
        assert "Permission" not in js
        assert "if(false)" in js
        assert re.search(r"""\(['"]vue['"]\)""", js)

    @pytest.mark.asyncio
    async def test_minified_script_renames_local_names(
        self, app_tree, write_app, build_production, project
    ):
        write_app(
            "index.js",
            "function computeTotal(longVariableName) {\n"
            "  var accumulatorValue = longVariableName * 2\n"
            "  return accumulatorValue\n"
            "}\n"
            "export default computeTotal(21)\n",
        )

        await build_production()

        js = (project / "dist" / "index.js").read_text()
        for name in ("computeTotal", "longVariableName", "accumulatorValue"):
            assert name not in js
        assert "*2" in js

    @pytest.mark.asyncio
    async def test_newer_syntax_is_minified_without_renaming(
        self, app_tree, write_app, build_production, project, caplog
    ):
        write_app("index.js", "const double = (value) => value * 2\nconsole.log(double(2))\n")

        await build_production()

        js = (project / "dist" / "index.js").read_text()
        assert "=>" in js
        assert js.count("@license") == 1
        assert "index.js: names kept" in caplog.text

    @pytest.mark.asyncio
    async def test_module_ids_are_counters(self, app_tree, build_production):
        session = await build_production()

        entry = session.graph.get("index.js")
        helper = session.graph.get("helper_module.js")
        vue = session.graph.get("vendor/vue.js")
        assert re.fullmatch(r"[0-9a-v]+", entry.module_id)
        assert re.fullmatch(r"[0-9a-v]+", helper.module_id)
        assert entry.module_id != helper.module_id
        assert vue.module_id == "vue"

    @pytest.mark.asyncio
    async def test_unminified_bundle_kept_in_build(self, app_tree, build_production, project):
        await build_production()

        bundle = (project / "build" / "index.html.js").read_text()
        assert "/* helper_module.js */" in bundle
        assert "DEBUG" in bundle

    @pytest.mark.asyncio
    async def test_style_bundle(self, app_tree, build_production, project):
        await build_production()

        css = (project / "dist" / "index.css").read_text()
        assert css.startswith("/*\nMIT License")
        assert re.search(r"body\{color:red;?\}", css)
        assert "theme.css" not in css

    @pytest.mark.asyncio
    async def test_markup_links_bundles_with_cache_busting(
        self, app_tree, build_production, project
    ):
        await build_production()

        markup = (project / "dist" / "index.html").read_text()
        vendor = re.search(r'<script src="vendor\.js\?\d+"></script>', markup)
        vendor_css = re.search(r'<link rel="stylesheet" href="vendor\.css\?\d+">', markup)
        css = re.search(r'<link rel="stylesheet" href="index\.css\?\d+">', markup)
        script = re.search(r'<script src="index\.js\?\d+"></script>', markup)
        assert vendor and vendor_css and css and script
        assert vendor.start() < script.start()
        assert "new WebSocket(" not in markup

    @pytest.mark.asyncio
    async def test_vendor_bundle(self, app_tree, build_production, project):
        await build_production()

        vendor_js = (project / "dist" / "vendor.js").read_text()
        assert vendor_js.startswith("function $req(n,f)")
        assert "window.Vue = {}" in vendor_js
        assert "Vue v2" not in vendor_js
        assert ".v { margin: 0 }" in (project / "dist" / "vendor.css").read_text()

    @pytest.mark.asyncio
    async def test_vendor_bundle_shared_between_entries(
        self, app_tree, write_app, build_production, project
    ):
        write_app("admin.html", PAGE)
        write_app("admin.js", "import Vue from 'vue'\nconsole.log(Vue)\n")

        await build_production()

        assert (project / "dist" / "vendor.js").read_text().count("window.Vue = {}") == 1
        assert (project / "dist" / "admin.js").exists()

    @pytest.mark.asyncio
    async def test_every_session_compiles(self, app_tree, build_production):
        first = await build_production()
        second = await build_production(rebuild=False)

        assert second.compile_count == first.compile_count

    @pytest.mark.asyncio
    async def test_assets_copied_to_dist(self, app_tree, build_production, project):
        await build_production()

        assert (project / "dist" / "assets" / "img" / "logo.txt").read_text() == "logo"


class TestProductionWithoutExtras:
    """Tests for bundles without vendors, license or minification."""

    @pytest.fixture
    def plain_tree(self, write_app):
        write_app("index.html", PAGE)
        write_app("index.js", "import t from './t3'\nconsole.log(t)\n")
        write_app("t3.js", "export default 3\n")

    @pytest.mark.asyncio
    async def test_loader_included_without_vendor_bundle(
        self, plain_tree, build_production, project
    ):
        await build_production(minify=False)

        js = (project / "dist" / "index.js").read_text()
        assert js.startswith("function $req(n,f)")
        assert "/* t3.js */" in js
        assert not (project / "dist" / "vendor.js").exists()

    @pytest.mark.asyncio
    async def test_missing_license_warns(self, plain_tree, build_production, project, caplog):
        await build_production()

        assert "No LICENSE" in caplog.text
        assert "@license" not in (project / "dist" / "index.js").read_text()

    @pytest.mark.asyncio
    async def test_markup_without_script_is_copied(self, write_app, build_production, project):
        write_app("plain.html", PAGE)

        await build_production()

        assert (project / "dist" / "plain.html").read_text() == PAGE
