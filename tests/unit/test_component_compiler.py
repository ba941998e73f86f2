"""Tests for single-file component compilation."""

import pytest

from appbuilder.compilers.component import TEMPLATE_MARKER, parse_component
from appbuilder.core.errors import CompileError

COMPONENT = """<template>
  <div class="hello">
    <template v-if="ok"><b>{{ msg }}</b></template>
  </div>
</template>

<script>
export default {
  data() { return {msg: 'hi', ok: true} },
}
</script>

<style>
.hello { color: red; }
</style>

<style lang="css">
b { font-weight: bold; }
</style>
"""


class TestParseComponent:
    """Tests for block splitting."""

    def test_blocks_in_document_order(self):
        blocks = parse_component(COMPONENT)
        assert [b.tag for b in blocks] == ["template", "script", "style", "style"]

    def test_nested_templates_stay_in_the_outer_block(self):
        template = parse_component(COMPONENT)[0]
        assert '<template v-if="ok">' in template.content
        assert template.content.strip().endswith("</div>")

    def test_lang_attribute(self):
        blocks = parse_component('<style lang="scss">a{}</style><script type="text/js"></script>')
        assert blocks[0].lang == "scss"
        assert blocks[1].lang == "js"

    def test_unterminated_block(self):
        with pytest.raises(ValueError):
            parse_component("<script>var x")


class TestComponentCompile:
    """Tests for component artifacts."""

    @pytest.mark.asyncio
    async def test_script_and_style_artifacts(self, make_session, write_app, project):
        write_app("Hello.vue", COMPONENT)
        session = make_session()

        info = await session.resolve("Hello.vue")

        assert info.output_path == "hello.js"
        script = (project / "build" / "hello.js").read_text()
        assert "module.exports={" in script
        assert TEMPLATE_MARKER in script
        style = (project / "build" / "hello.css").read_text()
        assert ".hello { color: red; }" in style
        assert "font-weight: bold" in style

        secondary = session.graph.get("hello.css")
        assert secondary is not None
        assert secondary.source_id == info.id
        assert secondary.id in info.deps

    @pytest.mark.asyncio
    async def test_scss_block(self, make_session, write_app, project):
        write_app(
            "Nested.vue",
            '<template><p>x</p></template>\n<style lang="scss">.a { .b { color: blue; } }</style>',
        )
        session = make_session()

        await session.resolve("Nested.vue")

        style = (project / "build" / "nested.css").read_text()
        assert ".a .b" in style

    @pytest.mark.asyncio
    async def test_unsupported_style_type(self, make_session, write_app):
        write_app("Bad.vue", '<template><p/></template><style lang="stylus">a</style>')
        session = make_session()

        with pytest.raises(CompileError) as exc_info:
            await session.resolve("Bad.vue")

        assert exc_info.value.asset == "Bad.vue"
        assert "stylus" in str(exc_info.value)
        assert isinstance(exc_info.value.cause, ValueError)
