"""Tests for reference normalisation and file identity helpers."""

import pytest

from appbuilder.core.fileinfo import (
    FileInfo,
    Reference,
    change_extension,
    extension_of,
    to_base32,
    url_basename,
    url_output_name,
)


class TestReferenceParse:
    """Tests for Reference.parse."""

    def test_relative_to_requesting_directory(self):
        ref = Reference.parse("./b", "pages/a.js")
        assert ref.name == "pages/b"
        assert ref.input_path == "pages/b"
        assert not ref.vendor

    def test_parent_directory_is_normalised(self):
        ref = Reference.parse("../shared/util.js", "pages/home/a.js")
        assert ref.name == "pages/shared/util.js"
        assert ref.ext == "js"

    def test_parent_directory_clamped_to_input_root(self):
        assert Reference.parse("../../.env", "src/a.js").name == ".env"
        assert Reference.parse("../../../lib/x.js", "src/a.js").name == "lib/x.js"
        assert Reference.parse("../x.js", "a.js").name == "x.js"

    def test_root_relative_forms(self):
        assert Reference.parse("~/lib/x.js", "pages/a.js").name == "lib/x.js"
        assert Reference.parse("/lib/x.js", "pages/a.js").name == "lib/x.js"
        assert Reference.parse("./t3").name == "t3"

    def test_bare_name_is_vendor(self):
        ref = Reference.parse("vue", "index.js")
        assert ref.vendor
        assert ref.name == "vue"
        assert ref.ext == "js"

    def test_url(self):
        ref = Reference.parse("https://cdn.example.com/lib/data.json?v=2")
        assert ref.url == "https://cdn.example.com/lib/data.json?v=2"
        assert ref.ext == "json"
        assert ref.vendor

    def test_dotted_name_is_local(self):
        ref = Reference.parse("index.js")
        assert not ref.vendor
        assert ref.input_path == "index.js"


class TestPathHelpers:
    """Tests for extension and naming helpers."""

    @pytest.mark.parametrize(
        "path,ext",
        [("a/b.min.js", "js"), ("App.VUE", "vue"), ("Makefile", ""), ("x/y", "")],
    )
    def test_extension_of(self, path, ext):
        assert extension_of(path) == ext

    def test_change_extension(self):
        assert change_extension("a/App.vue", "js") == "a/App.js"
        assert change_extension("a/readme", "txt") == "a/readme.txt"

    def test_url_output_name_is_content_addressed(self):
        first = url_output_name("https://x.test/a.json", "json")
        assert first.endswith(".js")
        assert first == url_output_name("https://x.test/a.json", "json")
        assert first != url_output_name("https://x.test/b.json", "json")

    def test_url_basename(self):
        assert url_basename("https://x.test/img/Logo.PNG?x=1") == "logo.png"

    def test_to_base32(self):
        assert to_base32(0) == "0"
        assert to_base32(31) == "v"
        assert to_base32(32) == "10"
        with pytest.raises(ValueError):
            to_base32(-1)


class TestFileInfo:
    """Tests for FileInfo defaults."""

    def test_defaults_from_input_path(self):
        info = FileInfo(name="t3", input_path="t3.js", output_path="t3.js")
        assert info.ext == "js"
        assert info.module_id == "t3"
        assert info.output_ext == "js"
        assert not info.is_secondary

    def test_secondary(self):
        info = FileInfo(name="App", input_path="App.vue", output_path="app.css", source_id=3)
        assert info.is_secondary
