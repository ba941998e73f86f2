"""Tests for starter project scaffolding."""

import pytest

from appbuilder.core.scaffold import InitError, init_project


class TestInitProject:
    def test_writes_starter_files(self, tmp_path):
        messages = []

        written = init_project(tmp_path / "app", progress_callback=messages.append)

        assert sorted(p.name for p in written) == ["App.vue", "index.html", "index.js"]
        assert "<title>Vue app</title>" in (tmp_path / "app" / "index.html").read_text()
        assert "import App from './App.vue'" in (tmp_path / "app" / "index.js").read_text()
        assert "<router-view>" in (tmp_path / "app" / "App.vue").read_text()
        assert len(messages) == 3

    def test_existing_directory_is_left_alone(self, tmp_path):
        (tmp_path / "app").mkdir()
        (tmp_path / "app" / "index.html").write_text("mine")

        with pytest.raises(InitError):
            init_project(tmp_path / "app")

        assert (tmp_path / "app" / "index.html").read_text() == "mine"
