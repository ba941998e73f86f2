"""Tests for the appbuilder command line."""

from unittest.mock import patch

import pytest
import typer
from typer.testing import CliRunner

from appbuilder.cli import app, parse_proxies
from appbuilder.core.config import BuildMode

runner = CliRunner()

PAGE = "<html><head></head><body></body></html>"


@pytest.fixture
def in_project(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with patch("appbuilder.cli.setup_logging"):
        yield tmp_path


def _write(root, rel_path, content):
    path = root / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)


class TestVersion:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "appbuilder" in result.output


class TestInit:
    def test_creates_starter_app(self, in_project):
        result = runner.invoke(app, ["init"])

        assert result.exit_code == 0
        assert (in_project / "app" / "index.html").exists()
        assert (in_project / "app" / "App.vue").exists()

    def test_refuses_existing_directory(self, in_project):
        (in_project / "app").mkdir()

        result = runner.invoke(app, ["init"])

        assert result.exit_code == 1
        assert "Error" in result.output


class TestBuild:
    """Tests for the build command."""

    @pytest.fixture
    def sources(self, in_project):
        _write(in_project, "app/index.html", PAGE)
        _write(in_project, "app/index.js", "import t3 from './t3'\n")
        _write(in_project, "app/t3.js", "export default 3\n")
        return in_project

    def test_developer_build(self, sources):
        result = runner.invoke(app, ["build", "--mode", "developer", "--no-log"])

        assert result.exit_code == 0, result.output
        assert "Build complete" in result.output
        assert (sources / "build" / "index.html").exists()
        assert (sources / "build" / "t3.js").exists()

    def test_production_build(self, sources):
        result = runner.invoke(app, ["build", "--no-log"])

        assert result.exit_code == 0, result.output
        assert (sources / "dist" / "index.html").exists()
        assert (sources / "dist" / "index.js").exists()

    def test_config_file(self, sources):
        _write(sources, "src/index.html", PAGE)
        _write(sources, "src/index.js", "console.log(1)\n")
        _write(sources, "custom.toml", '[build]\ninput_path = "src"\nmode = "developer"\n')

        result = runner.invoke(app, ["build", "--config", "custom.toml", "--no-log"])

        assert result.exit_code == 0, result.output
        assert "console.log(1)" in (sources / "build" / "index.js").read_text()

    def test_missing_input(self, in_project):
        result = runner.invoke(app, ["build"])

        assert result.exit_code == 1
        assert "Error" in result.output


class TestClean:
    def test_removes_build_output(self, in_project):
        _write(in_project, "build/index.html", PAGE)
        _write(in_project, "dist/index.html", PAGE)

        result = runner.invoke(app, ["clean"])

        assert result.exit_code == 0
        assert not (in_project / "build").exists()
        assert (in_project / "dist").exists()

    def test_dist(self, in_project):
        _write(in_project, "dist/index.html", PAGE)

        result = runner.invoke(app, ["clean", "--dist"])

        assert result.exit_code == 0
        assert not (in_project / "dist").exists()


class TestServe:
    def test_defaults_and_proxies(self, in_project):
        with patch("appbuilder.runtime.server.run_dev_server") as run:
            result = runner.invoke(
                app,
                ["serve", "--port", "4000", "--proxy", "/api=http://localhost:8080/api"],
            )

        assert result.exit_code == 0, result.output
        options = run.call_args.args[0]
        assert options.mode == BuildMode.DEVELOPER
        assert options.live
        assert not options.minify
        assert run.call_args.kwargs["port"] == 4000
        assert run.call_args.kwargs["proxies"] == {"/api": "http://localhost:8080/api"}
        assert run.call_args.kwargs["cors"] is True


class TestParseProxies:
    def test_repeatable_and_comma_separated(self):
        proxies = parse_proxies(
            ["/rest/api=http://localhost:8080/rest,/static=http://localhost:8080/static", "/x=y"]
        )
        assert proxies == {
            "/rest/api": "http://localhost:8080/rest",
            "/static": "http://localhost:8080/static",
            "/x": "y",
        }

    def test_invalid_entry(self):
        with pytest.raises(typer.BadParameter):
            parse_proxies(["/api"])
