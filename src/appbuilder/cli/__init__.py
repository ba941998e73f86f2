"""
appbuilder command line.

Commands:
- init: Create a starter app in the input directory
- build: Build the project once
- serve: Run the development server with live reload
- clean: Remove build output
"""

from __future__ import annotations

import asyncio
import logging
import platform
import sys
from pathlib import Path

import typer
from rich.console import Console

from appbuilder._version import get_version
from appbuilder.core.config import CONFIG_FILENAME, BuildMode, BuildOptions, load_options
from appbuilder.core.errors import AppBuilderError
from appbuilder.core.io import FileSystem
from appbuilder.core.scaffold import InitError, init_project
from appbuilder.core.session import BuildSession
from appbuilder.runtime.logging import setup_logging

console = Console()


def version_callback(value: bool) -> None:
    """Display version and environment information."""
    if value:
        typer.echo(f"appbuilder {get_version()}")
        typer.echo(f"Python {platform.python_version()} ({platform.python_implementation()})")
        raise typer.Exit()


def parse_proxies(values: list[str]) -> dict[str, str]:
    """
    Parse ``prefix=url`` proxy entries.

    Each value may hold several comma separated entries, e.g.
    ``/rest/api=http://localhost:8080/rest,/static=http://localhost:8080/static``.
    """
    proxies: dict[str, str] = {}
    for value in values:
        for entry in value.split(","):
            entry = entry.strip()
            if not entry:
                continue
            prefix, sep, target = entry.partition("=")
            if not sep or not prefix or not target:
                raise typer.BadParameter(f"Expected prefix=url, got {entry!r}")
            proxies[prefix.strip()] = target.strip()
    return proxies


def _options(config: Path | None, **overrides: object) -> BuildOptions:
    path = config.resolve() if config is not None else Path.cwd() / CONFIG_FILENAME
    try:
        return load_options(path, **overrides)
    except (ValueError, OSError) as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(code=1)


def _setup_logging(options: BuildOptions, verbose: bool) -> None:
    setup_logging(
        log_dir=options.base_path / ".appbuilder" / "logs",
        level=logging.DEBUG if verbose else logging.INFO,
    )


# =============================================================================
# Main Application
# =============================================================================

app = typer.Typer(
    help="""appbuilder – front-end build tool and development server

Commands:
  • init   → Create a starter app
  • build  → Build once (production by default)
  • serve  → Development server with live reload
  • clean  → Remove build output
""",
    no_args_is_help=True,
)

ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help=f"Path to {CONFIG_FILENAME} (default: ./{CONFIG_FILENAME})",
)


@app.callback()
def main_callback(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and environment information",
    ),
) -> None:
    """appbuilder CLI main callback for global options."""
    pass


@app.command()
def init(
    input_path: str = typer.Option("app", "--input", "-i", help="Application directory"),
) -> None:
    """Create a starter app (index.html, index.js, App.vue)."""
    target = Path.cwd() / input_path
    try:
        init_project(target, progress_callback=console.print)
    except InitError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)
    console.print(f"[green]Created starter app in[/green] {target}")


@app.command()
def build(
    config: Path | None = ConfigOption,  # noqa: B008
    input_path: str | None = typer.Option(None, "--input", "-i", help="Application directory"),
    output_path: str | None = typer.Option(None, "--output", "-o", help="Build directory"),
    dist_path: str | None = typer.Option(None, "--dist", help="Distribution directory"),
    mode: BuildMode | None = typer.Option(None, "--mode", "-m", help="Build mode"),
    minify: bool | None = typer.Option(None, "--minify/--no-minify", help="Minify bundles"),
    rebuild: bool | None = typer.Option(
        None, "--rebuild/--no-rebuild", help="Recompile up-to-date artifacts"
    ),
    log: bool | None = typer.Option(None, "--log/--no-log", help="Log every written artifact"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
) -> None:
    """Build every entry point of the project once."""
    options = _options(
        config,
        input_path=input_path,
        output_path=output_path,
        dist_path=dist_path,
        mode=mode,
        minify=minify,
        rebuild=rebuild,
        log=log,
        live=False,
    )
    _setup_logging(options, verbose)

    if not options.input_dir.is_dir():
        console.print(f"[red]Error:[/red] input directory {options.input_dir} not found")
        raise typer.Exit(code=1)

    session = BuildSession(options)
    try:
        asyncio.run(session.build())
    except AppBuilderError as e:
        console.print(f"[red]Build failed:[/red] {e}")
        raise typer.Exit(code=1)
    finally:
        session.close()

    target = options.dist_dir if options.mode == BuildMode.PRODUCTION else options.output_dir
    console.print(
        f"[green]Build complete:[/green] {len(session.graph)} modules, "
        f"{session.compile_count} compiled -> {target}"
    )


@app.command()
def serve(
    config: Path | None = ConfigOption,  # noqa: B008
    port: int = typer.Option(3000, "--port", "-p", help="Port to listen on"),
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind"),
    input_path: str | None = typer.Option(None, "--input", "-i", help="Application directory"),
    mode: BuildMode = typer.Option(BuildMode.DEVELOPER, "--mode", "-m", help="Build mode"),
    live: bool = typer.Option(True, "--live/--no-live", help="Live reload"),
    minify: bool = typer.Option(False, "--minify/--no-minify", help="Minify bundles"),
    rebuild: bool = typer.Option(
        True, "--rebuild/--no-rebuild", help="Recompile up-to-date artifacts"
    ),
    cors: bool = typer.Option(True, "--cors/--no-cors", help="Allow cross-origin requests"),
    public: Path | None = typer.Option(  # noqa: B008
        None, "--public", help="Extra directory served after the build output"
    ),
    proxy: list[str] = typer.Option(  # noqa: B008
        [], "--proxy", help="Reverse proxy as prefix=url (repeatable, comma separated)"
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
) -> None:
    """Run the development server (builds, watches and live reloads)."""
    from appbuilder.runtime.server import run_dev_server

    options = _options(
        config,
        input_path=input_path,
        mode=mode,
        live=live,
        minify=minify,
        rebuild=rebuild,
    )
    proxies = parse_proxies(proxy)
    _setup_logging(options, verbose)

    console.print(f"[bold]appbuilder[/bold] {options.mode} server")
    console.print(f"  Input:  {options.input_dir}")
    console.print(f"  URL:    http://{host}:{port}/")
    for prefix, target in proxies.items():
        console.print(f"  Proxy:  {prefix} -> {target}")

    try:
        run_dev_server(options, host=host, port=port, cors=cors, public=public, proxies=proxies)
    except KeyboardInterrupt:
        console.print("\nServer stopped.")


@app.command()
def clean(
    config: Path | None = ConfigOption,  # noqa: B008
    dist: bool = typer.Option(False, "--dist", help="Also remove the distribution directory"),
) -> None:
    """Remove the build output (and optionally the distribution directory)."""
    options = _options(config)
    targets = [options.output_dir]
    if dist:
        targets.append(options.dist_dir)
    fs = FileSystem()
    for target in targets:
        if target.exists():
            asyncio.run(fs.remove(target))
            console.print(f"Removed {target}")
        else:
            console.print(f"[dim]Nothing to remove at {target}[/dim]")


# =============================================================================
# Main Entry Point
# =============================================================================


def main(argv: list[str] | None = None) -> None:
    app(args=argv, standalone_mode=True)


if __name__ == "__main__":
    main(sys.argv[1:])
