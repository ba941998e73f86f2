"""
Browser-side runtime snippets injected into markup artifacts.

Loads the module loader and live-reload client from static/js/, with the
loader's global name (``$req`` by default) substituted.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

_STATIC_JS_DIR = Path(__file__).parent / "static" / "js"

PLACEHOLDER = "$req"


@lru_cache(maxsize=8)
def _load_js_file(filename: str) -> str:
    """Load a JS file from the static/js directory."""
    path = _STATIC_JS_DIR / filename
    if not path.exists():
        raise FileNotFoundError(f"JS file not found: {path}")
    return path.read_text(encoding="utf-8").strip()


def module_loader(require_name: str = PLACEHOLDER) -> str:
    """Developer module loader: re-declared modules re-run and notify the reload hook."""
    return _load_js_file("loader.js").replace(PLACEHOLDER, require_name)


def compact_module_loader(require_name: str = PLACEHOLDER) -> str:
    """Production module loader (no hooks, no hot swap)."""
    return _load_js_file("loader.min.js").replace(PLACEHOLDER, require_name)


def live_reload_client(require_name: str = PLACEHOLDER) -> str:
    """Socket client stub that applies change notifications in the page."""
    return _load_js_file("livereload.js").replace(PLACEHOLDER, require_name)

