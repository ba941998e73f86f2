"""
Starter project scaffolding.

``init_project`` writes a minimal single-page app into the input directory:
an HTML entry, a script entry that mounts the root component and the root
component itself.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from appbuilder.core.errors import AppBuilderError

INDEX_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width,initial-scale=1.0">
  <title>Vue app</title>
</head>
<body>
  <div id="app"></div>
</body>
</html>
"""

INDEX_JS = """import Vue from 'vue'
import App from './App.vue'

Vue.config.productionTip = false

new Vue({
  render: h => h(App),
}).$mount('#app')
"""

APP_VUE = """<template>
  <div id="app">
    <router-view></router-view>
  </div>
</template>

<style>
#app {
  font-family: Avenir, Helvetica, Arial, sans-serif;
  text-align: center;
  color: #2c3e50;
}
</style>

<script lang="js">
export default {
  name: 'App',
}
</script>
"""

STARTER_FILES = {
    "index.html": INDEX_HTML,
    "index.js": INDEX_JS,
    "App.vue": APP_VUE,
}


class InitError(AppBuilderError):
    """Raised when project initialization fails."""


def init_project(
    input_dir: Path,
    progress_callback: Callable[[str], None] | None = None,
) -> list[Path]:
    """
    Create a starter app in ``input_dir``.

    Args:
        input_dir: Application source directory (must not exist yet)
        progress_callback: Optional callback for progress messages

    Returns:
        The files written

    Raises:
        InitError: If the directory already exists
    """
    if input_dir.exists():
        raise InitError(f"{input_dir} already exists")

    input_dir.mkdir(parents=True)
    written: list[Path] = []
    for name, content in STARTER_FILES.items():
        path = input_dir / name
        path.write_text(content, encoding="utf-8")
        written.append(path)
        if progress_callback:
            progress_callback(f"  Created {name}")
    return written
