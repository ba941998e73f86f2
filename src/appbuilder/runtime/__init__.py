"""
Serving layer: static file serving behind a readiness gate, the live-reload
WebSocket, the file watcher and logging setup.

Import the submodules directly; ``client_assets`` is used by the markup
compilers and must stay importable without the web stack.
"""
