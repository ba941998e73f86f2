"""
Build engine core: file identity, dependency graph, resolution, scheduling
and the build session.

Submodules are imported directly (``appbuilder.core.session``); this package
imports nothing so that compilers can depend on the model types without a
cycle through the session.
"""
