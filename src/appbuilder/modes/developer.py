"""
Developer mode: one artifact per module, loaded through the module loader
runtime, with the live-reload client when ``live`` is on.

The default markup compiler already links every module separately, so a
change re-fetches a single file. The mode adds nothing on top of the
defaults.
"""

from __future__ import annotations

from appbuilder.core.config import BuildMode
from appbuilder.modes.base import BuildStrategy


class DeveloperStrategy(BuildStrategy):
    mode = BuildMode.DEVELOPER
