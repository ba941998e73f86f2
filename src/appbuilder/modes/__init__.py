"""
Build-mode strategies.

``developer`` emits one declared module per resolved file plus the
live-reload client; ``production`` bundles, license-stamps, cache-busts and
minifies.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from appbuilder.core.config import BuildMode
from appbuilder.modes.base import BuildStrategy
from appbuilder.modes.developer import DeveloperStrategy
from appbuilder.modes.production import ProductionMarkupCompiler, ProductionStrategy

if TYPE_CHECKING:
    from appbuilder.core.session import BuildSession

STRATEGIES: dict[BuildMode, type[BuildStrategy]] = {
    BuildMode.DEVELOPER: DeveloperStrategy,
    BuildMode.PRODUCTION: ProductionStrategy,
}


def get_strategy(mode: BuildMode | str, session: BuildSession) -> BuildStrategy:
    """Instantiate the strategy for a build mode."""
    return STRATEGIES[BuildMode(mode)](session)


__all__ = [
    "BuildStrategy",
    "DeveloperStrategy",
    "ProductionMarkupCompiler",
    "ProductionStrategy",
    "STRATEGIES",
    "get_strategy",
]
