"""Build-mode strategy contract."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from appbuilder.core.config import BuildMode

if TYPE_CHECKING:
    from appbuilder.compilers.base import Compiler
    from appbuilder.core.fileinfo import FileInfo
    from appbuilder.core.session import BuildSession


class BuildStrategy:
    """
    Hooks a build mode plugs into the session.

    The default assigns module identities from reference names and adds no
    compilers.
    """

    mode: ClassVar[BuildMode]
    # Compile every node even when its artifacts are current
    rebuild_always: ClassVar[bool] = False

    def __init__(self, session: BuildSession):
        self.session = session

    def assign_identity(self, info: FileInfo) -> None:
        info.module_id = info.name

    async def pre_build(self) -> None:
        pass

    async def post_build(self) -> None:
        pass

    def compiler_overrides(self) -> dict[str, Compiler]:
        return {}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.mode.value}>"
