"""
appbuilder - incremental build engine for browser applications.

Resolves module references across local files, vendor packages and remote
URLs, compiles each asset by extension and re-emits only the outputs
affected by a change.
"""

from __future__ import annotations

from ._version import get_version
from .core.config import BuildMode, BuildOptions, load_options
from .core.errors import (
    AppBuilderError,
    CompileError,
    DownloadError,
    MarkupAssemblyError,
    MinifyError,
    NotFoundError,
    UnsupportedTypeError,
)
from .core.fileinfo import FileInfo
from .core.session import BuildSession

__version__ = get_version()

__all__ = [
    "__version__",
    "AppBuilderError",
    "BuildMode",
    "BuildOptions",
    "BuildSession",
    "CompileError",
    "DownloadError",
    "FileInfo",
    "MarkupAssemblyError",
    "MinifyError",
    "NotFoundError",
    "UnsupportedTypeError",
    "load_options",
]
