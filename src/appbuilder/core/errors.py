"""
Error types for module resolution, compilation and markup assembly.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ErrorContext:
    """
    Context information for a build error.

    Attributes:
        asset: Logical reference name of the asset being processed
        input_path: Project relative source path (if known)
        url: Remote location (for downloads)
    """

    asset: str
    input_path: str | None = None
    url: str | None = None

    def format(self) -> str:
        """
        Format error context as a human-readable string.

        Returns:
            Formatted string like: "asset ./t3 (t3.js)"
        """
        location = f"asset {self.asset}"
        if self.input_path and self.input_path != self.asset:
            location += f" ({self.input_path})"
        if self.url:
            location += f" <{self.url}>"
        return location


class AppBuilderError(Exception):
    """Base exception for all appbuilder errors."""

    def __init__(self, message: str, context: ErrorContext | None = None):
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context if available."""
        if self.context:
            return f"{self.context.format()}: {self.message}"
        return self.message


class NotFoundError(AppBuilderError):
    """
    Raised when no file or module exists on any resolution path.

    Examples:
    - Local path missing after trying every lookup suffix
    - Vendor module absent locally, in node_modules and on the CDN
    """


class UnsupportedTypeError(AppBuilderError):
    """Raised when no compiler is registered for the resolved extension."""


class DownloadError(AppBuilderError):
    """
    Raised when a remote fetch fails.

    Examples:
    - Non-success HTTP status
    - Response larger than the configured download limit
    - Transport level failure (DNS, connection refused)
    """


class CompileError(AppBuilderError):
    """
    Raised when a compiler fails for an asset.

    The original exception is kept on ``cause`` (and chained via ``from``).
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        self.cause = cause
        super().__init__(message, context)

    @property
    def asset(self) -> str | None:
        return self.context.asset if self.context else None


class MinifyError(CompileError):
    """Raised when the script or style minifier rejects its input."""


class MarkupAssemblyError(AppBuilderError):
    """Raised when the insertion anchor (``</head>``) is absent from a markup document."""


def make_compile_error(
    asset: str,
    cause: BaseException,
    input_path: str | None = None,
) -> CompileError:
    """
    Helper to wrap a compiler failure with asset context.

    Args:
        asset: Logical reference name
        cause: Exception raised by the compiler
        input_path: Optional project relative source path

    Returns:
        CompileError carrying the asset name and the cause
    """
    context = ErrorContext(asset=asset, input_path=input_path)
    return CompileError(str(cause) or type(cause).__name__, context, cause=cause)
