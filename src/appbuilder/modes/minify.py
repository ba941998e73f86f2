"""
Production bundle minification.

Build flags (``BUILD``, ``DEBUG``, ``LIVE``, ``DEVELOPER``, ``PRODUCTION``)
are replaced by literals first so that branches such as ``if (DEBUG)`` carry
constant conditions. Scripts are parsed by calmjs.parse and printed with
local names shortened. Modules using syntax newer than ES5 are only stripped of
comments and whitespace by rjsmin. Style sheets are minified by rcssmin.
Comments are dropped, including the per-file banners of a bundle.
"""

from __future__ import annotations

import json
import logging
import re

import rcssmin
import rjsmin
from calmjs.parse import es5
from calmjs.parse.exceptions import ECMASyntaxError
from calmjs.parse.unparsers.es5 import minify_print

from appbuilder.core.config import BuildMode, BuildOptions
from appbuilder.core.errors import ErrorContext, MinifyError

logger = logging.getLogger(__name__)

FLAG_NAMES = ("BUILD", "DEBUG", "LIVE", "DEVELOPER", "PRODUCTION")

_FLAG_TOKEN_RE = re.compile(
    r"/\*[\s\S]*?\*/"
    r"|//[^\r\n]*"
    r"|\"(?:[^\"\\\r\n]|\\.)*\""
    r"|'(?:[^'\\\r\n]|\\.)*'"
    r"|`(?:[^`\\]|\\.)*`"
    r"|(?<![\w$.])(?P<flag>" + "|".join(FLAG_NAMES) + r")(?![\w$])"
)

_LICENSE_RE = re.compile(r"^[\s\S]+?Copyright.+")


def build_flags(options: BuildOptions) -> dict[str, str]:
    """Literal values of the build flags for a session."""
    return {
        "BUILD": json.dumps(options.mode.value),
        "DEBUG": json.dumps(options.mode == BuildMode.DEVELOPER),
        "LIVE": json.dumps(options.live),
        "DEVELOPER": json.dumps(options.mode == BuildMode.DEVELOPER),
        "PRODUCTION": json.dumps(options.mode == BuildMode.PRODUCTION),
    }


def substitute_flags(source: str, flags: dict[str, str]) -> str:
    """Replace free occurrences of the flag names (strings and comments are left alone)."""

    def replace(match: re.Match[str]) -> str:
        flag = match.group("flag")
        return flags[flag] if flag else match.group(0)

    return _FLAG_TOKEN_RE.sub(replace, source)


def minify_script(source: str, asset: str = "script") -> str:
    """
    Minify a script, renaming every name that is local to a function.

    Top-level names are kept since other bundles refer to them (the module
    loader function for one). Sources the ES5 parser rejects are minified
    without renaming and a warning names the asset.

    Raises:
        MinifyError: the minifier rejected the input
    """
    try:
        program = es5(source)
    except ECMASyntaxError as e:
        logger.warning("%s: names kept, not ES5 (%s)", asset, e)
        return _strip_script(source, asset)
    try:
        return minify_print(program, obfuscate=True, obfuscate_globals=False)
    except (TypeError, ValueError) as e:
        raise MinifyError(f"MINIFY: {e}", ErrorContext(asset=asset), cause=e) from e


def minify_modules(parts: list[tuple[str, str]]) -> str:
    """Minify bundle parts given as ``(asset, source)`` one by one."""
    return "\n".join(minify_script(source, asset) for asset, source in parts)


def _strip_script(source: str, asset: str) -> str:
    try:
        return rjsmin.jsmin(source, keep_bang_comments=False)
    except (TypeError, ValueError) as e:
        raise MinifyError(f"MINIFY: {e}", ErrorContext(asset=asset), cause=e) from e


def minify_style(source: str, asset: str = "style") -> str:
    try:
        return rcssmin.cssmin(source, keep_bang_comments=False)
    except (TypeError, ValueError) as e:
        raise MinifyError(f"MINIFY: {e}", ErrorContext(asset=asset), cause=e) from e


def license_excerpt(text: str) -> str:
    """License text up to and including the first ``Copyright`` line."""
    match = _LICENSE_RE.match(text)
    return (match.group(0) if match else text).strip()


def script_license_header(license_text: str) -> str:
    return f"/** @license\n{license_text}\n*/\n"


def style_license_header(license_text: str) -> str:
    return f"/*\n{license_text}\n*/\n"
