"""
Build configuration.

Options can be given directly, or loaded from the ``[build]`` table of an
``appbuilder.toml`` file next to the project:

    [build]
    input_path = "app"
    mode = "developer"
    minify = false
    live = true
"""

from __future__ import annotations

import tomllib
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

CONFIG_FILENAME = "appbuilder.toml"


class BuildMode(StrEnum):
    """Build strategies."""

    DEVELOPER = "developer"  # many small files, live reload
    PRODUCTION = "production"  # bundled, license stamped, minified


class BuildOptions(BaseModel):
    """
    Build session options.

    Paths are relative to ``base_path`` (the current directory by default).
    """

    model_config = ConfigDict(validate_assignment=True)

    base_path: Path = Field(default_factory=Path.cwd, description="Project root")
    input_path: str = Field(default="app", description="Application sources")
    output_path: str = Field(default="build", description="Compiled artifacts")
    dist_path: str = Field(default="dist", description="Distribution files (production)")
    assets: str = Field(default="assets", description="Assets subdirectory served as-is")
    vendor: str = Field(default="vendor", description="Vendor directory and bundle prefix")
    mode: BuildMode = Field(default=BuildMode.PRODUCTION)
    minify: bool = True
    live: bool = False
    log: bool = True
    rebuild: bool = Field(default=True, description="Rebuild artifacts even when up to date")
    build_files: list[str] = Field(default_factory=lambda: ["html"])
    lookup_files: list[str] = Field(default_factory=lambda: [".js", ".vue", "/index.js"])
    require_name: str = "$req"
    cdn_url: str = "https://cdn.jsdelivr.net/npm"
    max_download_bytes: int = 32 * 1024 * 1024
    download_timeout: float = 60.0

    @field_validator("build_files")
    @classmethod
    def _strip_dots(cls, value: list[str]) -> list[str]:
        return [ext.lstrip(".").lower() for ext in value]

    @property
    def input_dir(self) -> Path:
        return self.base_path / self.input_path

    @property
    def output_dir(self) -> Path:
        return self.base_path / self.output_path

    @property
    def dist_dir(self) -> Path:
        return self.base_path / self.dist_path

    @property
    def assets_dir(self) -> Path:
        return self.input_dir / self.assets

    @property
    def is_developer(self) -> bool:
        return self.mode == BuildMode.DEVELOPER


def load_options(path: Path | None = None, **overrides: Any) -> BuildOptions:
    """
    Load build options from a TOML file and apply overrides.

    Args:
        path: Path to ``appbuilder.toml``. Missing files are ignored.
        **overrides: Option values that take precedence (``None`` values are skipped)

    Returns:
        Validated BuildOptions
    """
    data: dict[str, Any] = {}
    if path is not None and path.exists():
        raw = tomllib.loads(path.read_text(encoding="utf-8"))
        data.update(raw.get("build", {}))
        data.setdefault("base_path", path.parent)

    data.update({k: v for k, v in overrides.items() if v is not None})
    return BuildOptions(**data)
