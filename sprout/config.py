"""sprout configuration.

Centralised, typed settings for the scaffolding pipeline.  All settings use
Pydantic v2 models so they can be validated at construction time and
serialised to/from JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, model_validator


def _default_cache_dir() -> Path:
    """Return ``$XDG_CACHE_HOME/sprout/templates`` (``~/.cache`` fallback)."""
    base = os.environ.get("XDG_CACHE_HOME")
    root = Path(base) if base else Path.home() / ".cache"
    return root / "sprout" / "templates"


DEFAULT_BINARY_EXTENSIONS: list[str] = [
    ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".webp", ".tiff",
    ".pdf", ".zip", ".gz", ".tgz", ".bz2", ".xz", ".7z", ".tar", ".jar",
    ".whl", ".so", ".dll", ".dylib", ".exe", ".bin", ".pyc",
    ".woff", ".woff2", ".ttf", ".otf", ".eot",
    ".mp3", ".mp4", ".wav", ".ogg", ".mov", ".avi",
    ".sqlite", ".db",
]

DEFAULT_IGNORE_NAMES: list[str] = [".git", ".hg", ".svn", "__pycache__", ".DS_Store"]

DEFAULT_ABBREVIATIONS: dict[str, str] = {
    "gh": "https://github.com/{0}.git",
    "gl": "https://gitlab.com/{0}.git",
    "bb": "https://bitbucket.org/{0}",
}


class Settings(BaseModel):
    """Global sprout configuration.

    Holds every tuneable parameter used by the source resolver, the prompt
    resolver and the tree renderer.  Instances are typically created once by
    the CLI entry point and then passed through the rest of the system.
    """

    cache_dir: Path = Field(default_factory=_default_cache_dir)
    spec_file_names: list[str] = Field(default=["sprout.yaml", "sprout.yml"])
    overwrite_if_exists: bool = Field(
        default=False, description="Replace files that already exist in the output"
    )
    skip_if_exists: bool = Field(
        default=False, description="Leave files that already exist in the output untouched"
    )
    max_depth: int = Field(
        default=64, ge=1, description="Maximum directory nesting walked in a template"
    )
    max_attempts: int | None = Field(
        default=None, ge=1, description="Re-prompt limit per variable (None = unlimited)"
    )
    fetch_timeout: int = Field(
        default=120, ge=1, description="Timeout in seconds for git clones and downloads"
    )
    binary_extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_BINARY_EXTENSIONS)
    )
    ignore_names: list[str] = Field(default_factory=lambda: list(DEFAULT_IGNORE_NAMES))
    abbreviations: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_ABBREVIATIONS)
    )

    @model_validator(mode="after")
    def _check_exists_policy(self) -> "Settings":
        if self.overwrite_if_exists and self.skip_if_exists:
            raise ValueError("overwrite_if_exists and skip_if_exists are mutually exclusive")
        return self

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    def is_binary_name(self, name: str) -> bool:
        """Return ``True`` if *name* has an extension listed as binary."""
        suffix = Path(name).suffix.lower()
        return bool(suffix) and suffix in {ext.lower() for ext in self.binary_extensions}

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the settings to a JSON file and return the written path."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Settings":
        """Load previously-saved settings from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls, **overrides: Any) -> "Settings":
        """Build ``Settings`` from environment variables.

        Recognised variables (all optional):
            SPROUT_CACHE_DIR, SPROUT_MAX_DEPTH, SPROUT_FETCH_TIMEOUT,
            SPROUT_MAX_ATTEMPTS.

        Keyword arguments take precedence over the environment.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("SPROUT_CACHE_DIR"):
            kwargs["cache_dir"] = Path(os.environ["SPROUT_CACHE_DIR"]).expanduser()
        if os.environ.get("SPROUT_MAX_DEPTH"):
            kwargs["max_depth"] = int(os.environ["SPROUT_MAX_DEPTH"])
        if os.environ.get("SPROUT_FETCH_TIMEOUT"):
            kwargs["fetch_timeout"] = int(os.environ["SPROUT_FETCH_TIMEOUT"])
        if os.environ.get("SPROUT_MAX_ATTEMPTS"):
            kwargs["max_attempts"] = int(os.environ["SPROUT_MAX_ATTEMPTS"])
        kwargs.update(overrides)
        return cls(**kwargs)
