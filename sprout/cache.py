"""Template cache management.

Remote templates are cloned or extracted into ``Settings.cache_dir``, one
directory per template.  This module backs ``sprout list`` and
``sprout remove``.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sprout.config import Settings
from sprout.errors import SourceError
from sprout.spec.parser import find_spec_file


@dataclass
class CachedTemplate:
    """A template directory in the cache."""

    name: str
    path: Path
    kind: str
    spec_path: Optional[Path]

    @property
    def valid(self) -> bool:
        return self.spec_path is not None


def list_cached(settings: Settings) -> list[CachedTemplate]:
    """Return every cached template, sorted by name."""
    root = settings.cache_dir
    if not root.is_dir():
        return []

    templates: list[CachedTemplate] = []
    for entry in sorted(root.iterdir(), key=lambda p: p.name):
        if not entry.is_dir():
            continue
        kind = "git" if (entry / ".git").exists() else "archive"
        spec_path = find_spec_file(entry, settings.spec_file_names)
        if spec_path is None and kind == "archive":
            # Archives with a single wrapping directory keep sprout.yaml one level down.
            nested = [c for c in entry.iterdir() if c.is_dir()]
            if len(nested) == 1:
                spec_path = find_spec_file(nested[0], settings.spec_file_names)
        templates.append(CachedTemplate(entry.name, entry, kind, spec_path))
    return templates


def remove_cached(settings: Settings, names: list[str]) -> list[Path]:
    """Delete the named templates from the cache.

    Raises:
        SourceError: If a name is not in the cache; nothing is deleted then.
    """
    targets: list[Path] = []
    for name in names:
        target = settings.cache_dir / name
        if name in ("", ".", "..") or Path(name).name != name or not target.is_dir():
            raise SourceError(name, "not found in the template cache")
        targets.append(target)

    for target in targets:
        shutil.rmtree(target)
    return targets


def clear_cache(settings: Settings) -> list[Path]:
    """Delete every cached template and return the removed paths."""
    return remove_cached(settings, [t.name for t in list_cached(settings)])
