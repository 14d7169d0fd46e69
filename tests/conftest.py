"""Shared pytest fixtures for the sprout test suite.

Provides reusable fixtures for:
- Isolated settings with a temporary template cache
- A factory that writes template repositories (spec file + skeleton)
- The "age" sample template used by the end-to-end scenarios
- Mock subprocess helpers for git
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, Union
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import yaml

from sprout.config import Settings


TemplateFiles = Mapping[str, Union[str, bytes]]


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings whose cache lives under tmp_path."""
    return Settings(cache_dir=tmp_path / "cache")


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Directory generated projects are written into."""
    out = tmp_path / "out"
    out.mkdir()
    return out


# ---------------------------------------------------------------------------
# Template repositories
# ---------------------------------------------------------------------------

def write_template(
    root: Path,
    spec: Mapping[str, Any] | None,
    files: TemplateFiles,
    entry_dir: str = "{{ project_name }}",
) -> Path:
    """Write a template repository at *root* and return it.

    ``files`` maps paths relative to the entry directory to text or bytes.
    A path ending in ``/`` creates an empty directory.
    """
    root.mkdir(parents=True, exist_ok=True)
    (root / "sprout.yaml").write_text(
        yaml.safe_dump(dict(spec or {}), sort_keys=False), encoding="utf-8"
    )
    entry = root / entry_dir
    entry.mkdir(parents=True, exist_ok=True)
    for relative, content in files.items():
        target = entry / relative
        if relative.endswith("/"):
            target.mkdir(parents=True, exist_ok=True)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def make_template(tmp_path: Path) -> Callable[..., Path]:
    """Factory fixture: ``make_template(spec, files, name="tpl", entry_dir=...)``."""

    def _make(
        spec: Mapping[str, Any] | None = None,
        files: TemplateFiles | None = None,
        name: str = "tpl",
        entry_dir: str = "{{ project_name }}",
    ) -> Path:
        return write_template(tmp_path / name, spec, files or {}, entry_dir=entry_dir)

    return _make


AGE_SPEC: dict[str, Any] = {
    "sprout": {"project_var_name": "project_name"},
    "prompts": [
        {"name": "age", "type": "number", "choices": [10, 20, 30], "default": 20},
    ],
}


@pytest.fixture
def age_template(make_template: Callable[..., Path]) -> Path:
    """Template with one numeric selection and a file that prints it."""
    return make_template(
        AGE_SPEC,
        {
            "info.txt": "age={{ age }}",
            "README.md": "# {{ project_name }}\n",
            "{{ project_name }}_pkg/__init__.py": "NAME = '{{ project_name }}'\n",
        },
        name="age-template",
    )


# ---------------------------------------------------------------------------
# Mock subprocess
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_subprocess():
    """Patch asyncio.create_subprocess_exec with a controllable fake process.

    Usage:
        def test_git(mock_subprocess):
            with mock_subprocess as (mock_exec, process):
                process.returncode = 1
                ...
    """
    process = MagicMock()
    process.returncode = 0
    process.communicate = AsyncMock(return_value=(b"", b""))
    process.kill = MagicMock()
    process.wait = AsyncMock(return_value=0)

    class _Patch:
        def __enter__(self):
            self._patcher = patch(
                "asyncio.create_subprocess_exec", AsyncMock(return_value=process)
            )
            mock_exec = self._patcher.start()
            return mock_exec, process

        def __exit__(self, *exc_info):
            self._patcher.stop()
            return False

    return _Patch()
