"""Project generation pipeline.

Runs the three stages of ``sprout generate`` strictly in sequence:

1. resolve the template location and parse its ``sprout.yaml``;
2. resolve every variable through the prompt backend;
3. freeze the context and render the template tree.

A user cancellation during stage 2 is not an error: the run ends with a
``CANCELLED`` outcome and nothing is written.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from sprout.config import Settings
from sprout.errors import RenderIOError, UserAbortedError
from sprout.prompting.backend import PromptBackend
from sprout.prompting.resolver import PromptResolver
from sprout.render.engine import TemplateEngine
from sprout.render.tree import RenderResult, TreeRenderer
from sprout.source import TemplateSource, resolve_source
from sprout.spec.models import TemplateSpec
from sprout.spec.parser import load_spec

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    """How a generation run ended (failures raise instead)."""
    SUCCESS = "success"
    CANCELLED = "cancelled"


@dataclass
class GenerateResult:
    outcome: Outcome
    source: Optional[TemplateSource] = None
    spec: Optional[TemplateSpec] = None
    context: dict[str, Any] = field(default_factory=dict)
    render: Optional[RenderResult] = None
    duration: float = 0.0

    @property
    def project_dir(self) -> Optional[Path]:
        return self.render.root if self.render else None


class ProjectGenerator:
    """Drives source resolution, prompting and rendering for one template.

    Args:
        settings: Global settings (cache, existing-file policy, limits).
        backend: Prompt backend answering every variable.
        on_resolved: Called with the frozen context before rendering (the
            CLI prints the variable summary from here).
        confirm_remove: Asked before ``force`` deletes an existing project
            directory; when absent the directory is deleted without asking.
    """

    def __init__(
        self,
        settings: Settings,
        backend: PromptBackend,
        *,
        on_resolved: Callable[[Mapping[str, Any]], None] | None = None,
        confirm_remove: Callable[[Path], bool] | None = None,
    ) -> None:
        self.settings = settings
        self.backend = backend
        self.on_resolved = on_resolved
        self.confirm_remove = confirm_remove

    # -- Public API --------------------------------------------------------

    async def generate(
        self,
        template: str,
        output_dir: str | Path = ".",
        *,
        seed: Optional[str] = None,
        checkout: Optional[str] = None,
        force: bool = False,
    ) -> GenerateResult:
        """Generate a project from *template* into *output_dir*.

        Args:
            template: Template location (see :func:`resolve_source`).
            output_dir: Parent directory of the generated project.
            seed: Suggested project name.
            checkout: Git ref to check out before reading the template.
            force: Delete an existing project directory without asking.

        Returns:
            A ``GenerateResult`` with ``SUCCESS`` or ``CANCELLED``.

        Raises:
            SproutError: Any spec, resolution, render or source failure.
        """
        started = time.monotonic()
        source = await resolve_source(template, self.settings, checkout=checkout)
        spec = await asyncio.to_thread(load_spec, source.spec_path)
        logger.debug("Loaded %d prompt(s) from %s", len(spec.prompts), source.spec_path)

        # Fresh engine per run so no template state is shared across runs.
        engine = TemplateEngine()
        resolver = PromptResolver(self.backend, engine, max_attempts=self.settings.max_attempts)
        try:
            context = resolver.resolve(spec, seed=seed)
        except UserAbortedError as exc:
            logger.debug("Cancelled: %s", exc)
            return GenerateResult(
                outcome=Outcome.CANCELLED,
                source=source,
                spec=spec,
                duration=time.monotonic() - started,
            )

        frozen = context.freeze()
        if self.on_resolved is not None:
            self.on_resolved(frozen)

        renderer = TreeRenderer(engine, self.settings)
        output = Path(output_dir)
        project_dir = output / renderer.entry_name(spec.entry_dir, frozen)
        if project_dir.exists() and not await self._clear_existing(project_dir, force):
            return GenerateResult(
                outcome=Outcome.CANCELLED,
                source=source,
                spec=spec,
                context=dict(frozen),
                duration=time.monotonic() - started,
            )

        result = await renderer.render(
            source.path,
            output,
            frozen,
            entry_dir=spec.entry_dir,
            copy_without_render=spec.copy_without_render,
        )
        return GenerateResult(
            outcome=Outcome.SUCCESS,
            source=source,
            spec=spec,
            context=dict(frozen),
            render=result,
            duration=time.monotonic() - started,
        )

    # -- Internal ----------------------------------------------------------

    async def _clear_existing(self, project_dir: Path, force: bool) -> bool:
        """Apply the existing-directory policy; ``False`` means stop the run.

        Without *force* the directory is kept and the renderer's
        existing-file policy decides what happens to each file.

        Raises:
            RenderIOError: The existing path could not be removed.
        """
        if not force:
            return True
        if self.confirm_remove is not None and not self.confirm_remove(project_dir):
            return False
        logger.debug("Removing existing %s", project_dir)
        try:
            await asyncio.to_thread(_remove_path, project_dir)
        except OSError as exc:
            raise RenderIOError(project_dir, exc.strerror or str(exc)) from exc
        return True


def _remove_path(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()
