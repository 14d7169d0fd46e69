"""Tree rendering for project generation.

A template repository keeps its skeleton under an *entry directory* whose
name is itself a template (``{{ project_name }}`` by default).  The
:class:`TreeRenderer` walks that directory in sorted order and, for every
entry:

* renders each path segment, so ``{{ module }}/__init__.py`` becomes
  ``core/__init__.py``; a segment that renders to an empty string drops the
  entry and everything beneath it;
* renders text file bodies through the :class:`TemplateEngine`;
* copies files verbatim when they match a ``copy_without_render`` glob, carry
  a binary extension, or cannot be decoded as UTF-8;
* reproduces symlinks as symlinks without following them.

Rendering happens in two steps.  :meth:`TreeRenderer.plan` renders every
path and body in memory, so a template error aborts before anything touches
the disk.  :meth:`TreeRenderer.render` then applies the existing-file policy
and writes the plan in traversal order.  A filesystem error mid-write leaves
the partial output in place.
"""

from __future__ import annotations

import asyncio
import fnmatch
import logging
import os
import stat
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, Literal, Optional

from jinja2 import TemplateError

from sprout.config import Settings
from sprout.errors import (
    BinaryFileError,
    EntryDirRenderError,
    OutputExistsError,
    RenderIOError,
    TemplateLayoutError,
    TemplateRenderError,
)
from sprout.render.engine import TemplateEngine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Plan & result models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PlannedEntry:
    """One destination path and what to put there."""

    kind: Literal["dir", "file", "symlink"]
    source: Path
    destination: Path
    relative: str
    content: Optional[bytes] = None
    link_target: Optional[str] = None
    mode: Optional[int] = None
    rendered: bool = False


@dataclass
class RenderPlan:
    """Everything :meth:`TreeRenderer.render` will write, in write order."""

    root: Path
    entries: list[PlannedEntry] = field(default_factory=list)
    omitted: list[str] = field(default_factory=list)


@dataclass
class RenderResult:
    """Paths produced by a render, grouped by how they were produced."""

    root: Path
    rendered: list[Path] = field(default_factory=list)
    copied: list[Path] = field(default_factory=list)
    links: list[Path] = field(default_factory=list)
    directories: list[Path] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)
    omitted: list[str] = field(default_factory=list)

    @property
    def files(self) -> list[Path]:
        return sorted(self.rendered + self.copied)


# ---------------------------------------------------------------------------
# TreeRenderer
# ---------------------------------------------------------------------------


class TreeRenderer:
    """Renders a template skeleton into a destination directory."""

    def __init__(self, engine: TemplateEngine | None = None, settings: Settings | None = None) -> None:
        self.engine = engine or TemplateEngine()
        self.settings = settings or Settings()

    # -- Public API --------------------------------------------------------

    def entry_name(self, entry_dir: str, context: Mapping[str, Any]) -> str:
        """Render the entry directory template to the project directory name.

        Raises:
            EntryDirRenderError: On template errors, or if the result is not a
                single usable directory name.
        """
        try:
            name = self.engine.render(entry_dir, context)
        except TemplateError as exc:
            raise EntryDirRenderError(entry_dir, str(exc)) from exc
        if not _is_valid_name(name):
            raise EntryDirRenderError(entry_dir, f"rendered to invalid directory name {name!r}")
        return name

    def plan(
        self,
        source_root: str | Path,
        destination_root: str | Path,
        context: Mapping[str, Any],
        *,
        entry_dir: str,
        copy_without_render: Iterable[str] = (),
    ) -> RenderPlan:
        """Render every path and file body in memory.

        Args:
            source_root: Template repository root (holds ``sprout.yaml``).
            destination_root: Directory the project directory is created in.
            context: Frozen variable context.
            entry_dir: Entry directory template, as named on disk.
            copy_without_render: Glob patterns, relative to the entry
                directory, for files that are copied verbatim.

        Raises:
            TemplateLayoutError: The entry directory does not exist.
            EntryDirRenderError: The entry directory name failed to render.
            TemplateRenderError: A path segment or file body failed to render.
            RenderIOError: The source tree cannot be read, nests too deep or
                contains a directory cycle.
        """
        entry_source = Path(source_root) / entry_dir
        if not entry_source.is_dir():
            raise TemplateLayoutError(
                f"Template directory '{entry_dir}' not found in {source_root}"
            )

        root = Path(destination_root) / self.entry_name(entry_dir, context)
        plan = RenderPlan(root=root)
        plan.entries.append(PlannedEntry("dir", entry_source, root, ""))
        walker = _Walk(
            patterns=list(copy_without_render),
            context=context,
            plan=plan,
        )
        self._plan_dir(entry_source, PurePosixPath(), root, walker, depth=1)
        return plan

    async def render(
        self,
        source_root: str | Path,
        destination_root: str | Path,
        context: Mapping[str, Any],
        *,
        entry_dir: str,
        copy_without_render: Iterable[str] = (),
    ) -> RenderResult:
        """Render the template tree and write it under *destination_root*.

        Returns:
            A ``RenderResult`` whose ``root`` is the generated project
            directory.

        Raises:
            OutputExistsError: A destination file exists and the settings
                neither overwrite nor skip existing files.
            RenderIOError: A directory or file could not be written.
            Plus everything :meth:`plan` raises.
        """
        plan = self.plan(
            source_root,
            destination_root,
            context,
            entry_dir=entry_dir,
            copy_without_render=copy_without_render,
        )
        self._check_existing(plan)

        result = RenderResult(root=plan.root, omitted=list(plan.omitted))
        for entry in plan.entries:
            await asyncio.to_thread(self._write_entry, entry, result)
        return result

    # -- Planning ----------------------------------------------------------

    def _plan_dir(
        self,
        source_dir: Path,
        relative: PurePosixPath,
        destination_dir: Path,
        walk: "_Walk",
        depth: int,
    ) -> None:
        if depth > self.settings.max_depth:
            raise RenderIOError(
                source_dir, f"nested deeper than {self.settings.max_depth} directories"
            )
        try:
            canonical = source_dir.resolve(strict=True)
            children = sorted(source_dir.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            raise RenderIOError(source_dir, exc.strerror or str(exc)) from exc
        if canonical in walk.seen:
            raise RenderIOError(source_dir, "directory cycle detected")
        walk.seen.add(canonical)

        for child in children:
            if child.name in self.settings.ignore_names:
                continue
            child_relative = relative / child.name
            name = self._render_segment(child.name, child_relative, walk.context)
            if not name:
                logger.debug("Omitting %s (name rendered empty)", child_relative)
                walk.plan.omitted.append(child_relative.as_posix())
                continue

            destination = destination_dir / name
            walk.claim(destination, child_relative)

            if child.is_symlink():
                walk.plan.entries.append(
                    PlannedEntry(
                        "symlink",
                        child,
                        destination,
                        child_relative.as_posix(),
                        link_target=os.readlink(child),
                    )
                )
            elif child.is_dir():
                walk.plan.entries.append(
                    PlannedEntry("dir", child, destination, child_relative.as_posix())
                )
                self._plan_dir(child, child_relative, destination, walk, depth + 1)
            elif child.is_file():
                walk.plan.entries.append(
                    self._plan_file(child, child_relative, destination, walk)
                )
            else:
                logger.warning("Skipping special file %s", child_relative)

    def _plan_file(
        self,
        source: Path,
        relative: PurePosixPath,
        destination: Path,
        walk: "_Walk",
    ) -> PlannedEntry:
        try:
            data = source.read_bytes()
            mode = source.stat().st_mode
        except OSError as exc:
            raise RenderIOError(source, exc.strerror or str(exc)) from exc

        rendered_relative = destination.relative_to(walk.plan.root).as_posix()
        verbatim = PlannedEntry(
            "file", source, destination, relative.as_posix(), content=data, mode=mode
        )
        if walk.is_excluded(relative, rendered_relative):
            return verbatim
        if self.settings.is_binary_name(source.name):
            return verbatim

        try:
            text = decode_text(data, relative.as_posix())
        except BinaryFileError as exc:
            logger.warning("%s", exc)
            return verbatim

        try:
            body = self.engine.render(text, walk.context, newline=detect_newline(text))
        except TemplateError as exc:
            raise TemplateRenderError(
                relative.as_posix(), exc.message or str(exc), getattr(exc, "lineno", None)
            ) from exc
        return PlannedEntry(
            "file",
            source,
            destination,
            relative.as_posix(),
            content=body.encode("utf-8"),
            mode=mode,
            rendered=True,
        )

    def _render_segment(
        self, segment: str, relative: PurePosixPath, context: Mapping[str, Any]
    ) -> str:
        try:
            name = self.engine.render(segment, context)
        except TemplateError as exc:
            raise TemplateRenderError(relative.as_posix(), exc.message or str(exc)) from exc
        if name and not _is_valid_name(name):
            raise TemplateRenderError(
                relative.as_posix(), f"name rendered to {name!r}, which is not a file name"
            )
        return name

    # -- Writing -----------------------------------------------------------

    def _check_existing(self, plan: RenderPlan) -> None:
        if self.settings.overwrite_if_exists or self.settings.skip_if_exists:
            return
        for entry in plan.entries:
            if entry.kind != "dir" and os.path.lexists(entry.destination):
                raise OutputExistsError(entry.destination)

    def _write_entry(self, entry: PlannedEntry, result: RenderResult) -> None:
        destination = entry.destination
        try:
            if entry.kind == "dir":
                destination.mkdir(parents=True, exist_ok=True)
                result.directories.append(destination)
                return

            exists = os.path.lexists(destination)
            if exists and self.settings.skip_if_exists:
                logger.debug("Keeping existing %s", destination)
                result.skipped.append(destination)
                return

            destination.parent.mkdir(parents=True, exist_ok=True)
            if exists and (entry.kind == "symlink" or destination.is_symlink()):
                destination.unlink()

            if entry.kind == "symlink":
                os.symlink(entry.link_target, destination)
                result.links.append(destination)
                logger.debug("Linked %s -> %s", destination, entry.link_target)
                return

            destination.write_bytes(entry.content or b"")
            if entry.mode is not None:
                # Owner stays writable so overwrite_if_exists can replace it.
                os.chmod(destination, stat.S_IMODE(entry.mode) | stat.S_IWUSR)
        except OSError as exc:
            raise RenderIOError(destination, exc.strerror or str(exc)) from exc

        if entry.rendered:
            result.rendered.append(destination)
            logger.debug("Rendered %s", destination)
        else:
            result.copied.append(destination)
            logger.debug("Copied %s", destination)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


@dataclass
class _Walk:
    """Per-render walk state."""

    patterns: list[str]
    context: Mapping[str, Any]
    plan: RenderPlan
    seen: set[Path] = field(default_factory=set)
    claimed: dict[Path, str] = field(default_factory=dict)

    def claim(self, destination: Path, relative: PurePosixPath) -> None:
        """Record that *relative* writes *destination*; two sources may not."""
        previous = self.claimed.get(destination)
        if previous is not None:
            raise TemplateRenderError(
                relative.as_posix(), f"renders to the same path as {previous}"
            )
        self.claimed[destination] = relative.as_posix()

    def is_excluded(self, relative: PurePosixPath, rendered_relative: str) -> bool:
        if not self.patterns:
            return False
        candidates = {relative.as_posix(), rendered_relative}
        candidates.update(p.as_posix() for p in relative.parents if p.as_posix() != ".")
        candidates.update(
            p.as_posix() for p in PurePosixPath(rendered_relative).parents if p.as_posix() != "."
        )
        return any(
            fnmatch.fnmatchcase(candidate, pattern)
            for candidate in candidates
            for pattern in self.patterns
        )


def decode_text(data: bytes, relative: str) -> str:
    """Decode a template file body as UTF-8.

    Raises:
        BinaryFileError: The data contains NUL bytes or is not valid UTF-8.
    """
    if b"\x00" in data:
        raise BinaryFileError(relative)
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        raise BinaryFileError(relative) from None


def detect_newline(text: str) -> str:
    """Return the dominant line ending of *text* (``\\n`` on a tie or none)."""
    crlf = text.count("\r\n")
    lf = text.count("\n") - crlf
    cr = text.count("\r") - crlf
    if crlf > lf and crlf >= cr:
        return "\r\n"
    if cr > lf and cr > crlf:
        return "\r"
    return "\n"


def _is_valid_name(name: str) -> bool:
    return bool(name) and name not in (".", "..") and "/" not in name and "\\" not in name
