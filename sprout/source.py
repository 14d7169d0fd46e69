"""Template source resolution.

Turns the ``TEMPLATE`` argument of ``sprout generate`` into a local
directory that holds ``sprout.yaml``.  Supported locations:

* a local directory;
* the name of a template already in the cache (see :mod:`sprout.cache`);
* a git URL (``https://...``, ``git@...``, ``ssh://...``, ``git+...``),
  cloned into the cache, or fast-forwarded if it is already there;
* an abbreviation such as ``gh:owner/repo``, expanded through
  ``Settings.abbreviations`` and then treated as a git URL;
* a zip archive, local or ``http(s)://``, extracted into the cache.
"""

from __future__ import annotations

import asyncio
import io
import re
import shutil
import zipfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Literal, Optional

import httpx

from sprout.config import Settings
from sprout.errors import SourceError
from sprout.spec.parser import find_spec_file


SourceKind = Literal["directory", "cache", "git", "zip"]

_GIT_PREFIXES = ("git@", "git+", "ssh://", "git://")
_REMOTE_PREFIXES = ("http://", "https://")


@dataclass
class TemplateSource:
    """A resolved template: where it came from and where it lives locally."""

    location: str
    kind: SourceKind
    path: Path
    spec_path: Path


# ---------------------------------------------------------------------------
# Location parsing
# ---------------------------------------------------------------------------

def expand_abbreviation(location: str, abbreviations: dict[str, str]) -> str:
    """Expand ``prefix:rest`` using *abbreviations*; other strings pass through.

    Examples::

        expand_abbreviation("gh:acme/starter", {"gh": "https://github.com/{0}.git"})
        -> "https://github.com/acme/starter.git"
    """
    prefix, sep, rest = location.partition(":")
    if sep and prefix in abbreviations and rest and not rest.startswith("//"):
        return abbreviations[prefix].format(rest)
    return location


def is_zip_location(location: str) -> bool:
    return location.lower().split("?", 1)[0].endswith(".zip")


def is_git_location(location: str) -> bool:
    if location.startswith(_GIT_PREFIXES):
        return True
    if location.startswith(_REMOTE_PREFIXES):
        return not is_zip_location(location)
    return location.endswith(".git") and not Path(location).exists()


def cache_name_for(location: str) -> str:
    """Derive the cache directory name from a URL or path.

    ``https://github.com/acme/starter.git`` -> ``starter``;
    ``https://example.com/dl/starter-main.zip?x=1`` -> ``starter-main``.
    """
    trimmed = location.split("?", 1)[0].rstrip("/")
    tail = re.split(r"[/:]", trimmed)[-1]
    for suffix in (".git", ".zip"):
        if tail.lower().endswith(suffix):
            tail = tail[: -len(suffix)]
    name = re.sub(r"[^A-Za-z0-9._-]", "-", tail).strip("-.")
    if not name:
        raise SourceError(location, "cannot derive a template name from this location")
    return name


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

async def resolve_source(
    location: str,
    settings: Settings,
    *,
    checkout: Optional[str] = None,
) -> TemplateSource:
    """Resolve *location* to a local template directory.

    Args:
        location: Path, cache name, git URL, abbreviation or zip location.
        settings: Supplies the cache directory, abbreviations and timeout.
        checkout: Branch, tag or commit to check out (git sources only).

    Raises:
        SourceError: The location cannot be found or fetched, or the
            resolved directory has no spec file.
    """
    expanded = expand_abbreviation(location, settings.abbreviations)

    if is_zip_location(expanded):
        path = await fetch_zip(expanded, settings)
        kind: SourceKind = "zip"
    elif is_git_location(expanded):
        path = await fetch_git(expanded, settings, checkout=checkout)
        kind = "git"
    else:
        local = Path(expanded).expanduser()
        cached = settings.cache_dir / expanded
        if local.is_dir():
            path, kind = local, "directory"
        elif "/" not in expanded and cached.is_dir():
            path, kind = _unwrap_single_dir(cached, settings.spec_file_names), "cache"
        else:
            raise SourceError(location, "directory does not exist")
        if checkout:
            if not (path / ".git").exists():
                raise SourceError(location, "--checkout requires a git repository")
            await _run_git("checkout", checkout, cwd=path, location=location,
                           timeout=settings.fetch_timeout)

    spec_path = find_spec_file(path, settings.spec_file_names)
    if spec_path is None:
        names = " or ".join(settings.spec_file_names)
        raise SourceError(location, f"{names} not found in {path}")
    return TemplateSource(location=location, kind=kind, path=path, spec_path=spec_path)


async def fetch_git(url: str, settings: Settings, *, checkout: Optional[str] = None) -> Path:
    """Clone *url* into the cache, or fast-forward an existing clone."""
    target = settings.cache_dir / cache_name_for(url)
    timeout = settings.fetch_timeout
    if (target / ".git").is_dir():
        await _run_git("pull", "--ff-only", cwd=target, location=url, timeout=timeout)
    else:
        if target.exists():
            await asyncio.to_thread(shutil.rmtree, target)
        await asyncio.to_thread(target.parent.mkdir, parents=True, exist_ok=True)
        await _run_git("clone", url, str(target), location=url, timeout=timeout)
    if checkout:
        await _run_git("checkout", checkout, cwd=target, location=url, timeout=timeout)
    return target


async def fetch_zip(location: str, settings: Settings) -> Path:
    """Download (if remote) and extract a zip archive into the cache.

    An archive holding a single top-level directory is unwrapped, so both
    ``starter.zip/sprout.yaml`` and ``starter.zip/starter-main/sprout.yaml``
    resolve to the directory containing the spec file.
    """
    if location.startswith(_REMOTE_PREFIXES):
        payload = await _download(location, settings.fetch_timeout)
    else:
        archive = Path(location).expanduser()
        if not archive.is_file():
            raise SourceError(location, "archive does not exist")
        payload = await asyncio.to_thread(archive.read_bytes)

    target = settings.cache_dir / cache_name_for(location)
    await asyncio.to_thread(_extract_zip, payload, target, location)
    return _unwrap_single_dir(target, settings.spec_file_names)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

async def _run_git(
    *args: str,
    location: str,
    cwd: str | Path | None = None,
    timeout: float = 120.0,
) -> tuple[str, str]:
    """Run a git command asynchronously and return (stdout, stderr).

    Raises SourceError if git is missing, times out, or exits non-zero.
    """
    cmd = ["git", *args]
    cmd_str = " ".join(cmd)

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd) if cwd else None,
        )
    except FileNotFoundError as exc:
        raise SourceError(location, "git is not installed") from exc

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(), timeout=timeout
        )
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise SourceError(location, f"git command timed out after {timeout}s: {cmd_str}")

    stdout = stdout_bytes.decode("utf-8", errors="replace").strip()
    stderr = stderr_bytes.decode("utf-8", errors="replace").strip()

    if process.returncode != 0:
        raise SourceError(
            location,
            f"git command failed (exit {process.returncode}): {cmd_str}",
            stderr=stderr,
        )
    return stdout, stderr


async def _download(url: str, timeout: int) -> bytes:
    try:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(float(timeout), connect=10.0), follow_redirects=True
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.content
    except httpx.HTTPStatusError as exc:
        raise SourceError(url, f"download failed with HTTP {exc.response.status_code}") from exc
    except httpx.HTTPError as exc:
        raise SourceError(url, f"download failed: {exc}") from exc


def _extract_zip(payload: bytes, target: Path, location: str) -> None:
    try:
        archive = zipfile.ZipFile(io.BytesIO(payload))
    except zipfile.BadZipFile as exc:
        raise SourceError(location, "not a valid zip archive") from exc

    with archive:
        for member in archive.namelist():
            parts = PurePosixPath(member).parts
            if member.startswith("/") or ".." in parts:
                raise SourceError(location, f"archive member escapes the archive: {member}")
        if target.exists():
            shutil.rmtree(target)
        target.mkdir(parents=True)
        archive.extractall(target)


def _unwrap_single_dir(target: Path, names: list[str]) -> Path:
    children = [c for c in target.iterdir() if c.name != "__MACOSX"]
    if len(children) == 1 and children[0].is_dir() and find_spec_file(target, names) is None:
        return children[0]
    return target
