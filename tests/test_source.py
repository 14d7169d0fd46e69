"""Unit tests for template source resolution (sprout.source).

Tests cover:
- Location parsing (abbreviations, git/zip detection, cache names)
- Local directory and cache-name resolution
- Git clone / pull / checkout (mocked git)
- Zip extraction, unwrapping and the path traversal guard
- Remote downloads through httpx (mocked client)
- _run_git error handling
"""

from __future__ import annotations

import asyncio
import io
import zipfile
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from sprout.config import Settings
from sprout.errors import SourceError
from sprout.source import (
    _download,
    _run_git,
    cache_name_for,
    expand_abbreviation,
    fetch_git,
    fetch_zip,
    is_git_location,
    is_zip_location,
    resolve_source,
)


pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _zip_bytes(members: dict[str, str]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in members.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def _mock_http_client(response: MagicMock):
    client = AsyncMock()
    client.get = AsyncMock(return_value=response)
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    return patch("httpx.AsyncClient", return_value=client)


# ---------------------------------------------------------------------------
# Location parsing
# ---------------------------------------------------------------------------

class TestLocationParsing:
    def test_expand_github_abbreviation(self):
        settings = Settings()
        assert expand_abbreviation("gh:acme/starter", settings.abbreviations) == (
            "https://github.com/acme/starter.git"
        )

    def test_unknown_prefix_passes_through(self):
        assert expand_abbreviation("xx:acme/starter", {"gh": "{0}"}) == "xx:acme/starter"

    def test_url_scheme_not_expanded(self):
        assert expand_abbreviation("gh://host/x", {"gh": "{0}"}) == "gh://host/x"

    @pytest.mark.parametrize("location", [
        "https://github.com/acme/starter.git",
        "https://github.com/acme/starter",
        "git@github.com:acme/starter.git",
        "ssh://git@host/acme/starter",
        "git+https://host/acme/starter",
    ])
    def test_git_locations(self, location):
        assert is_git_location(location)
        assert not is_zip_location(location)

    @pytest.mark.parametrize("location", [
        "https://example.com/starter.zip",
        "https://example.com/starter.ZIP?token=1",
        "./local/starter.zip",
    ])
    def test_zip_locations(self, location):
        assert is_zip_location(location)
        assert not is_git_location(location)

    def test_local_directory_is_not_git(self, tmp_path: Path):
        assert not is_git_location(str(tmp_path))

    @pytest.mark.parametrize("location, expected", [
        ("https://github.com/acme/starter.git", "starter"),
        ("git@github.com:acme/starter.git", "starter"),
        ("https://example.com/dl/starter-main.zip?x=1", "starter-main"),
        ("https://host/acme/my repo/", "my-repo"),
    ])
    def test_cache_name_for(self, location, expected):
        assert cache_name_for(location) == expected

    def test_cache_name_for_unusable(self):
        with pytest.raises(SourceError):
            cache_name_for("https://host/.git")


# ---------------------------------------------------------------------------
# Local resolution
# ---------------------------------------------------------------------------

class TestResolveLocal:
    @pytest.mark.asyncio
    async def test_local_directory(self, make_template, settings):
        template = make_template()
        source = await resolve_source(str(template), settings)
        assert source.kind == "directory"
        assert source.path == template
        assert source.spec_path == template / "sprout.yaml"

    @pytest.mark.asyncio
    async def test_yml_spec_name(self, tmp_path, settings):
        (tmp_path / "sprout.yml").write_text("", encoding="utf-8")
        source = await resolve_source(str(tmp_path), settings)
        assert source.spec_path.name == "sprout.yml"

    @pytest.mark.asyncio
    async def test_cache_name(self, settings):
        cached = settings.cache_dir / "starter"
        cached.mkdir(parents=True)
        (cached / "sprout.yaml").write_text("", encoding="utf-8")
        source = await resolve_source("starter", settings)
        assert source.kind == "cache"
        assert source.path == cached

    @pytest.mark.asyncio
    async def test_missing_directory(self, settings):
        with pytest.raises(SourceError, match="does not exist"):
            await resolve_source("no-such-template", settings)

    @pytest.mark.asyncio
    async def test_directory_without_spec(self, tmp_path, settings):
        with pytest.raises(SourceError, match="sprout.yaml or sprout.yml not found"):
            await resolve_source(str(tmp_path), settings)

    @pytest.mark.asyncio
    async def test_checkout_requires_git(self, make_template, settings):
        with pytest.raises(SourceError, match="requires a git repository"):
            await resolve_source(str(make_template()), settings, checkout="v1")

    @pytest.mark.asyncio
    async def test_checkout_in_local_git_template(self, make_template, settings):
        template = make_template()
        (template / ".git").mkdir()
        with patch("sprout.source._run_git", new_callable=AsyncMock) as mock_git:
            await resolve_source(str(template), settings, checkout="v1")
        mock_git.assert_awaited_once()
        assert mock_git.await_args.args == ("checkout", "v1")


# ---------------------------------------------------------------------------
# Git
# ---------------------------------------------------------------------------

class TestFetchGit:
    @pytest.mark.asyncio
    async def test_clone_into_cache(self, settings):
        url = "https://github.com/acme/starter.git"
        with patch("sprout.source._run_git", new_callable=AsyncMock) as mock_git:
            target = await fetch_git(url, settings)
        assert target == settings.cache_dir / "starter"
        args = mock_git.await_args.args
        assert args == ("clone", url, str(target))

    @pytest.mark.asyncio
    async def test_existing_clone_is_pulled(self, settings):
        target = settings.cache_dir / "starter"
        (target / ".git").mkdir(parents=True)
        with patch("sprout.source._run_git", new_callable=AsyncMock) as mock_git:
            await fetch_git("https://github.com/acme/starter.git", settings)
        assert mock_git.await_args.args == ("pull", "--ff-only")
        assert mock_git.await_args.kwargs["cwd"] == target

    @pytest.mark.asyncio
    async def test_stale_non_git_directory_replaced(self, settings):
        target = settings.cache_dir / "starter"
        target.mkdir(parents=True)
        (target / "junk").write_text("x")
        with patch("sprout.source._run_git", new_callable=AsyncMock) as mock_git:
            await fetch_git("https://github.com/acme/starter.git", settings)
        assert not target.exists()
        assert mock_git.await_args.args[0] == "clone"

    @pytest.mark.asyncio
    async def test_checkout_after_clone(self, settings):
        with patch("sprout.source._run_git", new_callable=AsyncMock) as mock_git:
            await fetch_git("gh-style/starter.git", settings, checkout="develop")
        commands = [call.args[0] for call in mock_git.await_args_list]
        assert commands == ["clone", "checkout"]
        assert mock_git.await_args_list[1].args == ("checkout", "develop")

    @pytest.mark.asyncio
    async def test_abbreviation_resolves_through_git(self, settings):
        async def fake_git(*args, **kwargs):
            if args[0] == "clone":
                target = Path(args[2])
                target.mkdir(parents=True)
                (target / "sprout.yaml").write_text("", encoding="utf-8")
            return "", ""

        with patch("sprout.source._run_git", side_effect=fake_git):
            source = await resolve_source("gh:acme/starter", settings)
        assert source.kind == "git"
        assert source.location == "gh:acme/starter"
        assert source.path == settings.cache_dir / "starter"


class TestRunGit:
    @pytest.mark.asyncio
    async def test_success_returns_stdout_stderr(self, mock_subprocess):
        with mock_subprocess as (mock_exec, process):
            process.communicate.return_value = (b"out\n", b"err\n")
            stdout, stderr = await _run_git("status", location="x")
        assert (stdout, stderr) == ("out", "err")
        assert mock_exec.await_args.args[:2] == ("git", "status")

    @pytest.mark.asyncio
    async def test_nonzero_exit_raises_source_error(self, mock_subprocess):
        with mock_subprocess as (_, process):
            process.returncode = 128
            process.communicate.return_value = (b"", b"fatal: repository not found")
            with pytest.raises(SourceError) as exc_info:
                await _run_git("clone", "u", "t", location="u")
        assert "exit 128" in str(exc_info.value)
        assert exc_info.value.stderr == "fatal: repository not found"

    @pytest.mark.asyncio
    async def test_git_not_installed(self):
        with patch("asyncio.create_subprocess_exec", side_effect=FileNotFoundError()):
            with pytest.raises(SourceError, match="git is not installed"):
                await _run_git("status", location="x")

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, mock_subprocess):
        with mock_subprocess as (_, process):
            process.communicate.side_effect = asyncio.TimeoutError()
            with pytest.raises(SourceError, match="timed out"):
                await _run_git("clone", "u", location="u", timeout=1)
            process.kill.assert_called_once()


# ---------------------------------------------------------------------------
# Zip archives
# ---------------------------------------------------------------------------

class TestFetchZip:
    @pytest.mark.asyncio
    async def test_local_archive_with_wrapping_directory(self, tmp_path, settings):
        archive = tmp_path / "starter-main.zip"
        archive.write_bytes(_zip_bytes({
            "starter-main/sprout.yaml": "",
            "starter-main/{{ project_name }}/README.md": "# {{ project_name }}\n",
        }))
        path = await fetch_zip(str(archive), settings)
        assert path == settings.cache_dir / "starter-main" / "starter-main"
        assert (path / "sprout.yaml").is_file()

    @pytest.mark.asyncio
    async def test_flat_archive_not_unwrapped(self, tmp_path, settings):
        archive = tmp_path / "flat.zip"
        archive.write_bytes(_zip_bytes({"sprout.yaml": "", "x/y.txt": ""}))
        path = await fetch_zip(str(archive), settings)
        assert path == settings.cache_dir / "flat"

    @pytest.mark.asyncio
    async def test_traversal_rejected(self, tmp_path, settings):
        archive = tmp_path / "evil.zip"
        archive.write_bytes(_zip_bytes({"../escape.txt": "x"}))
        with pytest.raises(SourceError, match="escapes"):
            await fetch_zip(str(archive), settings)
        assert not (tmp_path / "escape.txt").exists()

    @pytest.mark.asyncio
    async def test_not_a_zip(self, tmp_path, settings):
        archive = tmp_path / "broken.zip"
        archive.write_bytes(b"not a zip")
        with pytest.raises(SourceError, match="not a valid zip"):
            await fetch_zip(str(archive), settings)

    @pytest.mark.asyncio
    async def test_missing_local_archive(self, tmp_path, settings):
        with pytest.raises(SourceError, match="archive does not exist"):
            await fetch_zip(str(tmp_path / "nope.zip"), settings)

    @pytest.mark.asyncio
    async def test_remote_archive_downloaded(self, settings):
        response = MagicMock()
        response.content = _zip_bytes({"sprout.yaml": ""})
        response.raise_for_status = MagicMock()
        with _mock_http_client(response):
            source = await resolve_source("https://example.com/starter.zip", settings)
        assert source.kind == "zip"
        assert source.path == settings.cache_dir / "starter"


class TestDownload:
    @pytest.mark.asyncio
    async def test_http_error_status(self):
        request = httpx.Request("GET", "https://example.com/x.zip")
        response = MagicMock()
        response.raise_for_status = MagicMock(
            side_effect=httpx.HTTPStatusError(
                "not found", request=request, response=httpx.Response(404, request=request)
            )
        )
        with _mock_http_client(response):
            with pytest.raises(SourceError, match="HTTP 404"):
                await _download("https://example.com/x.zip", 5)

    @pytest.mark.asyncio
    async def test_transport_error(self):
        client = AsyncMock()
        client.get = AsyncMock(side_effect=httpx.ConnectError("refused"))
        client.__aenter__ = AsyncMock(return_value=client)
        client.__aexit__ = AsyncMock(return_value=False)
        with patch("httpx.AsyncClient", return_value=client):
            with pytest.raises(SourceError, match="download failed"):
                await _download("https://example.com/x.zip", 5)
