"""Jinja2 template engine adapter.

Provides the TemplateEngine class which renders template strings (file
bodies, path segments, templated defaults) against a variable context.  Each
engine owns its own ``jinja2.Environment``; the pipeline creates one per
generation run so no compiled-template state leaks between unrelated runs.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from jinja2 import Environment, StrictUndefined, TemplateRuntimeError


class TemplateEngine:
    """Renders Jinja2 template strings for project scaffolding.

    Undefined variables raise instead of rendering empty, so a typo in a
    template aborts the run rather than silently producing a broken project.
    Trailing newlines are preserved and block tags are not trimmed, so
    whitespace changes only where a template asks for them with ``{%-`` or
    ``-%}``.
    """

    def __init__(self, *, trim_blocks: bool = False, lstrip_blocks: bool = False) -> None:
        self.env = Environment(
            autoescape=False,
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=trim_blocks,
            lstrip_blocks=lstrip_blocks,
        )
        # Register custom filters
        self.env.filters["slugify"] = _slugify_filter
        self.env.filters["pascal_case"] = _pascal_case_filter
        self.env.filters["snake_case"] = _snake_case_filter
        self.env.filters["camel_case"] = _camel_case_filter
        self.env.filters["kebab_case"] = _kebab_case_filter
        self._newline_envs: dict[str, Environment] = {"\n": self.env}

    def render(
        self,
        template_string: str,
        context: Mapping[str, Any],
        *,
        newline: str = "\n",
    ) -> str:
        """Render *template_string* with *context*.

        Jinja2 normalises every line break in the template to *newline*;
        callers rendering a file body pass the line ending the file uses.

        Raises:
            ValueError: *newline* is not one of ``\\n``, ``\\r\\n`` or ``\\r``.
            jinja2.TemplateError: On syntax errors, undefined variables, or
                errors raised while evaluating an expression (wrapped in
                ``TemplateRuntimeError``).
        """
        template = self._env_for(newline).from_string(template_string)
        try:
            return template.render(context)
        except (TypeError, ValueError, ArithmeticError) as exc:
            raise TemplateRuntimeError(f"{type(exc).__name__}: {exc}") from exc

    def _env_for(self, newline: str) -> Environment:
        env = self._newline_envs.get(newline)
        if env is None:
            if newline not in ("\r\n", "\r"):
                raise ValueError(f"unsupported newline sequence {newline!r}")
            # Overlays share filters and globals with the base environment.
            env = self.env.overlay(newline_sequence=newline)
            self._newline_envs[newline] = env
        return env


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------

def _slugify_filter(value: str) -> str:
    """Convert a string to a URL/filename-safe slug."""
    slug = re.sub(r"[^a-z0-9]+", "-", str(value).lower().strip())
    return slug.strip("-")


def _pascal_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``SomeThing``."""
    parts = re.split(r"[-_\s]+", str(value))
    return "".join(word[:1].upper() + word[1:] for word in parts if word)


def _snake_case_filter(value: str) -> str:
    """Convert ``SomeThing`` or ``some-thing`` to ``some_thing``."""
    text = str(value).strip().strip("-")
    s1 = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", text)
    s2 = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", s1)
    return re.sub(r"[-\s]+", "_", s2).lower()


def _camel_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``someThing``."""
    pascal = _pascal_case_filter(value)
    if pascal:
        return pascal[0].lower() + pascal[1:]
    return ""


def _kebab_case_filter(value: str) -> str:
    """Convert ``SomeThing`` or ``some_thing`` to ``some-thing``."""
    return _snake_case_filter(value).replace("_", "-")
