"""Prompt backends.

The resolver describes each variable with a :class:`PromptDescription` and
asks a backend for a raw answer.  Backends are interchangeable:

* :class:`RichPromptBackend` asks on the terminal using ``rich.prompt``;
* :class:`ScriptedBackend` answers from a mapping (``--answer name=value``)
  and falls back to the effective default (``--no-input``).

A backend signals cancellation by raising ``UserAbortedError``.  After a
rejected answer the resolver calls ``on_invalid``; a backend that cannot
recover (a script has no second answer to give) re-raises the error there.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import IO, Any, Optional, Protocol, Union

from pydantic import BaseModel, ConfigDict, Field
from rich.console import Console
from rich.prompt import Confirm, Prompt

from sprout.errors import UserAbortedError, ValidationError
from sprout.spec.models import Kind


class PromptDescription(BaseModel):
    """Everything a backend needs to ask for one variable."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: Kind
    message: str
    default: Any = None
    choices: Optional[list[Union[str, int, float, bool]]] = None
    multi: bool = False
    emptyable: bool = False
    regex: Optional[str] = None
    min: Optional[Union[int, float]] = Field(default=None)
    max: Optional[Union[int, float]] = Field(default=None)

    @property
    def is_selection(self) -> bool:
        return self.choices is not None

    @property
    def help(self) -> Optional[str]:
        """One-line hint describing the constraints, if there are any."""
        if self.regex is not None:
            return f"should match regex '{self.regex}'"
        if self.min is not None and self.max is not None:
            return f"range: {self.min} <= value <= {self.max}"
        if self.min is not None:
            return f"range: {self.min} <= value"
        if self.max is not None:
            return f"range: value <= {self.max}"
        if self.multi:
            hint = "comma-separated"
            return hint + ", may be empty" if self.emptyable else hint
        return None


class PromptBackend(Protocol):
    def ask(self, description: PromptDescription) -> Any:
        """Return a raw answer or raise ``UserAbortedError``."""
        ...

    def on_invalid(self, description: PromptDescription, error: ValidationError) -> None:
        """Called after *error* rejected an answer, before asking again."""
        ...


# ---------------------------------------------------------------------------
# Terminal backend
# ---------------------------------------------------------------------------


class RichPromptBackend:
    """Interactive terminal prompts built on ``rich.prompt``.

    Args:
        console: Console used for prompts and error messages.
        stream: Optional input stream (defaults to stdin); tests feed answers
            through an ``io.StringIO``.
    """

    def __init__(self, console: Console | None = None, stream: IO[str] | None = None) -> None:
        self.console = console or Console()
        self.stream = stream

    def ask(self, description: PromptDescription) -> Any:
        try:
            return self._ask(description)
        except (KeyboardInterrupt, EOFError):
            raise UserAbortedError(description.name) from None

    def on_invalid(self, description: PromptDescription, error: ValidationError) -> None:
        self.console.print(f"[prompt.invalid]{error.reason}")

    def _ask(self, description: PromptDescription) -> Any:
        label = description.message
        if description.help:
            label = f"{label} [dim]({description.help})[/dim]"

        if description.kind is Kind.BOOL:
            return Confirm.ask(
                label,
                console=self.console,
                default=bool(description.default),
                stream=self.stream,
            )

        if description.multi:
            default = ", ".join(str(v) for v in description.default or [])
            choices = ", ".join(str(c) for c in description.choices or [])
            self.console.print(f"[bold]{description.message}[/bold] choices: {choices}")
            return Prompt.ask(label, console=self.console, default=default, stream=self.stream)

        if description.is_selection:
            return Prompt.ask(
                label,
                console=self.console,
                choices=[str(c) for c in description.choices or []],
                default=_text_default(description.default),
                stream=self.stream,
            )

        return Prompt.ask(
            label,
            console=self.console,
            default=_text_default(description.default),
            stream=self.stream,
        )


def _text_default(value: Any) -> Any:
    # rich treats ``...`` as "no default"
    return ... if value is None else str(value)


# ---------------------------------------------------------------------------
# Non-interactive backend
# ---------------------------------------------------------------------------


class ScriptedBackend:
    """Answers from a mapping, falling back to each prompt's effective default.

    A prompt with neither an answer nor a default is answered with an empty
    value, which the resolver then accepts or rejects like any other answer.
    Because there is nothing else to offer, a rejected answer is fatal.

    Args:
        answers: Raw answers keyed by variable name.
        fallback: Backend asked for variables missing from *answers*
            instead of taking their defaults.
    """

    def __init__(
        self,
        answers: Mapping[str, Any] | None = None,
        fallback: PromptBackend | None = None,
    ) -> None:
        self.answers = dict(answers or {})
        self.fallback = fallback
        self.asked: list[str] = []

    def ask(self, description: PromptDescription) -> Any:
        self.asked.append(description.name)
        if description.name in self.answers:
            return self.answers[description.name]
        if self.fallback is not None:
            return self.fallback.ask(description)
        if description.default is not None:
            return description.default
        if description.multi:
            return []
        if description.kind is Kind.BOOL:
            return False
        if description.is_selection:
            return description.choices[0]
        return ""

    def on_invalid(self, description: PromptDescription, error: ValidationError) -> None:
        if self.fallback is None or description.name in self.answers:
            raise error
        self.fallback.on_invalid(description, error)
