"""Prompt resolution.

Walks a :class:`TemplateSpec` in resolution order -- the implicit
project-name entry first, then the declared prompts -- and builds the
variable context one entry at a time:

1. render the entry's default against the variables resolved so far;
2. describe the entry to the prompt backend and take its raw answer;
3. convert the answer to a tagged value and check the entry's constraints,
   re-asking with the same default until it passes;
4. insert the value into the context.

A ``UserAbortedError`` from the backend propagates and the partial context is
dropped with it.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from jinja2 import TemplateError

from sprout.errors import DefaultRenderError, ValidationError
from sprout.prompting.backend import PromptBackend, PromptDescription
from sprout.prompting.context import VariableContext
from sprout.prompting.values import (
    BoolValue,
    ListValue,
    NumberValue,
    StringValue,
    Value,
    to_list,
    to_scalar,
)
from sprout.render.engine import TemplateEngine
from sprout.spec.models import Kind, PromptDef, TemplateSpec
from sprout.spec.parser import is_template

logger = logging.getLogger(__name__)


class PromptResolver:
    """Collects a value for every variable of a spec.

    Args:
        backend: Source of raw answers.
        engine: Engine used to render templated defaults.
        max_attempts: Upper bound on asks per variable; ``None`` re-asks until
            the backend gives a valid answer or aborts.
    """

    def __init__(
        self,
        backend: PromptBackend,
        engine: TemplateEngine | None = None,
        max_attempts: int | None = None,
    ) -> None:
        if max_attempts is not None and max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.backend = backend
        self.engine = engine or TemplateEngine()
        self.max_attempts = max_attempts

    # -- Public API --------------------------------------------------------

    def resolve(self, spec: TemplateSpec, seed: Optional[str] = None) -> VariableContext:
        """Resolve every variable of *spec* and return the filled context.

        Args:
            spec: Parsed template spec.
            seed: Suggested project name (the project entry's default).

        Raises:
            DefaultRenderError: A templated default failed to render.
            ValidationError: The backend stopped retrying after a bad answer.
            UserAbortedError: The user cancelled.
        """
        context = VariableContext()
        for prompt in spec.resolution_order(seed):
            value = self.resolve_one(prompt, context)
            context.insert(prompt.name, value.plain())
            logger.debug("Resolved %s = %r", prompt.name, value.plain())
        return context

    def resolve_one(self, prompt: PromptDef, context: VariableContext) -> Value:
        """Ask for *prompt* until a valid answer arrives."""
        description = self.describe(prompt, context)
        attempts = 0
        while True:
            attempts += 1
            raw = self.backend.ask(description)
            try:
                return validate_answer(prompt, raw)
            except ValidationError as exc:
                logger.debug("Rejected answer for %s: %s", prompt.name, exc.reason)
                if self.max_attempts is not None and attempts >= self.max_attempts:
                    raise
                self.backend.on_invalid(description, exc)

    def describe(self, prompt: PromptDef, context: VariableContext) -> PromptDescription:
        """Build the backend description, with the effective default."""
        return PromptDescription(
            name=prompt.name,
            kind=prompt.kind,
            message=prompt.prompt_message,
            default=self.effective_default(prompt, context),
            choices=prompt.choices,
            multi=prompt.multi,
            emptyable=prompt.emptyable,
            regex=prompt.regex,
            min=prompt.min,
            max=prompt.max,
        )

    def effective_default(self, prompt: PromptDef, context: VariableContext) -> Any:
        """Render a templated default against the variables resolved so far."""
        default = prompt.default
        if default is None:
            return None
        if isinstance(default, list):
            return [self._render_default(prompt, item, context) for item in default]
        rendered = self._render_default(prompt, default, context)
        if prompt.kind is not Kind.STRING and is_template(default):
            try:
                return to_scalar(prompt.kind, rendered).plain()
            except ValueError as exc:
                raise DefaultRenderError(prompt.name, default, str(exc)) from exc
        return rendered

    # -- Internal ----------------------------------------------------------

    def _render_default(self, prompt: PromptDef, value: Any, context: VariableContext) -> Any:
        if not isinstance(value, str):
            return value
        try:
            return self.engine.render(value, context.as_dict())
        except TemplateError as exc:
            raise DefaultRenderError(prompt.name, value, str(exc)) from exc


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_answer(prompt: PromptDef, raw: Any) -> Value:
    """Convert *raw* to a tagged value and check *prompt*'s constraints.

    Raises:
        ValidationError: With a user-facing reason.
    """
    try:
        if prompt.multi:
            value: Value = to_list(prompt.kind, raw)
        elif prompt.is_selection and isinstance(raw, (list, tuple)):
            if len(raw) != 1:
                raise ValidationError(prompt.name, "select exactly one value")
            value = to_scalar(prompt.kind, raw[0])
        else:
            value = to_scalar(prompt.kind, raw)
    except ValueError as exc:
        raise ValidationError(prompt.name, str(exc)) from exc

    if prompt.is_selection:
        return _check_selection(prompt, value)
    if isinstance(value, StringValue):
        return _check_string(prompt, value)
    if isinstance(value, NumberValue):
        return _check_number(prompt, value)
    if isinstance(value, BoolValue):
        return value
    raise ValidationError(prompt.name, f"unexpected answer {raw!r}")


def _check_string(prompt: PromptDef, value: StringValue) -> StringValue:
    if prompt.regex is not None and not re.fullmatch(prompt.regex, value.value):
        raise ValidationError(prompt.name, f"'{value.value}' does not match regex '{prompt.regex}'")
    return value


def _check_number(prompt: PromptDef, value: NumberValue) -> NumberValue:
    if prompt.min is not None and value.value < prompt.min:
        raise ValidationError(prompt.name, f"{value.value} is below the minimum {prompt.min}")
    if prompt.max is not None and value.value > prompt.max:
        raise ValidationError(prompt.name, f"{value.value} is above the maximum {prompt.max}")
    return value


def _check_selection(prompt: PromptDef, value: Value) -> Value:
    choices = prompt.choices or []
    items = value.items if isinstance(value, ListValue) else (value,)
    for item in items:
        if item.plain() not in choices:
            allowed = ", ".join(str(c) for c in choices)
            raise ValidationError(prompt.name, f"'{item.plain()}' is not one of: {allowed}")
    if isinstance(value, ListValue):
        if not value.items and not prompt.emptyable:
            raise ValidationError(prompt.name, "select at least one value")
        if len(set(value.plain())) != len(value.items):
            raise ValidationError(prompt.name, "a value was selected more than once")
    return value
