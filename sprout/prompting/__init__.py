"""sprout prompting -- turns a spec into a resolved variable context.

Quick usage::

    from sprout.prompting import PromptResolver, RichPromptBackend

    resolver = PromptResolver(RichPromptBackend())
    context = resolver.resolve(spec, seed="my-project")
    frozen = context.freeze()
"""

from sprout.prompting.backend import (
    PromptBackend,
    PromptDescription,
    RichPromptBackend,
    ScriptedBackend,
)
from sprout.prompting.context import VariableContext
from sprout.prompting.resolver import PromptResolver, validate_answer

__all__ = [
    "PromptBackend",
    "PromptDescription",
    "PromptResolver",
    "RichPromptBackend",
    "ScriptedBackend",
    "VariableContext",
    "validate_answer",
]
