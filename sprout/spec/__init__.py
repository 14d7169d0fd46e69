"""sprout variable specification -- models and parser for ``sprout.yaml``.

Quick usage::

    from sprout.spec import load_spec

    spec = load_spec("my-template/sprout.yaml")
    for prompt in spec.resolution_order():
        print(prompt.name, prompt.kind.value)
"""

from sprout.spec.models import Kind, PromptDef, TemplateSpec
from sprout.spec.parser import find_spec_file, load_spec, parse_prompt, parse_spec

__all__ = [
    "Kind",
    "PromptDef",
    "TemplateSpec",
    "find_spec_file",
    "load_spec",
    "parse_prompt",
    "parse_spec",
]
