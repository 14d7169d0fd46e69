"""sprout -- generate projects from templates.

A template is a directory holding a ``sprout.yaml`` that declares typed
variables, plus an entry directory whose paths and file bodies are Jinja2
templates.  sprout asks for every variable, then renders the tree.

Quick usage::

    from sprout import ProjectGenerator, ScriptedBackend, Settings

    generator = ProjectGenerator(Settings(), ScriptedBackend({"project_name": "demo"}))
    result = await generator.generate("./my-template", "/tmp/output")
    print(result.project_dir)
"""

from sprout.config import Settings
from sprout.errors import SproutError
from sprout.generate import GenerateResult, Outcome, ProjectGenerator
from sprout.prompting.backend import RichPromptBackend, ScriptedBackend

__all__ = [
    "GenerateResult",
    "Outcome",
    "ProjectGenerator",
    "RichPromptBackend",
    "ScriptedBackend",
    "Settings",
    "SproutError",
]

__version__ = "0.1.0"
