"""sprout rendering -- Jinja2 engine and template tree renderer.

Quick usage::

    from sprout.render import TemplateEngine, TreeRenderer

    renderer = TreeRenderer(TemplateEngine())
    result = await renderer.render(
        "my-template", "/tmp/output", {"project_name": "acme"},
        entry_dir="{{ project_name }}",
    )
"""

from sprout.render.engine import TemplateEngine
from sprout.render.tree import RenderResult, TreeRenderer

__all__ = [
    "RenderResult",
    "TemplateEngine",
    "TreeRenderer",
]
