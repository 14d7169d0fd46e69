"""Exception hierarchy for sprout.

Every error raised by the scaffolding pipeline derives from ``SproutError`` so
that the CLI can report failures uniformly.  Errors fall into three groups:

* spec-time errors (``SchemaError``, ``DuplicateNameError``,
  ``TypeMismatchError``) raised while parsing ``sprout.yaml``;
* resolution-time errors (``DefaultRenderError``, ``ValidationError``,
  ``UserAbortedError``) raised while collecting variable values;
* render-time errors (``EntryDirRenderError``, ``TemplateRenderError``,
  ``BinaryFileError``, ``RenderIOError``, ``OutputExistsError``) raised
  while writing the destination tree.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class SproutError(Exception):
    """Base class for all sprout errors."""


# ---------------------------------------------------------------------------
# Spec-time errors
# ---------------------------------------------------------------------------


class SchemaError(SproutError):
    """A prompt definition is structurally invalid."""

    def __init__(self, entry: str | None, field: str | None, reason: str) -> None:
        self.entry = entry
        self.field = field
        self.reason = reason
        where = []
        if entry:
            where.append(f"prompt '{entry}'")
        if field:
            where.append(f"field '{field}'")
        prefix = ", ".join(where)
        super().__init__(f"{prefix}: {reason}" if prefix else reason)


class DuplicateNameError(SchemaError):
    """Two prompt definitions share the same variable name."""

    def __init__(self, name: str) -> None:
        super().__init__(name, "name", f"variable '{name}' is declared more than once")


class TypeMismatchError(SchemaError):
    """A literal in sprout.yaml cannot be coerced to the declared kind."""

    def __init__(self, entry: str, field: str, value: Any, kind: str) -> None:
        self.value = value
        self.kind = kind
        super().__init__(entry, field, f"{value!r} is not a valid {kind} value")


# ---------------------------------------------------------------------------
# Resolution-time errors
# ---------------------------------------------------------------------------


class DefaultRenderError(SproutError):
    """A templated default could not be rendered against the context."""

    def __init__(self, name: str, template: str, reason: str) -> None:
        self.name = name
        self.template = template
        super().__init__(f"Cannot render default of '{name}' ({template!r}): {reason}")


class ValidationError(SproutError):
    """An answer does not satisfy its prompt's constraints.

    Recoverable: the resolver re-asks the same prompt.
    """

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid value for '{name}': {reason}")


class UserAbortedError(SproutError):
    """The user cancelled a prompt.  Not a failure."""

    def __init__(self, name: str | None = None) -> None:
        self.name = name
        super().__init__(f"Aborted at prompt '{name}'" if name else "Aborted by user")


class DuplicateInsertionError(SproutError):
    """A variable was inserted into the context twice."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Variable '{name}' is already set")


class ContextFrozenError(SproutError):
    """The context was modified after being frozen for rendering."""


# ---------------------------------------------------------------------------
# Render-time errors
# ---------------------------------------------------------------------------


class EntryDirRenderError(SproutError):
    """The entry directory name could not be rendered."""

    def __init__(self, template: str, reason: str) -> None:
        self.template = template
        super().__init__(f"Cannot render entry directory {template!r}: {reason}")


class TemplateLayoutError(SproutError):
    """The template repository does not contain the expected entry directory."""


class TemplateRenderError(SproutError):
    """A path or file body failed to render."""

    def __init__(self, path: str | Path, reason: str, lineno: int | None = None) -> None:
        self.path = str(path)
        self.lineno = lineno
        location = f"{self.path}:{lineno}" if lineno else self.path
        super().__init__(f"Failed to render {location}: {reason}")


class BinaryFileError(SproutError):
    """A file could not be decoded as text and is copied verbatim instead."""

    def __init__(self, path: str | Path) -> None:
        self.path = str(path)
        super().__init__(f"{self.path} is not valid UTF-8; copying verbatim")


class RenderIOError(SproutError, OSError):
    """Filesystem failure while walking the source or writing the destination."""

    def __init__(self, path: str | Path, reason: str) -> None:
        self.path = str(path)
        super().__init__(f"{self.path}: {reason}")


class OutputExistsError(SproutError):
    """A destination file already exists and overwriting was not requested."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        super().__init__(
            f"{self.path} already exists (use --force to overwrite or "
            "--skip-existing to keep it)"
        )


# ---------------------------------------------------------------------------
# Source errors
# ---------------------------------------------------------------------------


class SourceError(SproutError):
    """A template location cannot be resolved or fetched."""

    def __init__(self, location: str, reason: str, stderr: str = "") -> None:
        self.location = location
        self.stderr = stderr
        super().__init__(f"Template '{location}': {reason}")
