"""Command-line interface for sprout.

Usage::

    sprout generate TEMPLATE [-o DIR] [-f] [--skip-existing] [--no-input]
                             [--answer NAME=VALUE ...] [--name NAME]
                             [--checkout REF] [-v]
    sprout list
    sprout remove NAME... | --all
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from rich.markup import escape
from rich.prompt import Confirm
from rich.table import Table

from sprout.cache import clear_cache, list_cached, remove_cached
from sprout.config import Settings
from sprout.errors import SproutError
from sprout.generate import Outcome, ProjectGenerator
from sprout.prompting.backend import PromptBackend, RichPromptBackend, ScriptedBackend
from sprout.utils import (
    configure_logging,
    console,
    format_duration,
    print_error,
    print_success,
    print_summary_table,
    print_warning,
)


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def parse_answers(pairs: list[str]) -> dict[str, str]:
    """Turn ``["name=value", ...]`` into a mapping.

    Raises:
        argparse.ArgumentTypeError: A pair has no ``=`` or an empty name.
    """
    answers: dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        name = name.strip()
        if not sep or not name:
            raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {pair!r}")
        answers[name] = value
    return answers


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sprout",
        description="sprout -- generate projects from templates",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  sprout generate ./my-template\n"
            "  sprout generate gh:acme/python-starter -o ./projects\n"
            "  sprout generate starter --no-input --answer project_name=demo\n"
            "  sprout list\n"
            "  sprout remove python-starter\n"
        ),
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log every written path",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Generate a project from a template")
    generate.add_argument(
        "template",
        help="Template directory, cache name, git URL, gh:/gl:/bb: abbreviation or .zip",
    )
    generate.add_argument(
        "--output-dir", "-o",
        default=".",
        help="Directory the project is created in (default: current directory)",
    )
    policy = generate.add_mutually_exclusive_group()
    policy.add_argument(
        "--force", "-f",
        action="store_true",
        help="Remove an existing project directory before generating",
    )
    policy.add_argument(
        "--skip-existing",
        action="store_true",
        help="Keep files that already exist in the project directory",
    )
    generate.add_argument(
        "--no-input",
        action="store_true",
        help="Do not prompt; use --answer values and defaults",
    )
    generate.add_argument(
        "--answer", "-a",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Pre-supply the answer for a variable (repeatable)",
    )
    generate.add_argument(
        "--name",
        default=None,
        help="Suggested project name (default of the project name prompt)",
    )
    generate.add_argument(
        "--checkout",
        default=None,
        metavar="REF",
        help="Branch, tag or commit to use for git templates",
    )

    subparsers.add_parser("list", help="List cached templates")

    remove = subparsers.add_parser("remove", help="Remove templates from the cache")
    remove.add_argument("names", nargs="*", metavar="NAME", help="Cached template names")
    remove.add_argument("--all", action="store_true", help="Remove every cached template")

    return parser


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def make_backend(answers: dict[str, str], no_input: bool) -> PromptBackend:
    if no_input:
        return ScriptedBackend(answers)
    interactive = RichPromptBackend(console=console)
    if answers:
        return ScriptedBackend(answers, fallback=interactive)
    return interactive


def _confirm_remove(project_dir: Path) -> bool:
    try:
        return Confirm.ask(
            f"[yellow]{escape(str(project_dir))} already exists. Remove it?[/yellow]",
            console=console,
            default=False,
        )
    except (KeyboardInterrupt, EOFError):
        return False


def cmd_generate(args: argparse.Namespace, settings: Settings) -> int:
    answers = parse_answers(args.answer)
    generator = ProjectGenerator(
        settings,
        make_backend(answers, args.no_input),
        on_resolved=print_summary_table,
        confirm_remove=None if args.no_input else _confirm_remove,
    )
    result = asyncio.run(
        generator.generate(
            args.template,
            args.output_dir,
            seed=args.name,
            checkout=args.checkout,
            force=args.force,
        )
    )

    if result.outcome is Outcome.CANCELLED:
        print_warning("Aborted, nothing was generated.")
        return 0

    render = result.render
    assert render is not None
    summary = f"{len(render.files)} file(s)"
    if render.skipped:
        summary += f", {len(render.skipped)} skipped"
    print_success(
        f"Generated {render.root} ({summary}) in {format_duration(result.duration)}"
    )
    return 0


def cmd_list(args: argparse.Namespace, settings: Settings) -> int:
    templates = list_cached(settings)
    if not templates:
        console.print(f"No templates cached in {escape(str(settings.cache_dir))}")
        return 0

    table = Table(title="Cached templates", show_header=True, header_style="bold cyan")
    table.add_column("Name", no_wrap=True)
    table.add_column("Kind", style="dim")
    table.add_column("Status")
    for template in templates:
        status = "[green]ok[/green]" if template.valid else "[red]no spec file[/red]"
        table.add_row(escape(template.name), template.kind, status)
    console.print(table)
    return 0


def cmd_remove(args: argparse.Namespace, settings: Settings) -> int:
    if args.all:
        removed = clear_cache(settings)
    elif args.names:
        removed = remove_cached(settings, args.names)
    else:
        print_error("Nothing to remove: give template names or --all")
        return 1
    for path in removed:
        console.print(f"Removed {escape(path.name)}")
    return 0


COMMANDS = {
    "generate": cmd_generate,
    "list": cmd_list,
    "remove": cmd_remove,
}


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def main(argv: Optional[list[str]] = None) -> None:
    """CLI entry point for ``sprout`` and ``python -m sprout``."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        settings = Settings.from_env(
            skip_if_exists=getattr(args, "skip_existing", False),
        )
    except ValueError as exc:
        print_error(f"Invalid configuration: {exc}")
        sys.exit(1)

    try:
        code = COMMANDS[args.command](args, settings)
    except argparse.ArgumentTypeError as exc:
        parser.error(str(exc))
    except SproutError as exc:
        print_error(f"Error: {exc}")
        stderr = getattr(exc, "stderr", "")
        if stderr:
            console.print(escape(stderr), style="dim")
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
