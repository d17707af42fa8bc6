"""Typer CLI application for modstamp."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Any, NoReturn

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from typer import Argument, Exit, Option, Typer

import modstamp
from modstamp.cli._prompts import prompt_overwrite, prompt_variables, prompt_variants
from modstamp.cli._types import OutputFormat
from modstamp.core.answers import Answers, load_answers, parse_assignments
from modstamp.core.composer import check_template, plan_project, write_project
from modstamp.core.config import Settings, available_templates, resolve_template
from modstamp.core.context import build_context, select_variants
from modstamp.core.errors import InvalidManifest, ModstampError, ValidationError
from modstamp.core.manifest import Manifest, VariableKind, load_manifest

DEFAULT_TEMPLATE = "minecraft"

app = Typer(add_completion=False, context_settings={"help_option_names": ["-h", "--help"]})
_console = Console()

logger = logging.getLogger(__name__)


@app.callback()
def main() -> None:
    """modstamp — scaffold projects from placeholder templates."""


def _configure_logging(verbose: bool) -> None:
    package_logger = logging.getLogger("modstamp")
    for handler in list(package_logger.handlers):
        if isinstance(handler, RichHandler):
            package_logger.removeHandler(handler)
    if verbose:
        package_logger.addHandler(
            RichHandler(console=Console(stderr=True), show_path=False, markup=False)
        )
        package_logger.setLevel(logging.DEBUG)
    else:
        package_logger.setLevel(logging.WARNING)


def _fail(exc: ModstampError, output_format: OutputFormat = OutputFormat.TEXT) -> NoReturn:
    if output_format is OutputFormat.JSON:
        _console.print_json(
            data={
                "status": "error",
                "error": type(exc).__name__,
                "exit_code": exc.exit_code,
                "message": str(exc),
            }
        )
    else:
        _console.print(f"[bold red]Error:[/] {escape(str(exc))}")
    raise Exit(code=exc.exit_code)


def _load(template: str, settings: Settings) -> Manifest:
    root = resolve_template(template, settings)
    return load_manifest(root, settings.manifest_name)


def _print_templates() -> None:
    settings = Settings.from_env()
    _console.print()
    _console.print("[bold cyan]◆[/]  Available templates")
    _console.print("[dim]│[/]")
    for name, root in available_templates(settings).items():
        try:
            description = load_manifest(root, settings.manifest_name).description
        except InvalidManifest:
            description = "invalid manifest, run `modstamp validate` for details"
        _console.print(f"[dim]│[/]  [bold cyan]{escape(name):<22}[/] [dim]{escape(str(root))}[/]")
        _console.print(f"[dim]│[/]  {' ' * 22} [dim]{escape(description)}[/]")
        _console.print("[dim]│[/]")
    _console.print()


def _list_templates_callback(value: bool) -> None:
    if value:
        _print_templates()
        raise Exit()


def _print_step(question: str, answer: str) -> None:
    _console.print(f"[bold green]◇[/]  {question}")
    _console.print(f"[dim]│[/]  {escape(answer)}")
    _console.print("[dim]│[/]")


def _is_non_empty_dir(path: Path) -> bool:
    return path.is_dir() and any(path.iterdir())


@app.command()
def create(
    destination: Annotated[Path, Argument(help="Directory to create the project in")],
    template: Annotated[
        str | None,
        Option(
            "--template",
            "-t",
            help=(
                f"Template name or directory [default: {DEFAULT_TEMPLATE}]. "
                "Run with --list-templates / -l to see all options."
            ),
            show_default=False,
        ),
    ] = None,
    assignments: Annotated[
        list[str] | None,
        Option("--var", "-D", metavar="KEY=VALUE", help="Set a template variable. Repeatable."),
    ] = None,
    loaders: Annotated[
        list[str] | None,
        Option("--loader", "-L", help="Include a loader variant. Repeatable."),
    ] = None,
    config: Annotated[
        Path | None,
        Option("--config", "-c", help="Answers file (TOML). Command-line values win."),
    ] = None,
    overwrite: Annotated[
        bool, Option("--overwrite", help="Write into a non-empty destination.")
    ] = False,
    dry_run: Annotated[
        bool, Option("--dry-run", help="Render everything but write nothing.")
    ] = False,
    no_input: Annotated[
        bool, Option("--no-input", help="Never prompt; fail on missing values instead.")
    ] = False,
    output_format: Annotated[
        OutputFormat, Option("--output-format", help="Result format.")
    ] = OutputFormat.TEXT,
    verbose: Annotated[bool, Option("--verbose", "-v", help="Log progress to stderr.")] = False,
    list_templates: Annotated[
        bool,
        Option(
            "--list-templates",
            "-l",
            help="List all available templates and exit.",
            callback=_list_templates_callback,
            is_eager=True,
            expose_value=False,
        ),
    ] = False,
) -> None:
    """Create a new project from a template."""
    _configure_logging(verbose)
    try:
        result = _create(
            destination,
            template=template,
            assignments=assignments or [],
            loaders=loaders,
            config=config,
            overwrite=overwrite,
            dry_run=dry_run,
            output_format=output_format,
            # JSON output must stay parseable, so it never prompts.
            interactive=not no_input and output_format is OutputFormat.TEXT,
        )
    except ModstampError as exc:
        _fail(exc, output_format)

    if output_format is OutputFormat.JSON:
        _console.print_json(data=result)


def _create(
    destination: Path,
    *,
    template: str | None,
    assignments: list[str],
    loaders: list[str] | None,
    config: Path | None,
    overwrite: bool,
    dry_run: bool,
    output_format: OutputFormat,
    interactive: bool,
) -> dict[str, Any]:
    text = output_format is OutputFormat.TEXT
    settings = Settings.from_env()

    answers = load_answers(config) if config is not None else Answers()
    answers = answers.merged(
        template=template,
        variables=parse_assignments(assignments),
        variants=loaders or None,
        overwrite=True if overwrite else None,
    )
    manifest = _load(answers.template or DEFAULT_TEMPLATE, settings)
    logger.debug("Using template %r from %s", manifest.name, manifest.root)

    if text:
        _console.print()
        _console.print(f"[bold cyan]●[/]  modstamp v{modstamp.__version__}")
        _console.print("[dim]│[/]")
        _print_step("Template", manifest.name)

    values = dict(answers.variables)
    if interactive:
        values.update(prompt_variables(manifest, values))

    if answers.variants is not None:
        variant_names = answers.variants
        if text:
            labels = [v.display for v in select_variants(manifest, variant_names)]
            _print_step("Select loaders", ", ".join(labels) or "none")
    elif interactive and manifest.variants:
        variant_names = prompt_variants(manifest)
    else:
        variant_names = []

    context = build_context(manifest, values)
    variants = select_variants(manifest, variant_names)
    plan = plan_project(manifest, context, variants)

    write_over = bool(answers.overwrite)
    if not write_over and not dry_run and interactive and _is_non_empty_dir(destination):
        write_over = prompt_overwrite(destination)

    files = [f.output.as_posix() for f in plan.files]
    unused = plan.unused_variables
    if not dry_run:
        write_project(plan, destination, overwrite=write_over, lock_dir=settings.lock_dir)

    if text:
        verb = "Would create" if dry_run else "Creating"
        _console.print(f"[bold green]◇[/]  {verb} {escape(str(destination))}/...")
        for name in files:
            _console.print(f"[dim]│[/]  {escape(name)}")
        if unused:
            _console.print(f"[dim]│[/]  [dim]unused variables: {escape(', '.join(unused))}[/]")
        _console.print("[dim]│[/]")
        if dry_run:
            _console.print(f"[bold cyan]●[/]  Dry run: {len(files)} files, nothing written.")
        else:
            _console.print(f"[bold cyan]●[/]  Done! cd {escape(str(destination))}")
        _console.print()

    return {
        "status": "ok",
        "template": manifest.name,
        "destination": str(destination),
        "dry_run": dry_run,
        "variants": [v.name for v in variants],
        "files": files,
        "unused_variables": unused,
    }


@app.command()
def variables(
    template: Annotated[
        str, Option("--template", "-t", help="Template name or directory.")
    ] = DEFAULT_TEMPLATE,
) -> None:
    """Show the variables a template declares."""
    try:
        manifest = _load(template, Settings.from_env())
    except ModstampError as exc:
        _fail(exc)

    table = Table(title=f"{manifest.name} variables")
    table.add_column("Name", style="bold cyan")
    table.add_column("Kind")
    table.add_column("Default")
    table.add_column("Required")
    for v in manifest.variables:
        if v.derive is not None:
            default = f"{v.derive.transform}({v.derive.source})"
        elif v.kind is VariableKind.CHOICE:
            default = f"{v.default or ''} ({' | '.join(v.choices)})".strip()
        else:
            default = v.default or ""
        table.add_row(escape(v.name), v.kind.value, escape(default), "yes" if v.required else "")
    _console.print(table)

    if manifest.variants:
        names = ", ".join(f"{v.name} ({v.display})" for v in manifest.variants)
        _console.print(f"[bold]Loaders:[/] {escape(names)}")


@app.command()
def validate(
    template: Annotated[
        str, Option("--template", "-t", help="Template name or directory.")
    ] = DEFAULT_TEMPLATE,
    verbose: Annotated[bool, Option("--verbose", "-v", help="Log progress to stderr.")] = False,
) -> None:
    """Check a template's manifest and every placeholder in its files and paths."""
    _configure_logging(verbose)
    try:
        manifest = _load(template, Settings.from_env())
        problems = check_template(manifest)
    except ModstampError as exc:
        _fail(exc)

    if problems:
        for problem in problems:
            _console.print(f"[bold red]Error:[/] {escape(str(problem))}")
        name = escape(manifest.name)
        _console.print(f"[bold red]●[/]  {len(problems)} problem(s) in template {name}")
        raise Exit(code=ValidationError.exit_code)

    _console.print(f"[bold green]●[/]  Template {escape(manifest.name)} is valid.")
