"""Clack-style interactive prompts using Rich + simple-term-menu."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
import sys
from typing import TypeVar

from rich.console import Console
from rich.markup import escape
from simple_term_menu import TerminalMenu

from modstamp.core.manifest import Manifest, TemplateVariable, VariableKind

_console = Console()

T = TypeVar("T")


def _print_bar() -> None:
    _console.print("[dim]│[/]")


def _clear_lines(n: int) -> None:
    """Move cursor up *n* lines and clear to end of screen."""
    sys.stdout.write(f"\033[{n}A\033[J")
    sys.stdout.flush()


def _ask(suffix: str) -> str:
    _console.print("[dim]│[/]  ", end="")
    try:
        return input(suffix).strip()
    except EOFError:
        raise SystemExit(1) from None


def _select(question: str, options: list[T], labels: list[str], default: int = 0) -> T:
    """Display a clack-style selection prompt and return the chosen option."""
    _console.print(f"[bold cyan]◆[/]  {question}")
    _print_bar()

    menu = TerminalMenu(
        labels,
        cursor_index=default,
        menu_cursor="│  ● ",
        menu_cursor_style=("fg_cyan", "bold"),
        menu_highlight_style=("fg_cyan",),
    )
    raw_index = menu.show()

    if raw_index is None:
        raise SystemExit(1)

    index: int = int(raw_index)
    selected = options[index]

    # Overwrite the ◆ question + │ bar that stayed on screen
    _clear_lines(2)

    _console.print(f"[bold green]◇[/]  {question}")
    for i, lbl in enumerate(labels):
        if i == index:
            _console.print(f"[dim]│[/]  [bold green]●[/] {lbl}")
        else:
            _console.print(f"[dim]│[/]    [dim s]{lbl}[/]")
    _print_bar()

    return selected


def _multi_select(question: str, options: list[T], labels: list[str]) -> list[T]:
    """Display a clack-style checkbox prompt. Accepting with nothing checked is allowed."""
    _console.print(f"[bold cyan]◆[/]  {question}")
    _print_bar()

    menu = TerminalMenu(
        labels,
        multi_select=True,
        show_multi_select_hint=True,
        multi_select_select_on_accept=False,
        multi_select_empty_ok=True,
        menu_cursor="│  ",
        menu_cursor_style=("fg_cyan", "bold"),
        menu_highlight_style=("fg_cyan",),
    )
    raw_indices = menu.show()

    if menu.chosen_accept_key is None:
        raise SystemExit(1)

    indices = sorted(int(i) for i in raw_indices or ())

    _clear_lines(2)

    _console.print(f"[bold green]◇[/]  {question}")
    for i, lbl in enumerate(labels):
        if i in indices:
            _console.print(f"[dim]│[/]  [bold green]■[/] {lbl}")
        else:
            _console.print(f"[dim]│[/]    [dim s]{lbl}[/]")
    _print_bar()

    return [options[i] for i in indices]


def _text(question: str, default: str | None = None) -> str:
    """Display a clack-style free-text prompt. An empty answer takes *default*."""
    _console.print(f"[bold cyan]◆[/]  {question}")
    _print_bar()

    suffix = f" ({default}) " if default else " "
    answer = _ask(suffix)
    result = answer if answer or default is None else default

    _clear_lines(3)

    _console.print(f"[bold green]◇[/]  {question}")
    _console.print(f"[dim]│[/]  {escape(result)}")
    _print_bar()

    return result


def _confirm(question: str, default: bool = True) -> bool:
    """Display a clack-style yes/no prompt."""
    _console.print(f"[bold cyan]◆[/]  {question}")
    _print_bar()

    suffix = " [Y/n] " if default else " [y/N] "
    answer = _ask(suffix).lower()

    result = default if answer == "" else answer in ("y", "yes")

    display = "Yes" if result else "No"

    # Overwrite the ◆ question + │ bar + │ [Y/n] input line
    _clear_lines(3)

    _console.print(f"[bold green]◇[/]  {question}")
    _console.print(f"[dim]│[/]  {display}")
    _print_bar()

    return result


def prompt_variable(variable: TemplateVariable) -> str:
    """Prompt for the value of one variable, as a menu for ``choice`` variables."""
    if variable.kind is VariableKind.CHOICE:
        choices = list(variable.choices)
        default = choices.index(variable.default) if variable.default in choices else 0
        return _select(variable.label, choices, choices, default=default)
    return _text(variable.label, variable.default)


def prompt_variables(manifest: Manifest, given: Mapping[str, str]) -> dict[str, str]:
    """Prompt for every required variable that has no value in *given*."""
    return {
        v.name: prompt_variable(v) for v in manifest.required_variables() if v.name not in given
    }


def prompt_variants(manifest: Manifest) -> list[str]:
    """Prompt user to choose which loader variants to include."""
    variants = sorted(manifest.variants, key=lambda v: v.name)
    labels = [v.display for v in variants]
    chosen = _multi_select("Select loaders", variants, labels)
    return [v.name for v in chosen]


def prompt_overwrite(destination: Path) -> bool:
    """Prompt user whether to write into a non-empty destination."""
    question = f"{escape(str(destination))} is not empty. Write into it anyway?"
    return _confirm(question, default=False)
