"""
Terminal UI helpers.

Everything interactive goes through this module so flows stay testable:
prompts return the user's selection, or None when the prompt was dismissed
(Ctrl-C / Esc), which callers treat as a silent abort.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Optional, Sequence

import questionary
from prompt_toolkit import prompt
from prompt_toolkit.completion import PathCompleter
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

console = Console()
err_console = Console(stderr=True)

MENU_STYLE = questionary.Style(
    [
        ("qmark", "fg:#7C3AED bold"),
        ("question", "bold"),
        ("pointer", "fg:#06B6D4 bold"),
        ("highlighted", "fg:#06B6D4 bold"),
        ("selected", "fg:#22C55E"),
        ("instruction", "fg:#6B7280 italic"),
    ]
)


def format_menu_choices(
    items: Iterable[dict],
    title_field: str = "title",
    value_field: str = "value",
    checked_field: str = "checked",
) -> List[questionary.Choice]:
    """Turn a list of dicts into questionary choices."""
    choices: List[questionary.Choice] = []
    for item in items:
        choices.append(
            questionary.Choice(
                title=str(item[title_field]),
                value=item[value_field],
                checked=bool(item.get(checked_field, False)),
            )
        )
    return choices


def prompt_toolkit_menu(choices: Sequence[questionary.Choice], message: str = "Select an option:") -> Any:
    """Single-select menu. Returns the chosen value or None if cancelled."""
    if not choices:
        return None
    return questionary.select(message, choices=list(choices), style=MENU_STYLE).ask()


def prompt_multi_select(
    choices: Sequence[questionary.Choice],
    message: str,
    instruction: str = "(Space to toggle, Enter to apply)",
) -> Optional[List[Any]]:
    """Multi-select list. Returns selected values, or None if cancelled."""
    if not choices:
        return []
    return questionary.checkbox(message, choices=list(choices), instruction=instruction, style=MENU_STYLE).ask()


def prompt_yes_no(message: str, default: bool = True) -> Optional[bool]:
    """Yes/no confirmation. Returns None if cancelled."""
    return questionary.confirm(message, default=default, style=MENU_STYLE).ask()


def prompt_text(message: str, default: str = "", instruction: Optional[str] = None) -> Optional[str]:
    """Free-text input, stripped. Returns None if cancelled."""
    answer = questionary.text(message, default=default, instruction=instruction, style=MENU_STYLE).ask()
    if answer is None:
        return None
    return answer.strip()


def prompt_path(message: str) -> Optional[str]:
    """Directory path input with tab completion."""
    try:
        answer = prompt(f"{message} ", completer=PathCompleter(expanduser=True, only_directories=True))
    except (KeyboardInterrupt, EOFError):
        return None
    return answer.strip()


# --- Rendering ---

def render_banner(version: str) -> None:
    title = Text.assemble(("agm", "bold white on #7C3AED"), " ", (f"v{version}", "#6B7280"))
    console.print()
    console.print(title)
    console.print("[#06B6D4]Agent skills manager[/]")
    console.print()


def render_section(title: str) -> None:
    console.print()
    console.print(f"[bold #7C3AED]── {escape(title)} ──[/]")


def render_success(message: str) -> None:
    console.print(f"[#22C55E]✓ {escape(message)}[/]")


def render_error(message: str, stderr: bool = False) -> None:
    (err_console if stderr else console).print(f"[#EF4444]✗ {escape(message)}[/]")


def render_warning(message: str) -> None:
    console.print(f"[#F59E0B]! {escape(message)}[/]")


def render_info(message: str) -> None:
    console.print(f"[#06B6D4]› {escape(message)}[/]")


def render_muted(message: str) -> None:
    console.print(f"[#6B7280]{escape(message)}[/]")


def render_failure_panel(title: str, detail: str) -> None:
    console.print(Panel(Text(detail.strip() or title), title=escape(title), border_style="red"))
