"""Output formatting utilities."""

import json
from typing import Any, Iterable

import yaml
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

from convoflow.flow.validator import ValidationIssue
from convoflow.runtime.session import Message, MessageRole

console = Console()

ROLE_STYLES = {
    MessageRole.BOT: "cyan",
    MessageRole.USER: "green",
    MessageRole.SYSTEM: "dim",
}


def print_json(data: Any) -> None:
    """Print data as formatted JSON."""
    json_str = json.dumps(data, indent=2, default=str, ensure_ascii=False)
    syntax = Syntax(json_str, "json", theme="monokai", line_numbers=False)
    console.print(syntax)


def print_yaml(data: Any) -> None:
    """Print data as formatted YAML."""
    yaml_str = yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
    syntax = Syntax(yaml_str, "yaml", theme="monokai", line_numbers=False)
    console.print(syntax)


def print_message(message: Message) -> None:
    """Print one transcript line as it arrives."""
    style = ROLE_STYLES.get(message.role, "")
    console.print(
        f"[{style}]{message.role.value:>6}[/{style}]  {escape(message.content)}",
        highlight=False,
        markup=True,
        soft_wrap=True,
    )


def print_issues(issues: Iterable[ValidationIssue], title: str = "Validation") -> None:
    """Print validation issues as a table."""
    issues = list(issues)
    if not issues:
        console.print("[dim]No issues found[/dim]")
        return

    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Severity")
    table.add_column("Node")
    table.add_column("Message")

    for issue in issues:
        color = "red" if issue.severity == "error" else "yellow"
        table.add_row(
            f"[{color}]{issue.severity}[/{color}]",
            issue.node_id or "-",
            escape(issue.message),
        )

    console.print(table)


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red]✗[/red] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]![/yellow] {message}")
