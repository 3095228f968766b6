"""Output formatting utilities using Rich."""

from typing import Any

from rich.console import Console
from rich.prompt import Confirm, Prompt
from rich.table import Table

console = Console()


def print_error(msg: str) -> None:
    """Print an error message to the console.

    Args:
        msg: The error message to display.
    """
    console.print(f"[bold red]Error:[/bold red] {msg}")


def print_success(msg: str) -> None:
    """Print a success message to the console.

    Args:
        msg: The success message to display.
    """
    console.print(f"[bold green]✓[/bold green] {msg}")


def print_warning(msg: str) -> None:
    console.print(f"[bold yellow]Warning:[/bold yellow] {msg}")


def print_info(msg: str) -> None:
    console.print(f"[cyan]{msg}[/cyan]")


def print_cancelled(msg: str = "Cancelled") -> None:
    console.print(f"[yellow]{msg}[/yellow]")


def print_result(result: Any) -> bool:
    """Print an action outcome as success or error.

    Args:
        result: Object with `ok` and `message` attributes.

    Returns:
        Whether the action succeeded.
    """
    if result.ok:
        print_success(result.message)
    else:
        print_error(result.message)
    return result.ok


def create_table(
    title: str | None = None,
    columns: list[tuple[str, str]] | None = None,
    rows: list[list[str]] | None = None,
    show_header: bool = True,
) -> Table:
    """Create a Rich table.

    Args:
        title: Optional table title.
        columns: List of (column_name, column_style) tuples.
        rows: List of row data.
        show_header: Whether to show the header row.

    Returns:
        A configured Rich Table instance.
    """
    table = Table(title=title, show_header=show_header, header_style="bold cyan")

    for col_name, col_style in columns or []:
        table.add_column(col_name, style=col_style)

    for row in rows or []:
        table.add_row(*row)

    return table


def confirm(message: str, default: bool = False) -> bool:
    """Prompt user for confirmation.

    Args:
        message: The confirmation message to display.
        default: Default choice if user just presses enter.

    Returns:
        True if user confirmed, False otherwise.
    """
    return Confirm.ask(message, default=default)


def prompt(message: str, default: str | None = None, password: bool = False) -> str:
    """Prompt user for text input.

    Args:
        message: The prompt message to display.
        default: Default value if user just presses enter.
        password: Hide the typed characters.

    Returns:
        The user's input string.
    """
    if default is None:
        return Prompt.ask(message, password=password)
    return Prompt.ask(message, default=default, password=password)


def usage_bar(percent: float | None, width: int = 10, label: str = "") -> str:
    """Format a usage bar with color coding.

    Args:
        percent: Usage percentage (0-100), None when unknown
        width: Bar width in characters
        label: Extra label after the bar
    """
    if percent is None:
        return "[dim]-[/dim]"
    percent = max(0.0, min(100.0, percent))
    filled = round(percent / 100 * width)
    empty = width - filled
    color = "green" if percent < 60 else "yellow" if percent < 85 else "red"
    bar = f"[{color}]{'━' * filled}[/{color}][dim]{'━' * empty}[/dim]"
    pct = f"{percent:.0f}%"
    if label:
        return f"{bar} {pct} {label}"
    return f"{bar} {pct}"


def yes_no(value: bool) -> str:
    return "[green]yes[/green]" if value else "[dim]no[/dim]"


def get_status_color(status: str) -> str:
    """Get the Rich color name for a status string.

    Args:
        status: Pool health, interface status or VM state.

    Returns:
        Rich color name ('green', 'red', 'yellow', or 'white').
    """
    status_lower = status.lower()
    if status_lower in ["running", "active", "online", "up", "associated", "completed"]:
        return "green"
    elif status_lower in ["stopped", "inactive", "offline", "down", "faulted", "unavail", "removed", "no carrier"]:
        return "red"
    elif status_lower in ["degraded", "in_progress", "locked", "suspended"]:
        return "yellow"
    else:
        return "white"


def colored_status(status: str) -> str:
    color = get_status_color(status)
    return f"[{color}]{status}[/{color}]"
