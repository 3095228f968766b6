"""Helper utilities."""

import asyncio
from functools import wraps
from typing import Any, Callable

from typer.core import TyperGroup


def async_to_sync(func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator to run async command callbacks synchronously."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return asyncio.run(func(*args, **kwargs))

    return wrapper


def ordered_group(order: list[str]) -> type[TyperGroup]:
    """Create a TyperGroup subclass that lists commands in the given order."""

    class _OrderedGroup(TyperGroup):
        def list_commands(self, ctx: Any) -> list[str]:
            commands = super().list_commands(ctx)
            rank = {n: i for i, n in enumerate(order)}
            return sorted(commands, key=lambda n: rank.get(n, 99))

    return _OrderedGroup


def parse_hhmm(value: str) -> tuple[int, int]:
    """Parse an HH:MM time of day.

    Args:
        value: Time such as "02:30"

    Returns:
        (hour, minute)

    Raises:
        ValueError: If the value is not a valid time
    """
    hour_text, sep, minute_text = value.strip().partition(":")
    if not sep:
        raise ValueError(f"Expected HH:MM, got '{value}'")
    hour, minute = int(hour_text), int(minute_text)
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Time out of range: '{value}'")
    return hour, minute
