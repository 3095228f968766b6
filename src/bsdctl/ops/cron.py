"""Scheduled task (crontab) operations for the connected user."""

import logging
from collections.abc import Callable

from ..models.tasks import CronTask
from ..parsers.cron import is_valid_field, parse_crontab
from ..remote.exceptions import InvalidArgumentError
from ..remote.session import Session
from ..utils.shell import escape_cron, quote, require

logger = logging.getLogger(__name__)

# `crontab -l` exits non-zero when the user has no crontab yet
READ_CRONTAB = "crontab -l 2>/dev/null || true"


def build_cron_line(
    minute: str,
    hour: str,
    day_of_month: str,
    month: str,
    day_of_week: str,
    command: str,
) -> str:
    """Render a crontab line from schedule fields and an unescaped command.

    Raises:
        InvalidArgumentError: On an invalid schedule field or empty command
    """
    fields = [minute, hour, day_of_month, month, day_of_week]
    for field in fields:
        if not is_valid_field(str(field).strip()):
            raise InvalidArgumentError(f"Invalid cron field '{field}'")
    command = require(command, "Command")
    if "\n" in command:
        raise InvalidArgumentError("Cron commands must be a single line")
    return " ".join(str(field).strip() for field in fields) + " " + escape_cron(command)


async def list_cron_tasks(session: Session) -> list[CronTask]:
    return parse_crontab(await session.execute(READ_CRONTAB))


async def install_cron_line(session: Session, line: str) -> None:
    """Append one line to the crontab, keeping existing entries."""
    line = require(line, "Cron line")
    await session.execute(f"(crontab -l 2>/dev/null; printf '%s\\n' {quote(line)}) | crontab -")
    logger.info("Installed cron entry: %s", line)


async def add_cron_task(
    session: Session,
    minute: str,
    hour: str,
    day_of_month: str,
    month: str,
    day_of_week: str,
    command: str,
) -> str:
    """Add a scheduled task.

    Returns:
        The installed crontab line
    """
    line = build_cron_line(minute, hour, day_of_month, month, day_of_week, command)
    await install_cron_line(session, line)
    return line


async def _rewrite(session: Session, task: CronTask, replace: Callable[[str], list[str]]) -> None:
    """Replace the first line matching task.original_line with replace(line)."""
    current = (await session.execute(READ_CRONTAB)).splitlines()
    for index, line in enumerate(current):
        if line.rstrip() == task.original_line.rstrip():
            current[index : index + 1] = replace(line)
            break
    else:
        raise InvalidArgumentError(f"Task not found in crontab: {task.original_line}")
    content = "".join(f"{line}\n" for line in current)
    await session.execute(f"printf '%s' {quote(content)} | crontab -")


async def delete_cron_task(session: Session, task: CronTask) -> None:
    await _rewrite(session, task, lambda line: [])
    logger.info("Deleted cron entry: %s", task.original_line)


async def update_cron_task(
    session: Session,
    task: CronTask,
    minute: str,
    hour: str,
    day_of_month: str,
    month: str,
    day_of_week: str,
    command: str,
) -> str:
    """Replace a task in place, keeping its enabled state.

    Returns:
        The new crontab line
    """
    line = build_cron_line(minute, hour, day_of_month, month, day_of_week, command)
    new_line = line if task.enabled else f"#{line}"
    await _rewrite(session, task, lambda old: [new_line])
    logger.info("Updated cron entry: %s", new_line)
    return new_line


async def toggle_cron_task(session: Session, task: CronTask) -> CronTask:
    """Enable a disabled task or disable an enabled one.

    Returns:
        The task as it now appears in the crontab
    """
    toggled = task.model_copy(update={"enabled": not task.enabled})
    new_line = toggled.to_line()
    await _rewrite(session, task, lambda old: [new_line])
    logger.info("%s cron entry: %s", "Enabled" if toggled.enabled else "Disabled", task.command)
    return toggled.model_copy(update={"original_line": new_line})
