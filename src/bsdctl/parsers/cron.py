"""Parser for `crontab -l` output."""

import logging
import re

from ..models.tasks import CronTask
from ..remote.exceptions import ParseError

logger = logging.getLogger(__name__)

_ATOM = r"(?:\*|\d+(?:-\d+)?|[A-Za-z]{3}(?:-[A-Za-z]{3})?)(?:/\d+)?"
_FIELD_RE = re.compile(rf"^{_ATOM}(?:,{_ATOM})*$")
_ENV_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*\s*=")


def is_valid_field(value: str) -> bool:
    """Whether a value is a plausible cron schedule field."""
    return bool(_FIELD_RE.match(value))


def parse_cron_line(line: str) -> CronTask:
    """Parse one crontab line; a leading '#' marks a disabled task.

    Raises:
        ParseError: If the line is not a five-field schedule plus command
    """
    original = line.rstrip("\n")
    text = original.strip()
    enabled = True
    if text.startswith("#"):
        enabled = False
        text = text.lstrip("#").strip()

    fields = text.split(None, 5)
    if len(fields) < 6:
        raise ParseError("Expected five schedule fields and a command", original)
    schedule, command = fields[:5], fields[5]
    if not all(is_valid_field(field) for field in schedule):
        raise ParseError("Invalid schedule", original)
    minute, hour, day_of_month, month, day_of_week = schedule
    return CronTask(
        minute=minute,
        hour=hour,
        day_of_month=day_of_month,
        month=month,
        day_of_week=day_of_week,
        command=command.strip(),
        enabled=enabled,
        original_line=original,
    )


def parse_crontab(output: str) -> list[CronTask]:
    """Parse `crontab -l`.

    Environment assignments and comments that do not carry a valid
    schedule are ignored.

    Args:
        output: Command output

    Returns:
        Enabled and disabled tasks in file order
    """
    tasks = []
    for line in output.splitlines():
        stripped = line.strip()
        if not stripped or _ENV_RE.match(stripped):
            continue
        try:
            tasks.append(parse_cron_line(line))
        except (ParseError, ValueError) as e:
            if not stripped.startswith("#"):
                logger.debug("Skipping crontab line %r: %s", line, e)
    return tasks
