"""Scheduled task (cron) and replication models."""

import re
from enum import Enum

from pydantic import BaseModel, Field, model_validator

WEEKDAYS = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

# Retention presets in seconds, 0 keeps snapshots forever.
RETENTION_PRESETS: dict[str, int] = {
    "forever": 0,
    "1h": 3600,
    "1d": 86400,
    "1w": 604800,
    "30d": 2592000,
    "90d": 7776000,
    "365d": 31536000,
}

_RETENTION_NAMES = {
    0: "Forever",
    3600: "1 Hour",
    86400: "1 Day",
    604800: "1 Week",
    2592000: "1 Month",
    7776000: "3 Months",
    31536000: "1 Year",
}

_SOURCE_RE = re.compile(r'SNAP="([^@"]+)@auto-')
_TARGET_RE = re.compile(r"ssh [^']+?(\S+@\S+)\s+'zfs receive")
_DEST_RE = re.compile(r"zfs receive -F ([^']+)'")
_RETENTION_RE = re.compile(r"- (\d+)\)\);")


def describe_retention(seconds: int | None) -> str:
    """Human readable retention period.

    Args:
        seconds: Retention in seconds, None or 0 for forever

    Returns:
        Description such as "1 Week" or "12 hours"
    """
    if not seconds:
        return "Forever"
    if seconds in _RETENTION_NAMES:
        return _RETENTION_NAMES[seconds]
    if seconds < 3600:
        return f"{seconds // 60} minutes"
    if seconds < 86400:
        return f"{seconds // 3600} hours"
    return f"{seconds // 86400} days"


def _ordinal(day: int) -> str:
    if day in (1, 21, 31):
        return f"{day}st"
    if day in (2, 22):
        return f"{day}nd"
    if day in (3, 23):
        return f"{day}rd"
    return f"{day}th"


class CadenceKind(str, Enum):
    """How often a scheduled job runs."""

    EVERY_MINUTES = "every_minutes"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class Cadence(BaseModel):
    """A schedule that maps onto the five cron fields."""

    model_config = {"frozen": True}

    kind: CadenceKind
    interval: int = Field(5, ge=1, le=59)
    minute: int = Field(0, ge=0, le=59)
    hour: int = Field(0, ge=0, le=23)
    day_of_week: int = Field(0, ge=0, le=6)
    day_of_month: int = Field(1, ge=1, le=31)

    @classmethod
    def every_minutes(cls, interval: int) -> "Cadence":
        return cls(kind=CadenceKind.EVERY_MINUTES, interval=interval)

    @classmethod
    def hourly(cls, minute: int = 0) -> "Cadence":
        return cls(kind=CadenceKind.HOURLY, minute=minute)

    @classmethod
    def daily(cls, hour: int, minute: int = 0) -> "Cadence":
        return cls(kind=CadenceKind.DAILY, hour=hour, minute=minute)

    @classmethod
    def weekly(cls, day_of_week: int, hour: int, minute: int = 0) -> "Cadence":
        return cls(kind=CadenceKind.WEEKLY, day_of_week=day_of_week, hour=hour, minute=minute)

    @classmethod
    def monthly(cls, day_of_month: int, hour: int = 0, minute: int = 0) -> "Cadence":
        return cls(kind=CadenceKind.MONTHLY, day_of_month=day_of_month, hour=hour, minute=minute)

    def cron_fields(self) -> tuple[str, str, str, str, str]:
        """Return (minute, hour, day_of_month, month, day_of_week)."""
        if self.kind is CadenceKind.EVERY_MINUTES:
            return (f"*/{self.interval}", "*", "*", "*", "*")
        if self.kind is CadenceKind.HOURLY:
            return (str(self.minute), "*", "*", "*", "*")
        if self.kind is CadenceKind.DAILY:
            return (str(self.minute), str(self.hour), "*", "*", "*")
        if self.kind is CadenceKind.WEEKLY:
            return (str(self.minute), str(self.hour), "*", "*", str(self.day_of_week))
        return (str(self.minute), str(self.hour), str(self.day_of_month), "*", "*")

    @property
    def expression(self) -> str:
        return " ".join(self.cron_fields())


class ReplicationDetails(BaseModel):
    """Parameters recovered from an installed replication cron command."""

    model_config = {"frozen": True}

    source_dataset: str = "Unknown"
    target_server: str = "Local"
    target_dataset: str = "Unknown"
    retention_seconds: int | None = None

    @property
    def retention_description(self) -> str:
        return describe_retention(self.retention_seconds)


def parse_replication_details(command: str) -> ReplicationDetails | None:
    """Extract replication parameters from a cron command.

    Args:
        command: The command part of a crontab line

    Returns:
        ReplicationDetails, or None if the command is not a replication job
    """
    if not is_replication_command(command):
        return None

    values: dict[str, object] = {}
    if match := _SOURCE_RE.search(command):
        values["source_dataset"] = match.group(1)
    if match := _TARGET_RE.search(command):
        values["target_server"] = match.group(1)
    if match := _DEST_RE.search(command):
        values["target_dataset"] = match.group(1)
    if match := _RETENTION_RE.search(command):
        values["retention_seconds"] = int(match.group(1))
    return ReplicationDetails(**values)


def is_replication_command(command: str) -> bool:
    return "zfs snapshot" in command and "zfs send" in command and "zfs receive" in command


class CronTask(BaseModel):
    """One scheduled job from the user's crontab."""

    model_config = {"frozen": True}

    minute: str
    hour: str
    day_of_month: str
    month: str
    day_of_week: str
    command: str
    enabled: bool = True
    original_line: str = ""

    @model_validator(mode="after")
    def check_command(self) -> "CronTask":
        if not self.command.strip():
            raise ValueError("Cron task command must not be empty")
        return self

    @property
    def schedule(self) -> str:
        return f"{self.minute} {self.hour} {self.day_of_month} {self.month} {self.day_of_week}"

    @property
    def is_replication_task(self) -> bool:
        return is_replication_command(self.command)

    @property
    def replication_details(self) -> ReplicationDetails | None:
        return parse_replication_details(self.command)

    def describe(self) -> str:
        """Human readable schedule, falling back to the raw cron fields."""
        rest_wild = self.day_of_month == "*" and self.month == "*" and self.day_of_week == "*"
        all_wild = self.hour == "*" and rest_wild

        if self.minute.startswith("*/") and self.minute[2:].isdigit() and all_wild:
            interval = int(self.minute[2:])
            return f"Every {interval} minute{'' if interval == 1 else 's'}"
        if self.minute == "*" and all_wild:
            return "Every minute"
        if not self.minute.isdigit():
            return self.schedule

        minute = int(self.minute)
        if all_wild:
            return f"Hourly at :{minute:02d}"
        if not self.hour.isdigit():
            return self.schedule

        hour = int(self.hour)
        if rest_wild:
            return f"Daily at {hour:02d}:{minute:02d}"
        if self.day_of_month == "*" and self.month == "*" and self.day_of_week.isdigit():
            dow = int(self.day_of_week)
            day = WEEKDAYS[dow] if 0 <= dow < 7 else f"day {dow}"
            return f"Weekly on {day} at {hour:02d}:{minute:02d}"
        if self.month == "*" and self.day_of_week == "*" and self.day_of_month.isdigit():
            dom = int(self.day_of_month)
            return f"Monthly on the {_ordinal(dom)} at {hour:02d}:{minute:02d}"
        return self.schedule

    def to_line(self) -> str:
        """Render the task as a crontab line, '#'-prefixed when disabled."""
        line = f"{self.schedule} {self.command}"
        return line if self.enabled else f"#{line}"
