"""Snapshot replication commands."""

import typer

from ..models.tasks import RETENTION_PRESETS, WEEKDAYS, Cadence, describe_retention
from ..utils import console, print_error, print_info
from ..utils.helpers import async_to_sync, ordered_group, parse_hhmm
from ..workflows.replication import ReplicationState
from ._shared import finish, host_option, open_pair

_CMD_ORDER = ["run", "schedule"]

app = typer.Typer(help="Replicate datasets between hosts", no_args_is_help=True, cls=ordered_group(_CMD_ORDER))

_STATE_STYLE = {
    ReplicationState.FAILED: "bold red",
    ReplicationState.DONE: "bold green",
}


def _print_state(state: ReplicationState, message: str) -> None:
    style = _STATE_STYLE.get(state, "cyan")
    console.print(f"[{style}]{state.value:>16}[/{style}]  {message}")


def _weekday(value: str) -> int:
    """Day of week from a number (0 = Sunday) or an English day name."""
    if value.isdigit():
        return int(value)
    lowered = value.lower()
    for index, name in enumerate(WEEKDAYS):
        if name.lower().startswith(lowered[:3]):
            return index
    raise ValueError(f"Unknown day of week '{value}'")


def build_cadence(
    every: int | None,
    hourly: int | None,
    daily: str | None,
    weekly: str | None,
    monthly: int | None,
    at: str,
) -> Cadence:
    """Translate the schedule options of `replicate schedule` into a Cadence.

    Exactly one of the options must be set. `weekly` is a day name or
    number; `at` gives the time for weekly and monthly schedules.

    Raises:
        ValueError: On zero or several schedules, or bad values
    """
    chosen = [opt for opt in (every, hourly, daily, weekly, monthly) if opt is not None]
    if len(chosen) != 1:
        raise ValueError("Give exactly one of --every, --hourly, --daily, --weekly or --monthly")
    if every is not None:
        return Cadence.every_minutes(every)
    if hourly is not None:
        return Cadence.hourly(hourly)
    if daily is not None:
        return Cadence.daily(*parse_hhmm(daily))
    hour, minute = parse_hhmm(at)
    if weekly is not None:
        return Cadence.weekly(_weekday(weekly), hour, minute)
    return Cadence.monthly(monthly, hour, minute)


@app.command("run")
@async_to_sync
async def run_replication(
    dataset: str = typer.Argument(..., help="Source dataset"),
    target: str = typer.Argument(..., help="Target host profile"),
    destination: str = typer.Argument(..., help="Dataset to receive into on the target"),
    host: str = host_option(),
) -> None:
    """Send a new snapshot of a dataset to another host now."""
    async with open_pair(host, target) as (source_state, target_state):
        result = await source_state.replicate(
            dataset, target_state.session.profile, destination, target_state, _print_state
        )
        if result.ok:
            mode = "incremental" if result.value.incremental else "full"
            print_info(f"{result.value.snapshot} sent ({mode})")
        finish(result)


@app.command("schedule")
@async_to_sync
async def schedule(
    dataset: str = typer.Argument(..., help="Source dataset"),
    target: str = typer.Argument(..., help="Target host profile"),
    destination: str = typer.Argument(..., help="Dataset to receive into on the target"),
    every: int = typer.Option(None, "--every", help="Every N minutes"),
    hourly: int = typer.Option(None, "--hourly", help="Hourly at this minute"),
    daily: str = typer.Option(None, "--daily", help="Daily at HH:MM"),
    weekly: str = typer.Option(None, "--weekly", help="Weekly on this day (name or 0-6, 0 = Sunday)"),
    monthly: int = typer.Option(None, "--monthly", help="Monthly on this day of the month"),
    at: str = typer.Option("00:00", "--at", help="Time of day for --weekly and --monthly"),
    retention: str = typer.Option(
        "forever", "--keep", "-k", help=f"Prune auto- snapshots older than: {', '.join(RETENTION_PRESETS)}"
    ),
    host: str = host_option(),
) -> None:
    """Install a cron entry on the source host that replicates on a schedule."""
    try:
        cadence = build_cadence(every, hourly, daily, weekly, monthly, at)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1)
    if retention not in RETENTION_PRESETS:
        print_error(f"Unknown retention '{retention}'. Choose one of: {', '.join(RETENTION_PRESETS)}")
        raise typer.Exit(1)
    retention_seconds = RETENTION_PRESETS[retention]

    async with open_pair(host, target) as (source_state, target_state):
        result = await source_state.schedule_replication(
            dataset, target_state.session.profile, destination, cadence, retention_seconds
        )
        if result.ok:
            print_info(f"Snapshots kept: {describe_retention(retention_seconds)}")
        finish(result)
