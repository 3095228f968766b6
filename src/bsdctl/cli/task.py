"""Scheduled task (crontab) commands."""

import typer
from rich.markup import escape

from ..models.tasks import CronTask
from ..state import HostState
from ..utils import console, create_table, print_error, print_info, unescape_cron, yes_no
from ..utils.helpers import async_to_sync, ordered_group
from ._shared import confirm_action, finish, host_option, open_state, yes_option

_CMD_ORDER = ["list", "add", "edit", "toggle", "delete"]

app = typer.Typer(help="Manage scheduled tasks", no_args_is_help=True, cls=ordered_group(_CMD_ORDER))


async def _load_tasks(state: HostState) -> list[CronTask]:
    result = await state.refresh_tasks()
    if result.last_error:
        print_error(state.error or result.last_error)
        raise typer.Exit(1)
    return list(result.items)


async def _task_at(state: HostState, number: int) -> CronTask:
    """Task by its 1-based position in `task list`."""
    tasks = await _load_tasks(state)
    if not 1 <= number <= len(tasks):
        print_error(f"No task #{number} ({len(tasks)} task(s) installed)")
        raise typer.Exit(1)
    return tasks[number - 1]


@app.command("list")
@async_to_sync
async def list_tasks(host: str = host_option()) -> None:
    """List scheduled tasks of the connected user."""
    async with open_state(host) as state:
        tasks = await _load_tasks(state)
        if not tasks:
            print_info("No scheduled tasks")
            return

        table = create_table(
            title="Scheduled tasks",
            columns=[("#", "dim"), ("Enabled", ""), ("Schedule", "cyan"), ("When", ""), ("Command", "")],
        )
        for number, task in enumerate(tasks, start=1):
            details = task.replication_details
            if details is not None:
                command = (
                    f"[magenta]replicate[/magenta] {details.source_dataset} → "
                    f"{details.target_server}:{details.target_dataset} "
                    f"(keep {details.retention_description})"
                )
            else:
                command = escape(task.command)
            table.add_row(str(number), yes_no(task.enabled), task.schedule, task.describe(), command)
        console.print(table)


@app.command("add")
@async_to_sync
async def add_task(
    schedule: str = typer.Argument(..., help="Five cron fields, e.g. '30 2 * * *'"),
    command: str = typer.Argument(..., help="Command to run"),
    host: str = host_option(),
) -> None:
    """Add a scheduled task."""
    fields = schedule.split()
    if len(fields) != 5:
        print_error("Schedule must have five fields: minute hour day-of-month month day-of-week")
        raise typer.Exit(1)
    async with open_state(host) as state:
        finish(await state.add_task(*fields, command))


@app.command("edit")
@async_to_sync
async def edit_task(
    number: int = typer.Argument(..., help="Task number from 'task list'"),
    schedule: str = typer.Option(None, "--schedule", "-s", help="New five-field schedule"),
    command: str = typer.Option(None, "--command", "-c", help="New command"),
    host: str = host_option(),
) -> None:
    """Change the schedule or command of a task."""
    async with open_state(host) as state:
        task = await _task_at(state, number)
        fields = schedule.split() if schedule else task.schedule.split()
        if len(fields) != 5:
            print_error("Schedule must have five fields: minute hour day-of-month month day-of-week")
            raise typer.Exit(1)
        finish(await state.update_task(task, *fields, command or unescape_cron(task.command)))


@app.command("toggle")
@async_to_sync
async def toggle_task(
    number: int = typer.Argument(..., help="Task number from 'task list'"),
    host: str = host_option(),
) -> None:
    """Enable a disabled task or disable an enabled one."""
    async with open_state(host) as state:
        finish(await state.toggle_task(await _task_at(state, number)))


@app.command("delete")
@async_to_sync
async def delete_task(
    number: int = typer.Argument(..., help="Task number from 'task list'"),
    yes: bool = yes_option(),
    host: str = host_option(),
) -> None:
    """Delete a scheduled task."""
    async with open_state(host) as state:
        task = await _task_at(state, number)
        if not confirm_action(f"Delete task '{task.schedule} {task.command}'?", yes):
            return
        finish(await state.delete_task(task))
