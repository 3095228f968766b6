"""Utility functions and helpers."""

from .helpers import (
    async_to_sync,
    ordered_group,
    parse_hhmm,
)
from .log import setup_logging
from .output import (
    colored_status,
    confirm,
    console,
    create_table,
    get_status_color,
    print_cancelled,
    print_error,
    print_info,
    print_result,
    print_success,
    print_warning,
    prompt,
    usage_bar,
    yes_no,
)
from .shell import (
    escape_cron,
    join,
    quote,
    quote_path,
    require,
    ssh_hop,
    unescape_cron,
)

__all__ = [
    "async_to_sync",
    "colored_status",
    "confirm",
    "console",
    "create_table",
    "escape_cron",
    "get_status_color",
    "join",
    "ordered_group",
    "parse_hhmm",
    "print_cancelled",
    "print_error",
    "print_info",
    "print_result",
    "print_success",
    "print_warning",
    "prompt",
    "quote",
    "quote_path",
    "require",
    "setup_logging",
    "ssh_hop",
    "unescape_cron",
    "usage_bar",
    "yes_no",
]
