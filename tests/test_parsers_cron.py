"""Tests for crontab parsing."""

import pytest

from bsdctl.parsers.cron import is_valid_field, parse_cron_line, parse_crontab
from bsdctl.remote.exceptions import ParseError

CRONTAB = """\
SHELL=/bin/sh
PATH=/etc:/bin:/sbin:/usr/bin:/usr/sbin
# Nightly backups
30 2 * * * /usr/local/bin/backup.sh --full
#*/15 * * * * /usr/local/bin/poll.sh
0 4 1 * * zfs snapshot tank@monthly-$(date +\\%Y\\%m)
not a cron line at all
0 25 * * * /bin/bad-hour-but-valid-syntax

*/5 * * * 1-5 echo weekdays
"""


class TestParseCronLine:
    def test_enabled(self):
        task = parse_cron_line("30 2 * * * /usr/local/bin/backup.sh --full\n")
        assert task.enabled
        assert task.schedule == "30 2 * * *"
        assert task.command == "/usr/local/bin/backup.sh --full"
        assert task.original_line == "30 2 * * * /usr/local/bin/backup.sh --full"

    def test_disabled(self):
        task = parse_cron_line("#*/15 * * * * /usr/local/bin/poll.sh")
        assert not task.enabled
        assert task.minute == "*/15"
        assert task.to_line() == "#*/15 * * * * /usr/local/bin/poll.sh"

    def test_command_keeps_inner_spacing(self):
        task = parse_cron_line("0 0 * * * echo 'a   b'  > /tmp/x")
        assert task.command == "echo 'a   b'  > /tmp/x"

    @pytest.mark.parametrize(
        "line",
        ["# Nightly backups", "30 2 * *", "every day at noon run this command", "30 2 * * *"],
    )
    def test_rejected(self, line):
        with pytest.raises(ParseError):
            parse_cron_line(line)

    def test_field_validation(self):
        for value in ["*", "5", "1-5", "*/10", "0,30", "mon-fri", "Jan", "1-10/2"]:
            assert is_valid_field(value), value
        for value in ["", "every", "5x", "1--2"]:
            assert not is_valid_field(value), value


class TestParseCrontab:
    def test_skips_environment_comments_and_garbage(self):
        tasks = parse_crontab(CRONTAB)
        assert [task.schedule for task in tasks] == [
            "30 2 * * *",
            "*/15 * * * *",
            "0 4 1 * *",
            "0 25 * * *",
            "*/5 * * * 1-5",
        ]
        assert [task.enabled for task in tasks] == [True, False, True, True, True]

    def test_empty(self):
        assert parse_crontab("") == []
