"""Tests for shell command construction."""

import shlex

import pytest

from bsdctl.remote.exceptions import InvalidArgumentError
from bsdctl.utils.shell import escape_cron, join, quote, quote_path, require, ssh_hop, unescape_cron

from .conftest import make_profile


class TestQuote:
    @pytest.mark.parametrize(
        "value",
        ["tank/data set", "it's", "a;rm -rf /", "$(reboot)", "`id`", "x && y", "name with\nnewline"],
    )
    def test_hostile_values_stay_one_word(self, value):
        assert shlex.split(quote(value)) == [value]

    def test_plain_value_unchanged(self):
        assert quote("tank/data") == "tank/data"

    def test_join(self):
        line = join(["zfs", "create", "-o", "mountpoint=/mnt/my data", "tank/a;b"])
        assert shlex.split(line) == ["zfs", "create", "-o", "mountpoint=/mnt/my data", "tank/a;b"]

    def test_quote_path_keeps_home_expandable(self):
        assert quote_path("~/.ssh/id_replication") == "~/.ssh/id_replication"
        assert quote_path("~/my keys/id").startswith("~/'")
        assert quote_path("~") == "~"
        assert quote_path("/root/a b") == "'/root/a b'"


class TestRequire:
    def test_strips(self):
        assert require("  tank ", "Pool") == "tank"

    @pytest.mark.parametrize("value", ["", "   ", None])
    def test_rejects_empty(self, value):
        with pytest.raises(InvalidArgumentError, match="Pool must not be empty"):
            require(value, "Pool")


class TestCronEscaping:
    def test_escape_percent(self):
        assert escape_cron("date +%Y%m%d") == "date +\\%Y\\%m\\%d"

    def test_unescape_inverts_escape(self):
        command = "zfs snapshot tank@auto-$(date +%s)"
        assert unescape_cron(escape_cron(command)) == command


class TestSshHop:
    def test_builds_batch_mode_hop(self):
        target = make_profile("beta", "beta.example.org", port=2222)
        line = ssh_hop(target, "~/.ssh/id_replication", "zfs receive -F 'tank/backup'")
        words = shlex.split(line)
        assert words[:3] == ["ssh", "-i", "~/.ssh/id_replication"]
        assert "BatchMode=yes" in words
        assert words[words.index("-p") + 1] == "2222"
        assert words[-2] == "root@beta.example.org"
        assert words[-1] == "zfs receive -F 'tank/backup'"

    def test_custom_options(self):
        target = make_profile("beta", "beta.example.org")
        words = shlex.split(ssh_hop(target, "/k", "true", options=("BatchMode=yes", "ConnectTimeout=5")))
        assert words.count("-o") == 2
        assert "ConnectTimeout=5" in words
