"""Tests for failure classification."""

from bsdctl.remote.exceptions import (
    ErrorKind,
    RemoteCommandError,
    classify_output,
    describe_kind,
)


class TestClassifyOutput:
    def test_permission_denied(self):
        assert classify_output("root@host: Permission denied (publickey).") is ErrorKind.PERMISSION_DENIED

    def test_host_key_changed_wins_over_permission_denied(self):
        output = (
            "@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@\n"
            "@    WARNING: REMOTE HOST IDENTIFICATION HAS CHANGED!     @\n"
            "@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@\n"
            "root@backup: Permission denied (publickey).\n"
        )
        assert classify_output(output) is ErrorKind.HOST_KEY_CHANGED

    def test_host_key_verification_failed(self):
        assert classify_output("Host key verification failed.") is ErrorKind.HOST_KEY_VERIFICATION_FAILED

    def test_reachability_kinds(self):
        cases = {
            "ssh: Could not resolve hostname nas: Name does not resolve": ErrorKind.UNRESOLVABLE_HOST,
            "ssh: connect to host 10.0.0.9 port 22: No route to host": ErrorKind.NO_ROUTE,
            "ssh: connect to host 10.0.0.9 port 22: Connection refused": ErrorKind.CONNECTION_REFUSED,
            "ssh: connect to host 10.0.0.9 port 22: Operation timed out": ErrorKind.TIMED_OUT,
        }
        for text, kind in cases.items():
            assert classify_output(text) is kind
            assert kind.is_reachability

    def test_not_found(self):
        assert classify_output("cannot open 'tank/nope': dataset does not exist") is ErrorKind.NOT_FOUND

    def test_unrecognised_and_empty(self):
        assert classify_output("cannot destroy: pool is busy") is None
        assert classify_output("") is None
        assert classify_output(None) is None

    def test_kind_groups(self):
        assert ErrorKind.PERMISSION_DENIED.is_authentication
        assert not ErrorKind.PERMISSION_DENIED.is_reachability
        assert ErrorKind.HOST_KEY_CHANGED.is_host_identity
        assert not ErrorKind.NOT_FOUND.is_host_identity


class TestRemoteCommandError:
    def test_message_uses_last_line_and_hint(self):
        error = RemoteCommandError("zfs destroy tank/x", "some noise\ncannot open 'tank/x': dataset does not exist\n", 1)
        assert error.kind is ErrorKind.NOT_FOUND
        assert str(error) == f"cannot open 'tank/x': dataset does not exist ({describe_kind(ErrorKind.NOT_FOUND)})"
        assert error.raw_output.startswith("some noise")

    def test_unclassified_message(self):
        error = RemoteCommandError("zpool scrub tank", "cannot scrub tank: pool is busy", 1)
        assert error.kind is None
        assert str(error) == "cannot scrub tank: pool is busy"

    def test_empty_output_reports_exit_status(self):
        error = RemoteCommandError("false", "", 1)
        assert str(error) == "exit status 1"

    def test_explicit_kind(self):
        error = RemoteCommandError("ssh", "whatever", 255, kind=ErrorKind.TIMED_OUT)
        assert error.kind is ErrorKind.TIMED_OUT
