"""Tests for CommandRunner and the privilege check, with subprocess mocked out."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from duidstuff import cli
from duidstuff.runner import CommandError, CommandRunner, ps_quote


def _completed(returncode: int = 0, stdout: str = "", stderr: str = "") -> MagicMock:
    result = MagicMock()
    result.returncode = returncode
    result.stdout = stdout
    result.stderr = stderr
    return result


class TestCommandRunner:
    @patch("duidstuff.runner.subprocess.run")
    def test_returns_stdout(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _completed(stdout="hello\n")
        assert CommandRunner(timeout=3).run(["echo", "hello"]) == "hello\n"
        mock_run.assert_called_once_with(["echo", "hello"], capture_output=True, text=True, timeout=3)

    @patch("duidstuff.runner.subprocess.run")
    def test_nonzero_exit(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _completed(returncode=4, stderr="permission denied\n")
        with pytest.raises(CommandError, match="permission denied") as exc:
            CommandRunner().run(["reg", "add", "x"])
        assert exc.value.returncode == 4
        assert exc.value.cmd == ["reg", "add", "x"]

    @patch("duidstuff.runner.subprocess.run")
    def test_nonzero_exit_unchecked(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _completed(returncode=1, stdout="partial")
        assert CommandRunner().run(["defaults", "read", "x"], check=False) == "partial"

    @patch("duidstuff.runner.subprocess.run", side_effect=FileNotFoundError("no such file: nmcli"))
    def test_missing_binary(self, mock_run: MagicMock) -> None:
        with pytest.raises(CommandError, match="could not be started") as exc:
            CommandRunner().run(["nmcli"])
        assert exc.value.returncode is None

    @patch("duidstuff.runner.subprocess.run", side_effect=subprocess.TimeoutExpired(["sleep"], 1))
    def test_timeout(self, mock_run: MagicMock) -> None:
        with pytest.raises(CommandError, match="timed out"):
            CommandRunner(timeout=1).run(["sleep", "10"])

    @patch("duidstuff.runner.subprocess.run")
    def test_succeeds(self, mock_run: MagicMock) -> None:
        mock_run.side_effect = [_completed(), _completed(returncode=3), FileNotFoundError()]
        runner = CommandRunner()
        assert runner.succeeds(["pgrep", "-x", "dhclient"]) is True
        assert runner.succeeds(["pgrep", "-x", "dhclient"]) is False
        assert runner.succeeds(["pgrep", "-x", "dhclient"]) is False


class TestIsPrivileged:
    @patch("duidstuff.cli.sys.platform", "linux")
    @patch("duidstuff.cli.os.geteuid", return_value=0, create=True)
    def test_root(self, mock_geteuid: MagicMock) -> None:
        assert cli.is_privileged() is True

    @patch("duidstuff.cli.sys.platform", "linux")
    @patch("duidstuff.cli.os.geteuid", return_value=501, create=True)
    def test_user(self, mock_geteuid: MagicMock) -> None:
        assert cli.is_privileged() is False

    @patch("duidstuff.cli.sys.platform", "win32")
    @patch("duidstuff.cli.subprocess.run")
    def test_windows_net_session(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _completed(returncode=2)
        assert cli.is_privileged() is False
        mock_run.assert_called_once_with(["net", "session"], capture_output=True)


class TestPsQuote:
    @pytest.mark.parametrize(
        "value,expected", [("Ethernet", "'Ethernet'"), ("Bob's NIC", "'Bob''s NIC'"), ("''", "''''''")]
    )
    def test_quotes(self, value: str, expected: str) -> None:
        assert ps_quote(value) == expected
