"""Tests for command execution."""

import logging
import subprocess
from unittest.mock import patch

import pytest

from macprov.errors import CommandError, ConfigurationError
from macprov.shell import CommandRunner, ensure_privileged


def _completed(argv, returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(argv, returncode, stdout=stdout, stderr=stderr)


@patch("macprov.shell.subprocess.run")
def test_run_passes_argv_list(mock_run):
    mock_run.return_value = _completed(["sw_vers"], stdout="14.5\n")

    process = CommandRunner().run(["sw_vers", "-productVersion"])

    mock_run.assert_called_once_with(
        ["sw_vers", "-productVersion"], capture_output=True, text=True
    )
    assert process.stdout == "14.5\n"


@patch("macprov.shell.subprocess.run")
def test_run_as_user_prefixes_sudo(mock_run):
    mock_run.return_value = _completed([])

    CommandRunner().run(["mdutil", "-i", "off", "-a"], as_user="lab601")

    argv = mock_run.call_args[0][0]
    assert argv == ["sudo", "-u", "lab601", "mdutil", "-i", "off", "-a"]


@patch("macprov.shell.subprocess.run")
def test_non_zero_exit_raises(mock_run):
    mock_run.return_value = _completed([], returncode=56, stderr="Creating user record failed")

    with pytest.raises(CommandError) as exc_info:
        CommandRunner().run(["sysadminctl", "-addUser", "lab601"])

    assert exc_info.value.returncode == 56
    assert exc_info.value.stderr == "Creating user record failed"
    assert exc_info.value.argv == ["sysadminctl", "-addUser", "lab601"]


@patch("macprov.shell.subprocess.run", side_effect=FileNotFoundError("No such file: 'sysadminctl'"))
def test_missing_binary_raises_command_error(mock_run):
    with pytest.raises(CommandError) as exc_info:
        CommandRunner().run(["sysadminctl", "-addUser", "lab601"])

    assert exc_info.value.returncode == 127


@patch("macprov.shell.subprocess.run")
def test_secrets_redacted_from_logs_and_errors(mock_run, caplog):
    mock_run.return_value = _completed([], returncode=1, stderr="eDSAuthFailed")

    with caplog.at_level(logging.DEBUG, logger="macprov.shell"):
        with pytest.raises(CommandError) as exc_info:
            CommandRunner(verbose=True).run(
                ["dscl", ".", "-passwd", "/Users/lab601", "hunter2"], secrets=["hunter2"]
            )

    assert "hunter2" not in caplog.text
    assert "********" in caplog.text
    assert "hunter2" not in exc_info.value.argv
    # The real value is still passed to the command
    assert mock_run.call_args[0][0][-1] == "hunter2"


@patch("macprov.shell.subprocess.run")
def test_verbose_logs_at_info(mock_run, caplog):
    mock_run.return_value = _completed([])

    with caplog.at_level(logging.INFO, logger="macprov.shell"):
        CommandRunner(verbose=True).run(["dscl", ".", "-list", "/Users", "UniqueID"])
        CommandRunner(verbose=False).run(["dscl", ".", "-delete", "/Users/lab601"])

    assert "Executing: dscl . -list /Users UniqueID" in caplog.text
    assert "-delete" not in caplog.text


@patch("macprov.shell.os.geteuid", return_value=0)
def test_ensure_privileged_as_root(mock_geteuid):
    ensure_privileged()


@patch("macprov.shell.os.geteuid", return_value=501)
def test_ensure_privileged_rejects_non_root(mock_geteuid):
    with pytest.raises(ConfigurationError, match="administrator privileges"):
        ensure_privileged()
