"""Blocking execution of system commands.

Every collaborator that talks to macOS goes through a CommandRunner so that
commands are argv lists (never shell strings) and failures surface as
CommandError.
"""

import logging
import os
import subprocess
from typing import Optional, Sequence

from .errors import CommandError, ConfigurationError

logger = logging.getLogger(__name__)

REDACTED = "********"


class CommandRunner:
    """Runs commands with subprocess.run and raises CommandError on failure.

    There is no timeout: a hung command blocks the caller.

    Attributes:
        verbose: Log each command at INFO instead of DEBUG
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def run(
        self,
        argv: Sequence[str],
        as_user: Optional[str] = None,
        secrets: Sequence[str] = (),
    ) -> subprocess.CompletedProcess:
        """Run a command and return the completed process.

        Args:
            argv: Command and arguments
            as_user: Run the command as this user through sudo -u
            secrets: Argument values to redact from logs and errors

        Returns:
            subprocess.CompletedProcess with text stdout/stderr

        Raises:
            CommandError: If the command cannot be started or exits non-zero
        """
        command = list(argv)
        if as_user:
            command = ["sudo", "-u", as_user, *command]

        display = [REDACTED if arg in secrets else arg for arg in command]
        logger.log(
            logging.INFO if self.verbose else logging.DEBUG,
            f"Executing: {' '.join(display)}",
        )

        try:
            process = subprocess.run(command, capture_output=True, text=True)
        except (FileNotFoundError, PermissionError) as e:
            raise CommandError(display, 127, str(e)) from e

        if process.returncode != 0:
            raise CommandError(display, process.returncode, process.stderr or "")

        return process


def ensure_privileged() -> None:
    """Require an effective UID of 0.

    Raises:
        ConfigurationError: If not running as root
    """
    if os.geteuid() != 0:
        raise ConfigurationError("Bulk user creation requires administrator privileges")
