"""
macprov errors.
"""

from typing import Sequence


class MacProvError(Exception):
    """Base exception for all macprov errors."""
    pass


class RequestValidationError(MacProvError):
    """A provisioning request that must not be acted upon."""
    pass


class ConfigurationError(MacProvError):
    """Errors in configuration or the execution environment."""
    pass


class CommandError(MacProvError):
    """A system command exited non-zero or could not be started."""

    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or "no error output"
        super().__init__(
            f"{self.argv[0] if self.argv else '<empty>'} exited with code {returncode}: {detail}"
        )


class AccountCreationError(MacProvError):
    """Both the primary and the fallback creation path failed for one account."""

    def __init__(self, username: str, uid: int, cause: Exception | None = None):
        self.username = username
        self.uid = uid
        self.cause = cause
        super().__init__(f"Failed to create user {username} (uid {uid}): {cause}")
