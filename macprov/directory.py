"""Identity directory access for local macOS accounts.

The primary creation path uses sysadminctl; the fallback path builds the
record attribute by attribute with dscl, the way the system user resource
did before sysadminctl existed.
"""

import logging
from typing import List, Optional, Protocol

from .shell import CommandRunner

logger = logging.getLogger(__name__)

DSCL = "dscl"
SYSADMINCTL = "sysadminctl"
LOCAL_NODE = "."


class IdentityDirectory(Protocol):
    """User record operations needed by the provisioner."""

    def max_uid(self) -> Optional[int]:
        """Highest UniqueID of any account, or None if none can be determined."""
        ...

    def create_user(
        self, username: str, uid: int, shell: str, home: str, group_id: Optional[int]
    ) -> None:
        """Create an account through the high-level tool (primary path)."""
        ...

    def create_user_record(
        self, username: str, uid: int, shell: str, home: str, group_id: int
    ) -> None:
        """Create an account record attribute by attribute (fallback path)."""
        ...

    def delete_user_record(self, username: str) -> None:
        ...

    def set_password(self, username: str, password: str) -> None:
        ...


def parse_unique_ids(output: str) -> List[int]:
    """Parse the output of ``dscl . -list /Users UniqueID``.

    Each line is ``<name> <uid>``; lines without an integer second column
    are ignored.

    Args:
        output: Raw command output

    Returns:
        List of UIDs in output order
    """
    uids = []
    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        try:
            uids.append(int(parts[-1]))
        except ValueError:
            logger.debug(f"Ignoring unparsable dscl line: {line!r}")
    return uids


class DsclDirectory:
    """IdentityDirectory backed by the local directory node via dscl/sysadminctl."""

    def __init__(self, runner: Optional[CommandRunner] = None):
        self.runner = runner or CommandRunner()

    @staticmethod
    def _record(username: str) -> str:
        return f"/Users/{username}"

    def max_uid(self) -> Optional[int]:
        """Query the highest UniqueID.

        Raises:
            CommandError: If dscl fails
        """
        process = self.runner.run([DSCL, LOCAL_NODE, "-list", "/Users", "UniqueID"])
        uids = parse_unique_ids(process.stdout)
        return max(uids) if uids else None

    def create_user(
        self, username: str, uid: int, shell: str, home: str, group_id: Optional[int]
    ) -> None:
        argv = [
            SYSADMINCTL,
            "-addUser", username,
            "-fullName", username,
            "-UID", str(uid),
        ]
        if group_id is not None:
            argv.extend(["-GID", str(group_id)])
        argv.extend([
            "-shell", shell,
            "-password", "",
            "-home", home,
        ])
        self.runner.run(argv)

    def create_user_record(
        self, username: str, uid: int, shell: str, home: str, group_id: int
    ) -> None:
        """Create the record and set each attribute; stops at the first failure.

        Raises:
            CommandError: From the first dscl call that fails
        """
        record = self._record(username)
        attributes = [
            ("UserShell", shell),
            ("RealName", username),
            ("UniqueID", str(uid)),
            ("PrimaryGroupID", str(group_id)),
            ("NFSHomeDirectory", home),
        ]

        self.runner.run([DSCL, LOCAL_NODE, "-create", record])
        for key, value in attributes:
            self.runner.run([DSCL, LOCAL_NODE, "-create", record, key, value])

    def delete_user_record(self, username: str) -> None:
        self.runner.run([DSCL, LOCAL_NODE, "-delete", self._record(username)])

    def set_password(self, username: str, password: str) -> None:
        self.runner.run(
            [DSCL, LOCAL_NODE, "-passwd", self._record(username), password],
            secrets=[password],
        )
