"""System privilege and authentication policy changes.

Both operations here are insecure by nature and only run when explicitly
requested.
"""

import logging
import re
from pathlib import Path
from typing import List, Optional

from .filesystem import FilesystemOps, LocalFilesystem

logger = logging.getLogger(__name__)

SUDOERS_MODE = 0o440

# PAM control flags relaxed to "optional"
_PAM_CONTROLS = re.compile(r"\b(required|sufficient)\b")


def sudoers_entry(username: str) -> str:
    return f"{username}     ALL=(ALL)       NOPASSWD: ALL\n"


def sudoers_filename(username: str) -> str:
    """Name of the grant file for username.

    sudo's #includedir ignores files whose name contains '.' or ends in '~'.
    """
    return username.replace(".", "_").rstrip("~") or "_"


def relax_pam_text(text: str) -> str:
    """Replace the required/sufficient control flags with optional."""
    return _PAM_CONTROLS.sub("optional", text)


class PrivilegePolicy:
    """Writes sudoers grants and rewrites PAM configuration.

    Attributes:
        sudoers_dir: Directory holding one grant file per user
        pam_dir: Directory of PAM service configurations
        filesystem: FilesystemOps used for all reads and writes
    """

    def __init__(
        self,
        sudoers_dir: Path,
        pam_dir: Path,
        filesystem: Optional[FilesystemOps] = None,
    ):
        self.sudoers_dir = sudoers_dir
        self.pam_dir = pam_dir
        self.filesystem = filesystem or LocalFilesystem()

    def grant_passwordless_sudo(self, username: str) -> Path:
        """Install a NOPASSWD grant for username.

        Returns:
            Path of the grant file
        """
        path = self.sudoers_dir / sudoers_filename(username)
        self.filesystem.write_text(path, sudoers_entry(username), mode=SUDOERS_MODE)
        logger.warning(f"Granted passwordless sudo to {username} ({path})")
        return path

    def relax_authentication(self) -> List[Path]:
        """Rewrite every PAM configuration so no module is required.

        Files that fail to be rewritten are logged and skipped.

        Returns:
            Paths of files that were changed
        """
        changed = []
        for path in self.filesystem.list_directory(self.pam_dir):
            try:
                original = self.filesystem.read_text(path)
                relaxed = relax_pam_text(original)
                if relaxed != original:
                    self.filesystem.write_text(path, relaxed)
                    changed.append(path)
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Could not relax PAM policy in {path}: {e}")

        logger.warning(f"Relaxed authentication policy in {len(changed)} PAM file(s)")
        return changed
