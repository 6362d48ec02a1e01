"""Filesystem operations used while provisioning home directories and policy files."""

import logging
import os
import stat
from pathlib import Path
from typing import List, Optional, Protocol

logger = logging.getLogger(__name__)

DEFAULT_FILE_MODE = 0o644


class FilesystemOps(Protocol):
    """Filesystem operations needed by the provisioner and policy writers."""

    def ensure_directory(self, path: Path) -> None:
        """Create a directory and its parents; no error if it exists."""
        ...

    def chown_recursive(self, path: Path, uid: int, gid: int) -> None:
        ...

    def chmod(self, path: Path, mode: int) -> None:
        ...

    def list_directory(self, path: Path) -> List[Path]:
        """Entries directly under path, sorted by name; empty if path is missing."""
        ...

    def read_text(self, path: Path) -> str:
        ...

    def write_text(self, path: Path, content: str, mode: Optional[int] = None) -> None:
        """Replace path's content; mode None keeps the existing mode (0644 for new files)."""
        ...


class LocalFilesystem:
    """FilesystemOps on the local disk."""

    def ensure_directory(self, path: Path) -> None:
        path.mkdir(parents=True, exist_ok=True)

    def chown_recursive(self, path: Path, uid: int, gid: int) -> None:
        """Change ownership of path and everything below it.

        Symlinks are changed themselves, never followed.
        """
        os.chown(path, uid, gid, follow_symlinks=False)
        for root, dirs, files in os.walk(path):
            for name in dirs + files:
                os.chown(os.path.join(root, name), uid, gid, follow_symlinks=False)

    def chmod(self, path: Path, mode: int) -> None:
        os.chmod(path, mode)

    def list_directory(self, path: Path) -> List[Path]:
        if not path.is_dir():
            logger.debug(f"Directory {path} does not exist")
            return []
        return sorted(path.iterdir(), key=lambda p: p.name)

    def read_text(self, path: Path) -> str:
        return path.read_text(encoding="utf-8")

    def write_text(self, path: Path, content: str, mode: Optional[int] = None) -> None:
        """Write content atomically and apply mode before it becomes visible.

        Symlinks are resolved so the link itself survives the rewrite.
        """
        target = path.resolve()
        if mode is None:
            mode = stat.S_IMODE(target.stat().st_mode) if target.exists() else DEFAULT_FILE_MODE
        tmp = target.with_name(f".{target.name}.tmp")
        tmp.write_text(content, encoding="utf-8")
        os.chmod(tmp, mode)
        os.replace(tmp, target)
