"""
Pytest configuration and fixtures for macprov tests.
"""

import tempfile
from pathlib import Path

import pytest

from macprov.errors import CommandError
from macprov.models import SystemVersion
from macprov.policy import PrivilegePolicy
from macprov.provisioner import AccountProvisioner
from macprov.settings import MacProvSettings


class FakeDirectory:
    """In-memory identity directory that records every call."""

    def __init__(
        self,
        uids=None,
        query_error=False,
        fail_primary=(),
        fail_fallback=(),
        fail_delete=(),
    ):
        self.uids = list(uids or [])
        self.query_error = query_error
        self.fail_primary = set(fail_primary)
        self.fail_fallback = set(fail_fallback)
        self.fail_delete = set(fail_delete)
        self.records = {}
        self.passwords = {}
        self.calls = []

    def max_uid(self):
        self.calls.append(("max_uid",))
        if self.query_error:
            raise CommandError(["dscl", ".", "-list", "/Users", "UniqueID"], 1, "eDSRecordNotFound")
        return max(self.uids) if self.uids else None

    def create_user(self, username, uid, shell, home, group_id):
        self.calls.append(("create_user", username, uid, group_id))
        if uid in self.fail_primary:
            raise CommandError(["sysadminctl", "-addUser", username], 1, "primary failed")
        self.records[username] = {
            "uid": uid, "shell": shell, "home": home, "group_id": group_id, "method": "primary",
        }

    def create_user_record(self, username, uid, shell, home, group_id):
        self.calls.append(("create_user_record", username, uid, group_id))
        self.records[username] = {"uid": uid}
        if uid in self.fail_fallback:
            raise CommandError(["dscl", ".", "-create", f"/Users/{username}"], 1, "fallback failed")
        self.records[username].update(
            {"shell": shell, "home": home, "group_id": group_id, "method": "fallback"}
        )

    def delete_user_record(self, username):
        self.calls.append(("delete_user_record", username))
        if username in self.fail_delete:
            raise CommandError(["dscl", ".", "-delete", f"/Users/{username}"], 1, "delete failed")
        self.records.pop(username, None)

    def set_password(self, username, password):
        self.calls.append(("set_password", username))
        self.passwords[username] = password


class FakeFilesystem:
    """In-memory filesystem holding directories and text files."""

    def __init__(self, dirs=(), files=None, fail_paths=()):
        self.dirs = set()
        self.files = {}
        self.modes = {}
        self.chowns = []
        self.fail_paths = set(fail_paths)
        self.calls = []
        for d in dirs:
            self._add_dir(Path(d))
        for path, content in (files or {}).items():
            path = Path(path)
            self._add_dir(path.parent)
            self.files[path] = content

    def _add_dir(self, path):
        self.dirs.add(path)
        self.dirs.update(path.parents)

    def _check(self, path):
        if path in self.fail_paths:
            raise PermissionError(f"Operation not permitted: '{path}'")

    def ensure_directory(self, path):
        self.calls.append(("ensure_directory", path))
        self._check(path)
        self._add_dir(path)

    def chown_recursive(self, path, uid, gid):
        self.calls.append(("chown_recursive", path, uid, gid))
        self._check(path)
        if path not in self.dirs:
            raise FileNotFoundError(f"No such file or directory: '{path}'")
        self.chowns.append((path, uid, gid))

    def chmod(self, path, mode):
        self.calls.append(("chmod", path, mode))
        self._check(path)
        if path not in self.dirs and path not in self.files:
            raise FileNotFoundError(f"No such file or directory: '{path}'")
        self.modes[path] = mode

    def list_directory(self, path):
        self.calls.append(("list_directory", path))
        entries = {p for p in self.dirs | set(self.files) if p.parent == path and p != path}
        return sorted(entries, key=lambda p: p.name)

    def read_text(self, path):
        self.calls.append(("read_text", path))
        if path in self.dirs:
            raise IsADirectoryError(f"Is a directory: '{path}'")
        return self.files[path]

    def write_text(self, path, content, mode=None):
        self.calls.append(("write_text", path))
        self._check(path)
        self._add_dir(path.parent)
        self.files[path] = content
        self.modes[path] = mode if mode is not None else self.modes.get(path, 0o644)


class FakePreferenceStore:
    """Records preference writes and Spotlight changes."""

    def __init__(self, fail_users=()):
        self.fail_users = set(fail_users)
        self.writes = []
        self.indexing_disabled = []

    def write(self, user, domain, key, value):
        if user in self.fail_users:
            raise CommandError(["sudo", "-u", user, "defaults", "write"], 1, "write failed")
        self.writes.append((user, domain, key, value))

    def disable_search_indexing(self, user):
        if user in self.fail_users:
            raise CommandError(["sudo", "-u", user, "mdutil"], 1, "mdutil failed")
        self.indexing_disabled.append(user)


@pytest.fixture
def temp_dir():
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def settings():
    """Settings pinned to the standard macOS locations."""
    return MacProvSettings(
        users_root=Path("/Users"),
        sudoers_dir=Path("/etc/sudoers.d"),
        pam_dir=Path("/etc/pam.d"),
        uid_floor=500,
        default_group_id=20,
    )


@pytest.fixture
def system_version():
    return SystemVersion(product_version="14.5", build_version="23F79")


@pytest.fixture
def make_provisioner(settings, system_version):
    """Factory building an AccountProvisioner over fakes."""

    def _make(directory=None, filesystem=None, preferences=None, current_user="admin"):
        directory = directory or FakeDirectory()
        filesystem = filesystem or FakeFilesystem()
        preferences = preferences or FakePreferenceStore()
        policy = PrivilegePolicy(settings.sudoers_dir, settings.pam_dir, filesystem)
        return AccountProvisioner(
            directory=directory,
            filesystem=filesystem,
            preferences=preferences,
            policy=policy,
            settings=settings,
            current_user=current_user,
            version_provider=lambda: system_version,
        )

    return _make
