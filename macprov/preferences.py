"""Per-user preference domains and first-run setup flags.

Preferences are written as the target user (``sudo -u <user> defaults write``)
so they land in that user's own domain.
"""

import logging
from typing import Dict, Optional, Protocol, Union

from .errors import CommandError
from .models import SystemVersion
from .shell import CommandRunner

logger = logging.getLogger(__name__)

PreferenceValue = Union[bool, int, float, str]

# Setup Assistant panes skipped on first login
SKIP_FLAGS = (
    "SkipAppearance",
    "SkipCloudSetup",
    "SkipiCloudStorageSetup",
    "SkipPrivacySetup",
    "SkipSiriSetup",
    "SkipTrueTone",
    "SkipScreenTime",
    "SkipTouchIDSetup",
    "SkipFirstLoginOptimization",
    "DidSeeCloudSetup",
)

PRIVACY_BUNDLE_VERSION = "2"

PRODUCT_VERSION_KEYS = (
    "LastSeenCloudProductVersion",
    "LastSeenDiagnosticsProductVersion",
    "LastSeenSiriProductVersion",
)

BUILD_VERSION_KEY = "LastSeenBuddyBuildVersion"


class PreferenceStore(Protocol):
    """Per-user preference writes and per-user services."""

    def write(self, user: str, domain: str, key: str, value: PreferenceValue) -> None:
        ...

    def disable_search_indexing(self, user: str) -> None:
        """Turn off Spotlight indexing for every volume, scoped to user."""
        ...


def defaults_type_flag(value: PreferenceValue) -> str:
    """Map a Python value to the matching ``defaults write`` type flag."""
    if isinstance(value, bool):
        return "-bool"
    if isinstance(value, int):
        return "-int"
    if isinstance(value, float):
        return "-float"
    return "-string"


def format_defaults_value(value: PreferenceValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def setup_assistant_flags(version: SystemVersion) -> Dict[str, PreferenceValue]:
    """Build the key/value pairs that skip the first-run Setup Assistant.

    Keys stamped with the OS version are left out when that part of the
    version is unknown.

    Args:
        version: Detected OS version

    Returns:
        Ordered mapping of preference key to value
    """
    flags: Dict[str, PreferenceValue] = {key: True for key in SKIP_FLAGS}
    flags["LastPrivacyBundleVersion"] = PRIVACY_BUNDLE_VERSION

    if version.product_version:
        for key in PRODUCT_VERSION_KEYS:
            flags[key] = version.product_version
    if version.build_version:
        flags[BUILD_VERSION_KEY] = version.build_version

    return flags


def detect_system_version(runner: Optional[CommandRunner] = None) -> SystemVersion:
    """Read the product and build version with sw_vers.

    Failures are logged and leave the corresponding field empty.
    """
    runner = runner or CommandRunner()
    fields = {}
    for field, flag in (("product_version", "-productVersion"), ("build_version", "-buildVersion")):
        try:
            fields[field] = runner.run(["sw_vers", flag]).stdout.strip()
        except CommandError as e:
            logger.warning(f"Could not detect macOS {field.replace('_', ' ')}: {e}")

    version = SystemVersion(**fields)
    logger.info(
        f"Detected macOS version: {version.product_version or 'unknown'} "
        f"(build {version.build_version or 'unknown'})"
    )
    return version


class DefaultsPreferenceStore:
    """PreferenceStore backed by the defaults and mdutil commands."""

    def __init__(self, runner: Optional[CommandRunner] = None):
        self.runner = runner or CommandRunner()

    def write(self, user: str, domain: str, key: str, value: PreferenceValue) -> None:
        self.runner.run(
            [
                "defaults", "write", domain, key,
                defaults_type_flag(value), format_defaults_value(value),
            ],
            as_user=user,
        )

    def disable_search_indexing(self, user: str) -> None:
        self.runner.run(["mdutil", "-i", "off", "-a"], as_user=user)
