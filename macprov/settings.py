"""
macprov Settings - Configuration management using Pydantic Settings.

Loads configuration from environment variables and .env files.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Find project root (where .env file is located)
PROJECT_ROOT = Path(__file__).parent.parent


class MacProvSettings(BaseSettings):
    """
    macprov configuration settings.

    Settings are loaded from:
    1. Environment variables (highest priority)
    2. .env file in current directory
    3. Default values (lowest priority)
    """

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="MP_",  # All macprov env vars must start with MP_
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR) (env: MP_LOG_LEVEL)",
    )

    verbose: bool = Field(
        default=True,
        description="Log every executed command (env: MP_VERBOSE)",
    )

    # Request defaults
    default_prefix: str = Field(
        default="user",
        description="Username prefix used when none is given (env: MP_DEFAULT_PREFIX)",
    )

    default_shell: str = Field(
        default="/bin/bash",
        description="Login shell used when none is given (env: MP_DEFAULT_SHELL)",
    )

    default_group_id: int = Field(
        default=20,
        description="Primary group for the dscl fallback path, 20 is staff (env: MP_DEFAULT_GROUP_ID)",
    )

    uid_floor: int = Field(
        default=500,
        description="First allocated UID is max(existing, uid_floor) + 1 (env: MP_UID_FLOOR)",
    )

    # System locations
    users_root: Path = Field(
        default=Path("/Users"),
        description="Root of local home directories (env: MP_USERS_ROOT)",
    )

    sudoers_dir: Path = Field(
        default=Path("/etc/sudoers.d"),
        description="Directory receiving passwordless sudo grants (env: MP_SUDOERS_DIR)",
    )

    pam_dir: Path = Field(
        default=Path("/etc/pam.d"),
        description="PAM configuration directory (env: MP_PAM_DIR)",
    )

    setup_assistant_domain: str = Field(
        default="com.apple.SetupAssistant.managed",
        description="Managed-preferences domain for first-run flags (env: MP_SETUP_ASSISTANT_DOMAIN)",
    )

    reserved_names: list[str] = Field(
        default_factory=lambda: ["administrator", "user", "Guest", "Shared"],
        description="Home directories never configured, JSON list (env: MP_RESERVED_NAMES)",
    )

    # Prompt Configuration
    default_yes: bool = Field(
        default=False,
        description="Default answer for yes/no prompts is yes (env: MP_DEFAULT_YES)",
    )

    run_all: bool = Field(
        default=False,
        description="Answer yes to every yes/no prompt without asking (env: MP_RUN_ALL)",
    )


# Global settings instance
_settings: MacProvSettings | None = None


def get_settings() -> MacProvSettings:
    """
    Get the global settings instance.

    Creates the settings instance on first call, then returns cached instance.

    Returns:
        MacProvSettings instance
    """
    global _settings
    if _settings is None:
        _settings = MacProvSettings()
    return _settings


def reload_settings() -> MacProvSettings:
    """
    Reload settings from environment/files.

    Useful for testing or when .env file changes.

    Returns:
        Fresh MacProvSettings instance
    """
    global _settings
    _settings = MacProvSettings()
    return _settings
