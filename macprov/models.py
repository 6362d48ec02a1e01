"""
Pydantic models for bulk account provisioning.

- ProvisioningRequest: immutable input, built once per run
- Account: one allocated UID and what happened to it
- ProvisioningResult: aggregate outcome reported to the user
- ProvisioningPlan: read-only preview of a run
"""

import re
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

_PREFIX_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_.-]*$")


# =============================================================================
# Enums
# =============================================================================

class CreationMethod(str, Enum):
    """Which creation path produced the account record."""
    PRIMARY = "primary"
    FALLBACK = "fallback"


class AccountState(str, Enum):
    """Per-account lifecycle.

    requested -> primary_attempted -> (created | fallback_attempted -> (created | failed)) -> configured
    """
    REQUESTED = "requested"
    PRIMARY_ATTEMPTED = "primary_attempted"
    FALLBACK_ATTEMPTED = "fallback_attempted"
    CREATED = "created"
    FAILED = "failed"
    CONFIGURED = "configured"


class ProvisioningStatus(str, Enum):
    """Overall status of a provisioning run."""
    VALIDATION_FAILED = "validation_failed"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


# =============================================================================
# Request
# =============================================================================

class ProvisioningRequest(BaseModel):
    """Everything the provisioner needs for one run.

    ``count`` is unconstrained here; the provisioner reports a non-positive
    count as a validation failure.
    """

    model_config = ConfigDict(frozen=True)

    count: int
    name_prefix: str = "user"
    shell: str = "/bin/bash"
    group_id: Optional[int] = None
    create_home_directories: bool = False
    disable_search_indexing_per_user: bool = False
    password: Optional[str] = Field(default=None, repr=False)
    disable_authentication_globally: bool = False
    grant_all_sudo: bool = False

    @field_validator("name_prefix")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        """Usernames are prefix + uid, so the prefix must be a valid short name start."""
        if not _PREFIX_PATTERN.match(v):
            raise ValueError(
                f"Invalid username prefix {v!r}: use letters, digits, '_', '.' or '-'"
            )
        return v

    @property
    def has_password(self) -> bool:
        return bool(self.password)

    def username_for(self, uid: int) -> str:
        return f"{self.name_prefix}{uid}"


# =============================================================================
# Accounts and results
# =============================================================================

class Account(BaseModel):
    """One account of a provisioning run."""

    uid: int
    username: str
    home_path: Path
    creation_method: Optional[CreationMethod] = None
    state: AccountState = AccountState.REQUESTED
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def for_uid(cls, prefix: str, uid: int, users_root: Path) -> "Account":
        """Derive username and home directory from the prefix and UID."""
        username = f"{prefix}{uid}"
        return cls(uid=uid, username=username, home_path=users_root / username)

    @property
    def library_path(self) -> Path:
        return self.home_path / "Library"

    @property
    def preferences_path(self) -> Path:
        return self.library_path / "Preferences"

    @property
    def created(self) -> bool:
        return self.state in (AccountState.CREATED, AccountState.CONFIGURED)


class ProvisioningResult(BaseModel):
    """Aggregate outcome of a provisioning run.

    Attributes:
        status: Overall status
        requested: Number of accounts requested
        created: Accounts whose identity record was created in this run
        accounts: One entry per allocated UID
        configured: Usernames discovered and configured after creation
        sudo_grants: Usernames granted passwordless sudo
        authentication_relaxed: Whether PAM policy was rewritten
        uid_start: First allocated UID (inclusive)
        uid_end: Last allocated UID (inclusive)
        message: Human-readable summary
    """

    status: ProvisioningStatus
    requested: int = 0
    created: int = 0
    accounts: List[Account] = Field(default_factory=list)
    configured: List[str] = Field(default_factory=list)
    sudo_grants: List[str] = Field(default_factory=list)
    authentication_relaxed: bool = False
    uid_start: Optional[int] = None
    uid_end: Optional[int] = None
    message: Optional[str] = None

    @computed_field
    @property
    def failed(self) -> int:
        return sum(1 for a in self.accounts if a.state == AccountState.FAILED)

    @property
    def success(self) -> bool:
        return self.status != ProvisioningStatus.VALIDATION_FAILED

    @classmethod
    def validation_failure(cls, requested: int, message: str) -> "ProvisioningResult":
        return cls(
            status=ProvisioningStatus.VALIDATION_FAILED,
            requested=requested,
            message=message,
        )


class ProvisioningPlan(BaseModel):
    """Read-only preview of what a provisioning run would do."""

    count: int
    name_prefix: str
    existing_max_uid: Optional[int] = None
    uid_start: int
    uid_end: int
    usernames: List[str] = Field(default_factory=list)
    preexisting_matches: List[str] = Field(
        default_factory=list,
        description="Home directories that already match the rediscovery pattern",
    )


class SystemVersion(BaseModel):
    """macOS product and build version as reported by sw_vers."""

    product_version: str = ""
    build_version: str = ""
