"""
Account Provisioner - bulk creation of local macOS accounts.

Provision Pipeline: Validate → Allocate UID range → Create accounts (primary,
then fallback) → Rediscover and configure accounts → Global policy steps
Plan Pipeline: Validate → Allocate UID range → Report (no changes)
"""

import getpass
import logging
import os
import re
from typing import Callable, Dict, List, Optional, Tuple

from .directory import IdentityDirectory
from .errors import AccountCreationError, CommandError, RequestValidationError
from .filesystem import FilesystemOps
from .models import (
    Account,
    AccountState,
    CreationMethod,
    ProvisioningPlan,
    ProvisioningRequest,
    ProvisioningResult,
    ProvisioningStatus,
    SystemVersion,
)
from .policy import PrivilegePolicy
from .preferences import PreferenceStore, detect_system_version, setup_assistant_flags
from .settings import MacProvSettings, get_settings

logger = logging.getLogger(__name__)

LIBRARY_MODE = 0o700


def allocate_uid_range(existing_max: Optional[int], count: int, floor: int = 500) -> range:
    """Compute the contiguous UID range for a run.

    Args:
        existing_max: Highest UID already in the identity directory, if known
        count: Number of UIDs to allocate
        floor: UIDs at or below this value are never allocated

    Returns:
        range of ``count`` UIDs starting at ``max(existing_max, floor) + 1``
    """
    highest = floor if existing_max is None else max(existing_max, floor)
    start = highest + 1
    return range(start, start + count)


def invoking_user() -> Optional[str]:
    """Name of the account that launched the run, looking through sudo.

    Returns:
        The login name, or None if it cannot be determined
    """
    sudo_user = os.environ.get("SUDO_USER")
    if sudo_user:
        return sudo_user
    try:
        return getpass.getuser()
    except (OSError, KeyError) as e:
        logger.warning(f"Could not determine the invoking user: {e}")
        return None


class AccountProvisioner:
    """Creates and configures a batch of local accounts.

    All system access goes through the collaborators, so the workflow can be
    exercised against in-memory fakes.

    Attributes:
        directory: Identity directory for UID queries and record creation
        filesystem: Home directory and ownership operations
        preferences: Per-user preference writes
        policy: Sudoers and PAM policy writer
        settings: Provisioning settings (users root, denylist, defaults)
        current_user: Account whose home is never touched, None if unknown
    """

    def __init__(
        self,
        directory: IdentityDirectory,
        filesystem: FilesystemOps,
        preferences: PreferenceStore,
        policy: PrivilegePolicy,
        settings: Optional[MacProvSettings] = None,
        current_user: Optional[str] = None,
        version_provider: Callable[[], SystemVersion] = detect_system_version,
    ):
        self.directory = directory
        self.filesystem = filesystem
        self.preferences = preferences
        self.policy = policy
        self.settings = settings or get_settings()
        self.current_user = current_user or invoking_user()
        self.version_provider = version_provider

    # ------------------------------------------------------------------
    # UID allocation
    # ------------------------------------------------------------------

    def _query_max_uid(self) -> Optional[int]:
        try:
            existing_max = self.directory.max_uid()
        except CommandError as e:
            logger.warning(f"Could not query existing UIDs, using baseline: {e}")
            return None
        if existing_max is None:
            logger.warning("No existing UIDs found, using baseline")
        return existing_max

    def allocate_uids(self, count: int) -> Tuple[Optional[int], range]:
        """Scan the identity directory once and allocate ``count`` UIDs.

        Returns:
            Tuple of (queried maximum UID or None, allocated range)
        """
        existing_max = self._query_max_uid()
        uids = allocate_uid_range(existing_max, count, self.settings.uid_floor)
        logger.info(f"Starting from UID: {uids.start}")
        logger.info(f"Ending at UID: {uids.stop - 1}")
        return existing_max, uids

    # ------------------------------------------------------------------
    # Pipelines
    # ------------------------------------------------------------------

    def provision(self, request: ProvisioningRequest) -> ProvisioningResult:
        """
        Full pipeline: validate → allocate → create → configure → policy.

        Args:
            request: What to create and how to configure it

        Returns:
            ProvisioningResult; ``created`` counts identity records created
            in this run regardless of later configuration warnings
        """
        if request.count <= 0:
            message = f"Invalid user count {request.count}. Skipping bulk user creation."
            logger.error(message)
            return ProvisioningResult.validation_failure(request.count, message)

        logger.info(
            f"Creating {request.count} users with prefix '{request.name_prefix}'..."
        )
        _, uids = self.allocate_uids(request.count)

        accounts: List[Account] = []
        for index, uid in enumerate(uids, 1):
            account = Account.for_uid(request.name_prefix, uid, self.settings.users_root)
            accounts.append(account)
            logger.info(f"Creating user: {account.username} ({index}/{request.count})")
            try:
                self._create_account(request, account)
            except AccountCreationError as e:
                account.state = AccountState.FAILED
                logger.error(str(e))

        created = sum(1 for a in accounts if a.created)
        logger.info(f"Configuring {created} users...")

        configured = self._configure_discovered(request, accounts)
        sudo_grants = self._grant_sudo(configured) if request.grant_all_sudo else []
        relaxed = (
            self._relax_authentication() if request.disable_authentication_globally else False
        )

        if created == request.count:
            status = ProvisioningStatus.COMPLETED
        elif created == 0:
            status = ProvisioningStatus.FAILED
        else:
            status = ProvisioningStatus.PARTIAL

        return ProvisioningResult(
            status=status,
            requested=request.count,
            created=created,
            accounts=accounts,
            configured=[a.username for a in configured],
            sudo_grants=sudo_grants,
            authentication_relaxed=relaxed,
            uid_start=uids.start,
            uid_end=uids.stop - 1,
            message=f"Bulk user creation completed. Created {created} users.",
        )

    def plan(self, request: ProvisioningRequest) -> ProvisioningPlan:
        """
        Plan mode: allocate the UID range and report it without changing anything.

        Raises:
            RequestValidationError: If the count is not positive
        """
        if request.count <= 0:
            raise RequestValidationError(f"Invalid user count {request.count}")

        existing_max, uids = self.allocate_uids(request.count)
        return ProvisioningPlan(
            count=request.count,
            name_prefix=request.name_prefix,
            existing_max_uid=existing_max,
            uid_start=uids.start,
            uid_end=uids.stop - 1,
            usernames=[request.username_for(uid) for uid in uids],
            preexisting_matches=[a.username for a in self.discover_accounts(request.name_prefix)],
        )

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def _create_account(self, request: ProvisioningRequest, account: Account) -> None:
        """Create one account, trying the primary path and then the fallback.

        Raises:
            AccountCreationError: If both paths fail
        """
        home = str(account.home_path)

        account.state = AccountState.PRIMARY_ATTEMPTED
        try:
            self.directory.create_user(
                account.username, account.uid, request.shell, home, request.group_id
            )
            account.creation_method = CreationMethod.PRIMARY
        except CommandError as e:
            logger.warning(
                f"Using alternative creation method for {account.username}: {e}"
            )
            account.state = AccountState.FALLBACK_ATTEMPTED
            group_id = (
                request.group_id
                if request.group_id is not None
                else self.settings.default_group_id
            )
            try:
                self.directory.create_user_record(
                    account.username, account.uid, request.shell, home, group_id
                )
            except CommandError as fallback_error:
                self._rollback(account)
                raise AccountCreationError(
                    account.username, account.uid, fallback_error
                ) from fallback_error
            account.creation_method = CreationMethod.FALLBACK

        account.state = AccountState.CREATED
        try:
            self.filesystem.ensure_directory(account.home_path)
        except OSError as e:
            self._warn(account, f"could not create home directory {home}: {e}")

    def _rollback(self, account: Account) -> None:
        """Best-effort removal of a record the fallback path left half-built."""
        try:
            self.directory.delete_user_record(account.username)
            logger.info(f"Removed partial record for {account.username}")
        except CommandError as e:
            logger.warning(f"Could not remove partial record for {account.username}: {e}")

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def discover_accounts(self, prefix: str) -> List[Account]:
        """Find home directories named ``<prefix><digits>`` under the users root.

        Reserved names and the invoking user's own home are never returned.
        """
        pattern = re.compile(rf"^{re.escape(prefix)}([0-9]+)$")
        reserved = set(self.settings.reserved_names)
        if self.current_user:
            reserved.add(self.current_user)

        discovered = []
        for path in self.filesystem.list_directory(self.settings.users_root):
            if path.name in reserved:
                continue
            match = pattern.match(path.name)
            if not match:
                continue
            # The directory name is the account name, even with leading zeros
            discovered.append(
                Account(uid=int(match.group(1)), username=path.name, home_path=path)
            )
        return discovered

    def _configure_discovered(
        self, request: ProvisioningRequest, accounts: List[Account]
    ) -> List[Account]:
        """Rediscover accounts by name pattern and configure each one.

        Matching homes that were not created in this run are configured as
        well, with a warning.
        """
        created: Dict[str, Account] = {a.username: a for a in accounts if a.created}
        version = self.version_provider()

        configured = []
        for index, found in enumerate(self.discover_accounts(request.name_prefix), 1):
            account = created.get(found.username)
            if account is None:
                account = found
                self._warn(account, "matches the name pattern but was not created in this run")
            logger.info(f"Configuring user {index}: {account.username}")
            self.configure_account(request, account, version)
            configured.append(account)
        return configured

    def configure_account(
        self, request: ProvisioningRequest, account: Account, version: SystemVersion
    ) -> None:
        """Apply home, password, indexing and setup-assistant configuration.

        Every step is best-effort; failures become warnings on the account.
        """
        if request.create_home_directories:
            self._best_effort(
                account, "create preferences directory",
                self.filesystem.ensure_directory, account.preferences_path,
            )
            self._best_effort(
                account, "set home ownership",
                self.filesystem.chown_recursive, account.home_path, account.uid, account.uid,
            )

        if request.has_password:
            self._best_effort(
                account, "set password",
                self.directory.set_password, account.username, request.password,
            )

        if request.disable_search_indexing_per_user:
            self._best_effort(
                account, "disable Spotlight",
                self.preferences.disable_search_indexing, account.username,
            )

        self._best_effort(
            account, "restrict Library permissions",
            self.filesystem.chmod, account.library_path, LIBRARY_MODE,
        )

        logger.debug(f"Setting up preferences for {account.username}...")
        domain = self.settings.setup_assistant_domain
        for key, value in setup_assistant_flags(version).items():
            self._best_effort(
                account, f"write {domain} {key}",
                self.preferences.write, account.username, domain, key, value,
            )

        if account.created:
            account.state = AccountState.CONFIGURED

    # ------------------------------------------------------------------
    # Global policy
    # ------------------------------------------------------------------

    def _grant_sudo(self, accounts: List[Account]) -> List[str]:
        logger.warning("Making all users sudoers (EXTREMELY INSECURE)")
        granted = []
        for account in accounts:
            if self._best_effort(
                account, "grant passwordless sudo",
                self.policy.grant_passwordless_sudo, account.username,
            ):
                granted.append(account.username)
        return granted

    def _relax_authentication(self) -> bool:
        logger.warning("Disabling passwords globally (INSECURE)")
        try:
            self.policy.relax_authentication()
        except OSError as e:
            logger.warning(f"Could not relax authentication policy: {e}")
            return False
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _warn(self, account: Account, message: str) -> None:
        account.warnings.append(message)
        logger.warning(f"{account.username}: {message}")

    def _best_effort(self, account: Account, description: str, operation, *args) -> bool:
        """Run one configuration step, recording failure as a warning.

        Returns:
            True if the step succeeded
        """
        try:
            operation(*args)
        except (CommandError, OSError) as e:
            self._warn(account, f"{description} failed: {e}")
            return False
        return True
