"""
macprov - Bulk local account provisioning for macOS.

Creates a batch of local accounts with contiguous UIDs, falling back from
sysadminctl to dscl when needed, then configures each account's home
directory and first-run preferences.

Optional, explicitly insecure policy steps can grant every created account
passwordless sudo or relax PAM authentication system-wide.
"""

from .models import ProvisioningRequest, ProvisioningResult
from .provisioner import AccountProvisioner, allocate_uid_range
from .settings import MacProvSettings, get_settings, reload_settings

__version__ = "0.1.0"
__all__ = [
    "AccountProvisioner",
    "MacProvSettings",
    "ProvisioningRequest",
    "ProvisioningResult",
    "allocate_uid_range",
    "get_settings",
    "reload_settings",
]
