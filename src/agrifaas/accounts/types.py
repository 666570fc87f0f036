"""Account types: roles and account status."""

from collections.abc import Iterable
from enum import Enum


class Role(str, Enum):
    """Capability tags a user can hold (a user holds a set of them)."""

    ADMIN = "Admin"
    MANAGER = "Manager"
    FIELD_OFFICER = "FieldOfficer"
    HR_MANAGER = "HRManager"
    OFFICE_MANAGER = "OfficeManager"
    FINANCE_MANAGER = "FinanceManager"
    FARMER = "Farmer"
    INVESTOR = "Investor"
    FARM_STAFF = "FarmStaff"
    AGRIC_EXTENSION_OFFICER = "AgricExtensionOfficer"
    SUPER_ADMIN = "SuperAdmin"


class AccountStatus(str, Enum):
    """Lifecycle state of a user account."""

    ACTIVE = "Active"
    PENDING_VERIFICATION = "PendingVerification"
    SUSPENDED = "Suspended"
    DEACTIVATED = "Deactivated"
    INVITED = "Invited"


class TenantKind(str, Enum):
    """What a self-registered user sets up after signing up."""

    FARM = "farm"
    COOPERATIVE = "cooperative"
    AEO = "aeo"


def parse_roles(values: Iterable[str]) -> frozenset[Role]:
    """Convert stored role strings into a role set, dropping unknown tags.

    Legacy profiles store some tags with spaces (``"Super Admin"``,
    ``"Farm Staff"``, ``"Agric Extension Officer"``); both spellings are
    accepted. Writes always use the enum values.
    """
    known = {role.value for role in Role}
    tags = (value.replace(" ", "") for value in values if isinstance(value, str))
    return frozenset(Role(tag) for tag in tags if tag in known)


def serialize_roles(roles: Iterable[Role]) -> list[str]:
    """Store a role set as a sorted list of tag strings."""
    return sorted(role.value for role in set(roles))
