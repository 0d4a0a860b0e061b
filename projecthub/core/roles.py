"""
Role model.

Four fixed roles in ascending privilege: staff < user < madmin < admin.
Every principal holds ``staff``. A role set is an immutable frozenset of
``Role`` values; all helpers are pure functions over an explicit set.
"""

from enum import Enum
from typing import FrozenSet, Iterable

from .exceptions import ValidationError


class Role(str, Enum):
    """User role enumeration."""
    STAFF = "staff"
    USER = "user"
    MADMIN = "madmin"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _RANKS[self]


_RANKS = {Role.STAFF: 0, Role.USER: 1, Role.MADMIN: 2, Role.ADMIN: 3}

RoleSet = FrozenSet[Role]

BASE_ROLE = Role.STAFF
PRIVILEGED_ROLES: RoleSet = frozenset({Role.MADMIN, Role.ADMIN})
PROJECT_ROLES: RoleSet = frozenset({Role.USER, Role.MADMIN, Role.ADMIN})
BILLING_ROLES: RoleSet = PRIVILEGED_ROLES
VALID_ROLE_VALUES = tuple(role.value for role in Role)


def parse_roles(values: Iterable[str]) -> RoleSet:
    """
    Build a role set from raw values.

    Args:
        values: Role names as submitted or stored.

    Returns:
        RoleSet: The validated set.

    Raises:
        ValidationError: If any value is not a known role, the set is
            empty, or the base role is missing.
    """
    values = list(values)
    invalid = [value for value in values if value not in VALID_ROLE_VALUES]
    if invalid:
        raise ValidationError(
            f"Invalid roles: {', '.join(str(value) for value in invalid)}",
            field="roles",
            constraint="enum",
        )

    role_set = frozenset(Role(value) for value in values)
    if not role_set:
        raise ValidationError("Roles must not be empty", field="roles", constraint="non_empty")
    if BASE_ROLE not in role_set:
        raise ValidationError(
            f"All users must have {BASE_ROLE.value} role",
            field="roles",
            constraint="base_role",
        )
    return role_set


def to_role_set(values: Iterable[str]) -> RoleSet:
    """Lenient conversion for stored values; unknown entries are dropped."""
    return frozenset(Role(value) for value in values if value in VALID_ROLE_VALUES)


def has(role_set: RoleSet, role: Role) -> bool:
    return role in role_set


def has_any(role_set: RoleSet, roles: Iterable[Role]) -> bool:
    return not role_set.isdisjoint(roles)


def is_privileged(role_set: RoleSet) -> bool:
    """True if the set holds madmin or admin."""
    return has_any(role_set, PRIVILEGED_ROLES)


def is_admin(role_set: RoleSet) -> bool:
    return Role.ADMIN in role_set


def can_access_projects(role_set: RoleSet) -> bool:
    return has_any(role_set, PROJECT_ROLES)


def can_access_billing(role_set: RoleSet) -> bool:
    return has_any(role_set, BILLING_ROLES)


def highest(role_set: RoleSet) -> Role:
    """Most privileged role in the set (staff for an empty set)."""
    return max(role_set, key=lambda role: role.rank, default=BASE_ROLE)


def serialize(role_set: Iterable[Role]) -> list:
    """Stable, rank-ordered list of role values for storage and tokens."""
    return [role.value for role in sorted(set(role_set), key=lambda role: role.rank)]
