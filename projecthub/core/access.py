"""
Access decision engine.

Each resource's rule is declared once here and reused by every endpoint.
Decisions are pure functions of the caller's role set and, for owned
resources, of the owner id. A denial carries one of two categories:
``MISSING_ROLE`` (the caller's roles never grant the action) or
``NOT_OWNER`` (the caller's roles grant it only for their own records).
"""

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional

from . import roles as role_model
from .exceptions import DenyReason, ForbiddenError
from .roles import RoleSet

PROFILE_FIELDS: FrozenSet[str] = frozenset({"name", "email", "username"})
ADMIN_PROFILE_FIELDS: FrozenSet[str] = PROFILE_FIELDS | {"roles", "approved"}


@dataclass(frozen=True)
class Decision:
    """Outcome of an access check."""
    allowed: bool
    reason: Optional[DenyReason] = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.allowed

    def enforce(self) -> None:
        """Raise ``ForbiddenError`` if the decision is a denial."""
        if not self.allowed:
            raise ForbiddenError(self.message, self.reason or DenyReason.MISSING_ROLE)


ALLOW = Decision(allowed=True)


def deny_role(message: str) -> Decision:
    return Decision(allowed=False, reason=DenyReason.MISSING_ROLE, message=message)


def deny_owner(message: str) -> Decision:
    return Decision(allowed=False, reason=DenyReason.NOT_OWNER, message=message)


# === Projects ===

def project_access(role_set: RoleSet, action: str = "access") -> Decision:
    """List, create and read projects: user, madmin or admin."""
    if role_model.can_access_projects(role_set):
        return ALLOW
    return deny_role(
        f"Access denied. Project {action} requires user, madmin, or admin role."
    )


def project_instance(
    role_set: RoleSet,
    owner_id: Optional[int],
    principal_id: int,
    action: str = "view",
) -> Decision:
    """
    Read, edit or complete a specific project.

    Role check first, then privileged bypass, then ownership.
    """
    decision = project_access(role_set)
    if not decision:
        return decision
    if role_model.is_privileged(role_set) or owner_id == principal_id:
        return ALLOW
    return deny_owner(f"Access denied. You can only {action} your own projects.")


def project_delete(role_set: RoleSet) -> Decision:
    if role_model.is_admin(role_set):
        return ALLOW
    return deny_role("Access denied. Deleting projects requires admin role.")


def project_scope(role_set: RoleSet, principal_id: int) -> Optional[int]:
    """Owner filter for project listings; None means every project."""
    return None if role_model.is_privileged(role_set) else principal_id


# === Billing ===

def billing_access(role_set: RoleSet) -> Decision:
    """Invoices are visible only to madmin and admin, as a whole resource."""
    if role_model.can_access_billing(role_set):
        return ALLOW
    return deny_role("Access denied. Billing access requires admin or madmin role.")


def billing_admin(role_set: RoleSet, action: str = "delete invoices") -> Decision:
    if role_model.is_admin(role_set):
        return ALLOW
    return deny_role(f"Access denied. Only admins can {action}.")


# === Users ===

def user_admin(role_set: RoleSet) -> Decision:
    """User listing, creation, approval, password reset and statistics."""
    if role_model.is_admin(role_set):
        return ALLOW
    return deny_role("Access denied. Required roles: admin")


def profile_access(role_set: RoleSet, target_id: int, principal_id: int) -> Decision:
    """Any authenticated user may act on their own profile; admins on any."""
    if target_id == principal_id or role_model.is_admin(role_set):
        return ALLOW
    return deny_owner("Access denied. You can only access your own profile.")


def allowed_profile_fields(role_set: RoleSet) -> FrozenSet[str]:
    return ADMIN_PROFILE_FIELDS if role_model.is_admin(role_set) else PROFILE_FIELDS


def profile_update(
    role_set: RoleSet,
    target_id: int,
    principal_id: int,
    fields: Iterable[str],
) -> Decision:
    """Profile access plus the per-role field allowlist."""
    decision = profile_access(role_set, target_id, principal_id)
    if not decision:
        return decision
    allowed = allowed_profile_fields(role_set)
    if set(fields) - allowed:
        return deny_role(
            f"Access denied. You can only update: {', '.join(sorted(allowed))}"
        )
    return ALLOW


# === Time entries ===

def time_entry_scope(principal_id: int) -> int:
    """
    Owner filter for time entries.

    There is no cross-user path: every role, admin included, only reaches
    its own entries.
    """
    return principal_id
