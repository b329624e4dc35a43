"""
RBAC policy: protected roles, admin rename guard, last-admin guard, self-deletion guard,
existence checks for role/permission names, and the role -> permission closure.

Checks return a PolicyResult instead of raising; routers translate a denial into a 403.
All checks run before any write so a rejected request leaves the store untouched.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy.orm import Session

from gatehouse.models import Permission, Role, User
from gatehouse.models.role import DEFAULT_GUARD

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
USER_ROLE = "user"
# Roles that can never be deleted; 'admin' additionally cannot be renamed.
PROTECTED_ROLE_NAMES = frozenset({ADMIN_ROLE, USER_ROLE})


@dataclass(frozen=True)
class PolicyResult:
    allowed: bool
    message: str | None = None


ALLOW = PolicyResult(allowed=True)


def deny(message: str) -> PolicyResult:
    logger.info("Policy denied", extra={"reason": message})
    return PolicyResult(allowed=False, message=message)


def effective_permission_names(roles: Iterable[Role]) -> list[str]:
    """
    Union of the permissions of every role, deduplicated by name.
    Order is first occurrence walking roles in the given order.
    """
    seen: dict[str, None] = {}
    for role in roles:
        for permission in role.permissions:
            seen.setdefault(permission.name, None)
    return list(seen)


def user_permission_names(user: User) -> list[str]:
    return effective_permission_names(user.roles)


def check_has_role(user: User, role_name: str) -> PolicyResult:
    if user.has_role(role_name):
        return ALLOW
    return deny("User does not have the right roles.")


def check_role_deletable(role: Role) -> PolicyResult:
    if role.name in PROTECTED_ROLE_NAMES:
        return deny(f"You cannot delete the {role.name} role.")
    return ALLOW


def check_role_rename(role: Role, new_name: str | None) -> PolicyResult:
    """The admin role keeps its name; None means the request does not touch the name."""
    if role.name == ADMIN_ROLE and new_name is not None and new_name != ADMIN_ROLE:
        return deny("You cannot change the name of the admin role.")
    return ALLOW


def check_user_deletion(target: User, actor: User) -> PolicyResult:
    if target.id == actor.id:
        return deny("You cannot delete your own account.")
    return ALLOW


def admin_user_ids(db: Session, lock: bool = False) -> list[int]:
    """
    Ids of users holding the admin role.

    With lock=True the admin user rows are locked (SELECT ... FOR UPDATE) until the
    transaction ends, so concurrent demotions serialize on the count.
    """
    query = (
        db.query(User.id)
        .join(User.roles)
        .filter(Role.name == ADMIN_ROLE, Role.guard_name == DEFAULT_GUARD)
    )
    if lock:
        query = query.with_for_update(of=User)
    return [row[0] for row in query.all()]


def check_admin_removal(
    db: Session, user: User, requested_roles: list[str] | None
) -> PolicyResult:
    """
    Last-admin guard for a role sync.

    requested_roles None means the request leaves roles unchanged. Otherwise, if the
    user holds admin and the new set drops it, the user must not be the only admin.
    """
    if requested_roles is None or ADMIN_ROLE in requested_roles:
        return ALLOW
    if not user.has_role(ADMIN_ROLE):
        return ALLOW
    admins = admin_user_ids(db, lock=True)
    if len(admins) <= 1 and user.id in admins:
        return deny("Cannot remove admin role from the only admin.")
    return ALLOW


def _missing(requested: list[str], found: Iterable[str]) -> list[str]:
    found_set = set(found)
    return [name for name in requested if name not in found_set]


def resolve_roles(db: Session, names: list[str]) -> tuple[list[Role], list[str]]:
    """Return (roles in requested order, names that do not exist). Never creates roles."""
    if not names:
        return [], []
    rows = (
        db.query(Role)
        .filter(Role.name.in_(names), Role.guard_name == DEFAULT_GUARD)
        .all()
    )
    by_name = {role.name: role for role in rows}
    return [by_name[n] for n in names if n in by_name], _missing(names, by_name)


def resolve_permissions(
    db: Session, names: list[str]
) -> tuple[list[Permission], list[str]]:
    """Return (permissions in requested order, names that do not exist). Never creates permissions."""
    if not names:
        return [], []
    rows = (
        db.query(Permission)
        .filter(Permission.name.in_(names), Permission.guard_name == DEFAULT_GUARD)
        .all()
    )
    by_name = {permission.name: permission for permission in rows}
    return [by_name[n] for n in names if n in by_name], _missing(names, by_name)


def missing_names_errors(field: str, missing: list[str]) -> dict[str, list[str]]:
    """Field-level validation errors for names that do not exist."""
    return {field: [f"The selected {field} '{name}' is invalid." for name in missing]}
