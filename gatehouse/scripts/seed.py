"""
Seed the protected roles and the base permission set. Safe to run repeatedly.
  python -m gatehouse.scripts.seed
"""
import sys

from sqlalchemy.orm import Session

from gatehouse.core.database import SessionLocal
from gatehouse.models import Permission, Role
from gatehouse.models.role import DEFAULT_GUARD
from gatehouse.services.authorization import ADMIN_ROLE, USER_ROLE

BASE_PERMISSIONS = (
    "view-profile",
    "edit-profile",
    "view-users",
    "create-users",
    "edit-users",
    "delete-users",
    "view-roles",
    "create-roles",
    "edit-roles",
    "delete-roles",
)

ROLE_PERMISSIONS: dict[str, tuple[str, ...]] = {
    ADMIN_ROLE: BASE_PERMISSIONS,
    USER_ROLE: ("view-profile", "edit-profile"),
}


def _get_or_create(db: Session, model: type, name: str) -> tuple[object, bool]:
    row = db.query(model).filter(model.name == name, model.guard_name == DEFAULT_GUARD).first()
    if row is not None:
        return row, False
    row = model(name=name, guard_name=DEFAULT_GUARD)
    db.add(row)
    db.flush()
    return row, True


def seed_roles_and_permissions(db: Session) -> tuple[int, int]:
    """
    Create missing permissions and roles and grant each role its base permissions.
    Permissions granted by hand are kept. Returns (roles_created, permissions_created).
    """
    permissions: dict[str, Permission] = {}
    permissions_created = 0
    for name in BASE_PERMISSIONS:
        permissions[name], created = _get_or_create(db, Permission, name)
        permissions_created += created

    roles_created = 0
    for role_name, granted in ROLE_PERMISSIONS.items():
        role, created = _get_or_create(db, Role, role_name)
        roles_created += created
        for name in granted:
            if permissions[name] not in role.permissions:
                role.permissions.append(permissions[name])
    db.commit()
    return roles_created, permissions_created


def main() -> int:
    db = SessionLocal()
    try:
        roles_created, permissions_created = seed_roles_and_permissions(db)
        print(f"Seeded roles_created={roles_created} permissions_created={permissions_created}.")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
