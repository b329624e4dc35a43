"""Admin role management: list, create, show, update (with permission sync) and delete."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session, selectinload

from gatehouse.api.v1.deps import require_admin
from gatehouse.core.database import get_db
from gatehouse.core.errors import AuthorizationError, NotFoundError, ValidationError
from gatehouse.models import Permission, Role
from gatehouse.models.role import DEFAULT_GUARD
from gatehouse.schemas.common import ApiResponse, EmptyData, PageMeta, success
from gatehouse.schemas.role import RoleCreate, RoleOut, RoleUpdate
from gatehouse.services.authorization import (
    check_role_deletable,
    check_role_rename,
    missing_names_errors,
    resolve_permissions,
)
from gatehouse.services.tokens import AuthContext

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_PER_PAGE = 100


def _get_role_or_404(db: Session, role_id: int) -> Role:
    role = db.get(Role, role_id)
    if role is None:
        raise NotFoundError("Role not found.")
    return role


def _name_taken(db: Session, name: str, exclude_role_id: int | None = None) -> bool:
    query = db.query(Role.id).filter(Role.name == name, Role.guard_name == DEFAULT_GUARD)
    if exclude_role_id is not None:
        query = query.filter(Role.id != exclude_role_id)
    return query.first() is not None


def _resolve_permissions_or_422(db: Session, names: list[str]) -> list[Permission]:
    permissions, missing = resolve_permissions(db, names)
    if missing:
        raise ValidationError(errors=missing_names_errors("permissions", missing))
    return permissions


@router.get("", response_model=ApiResponse[list[RoleOut]])
def list_roles(
    _admin: Annotated[AuthContext, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
    page: Annotated[int, Query(ge=1)] = 1,
    per_page: Annotated[int | None, Query(ge=1, le=MAX_PER_PAGE)] = None,
) -> ApiResponse:
    """All roles with their permissions; paginated only when per_page is given."""
    query = db.query(Role).options(selectinload(Role.permissions)).order_by(Role.id)
    if per_page is None:
        return success([RoleOut.from_role(r) for r in query.all()])

    total = query.count()
    roles = query.offset((page - 1) * per_page).limit(per_page).all()
    return success(
        [RoleOut.from_role(r) for r in roles],
        meta=PageMeta.build(page, per_page, total, len(roles)),
    )


@router.post(
    "",
    response_model=ApiResponse[RoleOut],
    status_code=status.HTTP_201_CREATED,
)
def create_role(
    body: RoleCreate,
    _admin: Annotated[AuthContext, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse:
    """Create a role. Permission names must already exist; they are never created here."""
    if _name_taken(db, body.name):
        raise ValidationError.for_field("name", "The name has already been taken.")
    permissions = _resolve_permissions_or_422(db, body.permissions or [])

    role = Role(name=body.name, guard_name=DEFAULT_GUARD, permissions=permissions)
    db.add(role)
    db.commit()
    db.refresh(role)
    logger.info("Role created", extra={"role_id": role.id, "role_name": role.name})
    return success(RoleOut.from_role(role), "Role created successfully.")


@router.get("/{role_id}", response_model=ApiResponse[RoleOut])
def show_role(
    role_id: int,
    _admin: Annotated[AuthContext, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse:
    return success(RoleOut.from_role(_get_role_or_404(db, role_id)))


@router.put("/{role_id}", response_model=ApiResponse[RoleOut])
@router.patch("/{role_id}", response_model=ApiResponse[RoleOut], include_in_schema=False)
def update_role(
    role_id: int,
    body: RoleUpdate,
    _admin: Annotated[AuthContext, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse:
    """Rename a role and/or replace its permissions. The admin role keeps its name."""
    role = _get_role_or_404(db, role_id)

    if body.name is not None and _name_taken(db, body.name, exclude_role_id=role.id):
        raise ValidationError.for_field("name", "The name has already been taken.")
    permissions = (
        _resolve_permissions_or_422(db, body.permissions)
        if body.permissions is not None
        else None
    )
    result = check_role_rename(role, body.name)
    if not result.allowed:
        raise AuthorizationError(result.message)

    if body.name is not None:
        role.name = body.name
    if permissions is not None:
        role.permissions = permissions
    db.commit()
    db.refresh(role)
    logger.info("Role updated", extra={"role_id": role.id, "role_name": role.name})
    return success(RoleOut.from_role(role), "Role updated successfully.")


@router.delete("/{role_id}", response_model=ApiResponse[EmptyData])
def delete_role(
    role_id: int,
    _admin: Annotated[AuthContext, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse:
    """Delete a role and its assignments. The admin and user roles cannot be deleted."""
    role = _get_role_or_404(db, role_id)
    result = check_role_deletable(role)
    if not result.allowed:
        raise AuthorizationError(result.message)

    db.delete(role)
    db.commit()
    logger.info("Role deleted", extra={"role_id": role_id})
    return success(message="Role deleted successfully.")
