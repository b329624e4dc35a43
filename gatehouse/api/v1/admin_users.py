"""Admin user management: list, create, show, update (with role sync) and delete."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session, selectinload

from gatehouse.api.v1.deps import require_admin
from gatehouse.core.config import Settings, get_settings
from gatehouse.core.database import get_db
from gatehouse.core.errors import AuthorizationError, NotFoundError, ValidationError
from gatehouse.core.security import hash_password
from gatehouse.models import Role, User
from gatehouse.schemas.common import ApiResponse, EmptyData, PageMeta, success
from gatehouse.schemas.user import (
    AdminUserCreate,
    AdminUserUpdate,
    UserOut,
    UserProfileOut,
)
from gatehouse.services import accounts
from gatehouse.services.authorization import (
    check_admin_removal,
    check_user_deletion,
    missing_names_errors,
    resolve_roles,
)
from gatehouse.services.profile_pictures import delete_picture
from gatehouse.services.tokens import AuthContext

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_PER_PAGE = 10
MAX_PER_PAGE = 100


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found.")
    return user


def _resolve_roles_or_422(db: Session, names: list[str]) -> list[Role]:
    roles, missing = resolve_roles(db, names)
    if missing:
        raise ValidationError(errors=missing_names_errors("roles", missing))
    return roles


@router.get("", response_model=ApiResponse[list[UserOut]])
def list_users(
    _admin: Annotated[AuthContext, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
    search: Annotated[str | None, Query(max_length=255)] = None,
    role: Annotated[str | None, Query(max_length=255)] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    per_page: Annotated[int, Query(ge=1, le=MAX_PER_PAGE)] = DEFAULT_PER_PAGE,
) -> ApiResponse:
    """
    Page through users, optionally filtered by a name/email substring (search)
    and by role name (role). Pagination metadata is returned in meta.
    """
    query = db.query(User)
    if search:
        query = query.filter(
            User.name.icontains(search, autoescape=True)
            | User.email.icontains(search, autoescape=True)
        )
    if role:
        query = query.filter(User.roles.any(Role.name == role))

    total = query.count()
    users = (
        query.options(selectinload(User.roles).selectinload(Role.permissions))
        .order_by(User.id)
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return success(
        [UserOut.from_user(u) for u in users],
        meta=PageMeta.build(page, per_page, total, len(users)),
    )


@router.post(
    "",
    response_model=ApiResponse[UserProfileOut],
    status_code=status.HTTP_201_CREATED,
)
def create_user(
    body: AdminUserCreate,
    _admin: Annotated[AuthContext, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse:
    if accounts.email_taken(db, body.email):
        raise ValidationError.for_field("email", "The email has already been taken.")
    roles = _resolve_roles_or_422(db, body.roles or [])

    user = accounts.create_user(db, body.name, body.email, body.password, roles=roles)
    db.commit()
    db.refresh(user)
    logger.info("User created by admin", extra={"user_id": user.id})
    return success(UserProfileOut.from_user(user), "User created successfully.")


@router.get("/{user_id}", response_model=ApiResponse[UserProfileOut])
def show_user(
    user_id: int,
    _admin: Annotated[AuthContext, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse:
    return success(UserProfileOut.from_user(_get_user_or_404(db, user_id)))


@router.put("/{user_id}", response_model=ApiResponse[UserProfileOut])
@router.patch("/{user_id}", response_model=ApiResponse[UserProfileOut], include_in_schema=False)
def update_user(
    user_id: int,
    body: AdminUserUpdate,
    _admin: Annotated[AuthContext, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse:
    """
    Apply the provided fields. roles replaces the user's role set.

    Every check (email uniqueness, role existence, last-admin guard) runs before
    the first write, so a rejected request changes nothing.
    """
    user = _get_user_or_404(db, user_id)

    if body.email is not None and accounts.email_taken(db, body.email, exclude_user_id=user.id):
        raise ValidationError.for_field("email", "The email has already been taken.")
    roles = _resolve_roles_or_422(db, body.roles) if body.roles is not None else None

    result = check_admin_removal(db, user, body.roles)
    if not result.allowed:
        db.rollback()
        raise AuthorizationError(result.message)

    if body.name is not None:
        user.name = body.name.strip()
    if body.email is not None:
        user.email = accounts.normalize_email(body.email)
    if body.password:
        user.password_hash = hash_password(body.password)
    if roles is not None:
        accounts.sync_roles(user, roles)
    db.commit()
    db.refresh(user)
    logger.info("User updated by admin", extra={"user_id": user.id})
    return success(UserProfileOut.from_user(user), "User updated successfully.")


@router.delete("/{user_id}", response_model=ApiResponse[EmptyData])
def delete_user(
    user_id: int,
    admin: Annotated[AuthContext, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ApiResponse:
    """Delete a user with their tokens and role assignments. Admins cannot delete themselves."""
    user = _get_user_or_404(db, user_id)
    result = check_user_deletion(user, admin.user)
    if not result.allowed:
        raise AuthorizationError(result.message)

    picture = user.profile_picture
    db.delete(user)
    db.commit()
    delete_picture(picture, settings)
    logger.info("User deleted by admin", extra={"user_id": user_id})
    return success(message="User deleted successfully.")
