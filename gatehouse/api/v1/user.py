"""The authenticated user's own profile, password and profile picture."""

from typing import Annotated

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from gatehouse.api.v1.deps import get_current_context
from gatehouse.core.config import Settings, get_settings
from gatehouse.core.database import get_db
from gatehouse.core.errors import NotFoundError, ValidationError
from gatehouse.core.security import hash_password, verify_password
from gatehouse.schemas.common import ApiResponse, EmptyData, success
from gatehouse.schemas.user import (
    UpdatePasswordRequest,
    UpdateProfileRequest,
    UserProfileOut,
)
from gatehouse.services import accounts
from gatehouse.services.profile_pictures import (
    PictureValidationError,
    delete_picture,
    store_picture,
    validate_picture,
)
from gatehouse.services.tokens import AuthContext

router = APIRouter()

# Columns that may be cleared by sending null.
NULLABLE_PROFILE_FIELDS = frozenset({"phone", "address"})


@router.get("", response_model=ApiResponse[UserProfileOut])
def show_profile(
    context: Annotated[AuthContext, Depends(get_current_context)],
) -> ApiResponse:
    """Return the current user with roles and effective permissions."""
    return success(UserProfileOut.from_user(context.user))


@router.put("", response_model=ApiResponse[UserProfileOut])
def update_profile(
    body: UpdateProfileRequest,
    context: Annotated[AuthContext, Depends(get_current_context)],
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse:
    user = context.user
    changes = {
        field: value
        for field, value in body.model_dump(exclude_unset=True).items()
        if value is not None or field in NULLABLE_PROFILE_FIELDS
    }
    if "email" in changes:
        if accounts.email_taken(db, changes["email"], exclude_user_id=user.id):
            raise ValidationError.for_field("email", "The email has already been taken.")
        changes["email"] = accounts.normalize_email(changes["email"])
    if "name" in changes:
        changes["name"] = changes["name"].strip()

    for field, value in changes.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    return success(UserProfileOut.from_user(user), "User profile updated successfully.")


@router.put("/password", response_model=ApiResponse[EmptyData])
def update_password(
    body: UpdatePasswordRequest,
    context: Annotated[AuthContext, Depends(get_current_context)],
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse:
    """Change the password after confirming the current one. Existing tokens stay valid."""
    user = context.user
    if not verify_password(body.current_password, user.password_hash):
        raise ValidationError.for_field("current_password", "The password is incorrect.")
    user.password_hash = hash_password(body.password)
    db.commit()
    return success(message="Password updated successfully.")


@router.post("/profile-picture", response_model=ApiResponse[UserProfileOut])
async def upload_profile_picture(
    context: Annotated[AuthContext, Depends(get_current_context)],
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    profile_picture: Annotated[UploadFile | None, File()] = None,
) -> ApiResponse:
    """
    Store a jpeg, png or gif (at most PROFILE_PICTURE_MAX_BYTES) and replace the
    previous picture, which is removed from storage.
    """
    if profile_picture is None:
        raise ValidationError(
            "No profile picture provided.",
            errors={"profile_picture": ["The profile picture field is required."]},
        )
    # One byte past the limit is enough to reject an oversized upload.
    content = await profile_picture.read(settings.PROFILE_PICTURE_MAX_BYTES + 1)
    try:
        extension = validate_picture(profile_picture.filename, content, settings)
    except PictureValidationError as e:
        raise ValidationError.for_field("profile_picture", e.message) from e

    user = context.user
    previous = user.profile_picture
    user.profile_picture = store_picture(content, extension, settings)
    db.commit()
    delete_picture(previous, settings)
    db.refresh(user)
    return success(UserProfileOut.from_user(user), "Profile picture uploaded successfully.")


@router.delete("/profile-picture", response_model=ApiResponse[UserProfileOut])
def delete_profile_picture(
    context: Annotated[AuthContext, Depends(get_current_context)],
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ApiResponse:
    user = context.user
    if not user.profile_picture:
        raise NotFoundError("No profile picture to delete.")
    previous = user.profile_picture
    user.profile_picture = None
    db.commit()
    delete_picture(previous, settings)
    db.refresh(user)
    return success(UserProfileOut.from_user(user), "Profile picture deleted successfully.")
