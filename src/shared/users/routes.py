"""User profile routes."""

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from src.shared.auth.database import get_db, User
from src.shared.auth.dependencies import get_current_user
from src.shared.users import user_utils
from src.shared.users.schemas import (
    UserResponse,
    CurrentUserResponse,
    UpdateBioRequest,
    UpdateProfileRequest,
    UpdateProfileImageRequest,
)

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/me", response_model=CurrentUserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get current user information."""
    return current_user


@router.get("/by-username/{username}", response_model=UserResponse)
async def get_user_by_username(
    username: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return user_utils.get_user_by_username(db, username)


@router.get("/search", response_model=List[UserResponse])
async def search_users(
    query: str = Query(""),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Search users by username or name (case-insensitive substring)."""
    return user_utils.search_users(db, query)


@router.get("/followers", response_model=List[UserResponse])
async def get_followers_for_tagging(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Followers of the current user, offered as tagging candidates."""
    return user_utils.get_followers_for_tagging(db, current_user.id)


@router.put("/bio", response_model=CurrentUserResponse)
async def update_bio(
    bio_data: UpdateBioRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return user_utils.update_bio(db, current_user.id, bio_data.bio)


@router.put("/profile", response_model=CurrentUserResponse)
async def update_profile(
    profile_data: UpdateProfileRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return user_utils.update_profile(
        db,
        current_user.id,
        username=profile_data.username,
        name=profile_data.name,
        bio=profile_data.bio,
    )


@router.put("/profile-image", response_model=CurrentUserResponse)
def update_profile_image(
    image_data: UpdateProfileImageRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    # Sync route: an image URL payload is downloaded with a blocking client
    return user_utils.update_profile_image(db, current_user.id, image_data.image_base64)
