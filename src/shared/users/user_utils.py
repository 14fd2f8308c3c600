"""User directory: lookup, search and profile edits."""

import logging
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from src.shared.auth.database import User
from src.shared.auth.input_validation import validate_bio, validate_name, validate_username
from src.shared.social.database import Follow
from src.shared.social.image_utils import store_image, delete_file

MAX_SEARCH_RESULTS = 50


def get_user_by_id(db: Session, user_id: int) -> User:
    """Raises 404 if the user does not exist."""
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user


def get_user_by_username(db: Session, username: str) -> User:
    """Raises 404 if the user does not exist. Lookup is case-insensitive."""
    normalized = (username or "").strip().lower()
    user = db.query(User).filter(User.username == normalized).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user


def search_users(db: Session, query: Optional[str]) -> List[User]:
    """Case-insensitive substring match on username or display name."""
    if query is None or not query.strip():
        return []

    # Wildcards typed by the user match literally
    escaped = query.strip().lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    pattern = f"%{escaped}%"
    return db.query(User).filter(
        or_(
            User.username.ilike(pattern, escape="\\"),
            User.name.ilike(pattern, escape="\\")
        )
    ).order_by(User.username.asc()).limit(MAX_SEARCH_RESULTS).all()


def update_bio(db: Session, user_id: int, bio: Optional[str]) -> User:
    user = get_user_by_id(db, user_id)
    user.bio = validate_bio(bio)
    db.commit()
    db.refresh(user)
    return user


def update_profile(
    db: Session,
    user_id: int,
    username: Optional[str] = None,
    name: Optional[str] = None,
    bio: Optional[str] = None
) -> User:
    """
    Update any of username, display name and bio. Fields left as None are unchanged.

    Raises:
        HTTPException 400 if the new username is invalid or already taken
    """
    user = get_user_by_id(db, user_id)

    if username is not None and username.strip():
        new_username = validate_username(username)
        if new_username != user.username:
            taken = db.query(User).filter(User.username == new_username).first()
            if taken:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Username is already taken"
                )
            # Tokens carry the username as subject, so a rename ends current sessions
            logging.info(f"User {user.id} renamed from {user.username} to {new_username}")
            user.username = new_username

    if name is not None:
        user.name = validate_name(name) if name.strip() else None

    if bio is not None:
        user.bio = validate_bio(bio)

    db.commit()
    db.refresh(user)
    return user


def update_profile_image(db: Session, user_id: int, image_data: Optional[str]) -> User:
    """Replace the profile picture. The old file is removed best effort once the new one is saved."""
    user = get_user_by_id(db, user_id)
    old_picture = user.profile_picture

    user.profile_picture = store_image(image_data, f"profiles/{user.id}")
    db.commit()
    db.refresh(user)

    if old_picture and old_picture != user.profile_picture:
        try:
            delete_file(old_picture)
        except OSError as e:
            logging.warning(f"Failed to delete old profile picture of user {user.id}: {str(e)}")
    return user


def get_followers_for_tagging(db: Session, user_id: int) -> List[User]:
    """Users who follow the caller, i.e. the people they can tag in a post."""
    get_user_by_id(db, user_id)
    return db.query(User).join(
        Follow, Follow.follower_id == User.id
    ).filter(
        Follow.followee_id == user_id
    ).order_by(User.username.asc()).all()
