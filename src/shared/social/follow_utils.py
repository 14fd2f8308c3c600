"""Follow graph operations."""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from src.shared.auth.database import User, insert_or_get
from src.shared.notifications.notification_utils import create_follow_notification
from src.shared.social.database import Follow, Post
from src.shared.users.user_utils import get_user_by_id


def _find_follow(db: Session, follower_id: int, followee_id: int) -> Optional[Follow]:
    return db.query(Follow).filter(
        Follow.follower_id == follower_id,
        Follow.followee_id == followee_id
    ).first()


def follow_user(db: Session, push, follower_id: int, followee_id: int) -> Optional[Follow]:
    """
    Toggle the follow edge follower -> followee.

    Returns:
        The new Follow when the edge was created, None when an existing edge was removed

    Raises:
        HTTPException 400 on a self-follow, 404 if either user does not exist
    """
    if follower_id == followee_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot follow yourself"
        )

    follower = get_user_by_id(db, follower_id)
    followee = get_user_by_id(db, followee_id)

    existing = _find_follow(db, follower.id, followee.id)
    if existing is not None:
        db.delete(existing)
        db.commit()
        logging.info(f"User {follower.username} unfollowed {followee.username}")
        return None

    follow, created = insert_or_get(
        db,
        lambda: _find_follow(db, follower.id, followee.id),
        lambda: Follow(follower_id=follower.id, followee_id=followee.id, created_at=datetime.utcnow()),
    )
    if created:
        logging.info(f"User {follower.username} followed {followee.username}")
        create_follow_notification(db, push, follower, followee)
    return follow


def unfollow_user(db: Session, follower_id: int, followee_id: int) -> None:
    """Remove the edge if it exists. Not an error when it doesn't."""
    get_user_by_id(db, followee_id)
    existing = _find_follow(db, follower_id, followee_id)
    if existing is not None:
        db.delete(existing)
        db.commit()


def is_following(db: Session, follower_id: int, followee_id: int) -> bool:
    return _find_follow(db, follower_id, followee_id) is not None


def get_followers_count(db: Session, user_id: int) -> int:
    get_user_by_id(db, user_id)
    return db.query(Follow).filter(Follow.followee_id == user_id).count()


def get_following_count(db: Session, user_id: int) -> int:
    get_user_by_id(db, user_id)
    return db.query(Follow).filter(Follow.follower_id == user_id).count()


def get_posts_count(db: Session, user_id: int) -> int:
    get_user_by_id(db, user_id)
    return db.query(Post).filter(Post.user_id == user_id).count()


def get_followers(db: Session, user_id: int) -> List[User]:
    get_user_by_id(db, user_id)
    return db.query(User).join(
        Follow, Follow.follower_id == User.id
    ).filter(
        Follow.followee_id == user_id
    ).order_by(Follow.created_at.desc(), Follow.follower_id.desc()).all()


def get_following(db: Session, user_id: int) -> List[User]:
    get_user_by_id(db, user_id)
    return db.query(User).join(
        Follow, Follow.followee_id == User.id
    ).filter(
        Follow.follower_id == user_id
    ).order_by(Follow.created_at.desc(), Follow.followee_id.desc()).all()
