"""Post creation and feed queries."""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from src.shared.social.database import Post
from src.shared.social.image_utils import store_image
from src.shared.users.user_utils import get_user_by_id, get_user_by_username


def build_display_caption(caption: Optional[str], tagged_people: Optional[List[str]]) -> Optional[str]:
    """
    Render a caption with its tagged users appended.

    "beach" + []              -> "beach"
    "beach" + [a]             -> "beach with @a"
    "beach" + [a, b]          -> "beach with @a and @b"
    "beach" + [a, b, c]       -> "beach with @a, @b and @c"
    """
    tags = [t for t in (tagged_people or []) if t]
    if not tags:
        return caption

    mentions = [f"@{t}" for t in tags]
    if len(mentions) == 1:
        joined = mentions[0]
    else:
        joined = f"{', '.join(mentions[:-1])} and {mentions[-1]}"

    if caption:
        return f"{caption} with {joined}"
    return f"with {joined}"


def create_post(
    db: Session,
    user_id: int,
    content: Optional[str],
    caption: Optional[str],
    images: Optional[List[str]] = None,
    tagged_people: Optional[List[str]] = None
) -> Post:
    """Store the post's images under posts/<user_id> and persist the post."""
    user = get_user_by_id(db, user_id)

    image_urls = []
    for image_data in images or []:
        image_urls.append(store_image(image_data, f"posts/{user.id}"))

    tags = []
    for tag in tagged_people or []:
        normalized = (tag or "").strip().lstrip("@").lower()
        if normalized and normalized not in tags:
            tags.append(normalized)

    post = Post(
        user_id=user.id,
        content=content,
        caption=caption,
        image_urls=image_urls,
        tagged_people=tags,
        created_at=datetime.utcnow(),
    )
    db.add(post)
    db.commit()
    db.refresh(post)

    logging.info(f"User {user.username} created post {post.id} with {len(image_urls)} image(s)")
    return post


def get_post(db: Session, post_id: int) -> Post:
    """Raises 404 if the post does not exist."""
    post = db.query(Post).filter(Post.id == post_id).first()
    if not post:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Post not found"
        )
    return post


def get_user_posts(db: Session, username: str) -> List[Post]:
    user = get_user_by_username(db, username)
    return db.query(Post).filter(
        Post.user_id == user.id
    ).order_by(Post.created_at.desc(), Post.id.desc()).all()


def get_all_posts(db: Session) -> List[Post]:
    return db.query(Post).order_by(Post.created_at.desc(), Post.id.desc()).all()


def get_news_feed(db: Session, user_id: int) -> List[Post]:
    """Every post, newest first. Not filtered by who the user follows."""
    get_user_by_id(db, user_id)
    return get_all_posts(db)
