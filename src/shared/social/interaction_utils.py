"""Likes, comments and saved posts."""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from src.shared.auth.database import User, insert_or_get
from src.shared.auth.input_validation import validate_text_content
from src.shared.notifications.notification_utils import create_like_notification, create_comment_notification
from src.shared.social.database import Like, Comment, Post, PostSave
from src.shared.social.post_utils import get_post
from src.shared.users.user_utils import get_user_by_id


def _find_like(db: Session, post_id: int, user_id: int) -> Optional[Like]:
    return db.query(Like).filter(Like.post_id == post_id, Like.user_id == user_id).first()


def like_post(db: Session, push, post_id: int, user_id: int) -> Like:
    """
    Like a post. Liking twice returns the existing like.

    A LIKE notification goes to the post owner only when the like is new.
    """
    user = get_user_by_id(db, user_id)
    post = get_post(db, post_id)

    like, created = insert_or_get(
        db,
        lambda: _find_like(db, post.id, user.id),
        lambda: Like(post_id=post.id, user_id=user.id, created_at=datetime.utcnow()),
    )
    if created:
        create_like_notification(db, push, user, post.user, post)
    return like


def unlike_post(db: Session, post_id: int, user_id: int) -> None:
    get_post(db, post_id)
    like = _find_like(db, post_id, user_id)
    if like is not None:
        db.delete(like)
        db.commit()


def has_user_liked_post(db: Session, post_id: int, user_id: int) -> bool:
    get_post(db, post_id)
    return _find_like(db, post_id, user_id) is not None


def get_like_count(db: Session, post_id: int) -> int:
    get_post(db, post_id)
    return db.query(Like).filter(Like.post_id == post_id).count()


def get_users_who_liked_post(db: Session, post_id: int) -> List[User]:
    get_post(db, post_id)
    return db.query(User).join(
        Like, Like.user_id == User.id
    ).filter(
        Like.post_id == post_id
    ).order_by(Like.created_at.desc(), Like.id.desc()).all()


def create_comment(db: Session, push, post_id: int, user_id: int, text: Optional[str]) -> Comment:
    """Add a comment by the caller and notify the post owner."""
    comment_text = validate_text_content(text, "Comment")
    user = get_user_by_id(db, user_id)
    post = get_post(db, post_id)

    comment = Comment(
        post_id=post.id,
        user_id=user.id,
        comment=comment_text,
        created_at=datetime.utcnow(),
    )
    db.add(comment)
    db.commit()
    db.refresh(comment)

    # No-op when commenting on one's own post
    create_comment_notification(db, push, user, post.user, post, comment_text)
    return comment


def delete_comment(db: Session, comment_id: int, user_id: int) -> None:
    comment = db.query(Comment).filter(Comment.id == comment_id).first()
    if not comment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Comment not found"
        )

    if comment.user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only delete your own comments"
        )

    db.delete(comment)
    db.commit()


def get_post_comments(db: Session, post_id: int) -> List[Comment]:
    get_post(db, post_id)
    return db.query(Comment).filter(
        Comment.post_id == post_id
    ).order_by(Comment.created_at.desc(), Comment.id.desc()).all()


def count_post_comments(db: Session, post_id: int) -> int:
    get_post(db, post_id)
    return db.query(Comment).filter(Comment.post_id == post_id).count()


def _find_save(db: Session, post_id: int, user_id: int) -> Optional[PostSave]:
    return db.query(PostSave).filter(PostSave.post_id == post_id, PostSave.user_id == user_id).first()


def save_post(db: Session, post_id: int, user_id: int) -> PostSave:
    """Bookmark a post. Saving twice is a no-op."""
    user = get_user_by_id(db, user_id)
    post = get_post(db, post_id)

    saved, created = insert_or_get(
        db,
        lambda: _find_save(db, post.id, user.id),
        lambda: PostSave(post_id=post.id, user_id=user.id, saved_at=datetime.utcnow()),
    )
    if created:
        logging.info(f"User {user.username} saved post {post.id}")
    return saved


def unsave_post(db: Session, post_id: int, user_id: int) -> None:
    get_post(db, post_id)
    saved = _find_save(db, post_id, user_id)
    if saved is not None:
        db.delete(saved)
        db.commit()


def is_post_saved(db: Session, post_id: int, user_id: int) -> bool:
    get_post(db, post_id)
    return _find_save(db, post_id, user_id) is not None


def get_saved_posts(db: Session, user_id: int) -> List[Post]:
    """Posts the user saved, most recently saved first."""
    get_user_by_id(db, user_id)
    return db.query(Post).join(
        PostSave, PostSave.post_id == Post.id
    ).filter(
        PostSave.user_id == user_id
    ).order_by(PostSave.saved_at.desc(), PostSave.id.desc()).all()
