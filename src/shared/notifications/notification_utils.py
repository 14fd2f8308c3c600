"""
Notification store: creation with push delivery, listing and read tracking.
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from src.shared.auth.database import User
from src.shared.notifications.database import Notification, NotificationType, MAX_NOTIFICATION_MESSAGE_LENGTH
from src.shared.notifications.schemas import NotificationResponse
from src.shared.realtime.connection_manager import QUEUE_NOTIFICATIONS, QUEUE_NOTIFICATION_COUNT
from src.shared.users.user_utils import get_user_by_username

COMMENT_PREVIEW_LENGTH = 50


def to_notification_response(notification: Notification) -> NotificationResponse:
    post_image_url = None
    if notification.post is not None and notification.post.image_urls:
        post_image_url = notification.post.image_urls[0]

    from_user = notification.from_user
    return NotificationResponse(
        id=notification.id,
        type=notification.type.value,
        message=notification.message,
        from_user_id=notification.from_user_id,
        from_username=from_user.username if from_user else None,
        from_user_profile_picture=from_user.profile_picture if from_user else None,
        post_id=notification.post_id,
        post_image_url=post_image_url,
        created_at=notification.created_at,
        is_read=notification.is_read,
        read_at=notification.read_at,
        is_delivered=notification.is_delivered,
    )


def create_notification(
    db: Session,
    push,
    notification_type: NotificationType,
    message: str,
    from_user: User,
    to_user: User,
    related_post=None
) -> Optional[Notification]:
    """
    Persist a notification and push it to the recipient if they are connected.

    Self-notifications are suppressed: returns None without writing or pushing.
    A failed push never undoes the stored notification.
    """
    if from_user.id == to_user.id:
        return None

    notification = Notification(
        type=notification_type,
        message=message[:MAX_NOTIFICATION_MESSAGE_LENGTH],
        from_user_id=from_user.id,
        to_user_id=to_user.id,
        post_id=related_post.id if related_post is not None else None,
        created_at=datetime.utcnow(),
        is_read=False,
        is_delivered=False,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)

    logging.info(
        f"Created notification: {notification_type.value} from {from_user.username} to {to_user.username}"
    )

    try:
        delivered = push.send_to_user(
            to_user.id,
            QUEUE_NOTIFICATIONS,
            # Delivery state is only known after this send, so it is not part of the push
            to_notification_response(notification).model_dump(exclude={"is_delivered"}),
        )
    except Exception as e:
        logging.warning(f"Failed to push notification {notification.id}: {str(e)}")
        delivered = False

    if delivered:
        notification.is_delivered = True
        notification.delivered_at = datetime.utcnow()
        db.commit()
        db.refresh(notification)

    return notification


def create_like_notification(db: Session, push, from_user: User, to_user: User, post) -> Optional[Notification]:
    message = f"{from_user.username} liked your post"
    return create_notification(db, push, NotificationType.LIKE, message, from_user, to_user, post)


def create_comment_notification(
    db: Session,
    push,
    from_user: User,
    to_user: User,
    post,
    comment_text: str
) -> Optional[Notification]:
    preview = comment_text
    if len(preview) > COMMENT_PREVIEW_LENGTH:
        preview = preview[:COMMENT_PREVIEW_LENGTH] + "..."
    message = f"{from_user.username} commented on your post: {preview}"
    return create_notification(db, push, NotificationType.COMMENT, message, from_user, to_user, post)


def create_follow_notification(db: Session, push, from_user: User, to_user: User) -> Optional[Notification]:
    message = f"{from_user.username} started following you"
    return create_notification(db, push, NotificationType.FOLLOW, message, from_user, to_user)


def get_notifications_for_user(db: Session, username: str) -> List[Notification]:
    """All notifications for a user, newest first. 404 for an unknown user."""
    user = get_user_by_username(db, username)
    return db.query(Notification).filter(
        Notification.to_user_id == user.id
    ).order_by(Notification.created_at.desc(), Notification.id.desc()).all()


def get_unread_notifications_for_user(db: Session, username: str) -> List[Notification]:
    user = get_user_by_username(db, username)
    return db.query(Notification).filter(
        Notification.to_user_id == user.id,
        Notification.is_read.is_(False)
    ).order_by(Notification.created_at.desc(), Notification.id.desc()).all()


def get_unread_notification_count(db: Session, username: str) -> int:
    user = get_user_by_username(db, username)
    return _count_unread(db, user.id)


def _count_unread(db: Session, user_id: int) -> int:
    return db.query(Notification).filter(
        Notification.to_user_id == user_id,
        Notification.is_read.is_(False)
    ).count()


def _get_notification(db: Session, notification_id: int) -> Notification:
    notification = db.query(Notification).filter(Notification.id == notification_id).first()
    if not notification:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found"
        )
    return notification


def mark_as_read(db: Session, push, notification_id: int, user_id: Optional[int] = None) -> Notification:
    """
    Mark a notification as read and push the recipient's new unread count.

    Raises:
        HTTPException 404 if the notification does not exist
        HTTPException 403 if user_id is given and is not the recipient
    """
    notification = _get_notification(db, notification_id)

    if user_id is not None and notification.to_user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only mark your own notifications as read"
        )

    if notification.is_read:
        return notification

    notification.is_read = True
    notification.read_at = datetime.utcnow()
    db.commit()
    db.refresh(notification)

    unread_count = _count_unread(db, notification.to_user_id)
    try:
        push.send_to_user(notification.to_user_id, QUEUE_NOTIFICATION_COUNT, {"unread_count": unread_count})
    except Exception as e:
        logging.warning(f"Failed to push unread count to user {notification.to_user_id}: {str(e)}")

    return notification


def delete_notification(db: Session, notification_id: int, user_id: int) -> None:
    """Delete a notification. Only its recipient may do so."""
    notification = _get_notification(db, notification_id)

    if notification.to_user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only delete your own notifications"
        )

    db.delete(notification)
    db.commit()
