"""Notification routes for the current user."""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from src.shared.auth.database import get_db, User
from src.shared.auth.dependencies import get_current_user
from src.shared.notifications import notification_utils
from src.shared.notifications.schemas import NotificationResponse, NotificationCountResponse
from src.shared.realtime.connection_manager import get_push

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationResponse])
async def get_notifications(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get all notifications, newest first."""
    notifications = notification_utils.get_notifications_for_user(db, current_user.username)
    return [notification_utils.to_notification_response(n) for n in notifications]


@router.get("/unread", response_model=List[NotificationResponse])
async def get_unread_notifications(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    notifications = notification_utils.get_unread_notifications_for_user(db, current_user.username)
    return [notification_utils.to_notification_response(n) for n in notifications]


@router.get("/count", response_model=NotificationCountResponse)
async def get_unread_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return NotificationCountResponse(
        count=notification_utils.get_unread_notification_count(db, current_user.username)
    )


@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_as_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    push=Depends(get_push)
):
    notification = notification_utils.mark_as_read(db, push, notification_id, current_user.id)
    return notification_utils.to_notification_response(notification)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    notification_utils.delete_notification(db, notification_id, current_user.id)
    return None
