"""Pydantic schemas for notifications."""

from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class NotificationResponse(BaseModel):
    """Notification as returned by the API and pushed on /queue/notifications."""
    id: int
    type: str
    message: str
    from_user_id: int
    from_username: Optional[str] = None
    from_user_profile_picture: Optional[str] = None
    post_id: Optional[int] = None
    post_image_url: Optional[str] = None  # First image of the related post
    created_at: datetime
    is_read: bool = False
    read_at: Optional[datetime] = None
    is_delivered: bool = False

    class Config:
        from_attributes = True


class NotificationCountResponse(BaseModel):
    count: int
