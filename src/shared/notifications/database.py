"""Database model for user notifications."""

import enum
from datetime import datetime

from sqlalchemy import Column, String, DateTime, Integer, Boolean, ForeignKey, Enum, Index
from sqlalchemy.orm import relationship

from src.shared.auth.database import Base

MAX_NOTIFICATION_MESSAGE_LENGTH = 500


class NotificationType(str, enum.Enum):
    LIKE = "LIKE"
    COMMENT = "COMMENT"
    FOLLOW = "FOLLOW"


class Notification(Base):
    """A notification from one user to another, optionally about a post."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(Enum(NotificationType, name="notification_type"), nullable=False)
    message = Column(String(MAX_NOTIFICATION_MESSAGE_LENGTH), nullable=False)
    from_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    to_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime, nullable=True)
    # Set when a live socket accepted the push; absence does not mean the user never saw it
    is_delivered = Column(Boolean, default=False, nullable=False)
    delivered_at = Column(DateTime, nullable=True)

    from_user = relationship("User", foreign_keys=[from_user_id])
    to_user = relationship("User", foreign_keys=[to_user_id])
    post = relationship("Post")

    __table_args__ = (
        Index('idx_notifications_to_user_read', 'to_user_id', 'is_read'),
    )
