"""Database models for direct-message chats."""

from datetime import datetime

from sqlalchemy import Column, Text, DateTime, Integer, Boolean, ForeignKey, Index
from sqlalchemy.orm import relationship

from src.shared.auth.database import Base


class Chat(Base):
    """
    A one-to-one thread between two users.

    The pair is unordered: (user1, user2) and (user2, user1) denote the same
    thread. Uniqueness is enforced by lookup in chat_utils, not by a constraint.
    """
    __tablename__ = "chats"

    id = Column(Integer, primary_key=True, index=True)
    user1_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    user2_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    user1 = relationship("User", foreign_keys=[user1_id])
    user2 = relationship("User", foreign_keys=[user2_id])
    # Most recent first
    messages = relationship(
        "Message",
        back_populates="chat",
        order_by=lambda: [Message.created_at.desc(), Message.id.desc()],
        cascade="all, delete-orphan",
    )

    def has_participant(self, user_id: int) -> bool:
        return user_id in (self.user1_id, self.user2_id)

    def other_participant(self, user_id: int):
        return self.user2 if self.user1_id == user_id else self.user1


class Message(Base):
    """A chat message. Only is_read changes after creation."""
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    chat_id = Column(Integer, ForeignKey("chats.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    receiver_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)

    chat = relationship("Chat", back_populates="messages")
    sender = relationship("User", foreign_keys=[sender_id])
    receiver = relationship("User", foreign_keys=[receiver_id])

    __table_args__ = (
        Index('idx_messages_chat_created', 'chat_id', 'created_at'),
        Index('idx_messages_receiver_read', 'receiver_id', 'is_read'),
    )
