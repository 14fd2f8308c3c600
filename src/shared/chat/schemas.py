"""Pydantic schemas for chats and messages."""

from pydantic import BaseModel, Field, AliasChoices
from typing import Optional, List
from datetime import datetime


class ChatUserSummary(BaseModel):
    """The other participant of a chat."""
    user_id: int
    username: str
    profile_picture: Optional[str] = None
    name: Optional[str] = None


class MessageResponse(BaseModel):
    """A chat message. Also the payload pushed on /queue/messages."""
    message_id: int
    chat_id: int
    content: str
    sender_id: int
    sender_username: Optional[str] = None
    sender_profile_picture: Optional[str] = None
    receiver_id: int
    created_at: datetime
    is_read: bool = False


class ChatResponse(BaseModel):
    """Chat summary from the caller's point of view."""
    chat_id: int
    other_user: ChatUserSummary
    last_message_time: Optional[datetime] = None
    last_message_content: Optional[str] = None
    last_message_sender_id: Optional[int] = None
    has_unread_messages: bool = False
    recent_messages: Optional[List[MessageResponse]] = None  # Only filled for a single chat


class SendMessageRequest(BaseModel):
    """Body of POST /api/chats/message and payload of /app/chat.sendMessage."""
    receiver_id: int = Field(..., validation_alias=AliasChoices("receiver_id", "receiverId"))
    content: str


class MarkReadRequest(BaseModel):
    """Payload of /app/chat.markRead."""
    chat_id: int = Field(..., validation_alias=AliasChoices("chat_id", "chatId"))


class UnreadCountResponse(BaseModel):
    count: int
