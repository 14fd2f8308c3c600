"""Chat routes: threads, messages and read tracking over REST."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.shared.auth.database import get_db, User
from src.shared.auth.dependencies import get_current_user
from src.shared.chat import chat_utils
from src.shared.chat.schemas import ChatResponse, MessageResponse, SendMessageRequest, UnreadCountResponse
from src.shared.realtime.connection_manager import get_push

router = APIRouter(prefix="/api/chats", tags=["chats"])


@router.get("", response_model=List[ChatResponse])
async def get_user_chats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get all chats of the current user, most recent activity first."""
    return chat_utils.get_user_chats(db, current_user.id)


@router.get("/unread/count", response_model=UnreadCountResponse)
async def get_unread_message_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return UnreadCountResponse(count=chat_utils.get_unread_message_count(db, current_user.id))


@router.post("/message", response_model=MessageResponse)
async def send_message(
    message_data: SendMessageRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    push=Depends(get_push)
):
    """Send a message over HTTP. The sender is always the authenticated user."""
    return chat_utils.send_message(db, push, current_user.id, message_data.receiver_id, message_data.content)


@router.post("/with/{other_user_id}", response_model=ChatResponse)
async def get_or_create_chat(
    other_user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return chat_utils.get_or_create_chat(db, current_user.id, other_user_id)


@router.get("/{chat_id}", response_model=ChatResponse)
async def get_chat(
    chat_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get a chat with its 100 most recent messages."""
    return chat_utils.get_chat_by_id(db, chat_id, current_user.id)


@router.post("/{chat_id}/read")
async def mark_messages_as_read(
    chat_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    push=Depends(get_push)
):
    marked = chat_utils.mark_messages_as_read(db, push, chat_id, current_user.id)
    return {"chat_id": chat_id, "marked_read": marked}
