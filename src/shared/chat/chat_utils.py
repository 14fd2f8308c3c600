"""
Direct-message store and delivery.

Messages are persisted first and then pushed to the receiver's live sockets.
A failed push never undoes a stored message; the receiver sees it on the
next GET /api/chats.
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy import or_, and_
from sqlalchemy.orm import Session

from src.shared.auth.database import User
from src.shared.auth.input_validation import validate_text_content
from src.shared.chat.database import Chat, Message
from src.shared.chat.schemas import ChatResponse, ChatUserSummary, MessageResponse
from src.shared.realtime.connection_manager import QUEUE_MESSAGES, QUEUE_READ_RECEIPTS
from src.shared.users.user_utils import get_user_by_id

RECENT_MESSAGES_LIMIT = 100


def to_message_response(message: Message) -> MessageResponse:
    sender = message.sender
    return MessageResponse(
        message_id=message.id,
        chat_id=message.chat_id,
        content=message.content,
        sender_id=message.sender_id,
        sender_username=sender.username if sender else None,
        sender_profile_picture=sender.profile_picture if sender else None,
        receiver_id=message.receiver_id,
        created_at=message.created_at,
        is_read=message.is_read,
    )


def to_chat_response(chat: Chat, user_id: int, include_messages: bool) -> ChatResponse:
    """Summarize a chat as seen by user_id, optionally with its recent messages."""
    other = chat.other_participant(user_id)
    response = ChatResponse(
        chat_id=chat.id,
        other_user=ChatUserSummary(
            user_id=other.id,
            username=other.username,
            profile_picture=other.profile_picture,
            name=other.name,
        ),
    )

    messages = chat.messages
    if messages:
        last = messages[0]
        response.last_message_time = last.created_at
        response.last_message_content = last.content
        response.last_message_sender_id = last.sender_id
        response.has_unread_messages = any(
            m.receiver_id == user_id and not m.is_read for m in messages
        )

    if include_messages:
        response.recent_messages = [to_message_response(m) for m in messages[:RECENT_MESSAGES_LIMIT]]

    return response


def _find_chat_between(db: Session, user_id1: int, user_id2: int) -> Optional[Chat]:
    return db.query(Chat).filter(
        or_(
            and_(Chat.user1_id == user_id1, Chat.user2_id == user_id2),
            and_(Chat.user1_id == user_id2, Chat.user2_id == user_id1),
        )
    ).order_by(Chat.id.asc()).first()


def _resolve_chat(db: Session, user1: User, user2: User) -> Chat:
    chat = _find_chat_between(db, user1.id, user2.id)
    if chat is not None:
        return chat

    now = datetime.utcnow()
    chat = Chat(user1_id=user1.id, user2_id=user2.id, created_at=now, updated_at=now)
    db.add(chat)
    db.flush()
    logging.info(f"Created chat {chat.id} between {user1.username} and {user2.username}")
    return chat


def _get_participant_chat(db: Session, chat_id: int, user_id: int) -> Chat:
    chat = db.query(Chat).filter(Chat.id == chat_id).first()
    if not chat:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Chat not found"
        )
    if not chat.has_participant(user_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You don't have access to this chat"
        )
    return chat


def get_user_chats(db: Session, user_id: int) -> List[ChatResponse]:
    """Every chat of the user, most recent activity first."""
    get_user_by_id(db, user_id)
    chats = db.query(Chat).filter(
        or_(Chat.user1_id == user_id, Chat.user2_id == user_id)
    ).order_by(Chat.updated_at.desc(), Chat.id.desc()).all()
    return [to_chat_response(chat, user_id, include_messages=False) for chat in chats]


def get_chat_by_id(db: Session, chat_id: int, user_id: int) -> ChatResponse:
    """
    Raises:
        HTTPException 404 if the chat does not exist
        HTTPException 403 if the user is not a participant
    """
    get_user_by_id(db, user_id)
    chat = _get_participant_chat(db, chat_id, user_id)
    return to_chat_response(chat, user_id, include_messages=True)


def get_or_create_chat(db: Session, user_id1: int, user_id2: int) -> ChatResponse:
    """Return the chat between two users, creating it on first use."""
    if user_id1 == user_id2:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot create chat with yourself"
        )

    user1 = get_user_by_id(db, user_id1)
    user2 = get_user_by_id(db, user_id2)

    chat = _resolve_chat(db, user1, user2)
    db.commit()
    db.refresh(chat)
    return to_chat_response(chat, user1.id, include_messages=True)


def send_message(db: Session, push, sender_id: int, receiver_id: int, content: Optional[str]) -> MessageResponse:
    """
    Store a message and push it to the receiver on /queue/messages.

    Raises:
        HTTPException 400 on a message to oneself or empty content
        HTTPException 404 if either user does not exist
    """
    if sender_id == receiver_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot send a message to yourself"
        )
    text = validate_text_content(content, "Message")

    sender = get_user_by_id(db, sender_id)
    receiver = get_user_by_id(db, receiver_id)

    chat = _resolve_chat(db, sender, receiver)

    now = datetime.utcnow()
    message = Message(
        chat_id=chat.id,
        content=text,
        sender_id=sender.id,
        receiver_id=receiver.id,
        created_at=now,
        is_read=False,
    )
    db.add(message)
    chat.updated_at = now
    db.commit()
    db.refresh(message)

    response = to_message_response(message)

    try:
        push.send_to_user(receiver.id, QUEUE_MESSAGES, response.model_dump())
    except Exception as e:
        logging.warning(f"Failed to push message {message.id} to user {receiver.id}: {str(e)}")

    return response


def mark_messages_as_read(db: Session, push, chat_id: int, user_id: int) -> int:
    """
    Mark every unread message addressed to user_id in the chat as read.

    When anything changed, the other participant gets the chat id on
    /queue/read-receipts.

    Returns:
        Number of messages that were flipped to read
    """
    chat = _get_participant_chat(db, chat_id, user_id)

    unread = db.query(Message).filter(
        Message.chat_id == chat.id,
        Message.receiver_id == user_id,
        Message.is_read.is_(False)
    ).all()
    if not unread:
        return 0

    for message in unread:
        message.is_read = True
    other_user_id = chat.user2_id if chat.user1_id == user_id else chat.user1_id
    db.commit()

    try:
        push.send_to_user(other_user_id, QUEUE_READ_RECEIPTS, chat_id)
    except Exception as e:
        logging.warning(f"Failed to push read receipt for chat {chat_id}: {str(e)}")

    return len(unread)


def get_unread_message_count(db: Session, user_id: int) -> int:
    get_user_by_id(db, user_id)
    return db.query(Message).filter(
        Message.receiver_id == user_id,
        Message.is_read.is_(False)
    ).count()
