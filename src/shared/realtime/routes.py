"""
WebSocket endpoint for live chat.

Clients connect to /ws?token=<access token> and exchange JSON frames:

    {"destination": "/app/chat.sendMessage", "payload": {"receiver_id": 2, "content": "hi"}}
    {"destination": "/app/chat.markRead", "payload": {"chat_id": 7}}

Server pushes arrive as {"destination": "/user/queue/...", "payload": ...}.
The acting user is always the token's owner; ids in the payload are ignored
for identity.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from src.shared.auth.database import SessionLocal
from src.shared.auth.dependencies import resolve_token_user
from src.shared.chat import chat_utils
from src.shared.chat.schemas import SendMessageRequest, MarkReadRequest
from src.shared.realtime.connection_manager import manager, build_frame, QUEUE_ERRORS

router = APIRouter(tags=["realtime"])

SEND_MESSAGE_DESTINATION = "/app/chat.sendMessage"
MARK_READ_DESTINATION = "/app/chat.markRead"


def _send_message(db, push, user_id: int, payload: Dict[str, Any]) -> None:
    request = SendMessageRequest.model_validate(payload)
    chat_utils.send_message(db, push, user_id, request.receiver_id, request.content)


def _mark_read(db, push, user_id: int, payload: Dict[str, Any]) -> None:
    request = MarkReadRequest.model_validate(payload)
    chat_utils.mark_messages_as_read(db, push, request.chat_id, user_id)


CLIENT_HANDLERS = {
    SEND_MESSAGE_DESTINATION: _send_message,
    MARK_READ_DESTINATION: _mark_read,
}


def handle_client_frame(push, user_id: int, frame: Any) -> Optional[Dict[str, Any]]:
    """
    Dispatch one client frame to the chat service.

    Returns:
        An error payload for /queue/errors, or None on success
    """
    if not isinstance(frame, dict):
        return {"status_code": status.HTTP_400_BAD_REQUEST, "detail": "Frame must be a JSON object"}

    destination = frame.get("destination")
    handler = CLIENT_HANDLERS.get(destination)
    if handler is None:
        return {"status_code": status.HTTP_400_BAD_REQUEST, "detail": f"Unknown destination: {destination}"}

    payload = frame.get("payload") or {}
    db = SessionLocal()
    try:
        handler(db, push, user_id, payload)
    except HTTPException as e:
        db.rollback()
        return {"status_code": e.status_code, "detail": e.detail, "destination": destination}
    except ValidationError as e:
        db.rollback()
        return {
            "status_code": status.HTTP_422_UNPROCESSABLE_ENTITY,
            "detail": e.errors(include_url=False),
            "destination": destination,
        }
    except Exception as e:
        db.rollback()
        logging.error(f"Error handling {destination} for user {user_id}: {str(e)}", exc_info=True)
        return {"status_code": status.HTTP_500_INTERNAL_SERVER_ERROR, "detail": "Internal server error"}
    finally:
        db.close()
    return None


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: Optional[str] = Query(None)):
    db = SessionLocal()
    try:
        user = resolve_token_user(db, token or "")
        user_id = user.id
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    finally:
        db.close()

    await manager.connect(user_id, websocket)
    try:
        while True:
            try:
                frame = await websocket.receive_json()
            except ValueError:
                frame = None
            error = handle_client_frame(manager, user_id, frame)
            if error is not None:
                await websocket.send_json(build_frame(QUEUE_ERRORS, error))
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(user_id, websocket)
