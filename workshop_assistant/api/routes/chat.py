"""Chat API routes."""

import uuid
from typing import Literal

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ...app import Application
from ...dialogue import SessionBusyError
from ...logging_config import get_logger

logger = get_logger(__name__)


class SessionResponse(BaseModel):
    """Response model for a new chat session."""

    session_id: str


class MessageRequest(BaseModel):
    """Request model for sending a message."""

    session_id: str
    text: str = Field(min_length=1)
    user_id: str | None = None


class MessageResponse(BaseModel):
    """Response model for message."""

    response: str


class ChatMessageResponse(BaseModel):
    """A single visible chat turn."""

    role: Literal["user", "assistant", "system"]
    content: str


def create_chat_router(app: Application) -> APIRouter:
    """Create chat router."""
    router = APIRouter(prefix="/api/chat", tags=["chat"])

    @router.post("/sessions", response_model=SessionResponse)
    async def create_session() -> dict:
        """Issue a new opaque session identifier."""
        return {"session_id": str(uuid.uuid4())}

    @router.get(
        "/sessions/{session_id}/messages", response_model=list[ChatMessageResponse]
    )
    async def get_messages(session_id: str, user_id: str | None = None) -> list[dict]:
        """Get the visible history of a session, opening it if needed."""
        try:
            history = await app.dialogue_controller.get_history(session_id, user_id)
            return [m.to_dict() for m in history]
        except Exception as e:
            logger.error("Failed to load history: %s", e, exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

    @router.post("/messages", response_model=MessageResponse)
    async def send_message(request: MessageRequest) -> dict:
        """Send a message to the assistant."""
        if not request.text.strip():
            raise HTTPException(status_code=422, detail="Message text is empty")
        try:
            response = await app.dialogue_controller.handle_message(
                session_id=request.session_id,
                text=request.text,
                user_id=request.user_id,
            )
            return {"response": response}
        except SessionBusyError as e:
            raise HTTPException(status_code=409, detail=str(e))
        except Exception as e:
            logger.error("Failed to handle message: %s", e, exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

    return router
