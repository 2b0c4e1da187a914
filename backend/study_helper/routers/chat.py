"""Chat router — free-text conversation with per-session history."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query

from study_helper.config import settings
from study_helper.schemas.chat import ChatRequest, ChatResponse, HistoryResponse
from study_helper.services.study_service import StudyOrchestrator, get_orchestrator

router = APIRouter(prefix="/api", tags=["chat"])


@router.post("/chat", response_model=ChatResponse)
async def chat(
    req: ChatRequest,
    orchestrator: StudyOrchestrator = Depends(get_orchestrator),
):
    """Send a message; a new session id is issued when the caller has none."""
    session_id = req.session_id or uuid.uuid4().hex
    reply = await orchestrator.chat_turn(session_id, req.message)
    return ChatResponse(response=reply, sessionId=session_id)


@router.get("/history", response_model=HistoryResponse)
async def get_history(
    session_id: Optional[str] = Query(default=None, alias="sessionId"),
    orchestrator: StudyOrchestrator = Depends(get_orchestrator),
):
    history = await orchestrator.get_history(session_id or settings.DEFAULT_SESSION_ID)
    return HistoryResponse(history=history)
