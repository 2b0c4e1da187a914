"""Chat request/response schemas."""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    message: Any = None
    session_id: Optional[str] = Field(default=None, alias="sessionId")

    model_config = ConfigDict(populate_by_name=True)


class ChatResponse(BaseModel):
    response: str
    sessionId: str


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class HistoryResponse(BaseModel):
    history: list[ChatTurn]
