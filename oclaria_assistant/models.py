from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class ConversationMessage(BaseModel):
    """One chat turn exchanged with the browser client or the completion model."""
    role: Literal["user", "assistant", "system"]
    content: str


class ChatResponse(BaseModel):
    """Response payload returned by the chat API."""
    reply: ConversationMessage


class ErrorResponse(BaseModel):
    """Generic failure payload; carries no upstream details."""
    error: str
