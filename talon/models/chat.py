"""Conversation models for the chat orchestrator."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from talon.models.rag import RetrievalStats


class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ChatTurn(BaseModel):
    """One prior message in the conversation."""

    model_config = ConfigDict(frozen=True)

    role: ChatRole
    content: str


class ChatReply(BaseModel):
    """The generated answer and how much retrieved context grounded it."""

    model_config = ConfigDict(frozen=True)

    response: str
    contexts_used: RetrievalStats = Field(default_factory=RetrievalStats)
