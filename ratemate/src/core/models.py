"""
Core pydantic data models shared by the pipeline, the stores, and the API.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

USER_ROLE = "user"
ASSISTANT_ROLE = "assistant"
SYSTEM_ROLE = "system"

TurnRole = Literal["user", "assistant"]

# Role-tagged message in the chat-completions shape; content is a string or
# a list of {"type": "text"} / {"type": "image_url"} parts.
PromptMessage = dict[str, Any]


class ConversationTurn(BaseModel):
    """One immutable entry of a session's history."""

    model_config = ConfigDict(frozen=True)

    role: TurnRole
    content: str


class RetrievedContextItem(BaseModel):
    """A search hit normalized across corpus collections."""

    source: str
    content: str = ""
    origin_id: int | None = None


class CorpusStats(BaseModel):
    posts: int = 0
    comments: int = 0
    attachments: int = 0
