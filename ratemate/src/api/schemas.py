"""Request and response bodies for the HTTP API."""

from __future__ import annotations

from pydantic import BaseModel, Field

from ratemate.src.core.models import ConversationTurn


class AskRequest(BaseModel):
    question: str | None = ""
    image_data: str | None = Field(default=None, description="Image as a data: URL")
    conversation_history: list[ConversationTurn] | None = None


class AskResponse(BaseModel):
    answer: str


class ErrorDetail(BaseModel):
    detail: str


class DocumentAnswerResponse(BaseModel):
    answer: str
    documentContent: str


class DocumentError(BaseModel):
    error: str


class ImageUploadResponse(BaseModel):
    success: bool
    image_data: str | None = None
    message: str
