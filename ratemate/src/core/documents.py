"""
RateMate - Document & Image Uploads
=====================================
Logic behind the two upload endpoints.

``DocumentService.answer_document``
    PDF          → provider-native document QA (upload, ask, delete).
    DOCX / DOC   → ``mammoth`` raw-text extraction, then one chat
                   completion over the extracted text.
    anything else → ``UnsupportedFileTypeError``.

``encode_image``
    PNG / JPEG bytes → ``data:`` URL for a later ``/api/ask`` call.
"""

from __future__ import annotations

import asyncio
import io
import time
from dataclasses import dataclass

from ratemate.config.prompt_templates import DEFAULT_DOCUMENT_QUESTION, DOCUMENT_SYSTEM_PROMPT, DOCUMENT_USER_TEMPLATE, UNSUPPORTED_DOCUMENT_MESSAGE, UNSUPPORTED_IMAGE_TEMPLATE
from ratemate.src.core.models import SYSTEM_ROLE, USER_ROLE
from ratemate.src.core.providers import ProviderRegistry
from ratemate.src.utils.logger import get_logger
from ratemate.src.utils.text_utils import clean_text, to_data_url

logger = get_logger(__name__)

PDF_TYPES = frozenset({"application/pdf"})
WORD_TYPES = frozenset({"application/vnd.openxmlformats-officedocument.wordprocessingml.document", "application/msword"})
IMAGE_TYPES = frozenset({"image/png", "image/jpeg", "image/jpg"})


class UnsupportedFileTypeError(ValueError):
    """Uploaded file's content type is not handled by the endpoint."""


@dataclass(frozen=True)
class DocumentAnswer:
    answer: str
    document_content: str


def extract_docx_text(data: bytes) -> str:
    """Plain text of a Word document via ``mammoth``."""
    import mammoth

    result = mammoth.extract_raw_text(io.BytesIO(data))
    for message in result.messages:
        logger.debug("[DOCS] mammoth: %s", message)
    return clean_text(result.value)


def media_type(content_type: str | None) -> str:
    """Bare lower-case media type, without parameters such as ``charset``."""
    return (content_type or "").split(";")[0].strip().lower()


def encode_image(content_type: str | None, data: bytes) -> str:
    """
    Return *data* as a ``data:`` URL.

    Raises
    ------
    UnsupportedFileTypeError
        If *content_type* is not PNG or JPEG.
    """
    normalized = media_type(content_type)
    if normalized not in IMAGE_TYPES:
        raise UnsupportedFileTypeError(UNSUPPORTED_IMAGE_TEMPLATE.format(content_type=content_type))
    return to_data_url(normalized, data)


class DocumentService:
    """Answers a question about one uploaded document."""

    __slots__ = ("_providers",)

    def __init__(self, providers: ProviderRegistry) -> None:
        self._providers = providers


    async def answer_document(self, filename: str, content_type: str | None, data: bytes, question: str | None = None) -> DocumentAnswer:
        """
        Dispatch on *content_type* and answer *question* about the file.

        Raises
        ------
        UnsupportedFileTypeError
            Neither PDF nor Word.
        ProviderUnavailableError
            The provider needed for this file type was not initialised.
        """
        question = question.strip() if question and question.strip() else DEFAULT_DOCUMENT_QUESTION
        t_start = time.perf_counter()
        kind = media_type(content_type)

        if kind in PDF_TYPES:
            qa = self._providers.document_qa.require()
            answer = await qa.answer_pdf(data, question, filename)
            result = DocumentAnswer(answer=answer, document_content=answer)
        elif kind in WORD_TYPES:
            llm = self._providers.document_chat.require()
            document_text = await asyncio.to_thread(extract_docx_text, data)
            messages = [
                {"role": SYSTEM_ROLE, "content": DOCUMENT_SYSTEM_PROMPT},
                {"role": USER_ROLE, "content": DOCUMENT_USER_TEMPLATE.format(document=document_text, question=question)},
            ]
            answer = await llm.complete(messages)
            result = DocumentAnswer(answer=answer, document_content=document_text)
        else:
            raise UnsupportedFileTypeError(UNSUPPORTED_DOCUMENT_MESSAGE)

        logger.info("[DOCS] '%s' (%s) answered in %.1fms", filename, content_type, (time.perf_counter() - t_start) * 1000)
        return result
