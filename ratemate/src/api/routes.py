"""
RateMate - API Routes
=======================
Thin controllers: read the request, delegate to the core services held on
``app.state``, and shape the JSON reply.

    POST /api/ask             → AnswerPipeline      {answer} | {detail}
    POST /api/upload-and-ask  → DocumentService     {answer, documentContent} | {error}
    POST /api/upload-image    → encode_image        {success, image_data?, message}

Each handler is the error boundary for its endpoint: expected failures
map to their status codes, anything else is logged with its traceback and
returned as a 500 whose detail is generic in production.
"""

from __future__ import annotations

from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from ratemate.config.prompt_templates import DOCUMENT_ERROR_MESSAGE, IMAGE_ERROR_TEMPLATE, IMAGE_OK_MESSAGE, INTERNAL_ERROR_DETAIL, NO_FILE_MESSAGE, NO_IMAGE_MESSAGE
from ratemate.config.settings import Settings
from ratemate.src.api.schemas import AskRequest, AskResponse, DocumentAnswerResponse, DocumentError, ErrorDetail, ImageUploadResponse
from ratemate.src.core.documents import UnsupportedFileTypeError, encode_image
from ratemate.src.core.rag_engine import EmbeddingError, EmptyQuestionError
from ratemate.src.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["ratemate"])


def _internal_detail(exc: Exception, config: Settings, generic: str = INTERNAL_ERROR_DETAIL) -> str:
    if config.is_production:
        return generic
    return str(exc) or generic


@router.post("/ask", response_model=AskResponse, responses={400: {"model": ErrorDetail}, 500: {"model": ErrorDetail}})
async def ask(payload: AskRequest, request: Request):
    """Answer a question with retrieved context and session history."""
    state = request.app.state
    session = state.sessions.resolve(request.cookies)

    try:
        answer = await state.pipeline.answer(session.id, payload.question, payload.image_data, payload.conversation_history)
    except EmptyQuestionError as exc:
        return JSONResponse({"detail": str(exc)}, status_code=400)
    except EmbeddingError as exc:
        return JSONResponse({"detail": str(exc)}, status_code=500)
    except Exception as exc:
        logger.exception("[API ASK HANDLER ERROR]")
        return JSONResponse({"detail": _internal_detail(exc, state.settings)}, status_code=500)

    response = JSONResponse(AskResponse(answer=answer).model_dump())
    state.sessions.issue(response, session)
    return response


@router.post("/upload-and-ask", response_model=DocumentAnswerResponse, responses={400: {"model": DocumentError}, 500: {"model": DocumentError}})
async def upload_and_ask(request: Request, file: UploadFile | None = File(None), question: str | None = Form(None)):
    """Answer a question about an uploaded PDF or Word document."""
    state = request.app.state
    if file is None:
        return JSONResponse({"error": NO_FILE_MESSAGE}, status_code=400)

    try:
        data = await file.read()
        result = await state.documents.answer_document(file.filename or "document", file.content_type, data, question)
    except UnsupportedFileTypeError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    except Exception as exc:
        logger.exception("[DOCS] Error processing document '%s'.", file.filename)
        return JSONResponse({"error": _internal_detail(exc, state.settings, DOCUMENT_ERROR_MESSAGE)}, status_code=500)
    finally:
        await file.close()

    return DocumentAnswerResponse(answer=result.answer, documentContent=result.document_content)


@router.post("/upload-image", response_model=ImageUploadResponse, responses={400: {"model": ImageUploadResponse}, 500: {"model": ImageUploadResponse}})
async def upload_image(request: Request, file: UploadFile | None = File(None)):
    """Convert an uploaded PNG/JPEG into a data URL for ``/api/ask``."""
    if file is None:
        return JSONResponse(ImageUploadResponse(success=False, message=NO_IMAGE_MESSAGE).model_dump(), status_code=400)

    try:
        data = await file.read()
        image_data = encode_image(file.content_type, data)
    except UnsupportedFileTypeError as exc:
        return JSONResponse(ImageUploadResponse(success=False, message=str(exc)).model_dump(), status_code=400)
    except Exception as exc:
        logger.exception("[IMAGE] Error processing uploaded image.")
        reason = _internal_detail(exc, request.app.state.settings, "Unknown error processing image")
        return JSONResponse(ImageUploadResponse(success=False, message=IMAGE_ERROR_TEMPLATE.format(reason=reason)).model_dump(), status_code=500)
    finally:
        await file.close()

    return ImageUploadResponse(success=True, image_data=image_data, message=IMAGE_OK_MESSAGE)
