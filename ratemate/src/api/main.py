"""
RateMate - Application Entry Point
====================================
FastAPI application factory.  Resolves the external providers once,
builds the conversation store and core services, stores them on
``app.state``, and mounts the API routes.

Run:
    uvicorn ratemate.src.api.main:create_app --factory
    # or
    python -m ratemate.src.api.main
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ratemate.config.prompt_templates import INVALID_REQUEST_TEMPLATE
from ratemate.config.settings import Settings, settings
from ratemate.src.api.routes import router
from ratemate.src.core.conversation_store import ConversationStore, MongoConversationStore, build_conversation_store
from ratemate.src.core.documents import DocumentService
from ratemate.src.core.providers import ProviderRegistry, resolve_providers
from ratemate.src.core.rag_engine import AnswerPipeline
from ratemate.src.core.session import SessionResolver
from ratemate.src.utils.logger import get_logger, quiet_third_party

logger = get_logger(__name__)

API_VERSION = "0.1.0"


def validation_message(exc: RequestValidationError) -> str:
    """Flatten pydantic's error list into one readable line."""
    parts: list[str] = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return INVALID_REQUEST_TEMPLATE.format(errors="; ".join(parts) or "malformed body")


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Clients only ever see a string detail, never FastAPI's 422 error list
    message = validation_message(exc)
    logger.warning("[API] Rejected %s %s: %s", request.method, request.url.path, message)
    return JSONResponse({"detail": message}, status_code=400)


def create_app(config: Settings | None = None, providers: ProviderRegistry | None = None, store: ConversationStore | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Parameters
    ----------
    config
        Settings to use; defaults to the module singleton.
    providers
        Pre-built capabilities (tests inject fakes); resolved from *config*
        when omitted.
    store
        Conversation store; chosen by ``SESSION_BACKEND`` when omitted.
    """
    config = config or settings
    quiet_third_party()
    if providers is None:
        providers = resolve_providers(config)
    if store is None:
        store = build_conversation_store(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if isinstance(store, MongoConversationStore):
            try:
                await store.ensure_indexes()
            except Exception:
                logger.exception("Could not create MongoDB session indexes.")
        yield
        await store.close()

    app = FastAPI(title="RateMate API", description="Retrieval-augmented mortgage assistant", version=API_VERSION, lifespan=lifespan)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_middleware(CORSMiddleware, allow_origins=config.CORS_ORIGINS, allow_credentials=True, allow_methods=["*"], allow_headers=["*"])

    app.state.settings = config
    app.state.providers = providers
    app.state.store = store
    app.state.pipeline = AnswerPipeline(providers, store)
    app.state.documents = DocumentService(providers)
    app.state.sessions = SessionResolver.from_settings(config)

    app.include_router(router)

    @app.get("/health")
    async def health(request: Request):
        """Liveness plus provider availability."""
        return {"status": "healthy", "version": API_VERSION, "providers": request.app.state.providers.status()}

    logger.info("RateMate API ready (env=%s, session_backend=%s).", config.ENV, config.SESSION_BACKEND)
    return app


def run() -> None:
    """Run the application with uvicorn."""
    import uvicorn

    uvicorn.run("ratemate.src.api.main:create_app", factory=True, host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
