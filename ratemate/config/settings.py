"""
RateMate - Centralized Configuration
=====================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Security
--------
- ``GOOGLE_API_KEY`` is typed as ``SecretStr``.  It is *optional*: when it
  is missing the service still boots, and every Gemini-backed capability
  reports itself as unavailable (see ``ratemate.src.core.providers``).
  The raw value is never exposed in repr, logs, or tracebacks.
- ``MONGO_URI`` is also ``SecretStr`` and only needed when
  ``SESSION_BACKEND == "mongo"``.

Paths
-----
All filesystem paths are ``Path.resolve()``-d at class level so they
work identically on Windows, WSL, and Linux.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).

    Attributes
    ----------
    ENV : Literal["dev", "prod"]
        Environment mode.  ``"prod"`` turns on secure cookies, generic
        error details, and WARNING-level logging.
    LOG_LEVEL : str | None
        Explicit log level; overrides the level implied by ``ENV``.
    GOOGLE_API_KEY : SecretStr | None
        API key for Google AI Studio (Gemini).  Access the raw value with
        ``settings.GOOGLE_API_KEY.get_secret_value()``.
    EMBEDDING_MODEL, EMBEDDING_DIMENSION : str, int
        Query embedding model and its output dimensionality.  The corpus
        tables must have been built with the same dimension.
    LLM_MODEL, DOCUMENT_LLM_MODEL : str
        Chat model for ``/api/ask`` and model for document questions.
    MAX_OUTPUT_TOKENS, DOCUMENT_MAX_OUTPUT_TOKENS : int
        Output budgets for chat answers and DOCX answers.
    PROVIDER_TIMEOUT_SECONDS : float
        Per-call timeout applied to every provider request.
    SIMILARITY_THRESHOLD : float
        Minimum cosine similarity for a search hit.  ``0`` keeps every
        ranked result.
    MAX_RESULTS_PER_TABLE : int
        Nearest neighbours requested from each corpus table.
    MAX_CONTEXT_LENGTH : int
        Character budget of the serialized context block.
    PROMPT_HISTORY_TURNS, SESSION_HISTORY_LIMIT : int
        Turns replayed into the prompt / turns kept per session.
    SESSION_IDLE_TTL_SECONDS : int
        Sessions idle longer than this are evicted.  ``0`` disables eviction.
    SESSION_BACKEND : Literal["memory", "mongo"]
        Conversation store implementation.
    """

    # ── Resolved Absolute Paths ────────────────────────────────────────
    BASE_DIR: Path = Path(__file__).resolve().parent.parent
    DATA_RAW_DIR: Path = BASE_DIR / "data" / "raw"
    LANCEDB_PATH: Path = BASE_DIR / "data" / "lancedb"

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] | None = None

    # ── API Keys (optional; capabilities degrade without them) ──────
    GOOGLE_API_KEY: SecretStr | None = None

    # ── Model Configuration ────────────────────────────────────────────
    EMBEDDING_MODEL: str = "models/gemini-embedding-001"
    EMBEDDING_DIMENSION: int = 1536
    LLM_MODEL: str = "gemini-2.0-flash"
    DOCUMENT_LLM_MODEL: str = "gemini-2.0-flash"
    LLM_TEMPERATURE: float = 0.7
    MAX_OUTPUT_TOKENS: int = 500
    DOCUMENT_MAX_OUTPUT_TOKENS: int = 1000
    PROVIDER_TIMEOUT_SECONDS: float = 30.0

    # ── LanceDB Corpus Tables ──────────────────────────────────────────
    POSTS_TABLE: str = "posts"
    COMMENTS_TABLE: str = "comments"
    ATTACHMENTS_TABLE: str = "attachments"

    # ── Retrieval ──────────────────────────────────────────────────────
    SIMILARITY_THRESHOLD: float = 0.0
    MAX_RESULTS_PER_TABLE: int = 10
    MAX_CONTEXT_LENGTH: int = 3000

    # ── Sessions & History ─────────────────────────────────────────────
    PROMPT_HISTORY_TURNS: int = 10
    SESSION_HISTORY_LIMIT: int = 20
    SESSION_COOKIE_NAME: str = "session_id"
    SESSION_COOKIE_MAX_AGE: int = 60 * 60 * 24 * 7
    SESSION_IDLE_TTL_SECONDS: int = 60 * 60 * 24
    SESSION_BACKEND: Literal["memory", "mongo"] = "memory"

    # ── MongoDB (only for SESSION_BACKEND="mongo") ─────────────────────
    MONGO_URI: SecretStr | None = None
    MONGO_DB_NAME: str = "ratemate"

    # ── Server ─────────────────────────────────────────────────────────
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("EMBEDDING_DIMENSION", "MAX_RESULTS_PER_TABLE", "MAX_OUTPUT_TOKENS", "DOCUMENT_MAX_OUTPUT_TOKENS")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"value must be ≥ 1, got {v}")
        return v


    @field_validator("SIMILARITY_THRESHOLD")
    @classmethod
    def _threshold_range(cls, v: float) -> float:
        if not -1.0 <= v <= 1.0:
            raise ValueError(f"SIMILARITY_THRESHOLD must be within [-1, 1], got {v}")
        return v


    @field_validator("MAX_CONTEXT_LENGTH")
    @classmethod
    def _context_length_min(cls, v: int) -> int:
        if v < 100:
            raise ValueError(f"MAX_CONTEXT_LENGTH must be ≥ 100, got {v}")
        return v


    @field_validator("SESSION_HISTORY_LIMIT")
    @classmethod
    def _history_limit_even(cls, v: int) -> int:
        if v < 2 or v % 2:
            raise ValueError(f"SESSION_HISTORY_LIMIT must be an even number ≥ 2, got {v}")
        return v

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent / ".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def is_production(self) -> bool:
        return self.ENV == "prod"


# ── Singleton Instance ─────────────────────────────────────────────────
# Import this throughout the project:
#     from ratemate.config.settings import settings
settings = Settings()
