"""
RateMate - Corpus Setup & Loading Script
==========================================
CLI entry point that:
    1. Validates that ``GOOGLE_API_KEY`` is set (fail-fast).
    2. Opens the LanceDB corpus (optionally dropping existing tables).
    3. Reads ``posts.jsonl``, ``comments.jsonl`` and ``attachments.jsonl``
       from ``DATA_RAW_DIR``, embeds each record's text in batches, and
       writes the rows to the matching table.
    4. Prints an execution summary with timing.

Record shapes (one JSON object per line)::

    posts.jsonl        {"id": 1, "title": "...", "text": "..."}
    comments.jsonl     {"post_id": 1, "body": "..."}
    attachments.jsonl  {"post_id": 1, "extracted_text": "..."}

Usage:
    python -m ratemate.scripts.setup_db              # Load into existing tables
    python -m ratemate.scripts.setup_db --drop       # Drop tables, then load
    python -m ratemate.scripts.setup_db --drop-only  # Drop tables and exit
"""

from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path
from typing import Any, Callable

from ratemate.src.utils.text_utils import normalize_for_embedding

# Collection → (source file, text column, payload columns)
CORPUS_FILES: dict[str, tuple[str, str, tuple[str, ...]]] = {
    "posts": ("posts.jsonl", "text", ("id", "title", "text")),
    "comments": ("comments.jsonl", "body", ("post_id", "body")),
    "attachments": ("attachments.jsonl", "extracted_text", ("post_id", "extracted_text")),
}

_EMBED_BATCH_SIZE = 64


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="setup_db", description="RateMate: create the LanceDB corpus tables and load JSONL records.")
    parser.add_argument("--drop", action="store_true", default=False, help="Drop the corpus tables before loading.")
    parser.add_argument("--drop-only", action="store_true", default=False, help="Drop the corpus tables and exit (no loading).")
    parser.add_argument("--source-dir", type=Path, default=None, help="Directory holding the JSONL files (defaults to DATA_RAW_DIR).")
    return parser.parse_args(argv)


def read_jsonl(path: Path) -> list[dict[str, Any]]:
    """Parse a JSON-lines file, skipping blank lines."""
    records: list[dict[str, Any]] = []
    with path.open(encoding="utf-8") as f:
        for line_no, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError as exc:
                raise ValueError(f"{path.name}:{line_no}: invalid JSON ({exc.msg})") from exc
    return records


def build_rows(collection: str, records: list[dict[str, Any]], vectors: list[list[float]]) -> list[dict[str, Any]]:
    """Project records onto the collection's payload columns and attach vectors."""
    _, _, columns = CORPUS_FILES[collection]
    rows: list[dict[str, Any]] = []
    for record, vector in zip(records, vectors):
        row = {column: record.get(column) for column in columns}
        for column in columns:
            if row[column] is None and column not in ("id", "post_id"):
                row[column] = ""
        row["vector"] = vector
        rows.append(row)
    return rows


class CollectionLoadError(RuntimeError):
    """A batch failed after *added* rows of the collection were already written."""

    def __init__(self, collection: str, added: int, cause: Exception) -> None:
        super().__init__(f"Loading '{collection}' stopped after {added} row(s): {cause}")
        self.collection = collection
        self.added = added


def load_collection(store: Any, embed: Callable[[list[str]], list[list[float]]], collection: str, source_dir: Path, logger: Any) -> int:
    """
    Embed and store one collection's records; returns rows added.

    Text is normalised exactly like query text.  Records with no text are
    skipped.  A failing batch raises ``CollectionLoadError`` carrying the
    rows committed by the earlier batches.
    """
    filename, text_column, _ = CORPUS_FILES[collection]
    path = source_dir / filename
    if not path.exists():
        logger.warning("No %s found in %s, skipping '%s'.", filename, source_dir, collection)
        return 0

    records = read_jsonl(path)
    if not records:
        logger.warning("%s is empty, skipping '%s'.", filename, collection)
        return 0

    texts = [normalize_for_embedding(str(r.get(text_column) or "")).strip() for r in records]
    embeddable = [(record, text) for record, text in zip(records, texts) if text]
    if len(embeddable) < len(records):
        logger.warning("'%s': skipped %d record(s) with empty %s.", collection, len(records) - len(embeddable), text_column)

    added = 0
    for i in range(0, len(embeddable), _EMBED_BATCH_SIZE):
        batch = embeddable[i : i + _EMBED_BATCH_SIZE]
        try:
            vectors = embed([text for _, text in batch])
            added += store.add_records(collection, build_rows(collection, [record for record, _ in batch], vectors))
        except Exception as exc:
            logger.error("Batch %d-%d of '%s' failed: %s", i, i + len(batch) - 1, collection, exc)
            raise CollectionLoadError(collection, added, exc) from exc

    logger.info("Collection '%s': %d record(s) loaded from %s.", collection, added, filename)
    return added


def load_corpus(store: Any, embed: Callable[[list[str]], list[list[float]]], source_dir: Path, logger: Any) -> dict[str, int]:
    """Load every collection; a failed collection reports the rows it did commit."""
    loaded: dict[str, int] = {}
    for collection in CORPUS_FILES:
        try:
            loaded[collection] = load_collection(store, embed, collection, source_dir, logger)
        except CollectionLoadError as exc:
            logger.exception("Failed to load collection '%s'.", collection)
            loaded[collection] = exc.added
        except Exception:
            logger.exception("Failed to load collection '%s'.", collection)
            loaded[collection] = 0
    return loaded


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    t_start = time.perf_counter()

    try:
        from ratemate.config.settings import settings
    except Exception as exc:
        print("\n[FATAL] Configuration error, check your .env file:\n")
        print(f"  {exc}")
        print()
        sys.exit(1)

    from ratemate.src.database.vector_store import CorpusVectorStore
    from ratemate.src.utils.logger import get_logger, quiet_third_party

    logger = get_logger(__name__)
    quiet_third_party()
    source_dir = args.source_dir or settings.DATA_RAW_DIR

    _print_header(settings, source_dir)

    store = CorpusVectorStore()

    if args.drop or args.drop_only:
        logger.warning("Dropping corpus tables as requested.")
        store.drop_tables()
        if args.drop_only:
            logger.info("--drop-only: tables dropped. Exiting.")
            _print_footer({}, time.perf_counter() - t_start)
            return

    if settings.GOOGLE_API_KEY is None:
        logger.error("GOOGLE_API_KEY is not set; cannot embed the corpus.")
        sys.exit(1)

    # ── Embedder (timed) ───────────────────────────────────────────────
    t_embedder = time.perf_counter()
    try:
        from langchain_google_genai import GoogleGenerativeAIEmbeddings

        embedder = GoogleGenerativeAIEmbeddings(model=settings.EMBEDDING_MODEL, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
    except Exception:
        logger.exception("Failed to initialise embedding model.")
        sys.exit(1)

    def embed(texts: list[str]) -> list[list[float]]:
        return embedder.embed_documents(texts, output_dimensionality=settings.EMBEDDING_DIMENSION)

    logger.info("Embedder initialised in %.1fms", (time.perf_counter() - t_embedder) * 1000)

    store.ensure_tables()

    loaded = load_corpus(store, embed, source_dir, logger)

    _print_footer(loaded, time.perf_counter() - t_start)


# ── Pretty-print helpers ──────────────────────────────────────────────

def _print_header(settings: Any, source_dir: Path) -> None:
    key = settings.GOOGLE_API_KEY.get_secret_value() if settings.GOOGLE_API_KEY else ""
    masked = f"****{key[-4:]}" if len(key) > 4 else "****"

    print()
    print("=" * 60)
    print("  RATEMATE: Corpus Setup")
    print("=" * 60)
    print(f"  Environment  : {settings.ENV}")
    print(f"  Embedding    : {settings.EMBEDDING_MODEL} ({settings.EMBEDDING_DIMENSION} dims)")
    print(f"  LanceDB path : {settings.LANCEDB_PATH}")
    print(f"  Source dir   : {source_dir}")
    print(f"  API Key      : {masked}")
    print("=" * 60)
    print()


def _print_footer(loaded: dict[str, int], elapsed: float) -> None:
    print()
    print("=" * 60)
    print("  EXECUTION SUMMARY")
    print("-" * 60)
    for collection, count in loaded.items():
        print(f"  {collection:<12} : {count} record(s)")
    print(f"  Total        : {sum(loaded.values())} record(s)")
    print(f"  Elapsed      : {elapsed:>8.2f}s")
    print("=" * 60)
    print()


if __name__ == "__main__":
    main()
