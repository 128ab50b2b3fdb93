"""
RateMate - CorpusVectorStore
==============================
Wrapper around LanceDB for the three corpus collections (posts,
comments, attachments), one table each:

  • Table creation with strict PyArrow schemas
  • Record insertion with pre-computed embeddings (setup script)
  • Cosine nearest-neighbour search per table
  • Row counts for the corpus statistics in the system prompt

Design decisions:
  • **Singleton DB connection**: ``_get_connection()`` caches the
    ``lancedb.DBConnection`` per path to avoid file-lock issues.
  • **Vector in, rows out**: the store never embeds; the query vector
    comes from the pipeline's embedding provider, so one embedding serves
    all three tables.
  • **Async facade**: LanceDB calls are synchronous; ``search`` and
    ``count`` hand them to a worker thread so the three per-table calls
    can run side by side on the event loop.

Usage:
    from ratemate.src.database.vector_store import CorpusVectorStore
    store = CorpusVectorStore()
    rows = await store.search("posts", query_vector, limit=10)
"""

from __future__ import annotations

import asyncio
import threading

import lancedb
import pyarrow as pa

from ratemate.config.settings import settings
from ratemate.src.utils.logger import get_logger

logger = get_logger(__name__)

# ── Type Aliases ──────────────────────────────────────────────────────
CorpusRecord = dict[str, str | int | float | list[float] | None]
SearchResult = dict[str, str | int | float | list[float] | None]


# ── LanceDB Table Schemas ─────────────────────────────────────────────

def posts_schema(dimension: int) -> pa.Schema:
    return pa.schema([
        pa.field("vector", pa.list_(pa.float32(), dimension)),
        pa.field("id", pa.int64()),
        pa.field("title", pa.utf8()),
        pa.field("text", pa.utf8()),
    ])


def comments_schema(dimension: int) -> pa.Schema:
    return pa.schema([
        pa.field("vector", pa.list_(pa.float32(), dimension)),
        pa.field("post_id", pa.int64()),
        pa.field("body", pa.utf8()),
    ])


def attachments_schema(dimension: int) -> pa.Schema:
    return pa.schema([
        pa.field("vector", pa.list_(pa.float32(), dimension)),
        pa.field("post_id", pa.int64()),
        pa.field("extracted_text", pa.utf8()),
    ])


# ── Constants ──────────────────────────────────────────────────────────
_DB_LOCK = threading.Lock()
_db_connection_cache: dict[str, lancedb.DBConnection] = {}


def _get_connection(db_path: str) -> lancedb.DBConnection:
    """Return a **singleton** ``lancedb.DBConnection`` for *db_path*."""
    if db_path not in _db_connection_cache:
        with _DB_LOCK:
            if db_path not in _db_connection_cache:
                logger.info("Opening new LanceDB connection: %s", db_path)
                _db_connection_cache[db_path] = lancedb.connect(db_path)
    return _db_connection_cache[db_path]


class CorpusVectorStore:
    """
    LanceDB-backed similarity search over the corpus collections.

    Parameters
    ----------
    db_path
        Override the database directory.  Defaults to ``settings.LANCEDB_PATH``.
    tables
        Mapping of collection name → LanceDB table name.  Defaults to the
        ``POSTS_TABLE`` / ``COMMENTS_TABLE`` / ``ATTACHMENTS_TABLE`` settings.
    dimension
        Embedding dimension used when creating tables.
    """

    __slots__ = ("_db_path", "_tables", "_dimension", "db", "_handles")

    def __init__(self, db_path: str | None = None, tables: dict[str, str] | None = None, dimension: int | None = None) -> None:
        self._db_path: str = str(db_path or settings.LANCEDB_PATH)
        self._tables: dict[str, str] = tables or {"posts": settings.POSTS_TABLE, "comments": settings.COMMENTS_TABLE, "attachments": settings.ATTACHMENTS_TABLE}
        self._dimension: int = dimension or settings.EMBEDDING_DIMENSION
        self._handles: dict[str, lancedb.table.Table] = {}
        self.db: lancedb.DBConnection = _get_connection(self._db_path)


    @property
    def collections(self) -> list[str]:
        return list(self._tables)


    def _schema_for(self, collection: str) -> pa.Schema:
        factories = {"posts": posts_schema, "comments": comments_schema, "attachments": attachments_schema}
        try:
            return factories[collection](self._dimension)
        except KeyError:
            raise ValueError(f"Unknown corpus collection '{collection}'.") from None


    def _table_name(self, collection: str) -> str:
        try:
            return self._tables[collection]
        except KeyError:
            raise ValueError(f"Unknown corpus collection '{collection}'.") from None


    def _open_table(self, collection: str) -> lancedb.table.Table | None:
        """Lazily open a collection's table if it exists, caching the handle."""
        if collection not in self._handles:
            name = self._table_name(collection)
            if name not in self.db.table_names():
                return None
            self._handles[collection] = self.db.open_table(name)
        return self._handles[collection]

    # ══════════════════════════════════════════════════════════════════
    #  SETUP
    # ══════════════════════════════════════════════════════════════════

    def ensure_tables(self) -> None:
        """Create any missing collection table with its schema."""
        existing = set(self.db.table_names())
        for collection, name in self._tables.items():
            if name in existing:
                continue
            self._handles[collection] = self.db.create_table(name, schema=self._schema_for(collection))
            logger.info("Created new table '%s' for collection '%s'.", name, collection)


    def add_records(self, collection: str, records: list[CorpusRecord]) -> int:
        """
        Persist records that already carry a ``vector`` field.

        Returns
        -------
        int
            Number of rows added.

        Raises
        ------
        ValueError
            If a record's vector length differs from the configured dimension.
        """
        for record in records:
            vector = record.get("vector")
            if not isinstance(vector, list) or len(vector) != self._dimension:
                raise ValueError(f"Record vector must have {self._dimension} dimensions.")

        self.ensure_tables()
        table = self._open_table(collection)
        if table is None:
            raise RuntimeError(f"Table for collection '{collection}' could not be opened.")

        try:
            table.add(records)
        except OSError as exc:
            logger.error("Failed to write records to LanceDB: %s", exc)
            raise

        logger.info("Added %d record(s) to '%s' (%d total rows).", len(records), collection, table.count_rows())
        return len(records)


    def drop_tables(self) -> None:
        """Drop every collection table (used for re-ingestion)."""
        existing = set(self.db.table_names())
        for collection, name in self._tables.items():
            self._handles.pop(collection, None)
            if name in existing:
                self.db.drop_table(name)
                logger.info("Dropped table '%s'.", name)
            else:
                logger.warning("Table '%s' does not exist, nothing to drop.", name)

    # ══════════════════════════════════════════════════════════════════
    #  QUERIES
    # ══════════════════════════════════════════════════════════════════

    def _search_sync(self, collection: str, query_vector: list[float], threshold: float, limit: int) -> list[SearchResult]:
        table = self._open_table(collection)
        if table is None:
            raise RuntimeError(f"Table '{self._table_name(collection)}' does not exist. Run the setup script first (ratemate.scripts.setup_db).")

        rows: list[SearchResult] = table.search(query_vector).distance_type("cosine").limit(limit).to_list()

        results: list[SearchResult] = []
        for row in rows:
            row.pop("vector", None)
            # LanceDB's cosine distance is 1 - cosine similarity
            row["similarity"] = 1.0 - float(row.get("_distance", 1.0))
            if threshold > 0 and row["similarity"] < threshold:
                continue
            results.append(row)

        logger.debug("[SEARCH] '%s': %d/%d row(s) kept (threshold=%.2f).", collection, len(results), len(rows), threshold)
        return results


    async def search(self, collection: str, query_vector: list[float], threshold: float = 0.0, limit: int = 10) -> list[SearchResult]:
        """
        Return up to *limit* rows nearest to *query_vector*, best first.

        Each row carries its payload columns plus ``_distance`` and
        ``similarity``.  Rows below *threshold* are dropped when the
        threshold is positive.

        Raises
        ------
        RuntimeError
            If the collection's table does not exist.
        """
        return await asyncio.to_thread(self._search_sync, collection, query_vector, threshold, limit)


    def _count_sync(self, collection: str) -> int:
        table = self._open_table(collection)
        return table.count_rows() if table is not None else 0


    async def count(self, collection: str) -> int:
        """Return the number of rows in a collection (0 if its table is missing)."""
        return await asyncio.to_thread(self._count_sync, collection)


    def __repr__(self) -> str:
        return f"CorpusVectorStore(db='{self._db_path}', tables={self._tables})"
