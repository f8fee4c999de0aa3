"""
LanceDB Chunk Store

Embedded vector index over passages.

Table `chunks` (name configurable):
    chunk_id, doc_id, source_title, page_number, position, text, vector
"""

import asyncio
import logging
import threading
from pathlib import Path
from typing import Any

import lancedb
import pyarrow as pa
import pyarrow.compute as pc

from hybrid_kg.config import KGConfig
from hybrid_kg.errors import StoreConnectionError
from hybrid_kg.storage.base import ChunkStore, store_errors
from hybrid_kg.types import ChunkStats, EvidenceOrigin, EvidencePassage, Passage

logger = logging.getLogger(__name__)

_BACKEND_ERRORS = (OSError, RuntimeError, ValueError, pa.ArrowException)


class LanceDBChunkStore(ChunkStore):
    """
    Passage index backed by an embedded LanceDB database.

    Thread safety:
        Uses thread-local storage for connections since LanceDB connections
        may not be thread-safe and asyncio.to_thread() may use different threads.

    Search is exhaustive until an ANN index is built on the table, so no
    candidate over-fetch is needed for recall.
    """

    @staticmethod
    def _escape_sql_string(value: str) -> str:
        """Escape single quotes for SQL WHERE clauses."""
        return value.replace("'", "''")

    def __init__(self, lancedb_path: Path, config: KGConfig | None = None) -> None:
        self.path = Path(lancedb_path)
        self.config = config or KGConfig()
        self.table_name = self.config.chunk_table
        self.dimensions = self.config.embedding_dimensions
        self._local = threading.local()
        self._initialized = False

    async def initialize(self) -> None:
        """Create the database directory and verify it can be opened."""
        if self._initialized:
            return

        def _init() -> None:
            self.path.mkdir(parents=True, exist_ok=True)
            lancedb.connect(str(self.path))

        try:
            await asyncio.to_thread(_init)
        except OSError as e:
            raise StoreConnectionError(f"Cannot open chunk store at {self.path}: {e}") from e
        self._initialized = True

    async def close(self) -> None:
        """Close LanceDB connections."""
        self._initialized = False
        if hasattr(self._local, "db"):
            self._local.db = None

    def _get_db(self) -> lancedb.DBConnection:
        """Get thread-local LanceDB connection, creating if needed."""
        if not self._initialized:
            raise StoreConnectionError("Chunk store not initialized. Call initialize() first.")

        db = getattr(self._local, "db", None)
        if db is None:
            try:
                db = lancedb.connect(str(self.path))
            except OSError as e:
                raise StoreConnectionError(f"Cannot open chunk store at {self.path}: {e}") from e
            self._local.db = db
        return db

    @staticmethod
    def _table_names(db: lancedb.DBConnection) -> set[str]:
        """
        Return table names across LanceDB API variants.

        Recent LanceDB returns a response object from list_tables() with a
        `tables` attribute, while older versions return a plain list.
        """
        listed = db.list_tables()
        tables = getattr(listed, "tables", listed)
        return {str(name) for name in tables}

    def _open_table(self, db: lancedb.DBConnection) -> Any | None:
        if self.table_name not in self._table_names(db):
            return None
        return db.open_table(self.table_name)

    def _schema(self) -> pa.Schema:
        return pa.schema([
            pa.field("chunk_id", pa.string(), nullable=False),
            pa.field("doc_id", pa.string(), nullable=False),
            pa.field("source_title", pa.string()),
            pa.field("page_number", pa.int32()),
            pa.field("position", pa.int32()),
            pa.field("text", pa.string()),
            pa.field("vector", pa.list_(pa.float32(), self.dimensions)),
        ])

    @staticmethod
    def _row_to_passage(row: dict[str, Any]) -> Passage:
        return Passage(
            chunk_id=row["chunk_id"],
            doc_id=row["doc_id"],
            source_title=row.get("source_title") or "Unknown",
            page_number=row.get("page_number"),
            position=row.get("position") or 0,
            text=row.get("text") or "",
        )

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    async def add_passages(self, passages: list[Passage]) -> int:
        """
        Add passages with their vectors to the index.

        Raises:
            ValueError: If a passage has no vector or the wrong dimensions
            StoreError: If the write fails
        """
        if not passages:
            return 0

        for passage in passages:
            if passage.vector is None or len(passage.vector) != self.dimensions:
                raise ValueError(
                    f"Passage {passage.chunk_id} needs a {self.dimensions}-dim vector"
                )
        return await self._write(passages)

    @store_errors("Chunk store", "add", *_BACKEND_ERRORS)
    async def _write(self, passages: list[Passage]) -> int:
        def _add() -> int:
            db = self._get_db()
            data = pa.Table.from_pylist(
                [
                    {
                        "chunk_id": p.chunk_id,
                        "doc_id": p.doc_id,
                        "source_title": p.source_title,
                        "page_number": p.page_number,
                        "position": p.position,
                        "text": p.text,
                        "vector": p.vector,
                    }
                    for p in passages
                ],
                schema=self._schema(),
            )
            table = self._open_table(db)
            if table is None:
                db.create_table(self.table_name, data)
            else:
                table.add(data)
            return data.num_rows

        written = await asyncio.to_thread(_add)
        logger.info(f"Indexed {written} passages into '{self.table_name}'")
        return written

    @store_errors("Chunk store", "delete", *_BACKEND_ERRORS)
    async def delete_document(self, doc_id: str) -> int:
        """Remove every passage belonging to `doc_id`."""
        predicate = f"doc_id = '{self._escape_sql_string(doc_id)}'"

        def _delete() -> int:
            db = self._get_db()
            table = self._open_table(db)
            if table is None:
                return 0
            count = table.count_rows(predicate)
            if count:
                table.delete(predicate)
            return count

        removed = await asyncio.to_thread(_delete)
        logger.info(f"Deleted {removed} passages of document {doc_id}")
        return removed

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    @store_errors("Chunk store", "search", *_BACKEND_ERRORS)
    async def search(
        self,
        vector: list[float],
        limit: int,
        filter: str | None = None,
    ) -> list[EvidencePassage]:
        """
        Search passages by vector similarity.

        LanceDB returns cosine distance, we convert to similarity (1 - distance).
        """
        if limit <= 0:
            return []

        def _search() -> list[EvidencePassage]:
            db = self._get_db()
            table = self._open_table(db)
            if table is None:
                return []

            query = table.search(vector).distance_type("cosine")
            if filter:
                query = query.where(filter, prefilter=True)
            results = query.limit(limit).to_arrow()

            output: list[EvidencePassage] = []
            for row in results.to_pylist():
                output.append(
                    EvidencePassage.from_passage(
                        self._row_to_passage(row),
                        EvidenceOrigin.SEMANTIC,
                        score=1 - row["_distance"],
                    )
                )
            return output

        return await asyncio.to_thread(_search)

    @store_errors("Chunk store", "lookup", *_BACKEND_ERRORS)
    async def get_passages(self, chunk_ids: list[str]) -> list[Passage]:
        """Fetch passages by id, preserving the order of `chunk_ids`."""
        wanted = list(dict.fromkeys(chunk_ids))
        if not wanted:
            return []

        id_list = ", ".join(f"'{self._escape_sql_string(cid)}'" for cid in wanted)

        def _query() -> list[Passage]:
            db = self._get_db()
            table = self._open_table(db)
            if table is None:
                return []
            results = (
                table.search()
                .where(f"chunk_id IN ({id_list})")
                .limit(len(wanted))
                .to_arrow()
            )
            by_id = {row["chunk_id"]: self._row_to_passage(row) for row in results.to_pylist()}
            return [by_id[cid] for cid in wanted if cid in by_id]

        return await asyncio.to_thread(_query)

    @store_errors("Chunk store", "list", *_BACKEND_ERRORS)
    async def list_passages(
        self,
        doc_id: str | None = None,
        limit: int | None = None,
    ) -> list[Passage]:
        """List passages ordered by (doc_id, position)."""

        def _query() -> list[Passage]:
            db = self._get_db()
            table = self._open_table(db)
            if table is None:
                return []
            if doc_id is not None:
                predicate = f"doc_id = '{self._escape_sql_string(doc_id)}'"
                rows = (
                    table.search()
                    .where(predicate)
                    .limit(max(table.count_rows(predicate), 1))
                    .to_arrow()
                    .to_pylist()
                )
            else:
                rows = table.to_arrow().to_pylist()

            rows.sort(key=lambda r: (r["doc_id"], r.get("position") or 0))
            if limit is not None:
                rows = rows[:limit]
            return [self._row_to_passage(row) for row in rows]

        return await asyncio.to_thread(_query)

    @store_errors("Chunk store", "stats", *_BACKEND_ERRORS)
    async def stats(self) -> ChunkStats:
        """Passage and document counts."""

        def _stats() -> ChunkStats:
            db = self._get_db()
            table = self._open_table(db)
            if table is None:
                return ChunkStats()
            doc_ids = table.to_arrow().column("doc_id")
            return ChunkStats(
                total_chunks=len(doc_ids),
                unique_documents=pc.count_distinct(doc_ids).as_py(),
            )

        return await asyncio.to_thread(_stats)
