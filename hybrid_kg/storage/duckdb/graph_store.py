"""
DuckDB Graph Store

Labelled property graph persisted in a single DuckDB database file.

Tables:
    entities                 (entity_type, name_key) -> display name
    entity_provenance        one row per (entity, chunk, extraction time)
    relationships            (source, relationship_type, target) edges
    relationship_provenance  one row per (edge, chunk, extraction time)

Entity and relationship labels are stored as data and always bound as
parameters; they are never interpolated into SQL.
"""

import asyncio
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import duckdb

from hybrid_kg.errors import StoreConnectionError
from hybrid_kg.storage.base import MAX_NEIGHBORS_PER_ENTITY, GraphStore, store_errors
from hybrid_kg.types import (
    Entity,
    EntityType,
    GraphStats,
    Neighbor,
    ProvenanceRef,
    Relationship,
    RelationshipType,
)
from hybrid_kg.utils.text import clean_entity_name, normalize_name

logger = logging.getLogger(__name__)

_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS entities (
        entity_type VARCHAR NOT NULL,
        name_key VARCHAR NOT NULL,
        name VARCHAR NOT NULL,
        created_at VARCHAR NOT NULL,
        PRIMARY KEY (entity_type, name_key)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS entity_provenance (
        entity_type VARCHAR NOT NULL,
        name_key VARCHAR NOT NULL,
        doc_id VARCHAR NOT NULL,
        chunk_id VARCHAR NOT NULL,
        extracted_at VARCHAR NOT NULL,
        PRIMARY KEY (entity_type, name_key, chunk_id, extracted_at)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS relationships (
        source_type VARCHAR NOT NULL,
        source_key VARCHAR NOT NULL,
        relationship_type VARCHAR NOT NULL,
        target_type VARCHAR NOT NULL,
        target_key VARCHAR NOT NULL,
        created_at VARCHAR NOT NULL,
        PRIMARY KEY (source_type, source_key, relationship_type, target_type, target_key)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS relationship_provenance (
        source_type VARCHAR NOT NULL,
        source_key VARCHAR NOT NULL,
        relationship_type VARCHAR NOT NULL,
        target_type VARCHAR NOT NULL,
        target_key VARCHAR NOT NULL,
        doc_id VARCHAR NOT NULL,
        chunk_id VARCHAR NOT NULL,
        extracted_at VARCHAR NOT NULL,
        PRIMARY KEY (
            source_type, source_key, relationship_type, target_type, target_key,
            chunk_id, extracted_at
        )
    )
    """,
]

# Composite node id separator; chr(31) on the SQL side
_SEP = "\x1f"


def _timestamp(value: datetime) -> str:
    """ISO-8601 UTC string; lexical order equals time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _node_id(entity_type: str, name_key: str) -> str:
    return f"{entity_type}{_SEP}{name_key}"


class DuckDBGraphStore(GraphStore):
    """
    Knowledge graph backed by an embedded DuckDB database.

    Writes:
        Every upsert runs in one transaction under a process-wide write
        lock, using INSERT ... ON CONFLICT DO NOTHING. Provenance rows are
        keyed by (owner, chunk, timestamp), so concurrent links of the same
        entity from different passages both land.

    Thread safety:
        One DuckDB connection per store; each thread works on its own
        cursor since asyncio.to_thread() may use different threads.

    Args:
        db_path: Database file. None keeps the graph in memory.
    """

    def __init__(self, db_path: Path | str | None = None) -> None:
        self.db_path = Path(db_path) if db_path is not None else None
        self._conn: duckdb.DuckDBPyConnection | None = None
        self._local = threading.local()
        self._write_lock = threading.Lock()

    async def initialize(self) -> None:
        """Open the database file and create tables."""
        if self._conn is not None:
            return

        def _init() -> duckdb.DuckDBPyConnection:
            if self.db_path is None:
                conn = duckdb.connect(":memory:")
            else:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = duckdb.connect(str(self.db_path))
            for statement in _SCHEMA:
                conn.execute(statement)
            return conn

        try:
            self._conn = await asyncio.to_thread(_init)
        except (duckdb.Error, OSError) as e:
            raise StoreConnectionError(
                f"Cannot open graph store at {self.db_path or ':memory:'}: {e}"
            ) from e
        logger.debug(f"Graph store opened at {self.db_path or ':memory:'}")

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        self._local = threading.local()

    def _cursor(self) -> duckdb.DuckDBPyConnection:
        """Get this thread's cursor, creating if needed."""
        if self._conn is None:
            raise StoreConnectionError("Graph store not initialized. Call initialize() first.")

        cursor = getattr(self._local, "cursor", None)
        if cursor is None:
            cursor = self._conn.cursor()
            self._local.cursor = cursor
        return cursor

    def _transaction(self, work: Any) -> Any:
        """Run `work(cursor)` in one serialized write transaction."""
        with self._write_lock:
            cursor = self._cursor()
            cursor.execute("BEGIN TRANSACTION")
            try:
                result = work(cursor)
            except BaseException:
                cursor.execute("ROLLBACK")
                raise
            cursor.execute("COMMIT")
            return result

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    @staticmethod
    def _merge_entity(
        cursor: duckdb.DuckDBPyConnection,
        entity_type: EntityType,
        name: str,
        provenance: ProvenanceRef,
    ) -> str:
        """Insert the entity if absent and attach provenance. Returns its name_key."""
        display = clean_entity_name(name)
        name_key = normalize_name(name)
        if not name_key:
            raise ValueError(f"Entity name is empty: {name!r}")

        cursor.execute(
            "INSERT INTO entities VALUES (?, ?, ?, ?) ON CONFLICT DO NOTHING",
            [entity_type.value, name_key, display, _timestamp(provenance.extracted_at)],
        )
        cursor.execute(
            "INSERT INTO entity_provenance VALUES (?, ?, ?, ?, ?) ON CONFLICT DO NOTHING",
            [
                entity_type.value,
                name_key,
                provenance.doc_id,
                provenance.chunk_id,
                _timestamp(provenance.extracted_at),
            ],
        )
        return name_key

    @store_errors("Graph store", "entity upsert", duckdb.Error)
    async def upsert_entity(
        self,
        entity_type: EntityType,
        name: str,
        provenance: ProvenanceRef,
    ) -> Entity:
        """Merge an entity by (type, normalized name) and attach provenance."""

        def _upsert() -> Entity:
            name_key = self._transaction(
                lambda cur: self._merge_entity(cur, entity_type, name, provenance)
            )
            entity = self._load_entity(self._cursor(), entity_type.value, name_key)
            assert entity is not None
            return entity

        return await asyncio.to_thread(_upsert)

    @store_errors("Graph store", "relationship upsert", duckdb.Error)
    async def upsert_relationship(
        self,
        source_type: EntityType,
        source: str,
        relationship_type: RelationshipType,
        target_type: EntityType,
        target: str,
        provenance: ProvenanceRef,
    ) -> Relationship:
        """Merge both endpoints, then the edge, all in one transaction."""

        def _work(cur: duckdb.DuckDBPyConnection) -> tuple[str, str]:
            source_key = self._merge_entity(cur, source_type, source, provenance)
            target_key = self._merge_entity(cur, target_type, target, provenance)
            edge = [
                source_type.value,
                source_key,
                relationship_type.value,
                target_type.value,
                target_key,
            ]
            cur.execute(
                "INSERT INTO relationships VALUES (?, ?, ?, ?, ?, ?) ON CONFLICT DO NOTHING",
                [*edge, _timestamp(provenance.extracted_at)],
            )
            cur.execute(
                "INSERT INTO relationship_provenance VALUES (?, ?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT DO NOTHING",
                [
                    *edge,
                    provenance.doc_id,
                    provenance.chunk_id,
                    _timestamp(provenance.extracted_at),
                ],
            )
            return source_key, target_key

        def _upsert() -> Relationship:
            source_key, target_key = self._transaction(_work)
            cur = self._cursor()
            rows = cur.execute(
                """
                SELECT doc_id, chunk_id, extracted_at FROM relationship_provenance
                WHERE source_type = ? AND source_key = ? AND relationship_type = ?
                  AND target_type = ? AND target_key = ?
                ORDER BY extracted_at, chunk_id
                """,
                [
                    source_type.value,
                    source_key,
                    relationship_type.value,
                    target_type.value,
                    target_key,
                ],
            ).fetchall()
            names = dict(
                cur.execute(
                    "SELECT name_key, name FROM entities "
                    "WHERE (entity_type = ? AND name_key = ?) OR (entity_type = ? AND name_key = ?)",
                    [source_type.value, source_key, target_type.value, target_key],
                ).fetchall()
            )
            return Relationship(
                source=names.get(source_key, clean_entity_name(source)),
                source_type=source_type,
                relationship_type=relationship_type,
                target=names.get(target_key, clean_entity_name(target)),
                target_type=target_type,
                provenance=[self._row_to_provenance(row) for row in rows],
            )

        return await asyncio.to_thread(_upsert)

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    @staticmethod
    def _row_to_provenance(row: tuple[Any, ...]) -> ProvenanceRef:
        doc_id, chunk_id, extracted_at = row
        return ProvenanceRef(
            doc_id=doc_id,
            chunk_id=chunk_id,
            extracted_at=datetime.fromisoformat(extracted_at),
        )

    def _load_entity(
        self,
        cursor: duckdb.DuckDBPyConnection,
        entity_type: str,
        name_key: str,
    ) -> Entity | None:
        row = cursor.execute(
            "SELECT name FROM entities WHERE entity_type = ? AND name_key = ?",
            [entity_type, name_key],
        ).fetchone()
        if not row:
            return None

        provenance = cursor.execute(
            """
            SELECT doc_id, chunk_id, extracted_at FROM entity_provenance
            WHERE entity_type = ? AND name_key = ?
            ORDER BY extracted_at, chunk_id
            """,
            [entity_type, name_key],
        ).fetchall()
        return Entity(
            name=row[0],
            entity_type=EntityType(entity_type),
            provenance=[self._row_to_provenance(p) for p in provenance],
        )

    @store_errors("Graph store", "entity lookup", duckdb.Error)
    async def get_entity(self, entity_type: EntityType, name: str) -> Entity | None:
        """Get entity by type and name (case-insensitive)."""

        def _query() -> Entity | None:
            return self._load_entity(self._cursor(), entity_type.value, normalize_name(name))

        return await asyncio.to_thread(_query)

    @store_errors("Graph store", "traversal", duckdb.Error)
    async def neighborhood(
        self,
        name: str,
        max_hops: int,
        limit: int = MAX_NEIGHBORS_PER_ENTITY,
    ) -> list[Neighbor]:
        """
        Breadth-first, undirected traversal from every entity named `name`.

        Each neighbour is reported once, at its shortest hop count, with the
        relationship labels along the first path that reached it. Traversal
        stops as soon as `limit` neighbours have been found.
        """
        if max_hops <= 0 or limit <= 0:
            return []

        def _query() -> list[Neighbor]:
            cur = self._cursor()
            starts = [
                _node_id(entity_type, name_key)
                for entity_type, name_key in cur.execute(
                    "SELECT entity_type, name_key FROM entities WHERE name_key = ? ORDER BY entity_type",
                    [normalize_name(name)],
                ).fetchall()
            ]
            if not starts:
                return []

            paths: dict[str, list[str]] = {node: [] for node in starts}
            found: list[tuple[str, int]] = []
            frontier = starts

            for hop in range(1, max_hops + 1):
                if not frontier or len(found) >= limit:
                    break
                edges = cur.execute(
                    """
                    SELECT source_type || chr(31) || source_key AS src,
                           relationship_type,
                           target_type || chr(31) || target_key AS dst
                    FROM relationships
                    WHERE list_contains(?, source_type || chr(31) || source_key)
                       OR list_contains(?, target_type || chr(31) || target_key)
                    ORDER BY rowid
                    """,
                    [frontier, frontier],
                ).fetchall()

                frontier_set = set(frontier)
                next_frontier: list[str] = []
                for src, rel, dst in edges:
                    for here, there in ((src, dst), (dst, src)):
                        if here not in frontier_set or there in paths:
                            continue
                        paths[there] = [*paths[here], rel]
                        found.append((there, hop))
                        next_frontier.append(there)
                        if len(found) >= limit:
                            break
                    if len(found) >= limit:
                        break
                frontier = next_frontier

            return [self._load_neighbor(cur, node, hops, paths[node]) for node, hops in found]

        return await asyncio.to_thread(_query)

    def _load_neighbor(
        self,
        cursor: duckdb.DuckDBPyConnection,
        node: str,
        hops: int,
        relations: list[str],
    ) -> Neighbor:
        entity_type, name_key = node.split(_SEP, 1)
        row = cursor.execute(
            "SELECT name FROM entities WHERE entity_type = ? AND name_key = ?",
            [entity_type, name_key],
        ).fetchone()
        chunk_rows = cursor.execute(
            """
            SELECT chunk_id, max(extracted_at) AS last_seen FROM entity_provenance
            WHERE entity_type = ? AND name_key = ?
            GROUP BY chunk_id
            ORDER BY last_seen DESC, chunk_id
            """,
            [entity_type, name_key],
        ).fetchall()
        return Neighbor(
            name=row[0] if row else name_key,
            entity_type=EntityType(entity_type),
            hops=hops,
            relations=relations,
            chunk_ids=[r[0] for r in chunk_rows],
        )

    @store_errors("Graph store", "provenance lookup", duckdb.Error)
    async def entities_for_passages(self, chunk_ids: list[str]) -> list[str]:
        """Names of entities extracted from any of `chunk_ids`."""
        if not chunk_ids:
            return []

        def _query() -> list[str]:
            rows = self._cursor().execute(
                """
                SELECT e.name
                FROM entity_provenance p
                JOIN entities e USING (entity_type, name_key)
                WHERE list_contains(?, p.chunk_id)
                GROUP BY e.name
                ORDER BY e.name
                """,
                [list(chunk_ids)],
            ).fetchall()
            return [r[0] for r in rows]

        return await asyncio.to_thread(_query)

    @store_errors("Graph store", "name scan", duckdb.Error)
    async def all_entity_names(self) -> list[str]:
        """Every distinct entity display name."""

        def _query() -> list[str]:
            rows = self._cursor().execute(
                "SELECT DISTINCT name FROM entities ORDER BY name"
            ).fetchall()
            return [r[0] for r in rows]

        return await asyncio.to_thread(_query)

    @store_errors("Graph store", "stats", duckdb.Error)
    async def stats(self) -> GraphStats:
        """Node, edge and per-type counts."""

        def _query() -> GraphStats:
            cur = self._cursor()
            nodes = cur.execute("SELECT count(*) FROM entities").fetchone()
            edges = cur.execute("SELECT count(*) FROM relationships").fetchone()
            by_type = cur.execute(
                "SELECT entity_type, count(*) FROM entities GROUP BY entity_type ORDER BY entity_type"
            ).fetchall()
            return GraphStats(
                nodes=nodes[0] if nodes else 0,
                relationships=edges[0] if edges else 0,
                node_types={t: c for t, c in by_type},
            )

        return await asyncio.to_thread(_query)
