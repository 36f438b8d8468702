"""
Vector Index
============

Nearest-neighbour index over tool embeddings, stored in PostgreSQL with
pgvector. Every row belongs to a namespace (one per deployment
environment) and every statement is scoped to the adapter's namespace.

Schema:
    tool_embeddings(namespace, id, embedding vector(N), metadata jsonb, updated_at)
    PRIMARY KEY (namespace, id)
"""

import asyncio
import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from psycopg2 import pool as pg_pool
from psycopg2.extras import Json, RealDictCursor

from ..data.config import DatabaseConfig, DeploymentEnvironment, VectorIndexConfig
from ..data.models import VectorMatch
from ..errors import UpstreamServiceError

logger = logging.getLogger(__name__)


class VectorIndex:
    """Upsert/delete/query against one namespace of the pgvector table."""

    def __init__(
        self,
        environment: DeploymentEnvironment,
        config: Optional[VectorIndexConfig] = None,
        database: Optional[DatabaseConfig] = None,
        dimensions: int = 1536,
        db_pool: Optional[pg_pool.ThreadedConnectionPool] = None,
    ):
        self.environment = environment
        self.namespace = environment.vector_namespace
        self.config = config or VectorIndexConfig()
        self.database = database or DatabaseConfig()
        self.dimensions = dimensions
        self._db_pool = db_pool
        self._own_pool = db_pool is None
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def table(self) -> str:
        return self.config.table

    @property
    def db_pool(self) -> pg_pool.ThreadedConnectionPool:
        """Lazy-initialize database connection pool."""
        if self._db_pool is None:
            if self.config.dsn:
                self._db_pool = pg_pool.ThreadedConnectionPool(
                    1, self.config.pool_max_size, dsn=self.config.dsn
                )
            else:
                self._db_pool = pg_pool.ThreadedConnectionPool(
                    1, self.config.pool_max_size, **self.database.connection_dict
                )
            logger.info(f"Vector index pool created (namespace={self.namespace})")
        return self._db_pool

    @contextmanager
    def get_connection(self):
        conn = self.db_pool.getconn()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self.db_pool.putconn(conn)

    @property
    def executor(self) -> ThreadPoolExecutor:
        # Never more statements in flight than pooled connections
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.config.pool_max_size,
                thread_name_prefix="vector-index",
            )
        return self._executor

    def close(self):
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        if self._own_pool and self._db_pool is not None:
            self._db_pool.closeall()
            self._db_pool = None

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self.executor, functools.partial(func, *args))
        except Exception as e:
            raise UpstreamServiceError("vector-index", str(e)) from e

    # =========================================================================
    # Provisioning
    # =========================================================================

    def _ensure_schema(self):
        with self.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("CREATE EXTENSION IF NOT EXISTS vector")
                cur.execute(f"""
                    CREATE TABLE IF NOT EXISTS {self.table} (
                        namespace TEXT NOT NULL,
                        id TEXT NOT NULL,
                        embedding vector({int(self.dimensions)}) NOT NULL,
                        metadata JSONB NOT NULL DEFAULT '{{}}'::jsonb,
                        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                        PRIMARY KEY (namespace, id)
                    )
                """)
                cur.execute(f"""
                    CREATE INDEX IF NOT EXISTS {self.table}_embedding_hnsw
                    ON {self.table} USING hnsw (embedding vector_cosine_ops)
                """)
        logger.info(f"Vector table {self.table} ready")

    async def ensure_schema(self):
        await self._run(self._ensure_schema)

    # =========================================================================
    # Writes
    # =========================================================================

    def _upsert(self, vector_id: str, vector: List[float], metadata: Dict[str, Any]):
        if len(vector) != self.dimensions:
            raise ValueError(f"Expected {self.dimensions} dimensions, got {len(vector)}")
        with self.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(f"""
                    INSERT INTO {self.table} (namespace, id, embedding, metadata)
                    VALUES (%s, %s, %s::vector, %s)
                    ON CONFLICT (namespace, id) DO UPDATE SET
                        embedding = EXCLUDED.embedding,
                        metadata = EXCLUDED.metadata,
                        updated_at = NOW()
                """, (self.namespace, vector_id, list(vector), Json(metadata)))

    def _delete_one(self, vector_id: str) -> bool:
        with self.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"DELETE FROM {self.table} WHERE namespace = %s AND id = %s",
                    (self.namespace, vector_id),
                )
                return cur.rowcount > 0

    async def upsert(self, vector_id: str, vector: List[float], metadata: Dict[str, Any]):
        """Insert or replace the vector stored under ``vector_id``."""
        await self._run(self._upsert, vector_id, vector, metadata)

    async def delete_one(self, vector_id: str) -> bool:
        """Delete by id. Returns False when nothing was stored under it."""
        deleted = await self._run(self._delete_one, vector_id)
        if not deleted:
            logger.debug(f"Vector {vector_id} not present in {self.namespace}")
        return deleted

    # =========================================================================
    # Reads
    # =========================================================================

    def _query(self, vector: List[float], top_k: int, include_metadata: bool) -> List[VectorMatch]:
        with self.get_connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(f"""
                    SELECT id, metadata, 1 - (embedding <=> %s::vector) AS score
                    FROM {self.table}
                    WHERE namespace = %s
                    ORDER BY embedding <=> %s::vector
                    LIMIT %s
                """, (list(vector), self.namespace, list(vector), top_k))
                rows = cur.fetchall()

        return [
            VectorMatch(
                id=row["id"],
                score=float(row["score"]),
                metadata=(row["metadata"] or None) if include_metadata else None,
            )
            for row in rows
        ]

    def _fetch(self, vector_id: str) -> Optional[VectorMatch]:
        with self.get_connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"SELECT id, metadata FROM {self.table} WHERE namespace = %s AND id = %s",
                    (self.namespace, vector_id),
                )
                row = cur.fetchone()
        if not row:
            return None
        return VectorMatch(id=row["id"], score=1.0, metadata=row["metadata"])

    def _count(self) -> int:
        with self.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT COUNT(*) FROM {self.table} WHERE namespace = %s",
                    (self.namespace,),
                )
                return int(cur.fetchone()[0])

    async def query(
        self,
        vector: List[float],
        top_k: int = 5,
        include_metadata: bool = True,
    ) -> List[VectorMatch]:
        """Return the ``top_k`` closest vectors by cosine distance."""
        matches = await self._run(self._query, vector, top_k, include_metadata)
        logger.debug(f"Vector query returned {len(matches)} matches from {self.namespace}")
        return matches

    async def fetch(self, vector_id: str) -> Optional[VectorMatch]:
        return await self._run(self._fetch, vector_id)

    async def count(self) -> int:
        return await self._run(self._count)

    def _check_health(self) -> Dict[str, Any]:
        try:
            with self.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT 1 FROM pg_extension WHERE extname = 'vector'")
                    available = cur.fetchone() is not None
            return {
                "status": "connected" if available else "missing_extension",
                "namespace": self.namespace,
            }
        except Exception as e:
            logger.warning(f"Vector index health check failed: {e}")
            return {"status": "disconnected", "namespace": self.namespace, "error": str(e)}

    async def check_health(self) -> Dict[str, Any]:
        return await self._run(self._check_health)
