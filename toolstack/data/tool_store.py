"""
ToolStack Source Store
======================

Read access to the primary PostgreSQL store (tools, categories, ecosystems).

Uses psycopg2 with a threaded connection pool. Queries are blocking, so
every public coroutine runs its query on the store's own thread pool,
sized to the connection pool so a checkout never finds the pool empty.

Pagination is keyset-based on the tool id: the cursor handed back by
``fetch_batch`` is the last id of the page, which stays stable while other
writers insert or delete tools.
"""

import asyncio
import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Tuple

from psycopg2 import pool as pg_pool
from psycopg2.extras import RealDictCursor

from .config import DatabaseConfig
from .models import ReferenceEntity, ToolRecord
from ..errors import UpstreamServiceError

logger = logging.getLogger(__name__)

TOOL_COLUMNS = """
    id, name, description, category_id, ecosystem_id, badges,
    github_link, github_stars, logo_url, website_url, like_count,
    created_at, updated_at
"""


class ToolStore:
    """Async facade over the tools/categories/ecosystems tables."""

    def __init__(
        self,
        config: Optional[DatabaseConfig] = None,
        db_pool: Optional[pg_pool.ThreadedConnectionPool] = None,
    ):
        self.config = config or DatabaseConfig()
        self._db_pool = db_pool
        self._own_pool = db_pool is None
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def db_pool(self) -> pg_pool.ThreadedConnectionPool:
        """Lazy-initialize database connection pool."""
        if self._db_pool is None:
            self._db_pool = pg_pool.ThreadedConnectionPool(
                minconn=self.config.pool_min_size,
                maxconn=self.config.pool_max_size,
                **self.config.connection_dict
            )
            logger.info(
                f"Source store pool created: {self.config.host}:{self.config.port}/{self.config.name}"
            )
        return self._db_pool

    @contextmanager
    def get_connection(self):
        """Get a connection from the pool (context manager)."""
        conn = self.db_pool.getconn()
        try:
            yield conn
        finally:
            self.db_pool.putconn(conn)

    @property
    def executor(self) -> ThreadPoolExecutor:
        # One worker per pooled connection
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.config.pool_max_size,
                thread_name_prefix="tool-store",
            )
        return self._executor

    def close(self):
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        if self._own_pool and self._db_pool is not None:
            self._db_pool.closeall()
            self._db_pool = None
            logger.info("Source store pool closed")

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self.executor, functools.partial(func, *args))
        except UpstreamServiceError:
            raise
        except Exception as e:
            raise UpstreamServiceError("source-store", str(e)) from e

    # =========================================================================
    # Tools
    # =========================================================================

    def _fetch_batch(self, cursor: Optional[str], limit: int) -> Tuple[List[ToolRecord], Optional[str]]:
        with self.get_connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                if cursor is None:
                    cur.execute(
                        f"SELECT {TOOL_COLUMNS} FROM tools ORDER BY id LIMIT %s",
                        (limit,),
                    )
                else:
                    cur.execute(
                        f"SELECT {TOOL_COLUMNS} FROM tools WHERE id > %s ORDER BY id LIMIT %s",
                        (cursor, limit),
                    )
                rows = cur.fetchall()

        records = [_row_to_tool(row) for row in rows]
        next_cursor = records[-1].id if len(records) == limit else None
        return records, next_cursor

    def _count_tools(self) -> int:
        with self.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT COUNT(*) FROM tools")
                return int(cur.fetchone()[0])

    async def fetch_batch(
        self,
        cursor: Optional[str],
        limit: int,
    ) -> Tuple[List[ToolRecord], Optional[str]]:
        """
        Fetch the next page of tools after ``cursor``.

        Returns:
            (records, next_cursor); next_cursor is None on the last page
        """
        return await self._run(self._fetch_batch, cursor, limit)

    async def count_tools(self) -> int:
        return await self._run(self._count_tools)

    # =========================================================================
    # References
    # =========================================================================

    def _get_reference(self, table: str, reference_id: str) -> Optional[ReferenceEntity]:
        with self.get_connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"SELECT id, name, created_at, updated_at FROM {table} WHERE id = %s",
                    (reference_id,),
                )
                row = cur.fetchone()
        if not row:
            return None
        return ReferenceEntity(
            id=str(row["id"]),
            name=row["name"],
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    async def get_category(self, category_id: str) -> Optional[ReferenceEntity]:
        return await self._run(self._get_reference, "categories", category_id)

    async def get_ecosystem(self, ecosystem_id: str) -> Optional[ReferenceEntity]:
        return await self._run(self._get_reference, "ecosystems", ecosystem_id)

    # =========================================================================
    # Health
    # =========================================================================

    def _check_health(self) -> Dict[str, Any]:
        try:
            with self.get_connection() as conn:
                cur = conn.cursor()
                cur.execute("SELECT COUNT(*) FROM tools")
                row = cur.fetchone()
                cur.close()
                return {"status": "connected", "tools": int(row[0])}
        except Exception as e:
            logger.warning(f"Source store health check failed: {e}")
            return {"status": "disconnected", "error": str(e)}

    async def check_health(self) -> Dict[str, Any]:
        """Store status dict; "disconnected" when the store is not reachable."""
        return await self._run(self._check_health)


def _row_to_tool(row: Dict[str, Any]) -> ToolRecord:
    return ToolRecord(
        id=str(row["id"]),
        name=row["name"],
        description=row.get("description") or "",
        category_id=row.get("category_id"),
        ecosystem_id=row.get("ecosystem_id"),
        badges=row.get("badges") or [],
        github_link=row.get("github_link"),
        github_stars=row.get("github_stars"),
        logo_url=row.get("logo_url") or "",
        website_url=row.get("website_url") or "",
        like_count=row.get("like_count") or 0,
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )
