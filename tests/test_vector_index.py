"""
Tests for the pgvector index adapter (connection pool mocked).
"""

import asyncio
import threading
from unittest.mock import MagicMock

import pytest

from toolstack.data.config import DeploymentEnvironment, VectorIndexConfig
from toolstack.errors import UpstreamServiceError
from toolstack.rag.vector_index import VectorIndex


class TestVectorIndex:

    def setup_method(self):
        self.cursor = MagicMock()
        self.conn = MagicMock()
        self.conn.cursor.return_value.__enter__.return_value = self.cursor
        self.pool = MagicMock()
        self.pool.getconn.return_value = self.conn
        self.index = VectorIndex(
            DeploymentEnvironment.DEV,
            config=VectorIndexConfig(dsn=None, table="tool_embeddings", pool_max_size=2),
            dimensions=3,
            db_pool=self.pool,
        )

    def test_namespace_from_environment(self):
        assert self.index.namespace == "toolstack-tools-dev"

    def test_upsert_scoped_to_namespace(self):
        asyncio.run(self.index.upsert("t1", [0.1, 0.2, 0.3], {"name": "Prisma"}))

        sql, params = self.cursor.execute.call_args.args
        assert "ON CONFLICT (namespace, id) DO UPDATE" in sql
        assert params[0] == "toolstack-tools-dev"
        assert params[1] == "t1"
        assert params[2] == [0.1, 0.2, 0.3]
        self.conn.commit.assert_called_once()
        self.pool.putconn.assert_called_once_with(self.conn)

    def test_upsert_rejects_wrong_dimensions(self):
        with pytest.raises(UpstreamServiceError, match="Expected 3 dimensions"):
            asyncio.run(self.index.upsert("t1", [0.1, 0.2], {}))
        self.cursor.execute.assert_not_called()

    def test_delete_missing_returns_false(self):
        self.cursor.rowcount = 0
        assert asyncio.run(self.index.delete_one("t1")) is False

    def test_delete_existing_returns_true(self):
        self.cursor.rowcount = 1
        assert asyncio.run(self.index.delete_one("t1")) is True

    def test_query_maps_rows(self):
        self.cursor.fetchall.return_value = [
            {"id": "t1", "metadata": {"name": "Prisma"}, "score": 0.92},
            {"id": "t2", "metadata": {}, "score": 0.40},
        ]

        matches = asyncio.run(self.index.query([0.1, 0.2, 0.3], top_k=2))

        assert [m.id for m in matches] == ["t1", "t2"]
        assert matches[0].score == pytest.approx(0.92)
        assert matches[0].metadata == {"name": "Prisma"}
        assert matches[1].metadata is None
        params = self.cursor.execute.call_args.args[1]
        assert params[1] == "toolstack-tools-dev"
        assert params[3] == 2

    def test_database_error_rolls_back(self):
        self.cursor.execute.side_effect = RuntimeError("connection reset")

        with pytest.raises(UpstreamServiceError, match="vector-index"):
            asyncio.run(self.index.count())
        self.conn.rollback.assert_called_once()
        self.pool.putconn.assert_called_once_with(self.conn)

    def test_health_runs_off_the_event_loop(self):
        threads = []
        self.cursor.execute.side_effect = lambda *args: threads.append(threading.current_thread().name)
        self.cursor.fetchone.return_value = (1,)

        health = asyncio.run(self.index.check_health())

        assert health == {"status": "connected", "namespace": "toolstack-tools-dev"}
        assert threads and threads[0].startswith("vector-index")

    def test_health_reports_missing_extension(self):
        self.cursor.fetchone.return_value = None
        assert asyncio.run(self.index.check_health())["status"] == "missing_extension"
