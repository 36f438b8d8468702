"""
Tests for the daily sync scheduler (HTTP calls mocked).
"""

from unittest.mock import MagicMock, patch

import requests

from toolstack.data.config import SchedulerConfig
from toolstack.orchestrator.scheduler import RunHistory, SyncScheduler


def make_scheduler(**kwargs) -> SyncScheduler:
    config = SchedulerConfig(
        cron_hour=12,
        cron_minute=0,
        timezone="Europe/Paris",
        base_url="https://api.toolstack.pro/",
        request_timeout=600,
        misfire_grace_time=3600,
    )
    return SyncScheduler(config, **kwargs)


class TestRunHistory:

    def test_record_runs(self):
        history = RunHistory()
        history.record_run(False, 1.0)
        history.record_run(False, 1.0)
        assert history.consecutive_failures == 2

        history.record_run(True, 30.0)
        assert history.consecutive_failures == 0
        assert history.total_runs == 3
        assert history.to_dict()["last_run_status"] == "completed"


class TestSyncScheduler:

    def test_urls_text_then_vector(self):
        assert make_scheduler().sync_urls() == [
            "https://api.toolstack.pro/api/sync/full/text",
            "https://api.toolstack.pro/api/sync/full/vector",
        ]

    @patch("toolstack.orchestrator.scheduler.requests.post")
    def test_calls_every_endpoint_in_order(self, post):
        post.return_value = MagicMock(ok=True, status_code=200, text="{}")

        assert make_scheduler().run_sync() is True

        urls = [call.args[0] for call in post.call_args_list]
        assert urls == [
            "https://api.toolstack.pro/api/sync/full/text",
            "https://api.toolstack.pro/api/sync/full/vector",
        ]
        assert post.call_args.kwargs["timeout"] == 600
        assert post.call_args.kwargs["headers"] == {}

    @patch("toolstack.orchestrator.scheduler.requests.post")
    def test_stops_on_error_status(self, post):
        post.return_value = MagicMock(ok=False, status_code=500, text="Error during full sync")
        scheduler = make_scheduler()

        assert scheduler.run_sync() is False
        assert post.call_count == 1
        assert scheduler.get_run_history().last_run_status == "failed"

    @patch("toolstack.orchestrator.scheduler.requests.post")
    def test_stops_on_connection_error(self, post):
        post.side_effect = requests.ConnectionError("refused")

        assert make_scheduler().run_sync() is False
        assert post.call_count == 1

    @patch("toolstack.orchestrator.scheduler.requests.post")
    def test_sends_sync_token(self, post):
        post.return_value = MagicMock(ok=True, status_code=200, text="{}")

        make_scheduler(sync_token="relay-token").run_sync()

        assert post.call_args.kwargs["headers"] == {"X-Sync-Token": "relay-token"}

    def test_status_before_start(self):
        status = make_scheduler().get_status()
        assert status["is_running"] is False
        assert status["next_run"] is None
        assert status["config"]["schedule"] == "0 12 * * *"
