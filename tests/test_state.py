"""
Tests for bulk resync cursor persistence.
"""

from toolstack.sync.state import SyncState


class TestSyncState:

    def test_fresh_state(self, tmp_path):
        state = SyncState("text", tmp_path)
        assert state.resume_cursor is None
        assert state.was_interrupted is False

    def test_checkpoint_survives_reload(self, tmp_path):
        state = SyncState("text", tmp_path)
        state.record_run_start("sync-text-1")
        state.record_checkpoint("t050")

        reloaded = SyncState("text", tmp_path)
        assert reloaded.resume_cursor == "t050"
        assert reloaded.was_interrupted is True

    def test_suspended_run_keeps_cursor(self, tmp_path):
        state = SyncState("vector", tmp_path)
        state.record_run_start("sync-vector-1")
        state.record_checkpoint("t100")
        state.record_run_complete("sync-vector-1", completed=False, duration_seconds=510.0)

        summary = SyncState("vector", tmp_path).get_summary()
        assert summary["current_run"]["status"] == "suspended"
        assert summary["current_run"]["cursor"] == "t100"
        assert summary["last_run"]["status"] == "suspended"

    def test_completed_run_clears_cursor(self, tmp_path):
        state = SyncState("all", tmp_path)
        state.record_run_start("sync-all-1")
        state.record_checkpoint("t100")
        state.record_run_complete("sync-all-1", completed=True, duration_seconds=12.34, stats={"total": 100})

        reloaded = SyncState("all", tmp_path)
        assert reloaded.resume_cursor is None
        summary = reloaded.get_summary()
        assert summary["last_completed_run"]["duration_seconds"] == 12.3
        assert summary["last_completed_run"]["stats"] == {"total": 100}

    def test_failure_keeps_cursor(self, tmp_path):
        state = SyncState("text", tmp_path)
        state.record_run_start("sync-text-1")
        state.record_checkpoint("t020")
        state.record_run_failure("sync-text-1", "connection refused")

        reloaded = SyncState("text", tmp_path)
        assert reloaded.resume_cursor == "t020"
        assert reloaded.get_summary()["last_run"]["error"] == "connection refused"

    def test_targets_are_independent(self, tmp_path):
        text = SyncState("text", tmp_path)
        text.record_run_start("sync-text-1")
        text.record_checkpoint("t030")

        assert SyncState("vector", tmp_path).resume_cursor is None
        assert (tmp_path / "sync_state_text.json").exists()

    def test_corrupt_file_starts_fresh(self, tmp_path):
        (tmp_path / "sync_state_text.json").write_text("{not json")
        assert SyncState("text", tmp_path).resume_cursor is None

    def test_reset(self, tmp_path):
        state = SyncState("text", tmp_path)
        state.record_run_start("sync-text-1")
        state.record_checkpoint("t030")
        state.reset()

        assert SyncState("text", tmp_path).resume_cursor is None
