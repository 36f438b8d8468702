"""
Bulk Resync State Persistence
=============================

Persists the bulk resync pagination cursor to disk so a run cut short by
the invocation time ceiling resumes where it stopped instead of walking
the whole collection again.

One JSON file per target at SYNC_STATE_DIR/sync_state_<target>.json.

Usage:
    state = SyncState("text")
    cursor = state.resume_cursor          # None: start from the beginning
    state.record_run_start("run-123", cursor)
    state.record_checkpoint("tool-0050")
    state.record_run_complete("run-123", completed=True, duration_seconds=12.5)
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = Path(__file__).parent.parent.parent / "data"


class SyncState:
    """
    Cursor checkpoint for one bulk resync target.

    ``current_run`` is set while a walk is unfinished (running, interrupted
    or suspended on the time budget) and cleared once it reaches the end.
    """

    def __init__(self, target: str, state_dir: Optional[Path] = None):
        self.target = target
        self._state_dir = Path(state_dir) if state_dir else DEFAULT_STATE_DIR
        self._state_file = self._state_dir / f"sync_state_{target}.json"
        self._state: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if self._state_file.exists():
            try:
                with open(self._state_file, "r") as f:
                    data = json.load(f)
                    logger.info(f"Loaded sync state from {self._state_file}")
                    return data
            except (json.JSONDecodeError, IOError) as e:
                logger.warning(f"Failed to load sync state, starting fresh: {e}")

        return {
            "version": 1,
            "target": self.target,
            "current_run": None,
            "last_run": None,
            "last_completed_run": None,
        }

    def save(self):
        """Persist state to disk."""
        self._state_dir.mkdir(parents=True, exist_ok=True)
        try:
            with open(self._state_file, "w") as f:
                json.dump(self._state, f, indent=2, default=str)
        except IOError as e:
            logger.error(f"Failed to save sync state: {e}")

    # =========================================================================
    # Run Lifecycle
    # =========================================================================

    def record_run_start(self, run_id: str, cursor: Optional[str] = None):
        self._state["current_run"] = {
            "run_id": run_id,
            "started_at": datetime.now(timezone.utc).isoformat(),
            "status": "running",
            "cursor": cursor,
        }
        self.save()

    def record_checkpoint(self, cursor: Optional[str]):
        """Record the last id of a fully processed batch."""
        run = self._state.get("current_run")
        if run is None:
            return
        run["cursor"] = cursor
        run["checkpoint_at"] = datetime.now(timezone.utc).isoformat()
        self.save()

    def record_run_complete(
        self,
        run_id: str,
        completed: bool,
        duration_seconds: float,
        stats: Optional[Dict[str, Any]] = None,
    ):
        """
        Record the end of an invocation.

        A run stopped by the time budget keeps ``current_run`` so the next
        invocation resumes from its cursor.
        """
        now = datetime.now(timezone.utc).isoformat()
        run_record = {
            "run_id": run_id,
            "status": "completed" if completed else "suspended",
            "completed_at": now,
            "duration_seconds": round(duration_seconds, 1),
            "stats": stats or {},
        }
        self._state["last_run"] = run_record

        if completed:
            self._state["current_run"] = None
            self._state["last_completed_run"] = run_record
        elif self._state.get("current_run") is not None:
            self._state["current_run"]["status"] = "suspended"

        self.save()

    def record_run_failure(self, run_id: str, error: str):
        """Failed runs keep their cursor for the next attempt."""
        self._state["last_run"] = {
            "run_id": run_id,
            "status": "failed",
            "completed_at": datetime.now(timezone.utc).isoformat(),
            "error": error,
        }
        if self._state.get("current_run") is not None:
            self._state["current_run"]["status"] = "failed"
        self.save()

    def reset(self):
        """Forget any unfinished walk."""
        self._state["current_run"] = None
        self.save()

    # =========================================================================
    # Recovery Queries
    # =========================================================================

    @property
    def resume_cursor(self) -> Optional[str]:
        """Cursor to continue from, or None to start a full walk."""
        run = self._state.get("current_run")
        return run.get("cursor") if run else None

    @property
    def was_interrupted(self) -> bool:
        return self._state.get("current_run") is not None

    def get_summary(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "current_run": self._state.get("current_run"),
            "last_run": self._state.get("last_run"),
            "last_completed_run": self._state.get("last_completed_run"),
        }
