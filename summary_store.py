from __future__ import annotations

from collections import deque
from datetime import datetime, timezone
from threading import Lock
from typing import Deque, List, Optional

from pydantic import BaseModel

from compliance.compliance_models import ReminderRunSummary

RUN_HISTORY_SIZE = 20


class RecordedRun(BaseModel):
    recorded_at: datetime
    dry_run: bool = False
    summary: ReminderRunSummary


class SummaryStore:
    """Process-local history of reminder runs, newest last.

    Nothing survives a restart; each run is a fresh pass over the roster.
    """

    _runs: Deque[RecordedRun] = deque(maxlen=RUN_HISTORY_SIZE)
    _lock: Lock = Lock()

    @classmethod
    def record_run(
        cls,
        summary: ReminderRunSummary,
        *,
        dry_run: bool = False,
        recorded_at: Optional[datetime] = None,
    ) -> RecordedRun:
        run = RecordedRun(
            recorded_at=recorded_at or datetime.now(timezone.utc),
            dry_run=dry_run,
            summary=summary.model_copy(deep=True),
        )
        with cls._lock:
            cls._runs.append(run)
        return run

    @classmethod
    def latest(cls) -> Optional[RecordedRun]:
        with cls._lock:
            return cls._runs[-1].model_copy(deep=True) if cls._runs else None

    @classmethod
    def recent_runs(cls, limit: int = RUN_HISTORY_SIZE) -> List[RecordedRun]:
        """Newest first."""
        with cls._lock:
            runs = list(cls._runs)
        return [run.model_copy(deep=True) for run in reversed(runs)][:max(limit, 0)]

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._runs.clear()
