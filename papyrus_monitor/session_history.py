"""
Session history: a passive subscriber that keeps a bounded list of the
snapshots published while a session is active.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from papyrus_monitor.models import AggregateSnapshot

logger = logging.getLogger(__name__)


@dataclass
class SessionSummary:
    total_dumps: int
    total_stacks: int
    total_warnings: int
    total_errors: int
    average_ratio: float
    peak_dumps: int
    peak_stacks: int
    duration: timedelta


class SessionHistory:
    """Records snapshots between start_session() and end_session()."""

    def __init__(self, max_entries: int = 10_000):
        if max_entries <= 0:
            raise ValueError("max_entries must be greater than 0")
        self._lock = threading.Lock()
        self._snapshots = deque(maxlen=max_entries)
        self._active = False
        self._started_at = None
        self._ended_at = None

    @property
    def is_active(self) -> bool:
        with self._lock:
            return self._active

    @property
    def started_at(self) -> Optional[datetime]:
        return self._started_at

    @property
    def ended_at(self) -> Optional[datetime]:
        return self._ended_at

    def attach(self, aggregator):
        """Subscribe to an aggregator's published snapshots."""
        aggregator.snapshot_published.connect(self.record)

    def start_session(self):
        with self._lock:
            if self._active:
                logger.warning("A session is already active")
                return
            self._started_at = datetime.now()
            self._ended_at = None
            self._active = True
            self._snapshots.clear()
        logger.info("Started session at %s", self._started_at)

    def end_session(self):
        with self._lock:
            if not self._active:
                logger.warning("No session is active")
                return
            self._ended_at = datetime.now()
            self._active = False
        logger.info("Ended session at %s", self._ended_at)

    def record(self, snapshot: AggregateSnapshot):
        if snapshot is None:
            raise ValueError("snapshot cannot be None")
        with self._lock:
            if not self._active:
                logger.debug("Snapshot received outside a session, ignoring")
                return
            self._snapshots.append(snapshot)

    def snapshots(self) -> List[AggregateSnapshot]:
        with self._lock:
            return sorted(self._snapshots, key=lambda s: s.timestamp)

    def summary(self) -> Optional[SessionSummary]:
        snapshots = self.snapshots()
        if not snapshots or self._started_at is None:
            return None

        end = self._ended_at or datetime.now()
        return SessionSummary(
            total_dumps=sum(s.dumps for s in snapshots),
            total_stacks=sum(s.stacks for s in snapshots),
            total_warnings=sum(s.warnings for s in snapshots),
            total_errors=sum(s.errors for s in snapshots),
            average_ratio=sum(s.ratio for s in snapshots) / len(snapshots),
            peak_dumps=max(s.dumps for s in snapshots),
            peak_stacks=max(s.stacks for s in snapshots),
            duration=end - self._started_at,
        )

    def clear(self):
        with self._lock:
            self._snapshots.clear()
        logger.info("Cleared session history")
