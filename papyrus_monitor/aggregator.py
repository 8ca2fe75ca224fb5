# Copyright (c) 2026 Squig-AI (squig-ai.com) — MIT License
# See LICENSE file for details.
"""
Real-time Papyrus log aggregator.

Ties a change source, a tail cursor and the line classifier together and
publishes a new AggregateSnapshot through Qt signals whenever the running
totals change.
"""

import logging
import threading
from typing import Optional

from PyQt6.QtCore import QObject, pyqtSignal

from papyrus_monitor.change_source import (
    ChangeSource, NotificationChangeSource, PollingChangeSource, create_change_source,
)
from papyrus_monitor.config import MonitorConfig
from papyrus_monitor.log_parser import fold, parse_lines
from papyrus_monitor.models import AggregateSnapshot, MonitorState, StatusLevel
from papyrus_monitor.tail_cursor import TailCursor, read_all_lines

logger = logging.getLogger(__name__)

_ACTIVE_STATES = (MonitorState.STARTING, MonitorState.MONITORING)


class TailingAggregator(QObject):
    """
    Drives one monitoring run at a time through IDLE → STARTING → MONITORING
    → STOPPING → IDLE.

    Every change notification runs one read-classify-fold-publish cycle. Cycles
    never overlap: a trigger that arrives while a cycle is running is folded
    into a single follow-up cycle.
    """

    snapshot_published = pyqtSignal(object)   # Emitted with an AggregateSnapshot
    error_occurred = pyqtSignal(str)          # Advisory, never fatal
    state_changed = pyqtSignal(object)        # Emitted with the new MonitorState
    file_reset = pyqtSignal()                 # The log was truncated/recreated

    def __init__(self, config: Optional[MonitorConfig] = None, parent=None):
        super().__init__(parent)
        self._config = config or MonitorConfig()
        self._state = MonitorState.IDLE
        self._source = None
        self._cursor = TailCursor(self._config.fallback_encoding)
        self._last_snapshot = None
        # Baseline plus every incremental delta; force updates leave it alone
        self._tailed = None
        self._resets_seen = 0

        # Bumped on every start/stop; work begun in an older run is discarded
        self._run_id = 0
        # Serializes cycles and force updates
        self._cycle_lock = threading.RLock()
        # Guards the coalescing flags below
        self._trigger_lock = threading.Lock()
        self._cycle_running = False
        self._pending = False
        # Guards state transitions against publishing
        self._publish_lock = threading.RLock()

    # ─── Queries ──────────────────────────────────────────────────────────

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def config(self) -> MonitorConfig:
        return self._config

    @property
    def last_snapshot(self) -> Optional[AggregateSnapshot]:
        return self._last_snapshot

    @property
    def is_monitoring(self) -> bool:
        return self._state is MonitorState.MONITORING

    @property
    def change_source(self) -> Optional[ChangeSource]:
        return self._source

    @property
    def cursor(self) -> TailCursor:
        return self._cursor

    @property
    def status(self) -> StatusLevel:
        if self._last_snapshot is None:
            return StatusLevel.NONE
        return self._last_snapshot.status(
            self._config.warning_ratio_threshold, self._config.error_ratio_threshold)

    # ─── Lifecycle ────────────────────────────────────────────────────────

    def start(self, config: Optional[MonitorConfig] = None) -> bool:
        """Begin monitoring. Returns False if the run could not be started."""
        if self._state is not MonitorState.IDLE:
            logger.warning("start() ignored while %s", self._state.value)
            return False

        if config is not None:
            self._config = config
        config = self._config

        with self._publish_lock:
            self._run_id += 1
            self._set_state(MonitorState.STARTING)

        problems = config.validate()
        if problems:
            self._report_error(f"Configuration validation failed: {'; '.join(problems)}")
            self._set_state(MonitorState.IDLE)
            return False

        try:
            self._cursor = TailCursor(config.fallback_encoding)
            self._cursor.initialize(config.file_path, start_at_end=False)
            self._resets_seen = 0
            self._last_snapshot = None
            self._tailed = None

            self._source = create_change_source(config, parent=self)
            self._attach_source(self._source)
            self._source.start()

            self._establish_baseline()
        except Exception as e:
            self._report_error(f"Failed to start monitoring: {e}")
            self._release_source()
            self._set_state(MonitorState.IDLE)
            return False

        self._set_state(MonitorState.MONITORING)
        logger.info("Monitoring %s (offset: %d)", config.file_path, self._cursor.offset)
        return True

    def stop(self) -> bool:
        """
        Stop monitoring. Safe to call repeatedly; returns False if there was
        nothing to stop. Nothing is published once this returns.
        """
        with self._publish_lock:
            if self._state in (MonitorState.IDLE, MonitorState.STOPPING):
                return False
            self._run_id += 1
            self._set_state(MonitorState.STOPPING)

        self._release_source()
        self._set_state(MonitorState.IDLE)
        logger.info("Stopped monitoring %s", self._config.file_path)
        return True

    def reconfigure(self, config: MonitorConfig) -> bool:
        """Replace the configuration; a running monitor is stopped and restarted."""
        if config is None:
            raise ValueError("config cannot be None")

        if self._state is MonitorState.IDLE:
            self._config = config
            return True

        self.stop()
        return self.start(config)

    def dispose(self, timeout: float = 5.0):
        """Stop and wait (bounded) for an in-flight cycle to finish."""
        self.stop()
        if self._cycle_lock.acquire(timeout=timeout):
            self._cycle_lock.release()
        else:
            logger.warning("A processing cycle was still running after %.1fs", timeout)

    # ─── Processing ───────────────────────────────────────────────────────

    def force_update(self) -> bool:
        """
        Re-parse the whole file and publish if the totals differ.
        Neither the tail cursor nor the tailed totals move, so the next
        incremental cycle continues from where tailing left off.
        Returns True if a snapshot was published.
        """
        if self._state not in _ACTIVE_STATES:
            logger.debug("force_update() ignored while %s", self._state.value)
            return False

        run_id = self._run_id
        with self._cycle_lock:
            try:
                lines, _ = read_all_lines(self._config.file_path, self._config.fallback_encoding)
            except OSError as e:
                logger.debug("Force update skipped: %s", e)
                return False
            except Exception as e:
                self._report_error(f"Error during force update: {e}", run_id)
                return False

            snapshot = AggregateSnapshot.from_counts(fold(parse_lines(lines)))
            return self._publish_if_changed(snapshot, run_id)

    def process_change(self, event=None):
        """Slot for ChangeSource.changed. Runs (or schedules) one cycle."""
        if self._state is not MonitorState.MONITORING:
            return

        with self._trigger_lock:
            if self._cycle_running:
                # Whoever runs the current cycle will run once more for us
                self._pending = True
                return
            self._cycle_running = True
            self._pending = False

        run_id = self._run_id
        finished = False
        try:
            while not finished:
                with self._cycle_lock:
                    self._run_cycle(run_id)
                with self._trigger_lock:
                    if self._pending and run_id == self._run_id:
                        self._pending = False
                    else:
                        self._cycle_running = False
                        finished = True
        finally:
            if not finished:
                with self._trigger_lock:
                    self._cycle_running = False

    def _run_cycle(self, run_id: int):
        try:
            if not self._cursor.has_new_content():
                return

            new_lines = self._cursor.read_new_lines()
            self._note_cursor_reset(run_id)
            if not new_lines:
                return

            first_line_number = self._cursor.lines_read - len(new_lines) + 1
            delta = fold(parse_lines(new_lines, first_line_number))
            if run_id != self._run_id:
                return
            self._tailed = (self._tailed or AggregateSnapshot.empty()).add(delta)
            self._publish_if_changed(self._tailed, run_id)

        except OSError as e:
            logger.debug("Transient read failure: %s", e)
        except Exception as e:
            self._report_error(f"Error processing file change: {e}", run_id)

    def _establish_baseline(self):
        config = self._config
        try:
            lines, consumed = read_all_lines(config.file_path, config.fallback_encoding)
        except OSError as e:
            # The first incremental read will pick the whole file up instead
            logger.warning("Baseline read of %s failed: %s", config.file_path, e)
            return

        # Continue tailing exactly where the baseline stopped so the first
        # incremental cycle does not count the same lines again.
        self._cursor.fast_forward(consumed, lines_read=len(lines))
        self._tailed = AggregateSnapshot.from_counts(fold(parse_lines(lines)))
        self._publish_if_changed(self._tailed, self._run_id)

    def _publish_if_changed(self, snapshot: AggregateSnapshot, run_id: int) -> bool:
        with self._publish_lock:
            if run_id != self._run_id or self._state not in _ACTIVE_STATES:
                return False
            if self._last_snapshot is not None and snapshot == self._last_snapshot:
                return False

            self._last_snapshot = snapshot
            logger.debug("Publishing %s", snapshot)
            self.snapshot_published.emit(snapshot)
            return True

    def _note_cursor_reset(self, run_id: int):
        if self._cursor.reset_count == self._resets_seen:
            return
        self._resets_seen = self._cursor.reset_count
        with self._publish_lock:
            if run_id == self._run_id and self._state in _ACTIVE_STATES:
                self.file_reset.emit()

    # ─── Change source wiring ─────────────────────────────────────────────

    def _attach_source(self, source: ChangeSource):
        source.changed.connect(self.process_change)
        source.error.connect(self._on_source_error)
        if isinstance(source, NotificationChangeSource):
            source.exhausted.connect(self._on_watcher_exhausted)

    def _release_source(self):
        source, self._source = self._source, None
        if source is None:
            return
        try:
            source.stop()
        finally:
            source.changed.disconnect(self.process_change)
            source.error.disconnect(self._on_source_error)
            source.deleteLater()

    def _on_source_error(self, message: str):
        self._report_error(message, self._run_id)

    def _on_watcher_exhausted(self):
        if self._state not in _ACTIVE_STATES:
            return

        interval = self._config.poll_interval_ms
        self._report_error(f"File watcher unavailable, falling back to polling every {interval} ms")
        self._release_source()
        self._source = PollingChangeSource(self._config.file_path, interval, parent=self)
        self._attach_source(self._source)
        self._source.start()

    # ─── Helpers ──────────────────────────────────────────────────────────

    def _set_state(self, state: MonitorState):
        if state is self._state:
            return
        self._state = state
        self.state_changed.emit(state)

    def _report_error(self, message: str, run_id: Optional[int] = None):
        with self._publish_lock:
            if run_id is not None and run_id != self._run_id:
                return
            if self._state not in _ACTIVE_STATES:
                return
            logger.warning(message)
            self.error_occurred.emit(message)
