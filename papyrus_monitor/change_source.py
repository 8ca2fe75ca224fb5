# Copyright (c) 2026 Squig-AI (squig-ai.com) — MIT License
# See LICENSE file for details.
"""
Change detection for the monitored log file.

Two interchangeable strategies emit the same "the file may have changed"
signal: a watchdog observer on the parent directory, and a QTimer that fires
on a fixed interval. Neither reads the file; that is the aggregator's job.
"""

import errno
import logging
import os
from typing import Callable

from PyQt6.QtCore import QObject, QTimer, pyqtSignal
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from papyrus_monitor.config import MonitorConfig
from papyrus_monitor.models import ChangeEvent, ChangeKind

logger = logging.getLogger(__name__)

OBSERVER_JOIN_TIMEOUT = 2.0


class ChangeSource(QObject):
    """Common surface of both change detection strategies."""

    changed = pyqtSignal(object)    # Emitted with a ChangeEvent
    error = pyqtSignal(str)         # Emitted with a human-readable message

    def __init__(self, filepath: str, parent=None):
        super().__init__(parent)
        self._filepath = os.path.abspath(filepath)
        self._active = False

    @property
    def filepath(self) -> str:
        return self._filepath

    @property
    def is_active(self) -> bool:
        return self._active

    def start(self):
        raise NotImplementedError

    def stop(self):
        raise NotImplementedError

    def _emit_change(self, kind: ChangeKind):
        if not self._active:
            return
        try:
            self.changed.emit(ChangeEvent(path=self._filepath, kind=kind))
        except RuntimeError as e:
            # The Qt object was deleted while a watcher thread still held a reference
            logger.debug("Dropped %s event for %s: %s", kind.value, self._filepath, e)


class PollingChangeSource(ChangeSource):
    """Fires a MODIFIED event every `interval_ms`."""

    def __init__(self, filepath: str, interval_ms: int = 1000, parent=None):
        super().__init__(filepath, parent)
        self._interval_ms = interval_ms
        self._timer = QTimer(self)
        self._timer.timeout.connect(self._poll)

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    def start(self):
        self._active = True
        self._timer.start(self._interval_ms)
        logger.info("Polling %s every %d ms", self._filepath, self._interval_ms)

    def stop(self):
        self._timer.stop()
        self._active = False

    def _poll(self):
        self._emit_change(ChangeKind.MODIFIED)


class _LogFileEventHandler(FileSystemEventHandler):
    """Forwards watchdog events that concern one file name in the watched directory."""

    def __init__(self, filename: str, callback: Callable[[ChangeKind], None]):
        super().__init__()
        self._filename = os.path.normcase(filename)
        self.callback = callback

    def _matches(self, path) -> bool:
        if not path:
            return False
        return os.path.normcase(os.path.basename(os.fsdecode(path))) == self._filename

    def on_modified(self, event):
        if not event.is_directory and self._matches(event.src_path):
            self.callback(ChangeKind.MODIFIED)

    def on_created(self, event):
        if not event.is_directory and self._matches(event.src_path):
            self.callback(ChangeKind.CREATED)

    def on_deleted(self, event):
        if not event.is_directory and self._matches(event.src_path):
            self.callback(ChangeKind.DELETED)

    def on_moved(self, event):
        if event.is_directory:
            return
        if self._matches(event.src_path) or self._matches(getattr(event, "dest_path", None)):
            self.callback(ChangeKind.RENAMED)


class NotificationChangeSource(ChangeSource):
    """
    Watches the log's directory with a watchdog Observer.

    Failures to start the observer, and observer or emitter threads that die
    while running (found by a periodic health check), are reported on `error`
    and followed by a restart after `restart_delay_ms`. After `max_restarts`
    consecutive failed attempts the source gives up and emits `exhausted`.
    """

    exhausted = pyqtSignal()

    def __init__(self, filepath: str, restart_delay_ms: int = 1000, max_restarts: int = 5,
                 health_check_ms: int = 1000, parent=None):
        super().__init__(filepath, parent)
        self._directory = os.path.dirname(self._filepath)
        self._handler = _LogFileEventHandler(os.path.basename(self._filepath), self._emit_change)
        self._observer = None
        self._max_restarts = max_restarts
        self._failures = 0
        self._restart_count = 0

        self._restart_timer = QTimer(self)
        self._restart_timer.setSingleShot(True)
        self._restart_timer.setInterval(restart_delay_ms)
        self._restart_timer.timeout.connect(self._restart)

        self._health_timer = QTimer(self)
        self._health_timer.setInterval(health_check_ms)
        self._health_timer.timeout.connect(self._check_health)

    @property
    def is_watching(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    @property
    def restart_count(self) -> int:
        """Restart attempts made since start()."""
        return self._restart_count

    def start(self):
        self._active = True
        self._failures = 0
        self._restart_count = 0
        self._try_start()

    def stop(self):
        self._active = False
        self._restart_timer.stop()
        self._health_timer.stop()
        self._teardown_observer()

    def _try_start(self) -> bool:
        try:
            self._start_observer()
        except Exception as e:
            self._teardown_observer()
            self._fail(f"Failed to start watching file {self._filepath}: {e}")
            return False

        self._health_timer.start()
        logger.info("Watching %s", self._filepath)
        return True

    def _start_observer(self):
        if not os.path.isdir(self._directory):
            raise FileNotFoundError(errno.ENOENT, "Directory not found", self._directory)

        observer = Observer()
        observer.daemon = True
        observer.schedule(self._handler, self._directory, recursive=False)
        self._observer = observer
        observer.start()

    def _teardown_observer(self):
        observer, self._observer = self._observer, None
        if observer is None:
            return
        try:
            observer.stop()
            if observer.is_alive():
                observer.join(OBSERVER_JOIN_TIMEOUT)
                if observer.is_alive():
                    logger.warning("Watcher thread did not stop within %.1fs", OBSERVER_JOIN_TIMEOUT)
        except RuntimeError as e:
            logger.debug("Error stopping watcher: %s", e)

    def _fail(self, message: str):
        self._failures += 1
        self.error.emit(message)

        if self._failures > self._max_restarts:
            self._active = False
            self._health_timer.stop()
            self.error.emit(f"File watcher gave up after {self._max_restarts} restart attempts")
            self.exhausted.emit()
            return

        self._restart_timer.start()

    def _restart(self):
        if not self._active:
            return
        self._restart_count += 1
        logger.info("Restarting watcher for %s (attempt %d)", self._filepath, self._restart_count)
        self._teardown_observer()
        self._try_start()

    def _check_health(self):
        observer = self._observer
        if not self._active or observer is None:
            return

        emitters_alive = all(emitter.is_alive() for emitter in list(observer.emitters))
        if observer.is_alive() and emitters_alive:
            self._failures = 0
            return

        self._health_timer.stop()
        self._teardown_observer()
        self._fail(f"File watcher error: watcher for {self._filepath} stopped unexpectedly")


def create_change_source(config: MonitorConfig, parent=None) -> ChangeSource:
    """Pick the change detection strategy for one monitoring run."""
    if config.use_notification_watcher:
        return NotificationChangeSource(
            config.file_path,
            restart_delay_ms=config.watcher_restart_delay_ms,
            max_restarts=config.max_watcher_restarts,
            parent=parent,
        )
    return PollingChangeSource(config.file_path, config.poll_interval_ms, parent=parent)
