"""Shared Qt helpers for the test suite."""

from __future__ import annotations

import os
import time

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PyQt6.QtCore import QCoreApplication  # noqa: E402


_APP = None


def qt_app() -> QCoreApplication:
    """Return the process-wide QCoreApplication, creating it once."""
    global _APP
    if _APP is None:
        _APP = QCoreApplication.instance() or QCoreApplication([])
    return _APP


def spin(seconds: float = 0.05) -> None:
    """Run the Qt event loop for a short while."""
    app = qt_app()
    deadline = time.monotonic() + seconds
    while time.monotonic() < deadline:
        app.processEvents()
        time.sleep(0.005)


def wait_until(predicate, timeout: float = 5.0) -> bool:
    """Spin the event loop until `predicate()` is true or `timeout` expires."""
    app = qt_app()
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        app.processEvents()
        if predicate():
            return True
        time.sleep(0.01)
    app.processEvents()
    return bool(predicate())


class SignalRecorder:
    """Collects every value emitted by a signal."""

    def __init__(self, signal=None):
        self.values = []
        if signal is not None:
            signal.connect(self)

    def __call__(self, *args):
        self.values.append(args[0] if len(args) == 1 else args)

    def __len__(self):
        return len(self.values)

    @property
    def last(self):
        return self.values[-1] if self.values else None
