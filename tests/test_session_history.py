"""Tests for the session history subscriber and log discovery."""

from __future__ import annotations

import os
import tempfile
import time
import unittest
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import patch

from qt_support import qt_app

from papyrus_monitor.aggregator import TailingAggregator
from papyrus_monitor.config import MonitorConfig
from papyrus_monitor.log_detector import find_most_recent_log, find_papyrus_logs
from papyrus_monitor.models import AggregateSnapshot, EventCounts
from papyrus_monitor.session_history import SessionHistory


def _snapshot(dumps=0, stacks=0, warnings=0, errors=0, seconds=0):
    counts = EventCounts(dumps, stacks, warnings, errors)
    return AggregateSnapshot.from_counts(counts, datetime(2026, 1, 1) + timedelta(seconds=seconds))


class TestSessionHistory(unittest.TestCase):

    def test_records_only_during_session(self):
        history = SessionHistory()
        history.record(_snapshot(dumps=1))
        self.assertEqual(history.snapshots(), [])

        history.start_session()
        history.record(_snapshot(dumps=1))
        history.end_session()
        history.record(_snapshot(dumps=2))

        self.assertEqual(len(history.snapshots()), 1)
        self.assertFalse(history.is_active)
        self.assertIsNotNone(history.ended_at)

    def test_buffer_is_bounded(self):
        history = SessionHistory(max_entries=3)
        history.start_session()
        for i in range(5):
            history.record(_snapshot(dumps=i, seconds=i))
        self.assertEqual([s.dumps for s in history.snapshots()], [2, 3, 4])

    def test_summary(self):
        history = SessionHistory()
        self.assertIsNone(history.summary())

        history.start_session()
        history.record(_snapshot(dumps=1, stacks=2, warnings=1, seconds=1))
        history.record(_snapshot(dumps=2, stacks=2, errors=3, seconds=2))
        summary = history.summary()

        self.assertEqual(summary.total_dumps, 3)
        self.assertEqual(summary.total_stacks, 4)
        self.assertEqual(summary.total_warnings, 1)
        self.assertEqual(summary.total_errors, 3)
        self.assertAlmostEqual(summary.average_ratio, 0.75)
        self.assertEqual(summary.peak_dumps, 2)
        self.assertEqual(summary.peak_stacks, 2)
        self.assertGreaterEqual(summary.duration, timedelta(0))

    def test_starting_twice_keeps_the_session(self):
        history = SessionHistory()
        history.start_session()
        history.record(_snapshot(dumps=1))
        started = history.started_at
        history.start_session()
        self.assertEqual(history.started_at, started)
        self.assertEqual(len(history.snapshots()), 1)

    def test_clear(self):
        history = SessionHistory()
        history.start_session()
        history.record(_snapshot(dumps=1))
        history.clear()
        self.assertEqual(history.snapshots(), [])
        self.assertTrue(history.is_active)

    def test_invalid_arguments(self):
        with self.assertRaises(ValueError):
            SessionHistory(max_entries=0)
        with self.assertRaises(ValueError):
            SessionHistory().record(None)

    def test_attach_records_published_snapshots(self):
        qt_app()
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "Papyrus.0.log"
            path.write_text("Dumping Stacks\n", encoding="utf-8")
            aggregator = TailingAggregator()
            history = SessionHistory()
            history.attach(aggregator)
            history.start_session()
            try:
                aggregator.start(MonitorConfig(file_path=str(path), use_notification_watcher=False))
                with open(path, "a", encoding="utf-8") as f:
                    f.write("Dumping Stack 1\n")
                aggregator.process_change()
            finally:
                aggregator.dispose()

        self.assertEqual([(s.dumps, s.stacks) for s in history.snapshots()], [(1, 0), (1, 1)])


class TestLogDetector(unittest.TestCase):

    def test_finds_newest_log_first(self):
        with tempfile.TemporaryDirectory() as documents:
            older = Path(documents) / "My Games" / "Skyrim Special Edition" / "Logs" / "Script" / "Papyrus.0.log"
            newer = Path(documents) / "My Games" / "Fallout4" / "Logs" / "Script" / "Papyrus.0.log"
            for path in (older, newer):
                path.parent.mkdir(parents=True)
                path.write_text("", encoding="utf-8")
            past = time.time() - 3600
            os.utime(older, (past, past))

            with patch("papyrus_monitor.log_detector.get_documents_dirs", return_value=[documents]):
                logs = find_papyrus_logs()
                self.assertEqual(logs, [("Fallout4", str(newer)), ("Skyrim Special Edition", str(older))])
                self.assertEqual(find_most_recent_log(), str(newer))

    def test_nothing_found(self):
        with tempfile.TemporaryDirectory() as documents:
            with patch("papyrus_monitor.log_detector.get_documents_dirs", return_value=[documents]):
                self.assertEqual(find_papyrus_logs(), [])
                self.assertIsNone(find_most_recent_log())


if __name__ == "__main__":
    unittest.main()
