"""Tests for the console runner's argument handling."""

from __future__ import annotations

import unittest
from unittest.mock import patch

from papyrus_monitor.cli import parse_args, resolve_log_path
from papyrus_monitor.config import AppSettings


class TestParseArgs(unittest.TestCase):

    def test_defaults(self):
        args = parse_args([])
        self.assertIsNone(args.log_path)
        self.assertIsNone(args.interval)
        self.assertFalse(args.poll)
        self.assertEqual(args.log_level, "INFO")

    def test_options(self):
        args = parse_args(["Papyrus.0.log", "--interval", "250", "--poll", "--log-level", "debug"])
        self.assertEqual(args.log_path, "Papyrus.0.log")
        self.assertEqual(args.interval, 250)
        self.assertTrue(args.poll)
        self.assertEqual(args.log_level, "debug")


class TestResolveLogPath(unittest.TestCase):

    def test_explicit_path_wins(self):
        settings = AppSettings(log_path="saved.log")
        self.assertEqual(resolve_log_path(parse_args(["given.log"]), settings), "given.log")

    def test_saved_path_is_used(self):
        settings = AppSettings(log_path="saved.log")
        self.assertEqual(resolve_log_path(parse_args([]), settings), "saved.log")

    def test_detected_path_is_saved(self):
        settings = AppSettings()
        with patch("papyrus_monitor.cli.find_most_recent_log", return_value="found.log"), \
                patch.object(AppSettings, "save", return_value=True) as save:
            self.assertEqual(resolve_log_path(parse_args([]), settings), "found.log")
        self.assertEqual(settings.log_path, "found.log")
        save.assert_called_once_with()

    def test_nothing_found(self):
        settings = AppSettings(auto_detect=True)
        with patch("papyrus_monitor.cli.find_most_recent_log", return_value=None):
            self.assertIsNone(resolve_log_path(parse_args([]), settings))
        self.assertIsNone(resolve_log_path(parse_args([]), AppSettings(auto_detect=False)))


if __name__ == "__main__":
    unittest.main()
