"""
Configuration for Papyrus Monitor.
MonitorConfig is the immutable value the engine runs with; AppSettings is
persisted to a JSON file alongside the project.
"""

import codecs
import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from typing import List, Optional

logger = logging.getLogger(__name__)

CONFIG_FILE = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "papyrus_monitor_config.json")


@dataclass(frozen=True)
class MonitorConfig:
    """Settings for one monitoring run. Replaced wholesale, never mutated."""
    file_path: str = ""
    poll_interval_ms: int = 1000
    use_notification_watcher: bool = True

    # Status thresholds on the dumps/stacks ratio
    warning_ratio_threshold: float = 0.5
    error_ratio_threshold: float = 0.8

    # Notification watcher supervision
    watcher_restart_delay_ms: int = 1000
    max_watcher_restarts: int = 5

    fallback_encoding: str = "utf-8"

    def validate(self) -> List[str]:
        """Return validation error messages, empty if the config is usable."""
        errors = []

        if not self.file_path or not self.file_path.strip():
            errors.append("Log file path is not configured")

        if self.poll_interval_ms <= 0:
            errors.append("poll_interval_ms must be greater than 0")

        if self.warning_ratio_threshold < 0:
            errors.append("warning_ratio_threshold must be non-negative")

        if self.error_ratio_threshold < 0:
            errors.append("error_ratio_threshold must be non-negative")

        if self.error_ratio_threshold <= self.warning_ratio_threshold:
            errors.append("error_ratio_threshold must be greater than warning_ratio_threshold")

        if self.watcher_restart_delay_ms < 0:
            errors.append("watcher_restart_delay_ms must be non-negative")

        if self.max_watcher_restarts < 0:
            errors.append("max_watcher_restarts must be non-negative")

        try:
            codecs.lookup(self.fallback_encoding)
        except (LookupError, TypeError):
            errors.append(f"Unknown fallback encoding: {self.fallback_encoding!r}")

        return errors

    def is_valid(self) -> bool:
        return not self.validate()

    def with_changes(self, **changes) -> "MonitorConfig":
        return replace(self, **changes)


@dataclass
class AppSettings:
    """Root application settings."""
    # Log file
    log_path: Optional[str] = None
    auto_detect: bool = True
    auto_start_monitoring: bool = True

    # Monitoring
    update_interval_ms: int = 1000
    use_file_watcher: bool = True
    warning_ratio_threshold: float = 0.5
    error_ratio_threshold: float = 0.8

    # Session history
    max_history_entries: int = 10_000

    def to_monitor_config(self, log_path: Optional[str] = None) -> MonitorConfig:
        return MonitorConfig(
            file_path=log_path or self.log_path or "",
            poll_interval_ms=self.update_interval_ms,
            use_notification_watcher=self.use_file_watcher,
            warning_ratio_threshold=self.warning_ratio_threshold,
            error_ratio_threshold=self.error_ratio_threshold,
        )

    @classmethod
    def load(cls, path: str = CONFIG_FILE) -> "AppSettings":
        """Load settings from disk, or return defaults."""
        if os.path.exists(path):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                known = {f.name for f in fields(cls)}
                return cls(**{k: v for k, v in data.items() if k in known})
            except (OSError, ValueError, TypeError) as e:
                logger.warning("Failed to load settings from %s: %s, using defaults", path, e)
        return cls()

    def save(self, path: str = CONFIG_FILE) -> bool:
        """Persist settings to disk."""
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(asdict(self), f, indent=2)
            return True
        except OSError as e:
            logger.warning("Failed to save settings to %s: %s", path, e)
            return False
