"""Console runner: print running Papyrus totals until Ctrl+C."""

import argparse
import logging
import signal
import sys

from PyQt6.QtCore import QCoreApplication, QTimer

from papyrus_monitor.aggregator import TailingAggregator
from papyrus_monitor.config import AppSettings
from papyrus_monitor.log_detector import find_most_recent_log
from papyrus_monitor.session_history import SessionHistory

logger = logging.getLogger("papyrus_monitor")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Watch a Papyrus log and print running totals.")
    parser.add_argument("log_path", nargs="?", help="Path to Papyrus.0.log (auto-detected if omitted)")
    parser.add_argument("--interval", type=int, help="Polling interval in milliseconds")
    parser.add_argument("--poll", action="store_true", help="Poll instead of using file system notifications")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ...)")
    return parser.parse_args(argv)


def resolve_log_path(args, settings: AppSettings):
    if args.log_path:
        return args.log_path
    if settings.log_path:
        return settings.log_path
    if settings.auto_detect:
        log_path = find_most_recent_log()
        if log_path:
            settings.log_path = log_path
            settings.save()
            return log_path
    return None


def print_snapshot(snapshot, aggregator):
    status = aggregator.status.value.upper()
    print(f"[{snapshot.timestamp:%H:%M:%S}] {status:<7} {snapshot}", flush=True)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    app = QCoreApplication(sys.argv[:1])
    app.setApplicationName("Papyrus Monitor")

    settings = AppSettings.load()
    log_path = resolve_log_path(args, settings)
    if not log_path:
        logger.error("No Papyrus log found. Pass the path to Papyrus.0.log explicitly.")
        return 1

    config = settings.to_monitor_config(log_path)
    changes = {}
    if args.interval:
        changes["poll_interval_ms"] = args.interval
    if args.poll:
        changes["use_notification_watcher"] = False
    if changes:
        config = config.with_changes(**changes)

    aggregator = TailingAggregator(config)
    history = SessionHistory(settings.max_history_entries)
    history.attach(aggregator)
    aggregator.snapshot_published.connect(lambda s: print_snapshot(s, aggregator))
    aggregator.error_occurred.connect(lambda message: print(f"[Monitor] {message}", file=sys.stderr))

    def shutdown(*_):
        history.end_session()
        aggregator.dispose()
        summary = history.summary()
        if summary:
            print(f"Session {summary.duration}: peak dumps {summary.peak_dumps}, "
                  f"peak stacks {summary.peak_stacks}, average ratio {summary.average_ratio:.3f}")
        app.quit()

    signal.signal(signal.SIGINT, shutdown)
    # Give the interpreter a chance to run the signal handler
    heartbeat = QTimer()
    heartbeat.timeout.connect(lambda: None)
    heartbeat.start(250)

    history.start_session()
    if not aggregator.start():
        history.end_session()
        return 1

    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
