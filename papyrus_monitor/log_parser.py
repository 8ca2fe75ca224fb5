# Copyright (c) 2026 Squig-AI (squig-ai.com) — MIT License
# See LICENSE file for details.
"""
Papyrus log line classifier.
Tags raw script-log lines with an event kind and folds them into counters.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional, Union

from papyrus_monitor.models import AggregateSnapshot, EventCounts


class EventKind(Enum):
    DUMP_BLOCK_START = "dump_block_start"   # "Dumping Stacks" header line
    STACK_FRAME = "stack_frame"             # "Dumping Stack" frame line
    WARNING = "warning"
    ERROR = "error"
    INFO = "info"                           # Anything else


@dataclass
class LogLine:
    """A classified line of the Papyrus log."""
    text: str
    kind: EventKind
    line_number: Optional[int] = None
    timestamp: datetime = field(default_factory=datetime.now)


# ─── Regex patterns for Papyrus.0.log ──────────────────────────────────────

# Order matters: "Dumping Stacks" also contains "Dumping Stack", so the dump
# header must be tested first.
RE_DUMP_BLOCK_START = re.compile(r"Dumping Stacks")
RE_STACK_FRAME = re.compile(r"Dumping Stack")

# Script diagnostics, e.g. "[07/29/2025 - 01:59:58PM] warning: Property ..."
RE_WARNING = re.compile(r" warning: ", re.IGNORECASE)
RE_ERROR = re.compile(r" error: ", re.IGNORECASE)

_RULES = (
    (RE_DUMP_BLOCK_START, EventKind.DUMP_BLOCK_START),
    (RE_STACK_FRAME, EventKind.STACK_FRAME),
    (RE_WARNING, EventKind.WARNING),
    (RE_ERROR, EventKind.ERROR),
)


def classify(line: Optional[str]) -> EventKind:
    """Return the event kind of a single log line. Pure, never raises."""
    if not line:
        return EventKind.INFO
    for pattern, kind in _RULES:
        if pattern.search(line):
            return kind
    return EventKind.INFO


def parse_line(line: Optional[str], line_number: Optional[int] = None) -> LogLine:
    text = line or ""
    return LogLine(text=text, kind=classify(text), line_number=line_number)


def parse_lines(lines: Iterable[str], first_line_number: int = 1) -> List[LogLine]:
    """Parse multiple log lines, numbering them from `first_line_number`."""
    return [parse_line(line, number) for number, line in enumerate(lines, start=first_line_number)]


def fold(lines: Iterable[Union[LogLine, str]]) -> EventCounts:
    """
    Count lines by kind. Accepts already classified `LogLine`s or raw strings.
    INFO lines are not counted.
    """
    dumps = stacks = warnings = errors = 0
    for line in lines:
        kind = line.kind if isinstance(line, LogLine) else classify(line)
        if kind is EventKind.DUMP_BLOCK_START:
            dumps += 1
        elif kind is EventKind.STACK_FRAME:
            stacks += 1
        elif kind is EventKind.WARNING:
            warnings += 1
        elif kind is EventKind.ERROR:
            errors += 1
    return EventCounts(dumps=dumps, stacks=stacks, warnings=warnings, errors=errors)


def aggregate(lines: Iterable[Union[LogLine, str]]) -> AggregateSnapshot:
    """Fold `lines` into a fresh snapshot with its ratio computed."""
    return AggregateSnapshot.from_counts(fold(lines))
