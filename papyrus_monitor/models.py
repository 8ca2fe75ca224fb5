# Copyright (c) 2026 Squig-AI (squig-ai.com) — MIT License
# See LICENSE file for details.
"""
Value types shared by the tailing engine: counters, snapshots, change events
and the monitor lifecycle states.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


class MonitorState(Enum):
    IDLE = "idle"
    STARTING = "starting"
    MONITORING = "monitoring"
    STOPPING = "stopping"


class ChangeKind(Enum):
    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"


class StatusLevel(Enum):
    NONE = "none"        # Nothing published yet
    GOOD = "good"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class ChangeEvent:
    """Something may have changed at `path`. The kind is informational only."""
    path: str
    kind: ChangeKind = ChangeKind.MODIFIED
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class EventCounts:
    """Per-kind line counts produced by folding a batch of classified lines."""
    dumps: int = 0
    stacks: int = 0
    warnings: int = 0
    errors: int = 0

    def plus(self, other: "EventCounts") -> "EventCounts":
        return EventCounts(
            dumps=self.dumps + other.dumps,
            stacks=self.stacks + other.stacks,
            warnings=self.warnings + other.warnings,
            errors=self.errors + other.errors,
        )

    def is_empty(self) -> bool:
        return not (self.dumps or self.stacks or self.warnings or self.errors)


def compute_ratio(dumps: int, stacks: int) -> float:
    """Dumps per stack frame; 0.0 when no stack frames were seen."""
    if stacks == 0:
        return 0.0
    return dumps / stacks


@dataclass(frozen=True, eq=False)
class AggregateSnapshot:
    """
    Running totals of classified Papyrus log lines.

    Equality (and hashing) only looks at the four counters. The timestamp is
    always fresh and the ratio is derived from the counters, so neither may
    take part in deciding whether a new snapshot is worth publishing.
    """
    timestamp: datetime
    dumps: int = 0
    stacks: int = 0
    warnings: int = 0
    errors: int = 0
    ratio: float = 0.0

    @classmethod
    def from_counts(cls, counts: EventCounts, timestamp: Optional[datetime] = None) -> "AggregateSnapshot":
        return cls(
            timestamp=timestamp or datetime.now(),
            dumps=counts.dumps,
            stacks=counts.stacks,
            warnings=counts.warnings,
            errors=counts.errors,
            ratio=compute_ratio(counts.dumps, counts.stacks),
        )

    @classmethod
    def empty(cls) -> "AggregateSnapshot":
        return cls.from_counts(EventCounts())

    @property
    def counts(self) -> EventCounts:
        return EventCounts(self.dumps, self.stacks, self.warnings, self.errors)

    def key(self) -> Tuple[int, int, int, int]:
        return (self.dumps, self.stacks, self.warnings, self.errors)

    def add(self, delta: EventCounts) -> "AggregateSnapshot":
        """New snapshot with `delta` folded on top; ratio recomputed, timestamp fresh."""
        return AggregateSnapshot.from_counts(self.counts.plus(delta))

    def status(self, warning_threshold: float = 0.5, error_threshold: float = 0.8) -> StatusLevel:
        if self.errors > 0 or self.ratio >= error_threshold:
            return StatusLevel.ERROR
        if self.warnings > 0 or self.ratio >= warning_threshold:
            return StatusLevel.WARNING
        return StatusLevel.GOOD

    def __eq__(self, other):
        if not isinstance(other, AggregateSnapshot):
            return NotImplemented
        return self.key() == other.key()

    def __hash__(self):
        return hash(self.key())

    def __str__(self):
        return (
            f"dumps={self.dumps} stacks={self.stacks} warnings={self.warnings} "
            f"errors={self.errors} ratio={self.ratio:.3f}"
        )
