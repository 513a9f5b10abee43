"""State data models for sprint tracking.

This module contains the value types shared by the tracker, the persistence
adapter and the presentation layer.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field, replace
from typing import Any


def now_millis() -> int:
    """Return the current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def _number_field(data: dict[str, Any], key: str) -> float:
    """Return a finite numeric field from a raw record."""
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{key} must be a number, got {type(value).__name__}")
    if not math.isfinite(value):
        raise ValueError(f"{key} must be finite, got {value}")
    return value


def _time_field(data: dict[str, Any], key: str) -> int:
    """Return an integral epoch-millis field from a raw record."""
    value = _number_field(data, key)
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"{key} must be an integer timestamp, got {value}")
        value = int(value)
    return value


@dataclass(frozen=True)
class Sprint:
    """A contiguous interval of writing activity.

    Times are epoch milliseconds. The word count may shrink over a sprint
    since deletions count as activity too.
    """

    start_time: int
    start_word_count: float
    end_time: int
    end_word_count: float

    def __post_init__(self) -> None:
        if self.end_time < self.start_time:
            raise ValueError(
                f"Sprint ends before it starts: end_time={self.end_time} "
                f"< start_time={self.start_time}"
            )

    @property
    def duration_ms(self) -> int:
        return self.end_time - self.start_time

    @property
    def word_delta(self) -> float:
        return self.end_word_count - self.start_word_count

    def extended(self, now: int, word_count: float) -> Sprint:
        """Return a copy of this sprint with its end advanced to ``now``."""
        return replace(self, end_time=now, end_word_count=word_count)

    def to_dict(self) -> dict[str, Any]:
        return {
            "startTime": self.start_time,
            "startWordCount": self.start_word_count,
            "endTime": self.end_time,
            "endWordCount": self.end_word_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Sprint:
        """Create a Sprint from a raw record.

        Raises:
            KeyError: A field is missing
            TypeError: A field is not a number
            ValueError: A field is out of range or the sprint ends before it starts
        """
        if not isinstance(data, dict):
            raise TypeError(f"Sprint record must be an object, got {type(data).__name__}")
        return cls(
            start_time=_time_field(data, "startTime"),
            start_word_count=_number_field(data, "startWordCount"),
            end_time=_time_field(data, "endTime"),
            end_word_count=_number_field(data, "endWordCount"),
        )


@dataclass
class TrackingState:
    """Tracking state for a single document."""

    last_poll_time: int
    last_word_count: float = 0.0
    current_sprint: Sprint | None = None
    sprint_history: dict[int, Sprint] = field(default_factory=dict)

    def close_current_sprint(self) -> Sprint | None:
        """Move the open sprint into history keyed by its end time.

        Returns:
            The sprint that was closed, or None if no sprint was open
        """
        sprint = self.current_sprint
        if sprint is None:
            return None
        self.sprint_history[sprint.end_time] = sprint
        self.current_sprint = None
        return sprint

    def to_dict(self) -> dict[str, Any]:
        """Return a plain structured value suitable for a UI or JSON output."""
        return {
            "lastPollTime": self.last_poll_time,
            "lastWordCount": self.last_word_count,
            "currentSprint": (
                self.current_sprint.to_dict() if self.current_sprint is not None else None
            ),
            "sprintHistory": {
                str(end_time): self.sprint_history[end_time].to_dict()
                for end_time in sorted(self.sprint_history)
            },
        }

    def __repr__(self) -> str:
        open_flag = "open" if self.current_sprint is not None else "idle"
        return (
            f"TrackingState(words={self.last_word_count:g}, {open_flag}, "
            f"history={len(self.sprint_history)})"
        )


@dataclass(frozen=True)
class PollCommand:
    """Flags a host passes along with a poll."""

    close_sprint: bool = False
    clear_history: bool = False

    def merge(self, other: PollCommand) -> PollCommand:
        """Combine two commands, keeping every flag set in either."""
        return PollCommand(
            close_sprint=self.close_sprint or other.close_sprint,
            clear_history=self.clear_history or other.clear_history,
        )
