"""Summary statistics over a document's sprints."""

from __future__ import annotations

from dataclasses import dataclass

from .models import TrackingState


@dataclass(frozen=True)
class SprintStats:
    """Simple container for aggregated sprint figures."""

    sprint_count: int
    total_duration_ms: int
    words_added: float
    words_removed: float
    longest_sprint_ms: int

    @property
    def net_words(self) -> float:
        return self.words_added - self.words_removed

    @property
    def words_per_minute(self) -> float:
        if self.total_duration_ms <= 0:
            return 0.0
        return self.net_words / (self.total_duration_ms / 60000)

    def summary(self) -> str:
        minutes = self.total_duration_ms / 60000
        return (
            f"{self.sprint_count} sprints, {minutes:.1f} min, "
            f"{self.net_words:+.0f} words ({self.words_per_minute:.1f} wpm)"
        )


def summarize(state: TrackingState) -> SprintStats:
    """Aggregate closed sprints and the open sprint, if any."""
    sprints = list(state.sprint_history.values())
    if state.current_sprint is not None:
        sprints.append(state.current_sprint)

    added = sum(s.word_delta for s in sprints if s.word_delta > 0)
    removed = -sum(s.word_delta for s in sprints if s.word_delta < 0)

    return SprintStats(
        sprint_count=len(sprints),
        total_duration_ms=sum(s.duration_ms for s in sprints),
        words_added=added,
        words_removed=removed,
        longest_sprint_ms=max((s.duration_ms for s in sprints), default=0),
    )
