"""Unit tests for the tracking panel renderer."""

from datetime import datetime

import pytest
from rich.console import Console
from rich.panel import Panel

from writing_sprints.models import Sprint, TrackingState
from writing_sprints.views.history_panel import (
    _format_duration,
    _format_timestamp,
    render_tracking_panel,
)

T = 1_700_000_000_000


def _render_text(panel: Panel) -> str:
    console = Console(record=True, width=120)
    console.print(panel)
    return console.export_text()


class TestFormatDuration:
    """Tests for _format_duration helper function."""

    @pytest.mark.parametrize(
        "duration_ms, expected",
        [
            (0, "00:00:00"),
            (999, "00:00:00"),
            (1000, "00:00:01"),
            (60_000, "00:01:00"),
            (3_600_000, "01:00:00"),
            (5_025_000, "01:23:45"),
            (95_415_000, "26:30:15"),
            (-5000, "00:00:00"),
        ],
    )
    def test_format(self, duration_ms, expected):
        assert _format_duration(duration_ms) == expected


class TestFormatTimestamp:
    """Tests for _format_timestamp helper function."""

    def test_local_time(self):
        expected = datetime.fromtimestamp(T / 1000).strftime("%Y-%m-%d %H:%M:%S")

        assert _format_timestamp(T) == expected


class TestRenderTrackingPanel:
    """Tests for render_tracking_panel."""

    def test_idle_state(self):
        state = TrackingState(last_poll_time=T, last_word_count=42)

        panel = render_tracking_panel(state, T)

        assert isinstance(panel, Panel)
        assert panel.border_style == "dim"
        text = _render_text(panel)
        assert "Writing Sprints" in text
        assert "none open" in text
        assert "No closed sprints yet" in text
        assert "0 sprints" in text

    def test_open_sprint(self):
        state = TrackingState(
            last_poll_time=T,
            last_word_count=160,
            current_sprint=Sprint(T - 90_000, 100, T, 160),
        )

        panel = render_tracking_panel(state, T + 30_000)

        assert panel.border_style == "green"
        text = _render_text(panel)
        assert "Sprint Duration:" in text
        assert "00:01:30" in text
        assert "+60" in text
        assert "Idle For:" in text
        assert "00:00:30" in text

    def test_history_newest_first(self):
        state = TrackingState(
            last_poll_time=T,
            sprint_history={
                T - 7_200_000: Sprint(T - 7_300_000, 0, T - 7_200_000, 50),
                T - 3_600_000: Sprint(T - 3_660_000, 50, T - 3_600_000, 45),
            },
        )

        text = _render_text(render_tracking_panel(state, T))

        newer = text.index(_format_timestamp(T - 3_600_000))
        older = text.index(_format_timestamp(T - 7_200_000))
        assert newer < older
        assert "50 → 45" in text
        assert "2 sprints" in text

    def test_history_limit(self):
        history = {
            T - i * 600_000: Sprint(T - i * 600_000 - 1000, i, T - i * 600_000, i + 1)
            for i in range(1, 6)
        }
        state = TrackingState(last_poll_time=T, sprint_history=history)

        text = _render_text(render_tracking_panel(state, T, history_limit=2))

        assert _format_timestamp(T - 600_000) in text
        assert _format_timestamp(T - 1_200_000) in text
        assert _format_timestamp(T - 3_000_000) not in text
        assert "3 older sprints" in text
