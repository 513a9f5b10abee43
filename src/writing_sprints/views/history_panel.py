"""Panel renderer for a document's tracking state.

This module provides render_tracking_panel, which shows the open sprint, the
closed sprint history and summary statistics for one document.
"""

from __future__ import annotations

from datetime import datetime

from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..models import Sprint, TrackingState
from ..stats import summarize


def _format_duration(duration_ms: int) -> str:
    """Format a duration in milliseconds as HH:MM:SS.

    Args:
        duration_ms: Duration in milliseconds

    Returns:
        Duration string in HH:MM:SS format
    """
    total_seconds = max(0, int(duration_ms // 1000))

    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    seconds = total_seconds % 60

    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def _format_timestamp(epoch_ms: int) -> str:
    """Format epoch milliseconds as local YYYY-MM-DD HH:MM:SS."""
    return datetime.fromtimestamp(epoch_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


def _format_delta(sprint: Sprint) -> str:
    return f"{sprint.word_delta:+.0f}"


def _build_history_table(state: TrackingState, history_limit: int) -> Table:
    table = Table(expand=True, show_edge=False)
    table.add_column("Ended", style="cyan")
    table.add_column("Duration", justify="right")
    table.add_column("Words", justify="right")
    table.add_column("Change", justify="right")

    for end_time in sorted(state.sprint_history, reverse=True)[:history_limit]:
        sprint = state.sprint_history[end_time]
        delta_style = "green" if sprint.word_delta >= 0 else "red"
        table.add_row(
            _format_timestamp(end_time),
            _format_duration(sprint.duration_ms),
            f"{sprint.start_word_count:.0f} → {sprint.end_word_count:.0f}",
            Text(_format_delta(sprint), style=delta_style),
        )

    return table


def render_tracking_panel(
    state: TrackingState, now_ms: int, history_limit: int = 20
) -> Panel:
    """Build Rich Panel displaying tracking state for one document.

    Args:
        state: Tracking state returned by a poll
        now_ms: Current time in epoch milliseconds, for the idle indicator
        history_limit: Maximum number of closed sprints to list

    Returns:
        Rich Panel component ready for rendering
    """
    metadata_table = Table.grid(padding=(0, 2))
    metadata_table.add_column(style="bold cyan", justify="right")
    metadata_table.add_column()

    metadata_table.add_row("Last Poll:", _format_timestamp(state.last_poll_time))
    metadata_table.add_row("Words (approx):", f"{state.last_word_count:.0f}")

    sprint = state.current_sprint
    if sprint is not None:
        metadata_table.add_row("Sprint Started:", _format_timestamp(sprint.start_time))
        metadata_table.add_row("Sprint Duration:", _format_duration(sprint.duration_ms))
        metadata_table.add_row("Sprint Change:", _format_delta(sprint))
        metadata_table.add_row("Idle For:", _format_duration(now_ms - sprint.end_time))
    else:
        metadata_table.add_row("Sprint:", Text("none open", style="dim italic"))

    content_items = [metadata_table, ""]

    if state.sprint_history:
        content_items.append(Text("Sprint History", style="bold yellow"))
        content_items.append(_build_history_table(state, history_limit))
        hidden = len(state.sprint_history) - history_limit
        if hidden > 0:
            content_items.append(Text(f"... {hidden} older sprints", style="dim"))
    else:
        content_items.append(Text("No closed sprints yet", style="dim italic"))

    content_items.append("")
    content_items.append(Text(summarize(state).summary(), style="bold"))

    border_style = "green" if sprint is not None else "dim"

    return Panel(
        Group(*content_items),
        title="[bold]Writing Sprints[/bold]",
        border_style=border_style,
        padding=(1, 2),
    )
