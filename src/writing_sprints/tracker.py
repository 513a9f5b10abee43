"""Sprint tracking decision logic.

Each poll samples the document's approximate word count and decides whether to
start, extend or close a sprint. Idle detection is driven entirely by polls:
a sprint that went quiet is only seen as closed on the first poll after the
idle threshold has passed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from .document import DocumentSource, approximate_word_count
from .models import PollCommand, Sprint, TrackingState, now_millis
from .persistence import StateStoreAdapter

logger = logging.getLogger(__name__)

# A sprint with no update for longer than this is finished
IDLE_THRESHOLD_MS = 5 * 60 * 1000

# Minimum interval between writes caused by ordinary activity
THROTTLE_MS = 1000


class SprintTracker:
    """Derives writing sprints from periodic word-count samples of one document."""

    def __init__(
        self,
        adapter: StateStoreAdapter,
        document: DocumentSource,
        clock: Callable[[], int] = now_millis,
    ):
        """Initialize sprint tracker.

        Args:
            adapter: State store adapter for the tracked document
            document: Source of the document text
            clock: Returns the current time in epoch milliseconds
        """
        self.adapter = adapter
        self.document = document
        self.clock = clock

    def poll(self, command: PollCommand | None = None) -> TrackingState:
        """Sample the document and update tracking state.

        Safe to call arbitrarily often: inside the throttle window with no
        sprint to close, nothing is written.

        Load through save runs under the store lock, so concurrent pollers of
        the same document never overwrite each other's decisions.

        Args:
            command: Optional close/clear flags for this poll

        Returns:
            The resulting tracking state

        Raises:
            DocumentUnavailableError: The document text cannot be read
            StateError: State cannot be loaded or saved
        """
        command = command or PollCommand()

        # Read the document before touching the store so a failure writes nothing
        word_count = approximate_word_count(self.document.get_text())

        with self.adapter.exclusive_access():
            return self._update(command, self.clock(), word_count)

    def _update(self, command: PollCommand, now: int, word_count: float) -> TrackingState:
        # Runs under the store lock; "now" is sampled after acquiring it
        state = self.adapter.load(include_history=not command.clear_history, now=now)

        if command.clear_history:
            self.adapter.clear_history()

        sprint = state.current_sprint
        if sprint is not None:
            idle_ms = now - sprint.end_time
            if command.close_sprint or idle_ms > IDLE_THRESHOLD_MS:
                state.close_current_sprint()
                self.adapter.save(state)
                logger.info(
                    "Sprint closed",
                    extra={
                        "extra_context": {
                            "reason": "requested" if command.close_sprint else "idle",
                            "start_time": sprint.start_time,
                            "end_time": sprint.end_time,
                            "word_delta": sprint.word_delta,
                            "idle_ms": idle_ms,
                        }
                    },
                )

        elapsed_ms = now - state.last_poll_time
        if elapsed_ms < THROTTLE_MS:
            logger.debug(
                "Poll throttled",
                extra={"extra_context": {"elapsed_ms": elapsed_ms, "word_count": word_count}},
            )
            return state

        state.last_poll_time = now
        if word_count != state.last_word_count:
            if state.current_sprint is None:
                state.current_sprint = Sprint(
                    start_time=now,
                    start_word_count=state.last_word_count,
                    end_time=now,
                    end_word_count=word_count,
                )
                logger.info(
                    "Sprint started",
                    extra={
                        "extra_context": {
                            "start_time": now,
                            "start_word_count": state.last_word_count,
                            "word_count": word_count,
                        }
                    },
                )
            else:
                state.current_sprint = state.current_sprint.extended(now, word_count)
        state.last_word_count = word_count
        self.adapter.save(state)

        return state
