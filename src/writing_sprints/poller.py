"""Scheduled polling of a sprint tracker.

This module implements the host side of the poll contract: a background thread
that calls SprintTracker.poll on a fixed interval and hands each resulting
state to the UI thread through a queue.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections import deque

from .models import PollCommand, TrackingState
from .tracker import SprintTracker

logger = logging.getLogger(__name__)


class TrackerPoller:
    """Background thread that polls a tracker on a schedule.

    Polls are serialized through a lock, so a poll requested from the UI thread
    never overlaps a scheduled one for the same document.
    """

    def __init__(
        self,
        tracker: SprintTracker,
        update_queue: queue.Queue[TrackingState],
        refresh_seconds: float = 5.0,
    ):
        """Initialize tracker poller.

        Args:
            tracker: Tracker for the document being watched
            update_queue: Queue to publish resulting states to
            refresh_seconds: Polling interval in seconds
        """
        self.tracker = tracker
        self.update_queue = update_queue
        self.refresh_seconds = refresh_seconds

        self._poll_lock = threading.Lock()
        self._pending_lock = threading.Lock()
        self._pending: PollCommand | None = None

        # Thread control
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()

        # Performance metrics tracking
        self._metrics_log_interval = 10  # Log metrics every 10 cycles
        self._poll_times: deque[float] = deque(maxlen=self._metrics_log_interval)
        self._poll_count = 0

    def request(self, command: PollCommand) -> None:
        """Queue command flags for the next scheduled poll."""
        with self._pending_lock:
            self._pending = command if self._pending is None else self._pending.merge(command)

    def _take_pending(self) -> PollCommand | None:
        with self._pending_lock:
            command, self._pending = self._pending, None
        return command

    def poll_now(self, command: PollCommand | None = None) -> TrackingState:
        """Poll synchronously, waiting for any in-flight poll to finish first."""
        with self._poll_lock:
            return self.tracker.poll(command)

    def _publish(self, state: TrackingState) -> None:
        try:
            self.update_queue.put_nowait(state)
        except queue.Full:
            logger.warning("Update queue full, skipping tracking state update")

    def _poll_cycle(self) -> None:
        """Execute one polling cycle."""
        command = self._take_pending()
        try:
            state = self.poll_now(command)
        except Exception:
            # Put flags back so the next cycle still honors them
            if command is not None:
                self.request(command)
            raise
        self._publish(state)

    def _run(self) -> None:
        """Main polling loop running in background thread."""
        logger.info(f"TrackerPoller started with refresh interval {self.refresh_seconds}s")

        while not self._stop_event.is_set():
            try:
                start_time = time.perf_counter()
                self._poll_cycle()
                poll_duration_ms = (time.perf_counter() - start_time) * 1000

                self._poll_times.append(poll_duration_ms)
                self._poll_count += 1

                if (
                    logger.isEnabledFor(logging.DEBUG)
                    and self._poll_count % self._metrics_log_interval == 0
                    and self._poll_times
                ):
                    logger.debug(
                        "TrackerPoller metrics",
                        extra={
                            "extra_context": {
                                "poll_count": self._poll_count,
                                "min_poll_ms": round(min(self._poll_times), 2),
                                "max_poll_ms": round(max(self._poll_times), 2),
                                "avg_poll_ms": round(
                                    sum(self._poll_times) / len(self._poll_times), 2
                                ),
                            }
                        },
                    )

            except Exception as err:
                # The next cycle retries from the last persisted state
                logger.error(f"Error in poll cycle: {err}", exc_info=True)

            self._stop_event.wait(self.refresh_seconds)

        logger.info("TrackerPoller stopped")

    def start(self) -> None:
        """Start the background polling thread."""
        if self._thread is not None and self._thread.is_alive():
            logger.warning("TrackerPoller already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="TrackerPoller")
        self._thread.start()

    def stop(self) -> None:
        """Stop the background polling thread gracefully."""
        if self._thread is None:
            return

        logger.info("Stopping TrackerPoller...")
        self._stop_event.set()

        self._thread.join(timeout=self.refresh_seconds * 2)

        if self._thread.is_alive():
            logger.warning("TrackerPoller thread did not stop within timeout")
        else:
            logger.info("TrackerPoller stopped successfully")

        self._thread = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
