"""State persistence for sprint tracking.

This module maps a TrackingState onto a flat string-to-string key set and
back. It is the only place that knows the persisted key layout and record
encoding; the tracker only ever handles typed values.
"""

from __future__ import annotations

import json
import logging
import math
import re
from contextlib import AbstractContextManager

from .exceptions import MalformedStateError
from .models import Sprint, TrackingState, now_millis
from .store import KeyValueStore

logger = logging.getLogger(__name__)

LAST_POLL_TIME_KEY = "lastPollTime"
LAST_WORD_COUNT_KEY = "lastWordCount"
CURRENT_SPRINT_KEY = "currentSprint"
SPRINT_KEY_PREFIX = "sprint:"


def encode_sprint(sprint: Sprint) -> str:
    """Encode a sprint as a JSON record string."""
    return json.dumps(sprint.to_dict(), separators=(",", ":"))


def decode_sprint(raw: str, key: str = CURRENT_SPRINT_KEY) -> Sprint:
    """Decode a JSON record string into a Sprint.

    Args:
        raw: Stored record
        key: Key the record was stored under, used in error messages

    Raises:
        MalformedStateError: The record is not valid JSON or not a valid sprint
    """
    try:
        return Sprint.from_dict(json.loads(raw))
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as err:
        raise MalformedStateError(f"Invalid sprint record under {key!r}: {err}") from err


# Plain ASCII decimal forms only; int()/float() alone also accept "1_000", " 7 " and other digit sets
_INTEGER_RE = re.compile(r"-?[0-9]+")
_DECIMAL_RE = re.compile(r"-?[0-9]+(?:\.[0-9]+)?(?:[eE][-+]?[0-9]+)?")


def _parse_poll_time(raw: str) -> int:
    if not _INTEGER_RE.fullmatch(raw):
        raise MalformedStateError(
            f"Invalid {LAST_POLL_TIME_KEY} value {raw!r}: expected an integer"
        )
    return int(raw)


def _parse_word_count(raw: str) -> float:
    if not _DECIMAL_RE.fullmatch(raw):
        raise MalformedStateError(
            f"Invalid {LAST_WORD_COUNT_KEY} value {raw!r}: expected a decimal number"
        )
    value = float(raw)
    if not math.isfinite(value):
        raise MalformedStateError(f"Invalid {LAST_WORD_COUNT_KEY} value {raw!r}: not finite")
    return value


def _history_end_time(key: str) -> int:
    suffix = key[len(SPRINT_KEY_PREFIX):]
    if not _INTEGER_RE.fullmatch(suffix):
        raise MalformedStateError(f"Invalid sprint history key {key!r}")
    return int(suffix)


def _decode_history_entry(key: str, raw: str) -> tuple[int, Sprint]:
    end_time = _history_end_time(key)
    sprint = decode_sprint(raw, key)
    if sprint.end_time != end_time:
        raise MalformedStateError(
            f"Sprint history key {key!r} does not match record endTime {sprint.end_time}"
        )
    return end_time, sprint


class StateStoreAdapter:
    """Loads and saves TrackingState through a document-scoped key-value store."""

    def __init__(self, store: KeyValueStore):
        """Initialize state store adapter.

        Args:
            store: Key-value backend for one document
        """
        self.store = store

    def exclusive_access(self) -> AbstractContextManager[None]:
        """Hold the store lock; wrap a whole load-decide-save cycle in it."""
        return self.store.lock()

    def load(self, include_history: bool = True, now: int | None = None) -> TrackingState:
        """Load tracking state from the store.

        Args:
            include_history: Also parse every closed sprint record
            now: Default for lastPollTime when nothing has been stored yet

        Returns:
            Freshly constructed tracking state

        Raises:
            MalformedStateError: A stored value cannot be parsed
            StoreUnavailableError: The backend cannot be read
        """
        values = self.store.get_all()

        raw_poll_time = values.get(LAST_POLL_TIME_KEY)
        if raw_poll_time is None:
            last_poll_time = now if now is not None else now_millis()
        else:
            last_poll_time = _parse_poll_time(raw_poll_time)

        raw_word_count = values.get(LAST_WORD_COUNT_KEY)
        last_word_count = 0.0 if raw_word_count is None else _parse_word_count(raw_word_count)

        raw_sprint = values.get(CURRENT_SPRINT_KEY)
        current_sprint = None if raw_sprint is None else decode_sprint(raw_sprint)

        history: dict[int, Sprint] = {}
        if include_history:
            for key, raw in values.items():
                if key.startswith(SPRINT_KEY_PREFIX):
                    end_time, sprint = _decode_history_entry(key, raw)
                    history[end_time] = sprint

        logger.debug(
            "State loaded",
            extra={
                "extra_context": {
                    "keys": len(values),
                    "history_loaded": include_history,
                    "history_size": len(history),
                    "sprint_open": current_sprint is not None,
                }
            },
        )

        return TrackingState(
            last_poll_time=last_poll_time,
            last_word_count=last_word_count,
            current_sprint=current_sprint,
            sprint_history=history,
        )

    def save(self, state: TrackingState) -> None:
        """Persist the full tracking state, replacing every stored key.

        Args:
            state: State to persist

        Raises:
            StoreUnavailableError: The backend cannot be written
        """
        values = {
            LAST_POLL_TIME_KEY: str(int(state.last_poll_time)),
            LAST_WORD_COUNT_KEY: repr(float(state.last_word_count)),
        }
        if state.current_sprint is not None:
            values[CURRENT_SPRINT_KEY] = encode_sprint(state.current_sprint)
        for end_time, sprint in state.sprint_history.items():
            values[f"{SPRINT_KEY_PREFIX}{end_time}"] = encode_sprint(sprint)

        self.store.set_all(values)

    def clear_history(self) -> None:
        """Remove every closed sprint record, leaving scalars and the open sprint."""
        self.store.delete_keys_with_prefix(SPRINT_KEY_PREFIX)
        logger.info("Sprint history cleared")
