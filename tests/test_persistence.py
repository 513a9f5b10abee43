"""Unit tests for the state store adapter."""

from __future__ import annotations

import json

import pytest

from writing_sprints.exceptions import MalformedStateError
from writing_sprints.models import Sprint, TrackingState
from writing_sprints.persistence import (
    CURRENT_SPRINT_KEY,
    LAST_POLL_TIME_KEY,
    LAST_WORD_COUNT_KEY,
    StateStoreAdapter,
    decode_sprint,
    encode_sprint,
)
from writing_sprints.store import InMemoryStore

T = 1_700_000_000_000

RECORD = '{"startTime":1000,"startWordCount":10.0,"endTime":5000,"endWordCount":42.4}'


class TestSprintRecords:
    """Tests for sprint record encoding."""

    def test_encode_uses_record_field_names(self):
        sprint = Sprint(start_time=1000, start_word_count=10.0, end_time=5000, end_word_count=42.4)

        assert json.loads(encode_sprint(sprint)) == {
            "startTime": 1000,
            "startWordCount": 10.0,
            "endTime": 5000,
            "endWordCount": 42.4,
        }

    def test_decode_record(self):
        sprint = decode_sprint(RECORD)

        assert sprint == Sprint(1000, 10.0, 5000, 42.4)

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "[1, 2, 3]",
            '{"startTime": 1000, "startWordCount": 1, "endTime": 2000}',
            '{"startTime": "1000", "startWordCount": 1, "endTime": 2000, "endWordCount": 2}',
            '{"startTime": 3000, "startWordCount": 1, "endTime": 2000, "endWordCount": 2}',
            '{"startTime": 1000.5, "startWordCount": 1, "endTime": 2000, "endWordCount": 2}',
        ],
    )
    def test_decode_rejects_invalid_records(self, raw):
        with pytest.raises(MalformedStateError):
            decode_sprint(raw)

    def test_decode_error_names_key(self):
        with pytest.raises(MalformedStateError, match="sprint:123"):
            decode_sprint("{}", "sprint:123")


class TestLoad:
    """Tests for StateStoreAdapter.load."""

    def test_defaults_for_empty_store(self):
        state = StateStoreAdapter(InMemoryStore()).load(now=T)

        assert state.last_poll_time == T
        assert state.last_word_count == 0
        assert state.current_sprint is None
        assert state.sprint_history == {}

    def test_parses_all_keys(self):
        store = InMemoryStore(
            {
                LAST_POLL_TIME_KEY: str(T),
                LAST_WORD_COUNT_KEY: "120.4",
                CURRENT_SPRINT_KEY: RECORD,
                "sprint:900": '{"startTime":100,"startWordCount":0,"endTime":900,"endWordCount":5}',
            }
        )

        state = StateStoreAdapter(store).load(now=0)

        assert state.last_poll_time == T
        assert state.last_word_count == pytest.approx(120.4)
        assert state.current_sprint == Sprint(1000, 10.0, 5000, 42.4)
        assert state.sprint_history == {900: Sprint(100, 0, 900, 5)}

    def test_history_skipped_when_not_requested(self):
        store = InMemoryStore(
            {"sprint:900": '{"startTime":100,"startWordCount":0,"endTime":900,"endWordCount":5}'}
        )

        state = StateStoreAdapter(store).load(include_history=False, now=T)

        assert state.sprint_history == {}

    def test_corrupt_history_ignored_when_not_requested(self):
        store = InMemoryStore({"sprint:900": "garbage"})

        state = StateStoreAdapter(store).load(include_history=False, now=T)

        assert state.sprint_history == {}

    @pytest.mark.parametrize(
        "values",
        [
            {LAST_POLL_TIME_KEY: "yesterday"},
            {LAST_POLL_TIME_KEY: "12.5"},
            {LAST_WORD_COUNT_KEY: "many"},
            {LAST_WORD_COUNT_KEY: "nan"},
            {LAST_WORD_COUNT_KEY: "inf"},
            {CURRENT_SPRINT_KEY: "{broken"},
            {"sprint:abc": RECORD},
            {"sprint:900": "[]"},
            {LAST_POLL_TIME_KEY: "1_700_000"},
            {LAST_POLL_TIME_KEY: " 1700 "},
            {LAST_POLL_TIME_KEY: "\u0661\u0662\u0663"},
            {LAST_POLL_TIME_KEY: "+1700"},
            {LAST_WORD_COUNT_KEY: " 1_0 "},
            {LAST_WORD_COUNT_KEY: "1_0"},
            {LAST_WORD_COUNT_KEY: "10\n"},
            {LAST_WORD_COUNT_KEY: "\u0661\u0660"},
            {"sprint:1_000": RECORD},
            {"sprint:900": RECORD},
        ],
    )
    def test_malformed_values_are_fatal(self, values):
        with pytest.raises(MalformedStateError):
            StateStoreAdapter(InMemoryStore(values)).load(now=T)

    def test_history_key_must_match_record_end_time(self):
        store = InMemoryStore({"sprint:900": RECORD})

        with pytest.raises(MalformedStateError, match="endTime 5000"):
            StateStoreAdapter(store).load(now=T)

    def test_exponent_word_count_parses(self):
        store = InMemoryStore({LAST_WORD_COUNT_KEY: repr(2e20)})

        assert StateStoreAdapter(store).load(now=T).last_word_count == 2e20


class TestSave:
    """Tests for StateStoreAdapter.save."""

    def test_serializes_full_state(self):
        store = InMemoryStore()
        state = TrackingState(
            last_poll_time=T,
            last_word_count=120,
            current_sprint=Sprint(T - 1000, 100, T, 120),
            sprint_history={T - 600_000: Sprint(T - 700_000, 50, T - 600_000, 100)},
        )

        StateStoreAdapter(store).save(state)

        values = store.get_all()
        assert values[LAST_POLL_TIME_KEY] == str(T)
        assert values[LAST_WORD_COUNT_KEY] == "120.0"
        assert decode_sprint(values[CURRENT_SPRINT_KEY]) == state.current_sprint
        assert decode_sprint(values[f"sprint:{T - 600_000}"]) == Sprint(
            T - 700_000, 50, T - 600_000, 100
        )
        assert len(values) == 4

    def test_closed_sprint_key_is_removed(self):
        store = InMemoryStore()
        adapter = StateStoreAdapter(store)
        state = TrackingState(
            last_poll_time=T, last_word_count=10, current_sprint=Sprint(T - 10, 0, T, 10)
        )
        adapter.save(state)

        state.close_current_sprint()
        adapter.save(state)

        values = store.get_all()
        assert CURRENT_SPRINT_KEY not in values
        assert f"sprint:{T}" in values

    def test_saved_state_loads_back(self):
        adapter = StateStoreAdapter(InMemoryStore())
        state = TrackingState(
            last_poll_time=T,
            last_word_count=24.2,
            current_sprint=Sprint(T - 500, 20, T, 24.2),
            sprint_history={T - 9000: Sprint(T - 9500, 18, T - 9000, 20)},
        )

        adapter.save(state)

        assert adapter.load(now=0) == state


class TestClearHistory:
    """Tests for StateStoreAdapter.clear_history."""

    def test_removes_only_history_keys(self):
        store = InMemoryStore(
            {
                LAST_POLL_TIME_KEY: str(T),
                LAST_WORD_COUNT_KEY: "5.0",
                CURRENT_SPRINT_KEY: RECORD,
                "sprint:1": RECORD,
                "sprint:2": RECORD,
            }
        )

        StateStoreAdapter(store).clear_history()

        assert store.get_all() == {
            LAST_POLL_TIME_KEY: str(T),
            LAST_WORD_COUNT_KEY: "5.0",
            CURRENT_SPRINT_KEY: RECORD,
        }
