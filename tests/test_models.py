"""Tests for statmon data models and errors."""

import pytest

from statmon.errors import (
    ConnectionFailure,
    FetchError,
    FetchErrorKind,
    FetchTimeout,
    MalformedResponse,
)
from statmon.models import StatSnapshot


def test_stat_snapshot_creation():
    """Test StatSnapshot normalises values to float."""
    snapshot = StatSnapshot(timestamp=100.0, values={"scanned": 5, "avg": 0.25})

    assert snapshot.timestamp == 100.0
    assert snapshot.values["scanned"] == 5.0
    assert isinstance(snapshot.values["scanned"], float)
    assert len(snapshot) == 2


def test_stat_snapshot_keeps_enumeration_order():
    """Test metrics enumerate in the order they were given."""
    snapshot = StatSnapshot(timestamp=1.0, values={"b": 1, "a": 2, "c": 3})

    assert list(snapshot) == ["b", "a", "c"]
    assert list(snapshot.items()) == [("b", 1.0), ("a", 2.0), ("c", 3.0)]


def test_stat_snapshot_is_frozen():
    """Test that StatSnapshot is immutable (frozen)."""
    snapshot = StatSnapshot(timestamp=1.0, values={"scanned": 1})

    with pytest.raises(AttributeError):
        snapshot.timestamp = 2.0  # type: ignore[misc]

    with pytest.raises(TypeError):
        snapshot.values["scanned"] = 2.0  # type: ignore[index]


def test_stat_snapshot_does_not_alias_input():
    """Test later changes to the source dict do not leak into the snapshot."""
    source = {"scanned": 1}
    snapshot = StatSnapshot(timestamp=1.0, values=source)
    source["scanned"] = 99

    assert snapshot.values["scanned"] == 1.0


def test_stat_snapshot_uses_slots():
    """Test that StatSnapshot uses __slots__ for memory efficiency."""
    snapshot = StatSnapshot(timestamp=1.0)

    assert not hasattr(snapshot, "__dict__")


def test_stat_snapshot_select():
    """Test select keeps only matching metrics and the timestamp."""
    snapshot = StatSnapshot(timestamp=7.0, values={"actions.reject": 1, "scanned": 2})

    selected = snapshot.select(lambda name: name.startswith("actions."))

    assert selected.timestamp == 7.0
    assert list(selected) == ["actions.reject"]


def test_stat_snapshot_capture_uses_wall_clock():
    """Test capture stamps the snapshot with the current time."""
    snapshot = StatSnapshot.capture({"scanned": 1})

    assert snapshot.timestamp > 1_600_000_000


class TestFetchErrors:
    """Tests for the FetchError hierarchy."""

    def test_kinds_are_distinct(self):
        """Test each failure class reports its own kind."""
        assert ConnectionFailure("u", "x").kind is FetchErrorKind.CONNECTION
        assert FetchTimeout("u", "x").kind is FetchErrorKind.TIMEOUT
        assert MalformedResponse("u", "x").kind is FetchErrorKind.MALFORMED

    def test_message_mentions_url_and_detail(self):
        """Test the error message carries url and detail."""
        error = FetchTimeout("http://host/stat", "no response within 1.00s")

        assert isinstance(error, FetchError)
        assert error.url == "http://host/stat"
        assert error.detail == "no response within 1.00s"
        assert str(error) == "timeout from http://host/stat: no response within 1.00s"

    def test_connection_failure_status_code(self):
        """Test ConnectionFailure keeps the HTTP status code."""
        error = ConnectionFailure("u", "HTTP 503", status_code=503)

        assert error.status_code == 503
