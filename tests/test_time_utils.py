"""
Unit tests for time_utils module.
"""
import time
import pytest
from src.geomess.time_utils import current_timestamp


@pytest.mark.unit
class TestCurrentTimestamp:
    """Test suite for current_timestamp function."""

    def test_current_timestamp_is_int(self):
        """Test that timestamps are whole seconds."""
        assert isinstance(current_timestamp(), int)

    def test_current_timestamp_matches_clock(self):
        """Test that the timestamp is the current Unix time."""
        before = int(time.time())
        ts = current_timestamp()
        after = int(time.time())

        assert before <= ts <= after

    def test_current_timestamp_never_decreases(self):
        """Test that consecutive calls don't go backwards."""
        first = current_timestamp()
        second = current_timestamp()

        assert second >= first
