"""
Admin gate, clock and time-window helpers
"""
from datetime import datetime, timedelta, timezone

import pytest

from fleetwatch.auth import AdminGate, safe_equal
from fleetwatch.clock import ManualClock, ensure_utc
from fleetwatch.errors import InvalidRequestError
from fleetwatch.window import TimeWindow, staleness_cutoff, trailing_window

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestAdminGate:

    def test_header_match(self):
        result = AdminGate("k").authorize_request("k", None)
        assert result.ok
        assert result.source == "header"

    def test_query_match(self):
        result = AdminGate("k").authorize_request(None, "k")
        assert result.ok
        assert result.source == "query"

    def test_mismatch(self):
        result = AdminGate("k").authorize_request("x", "y")
        assert not result.ok
        assert result.reason == "admin_key_mismatch"

    def test_missing(self):
        assert AdminGate("k").authorize_request(None, None).reason == "admin_key_missing"

    @pytest.mark.parametrize("secret", [None, ""])
    def test_unconfigured(self, secret):
        gate = AdminGate(secret)
        assert not gate.configured
        assert gate.authorize_request("", "").reason == "admin_key_missing_config"

    def test_safe_equal(self):
        assert safe_equal("abc", "abc")
        assert not safe_equal("abc", "abd")
        assert not safe_equal(None, "abc")


class TestWindow:

    def test_trailing_window_is_closed(self):
        window = trailing_window(T0, timedelta(hours=24))

        assert window.contains(T0)
        assert window.contains(T0 - timedelta(hours=24))
        assert not window.contains(T0 - timedelta(hours=24, microseconds=1))
        assert not window.contains(T0 + timedelta(microseconds=1))
        assert window.length == timedelta(hours=24)

    def test_staleness_cutoff(self):
        assert staleness_cutoff(T0, timedelta(minutes=30)) == T0 - timedelta(minutes=30)

    @pytest.mark.parametrize("length", [timedelta(0), timedelta(seconds=-1)])
    def test_rejects_non_positive(self, length):
        with pytest.raises(InvalidRequestError):
            trailing_window(T0, length)
        with pytest.raises(InvalidRequestError):
            staleness_cutoff(T0, length)

    def test_naive_timestamps_are_utc(self):
        window = TimeWindow(start=T0 - timedelta(hours=1), end=T0)
        assert window.contains(T0.replace(tzinfo=None))


class TestClock:

    def test_manual_clock_advances(self):
        clock = ManualClock(T0)
        clock.advance(minutes=5)
        clock.advance(timedelta(seconds=30))
        assert clock.now() == T0 + timedelta(minutes=5, seconds=30)

    def test_ensure_utc_converts(self):
        plus_two = timezone(timedelta(hours=2))
        assert ensure_utc(datetime(2026, 3, 1, 14, 0, tzinfo=plus_two)) == T0
        assert ensure_utc(datetime(2026, 3, 1, 12, 0)).tzinfo is not None
