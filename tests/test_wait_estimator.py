"""Tests for walk-in wait estimates and board statistics."""

from dataclasses import replace
from datetime import timedelta

import pytest

from shopqueue.config import settings
from shopqueue.models import Booking, BookingStatus, QueueStatus
from shopqueue.wait_estimator import (
    active_staff_count,
    estimate_all_waits,
    estimate_new_arrival,
    estimate_wait,
    queue_stats,
    upcoming_bookings,
)


class TestEstimateWait:

    @pytest.mark.parametrize("servers", [0, 1, 2, 5])
    def test_empty_queue_is_zero(self, servers, now):
        """Test that nobody waiting and nothing in progress means no wait."""
        assert estimate_wait([], [], servers, 30, now) == 0

    def test_single_server_sequential(self, make_walkin, now):
        """Test 1 server with jobs of 30 and 45 minutes."""
        a = make_walkin("A", duration=30, position=1)
        b = make_walkin("B", duration=45, position=2)
        assert estimate_wait([], [], 1, 30, now) == 0
        assert estimate_wait([a], [], 1, 30, now) == 30
        assert estimate_wait([a, b], [], 1, 30, now) == 75

    def test_waiting_job_takes_idle_server(self, make_walkin, now):
        """Test 2 servers, one busy for 10 more minutes: the next waiting job starts now."""
        busy = make_walkin("P1", duration=30, remaining=10)
        job = make_walkin("A", duration=20, position=1)
        waits = estimate_all_waits([job], [busy], 2, 30, now)
        assert waits == {"A": 0}
        # Someone joining behind A waits for the busy chair
        assert estimate_new_arrival([job], [busy], 2, 30, now) == 10

    def test_arrival_order_not_duration_order(self, make_walkin, now):
        """Test that a long job first in line is not reordered behind short ones."""
        long_job = make_walkin("A", duration=60, position=1)
        short = make_walkin("B", duration=10, position=2)
        waits = estimate_all_waits([long_job, short], [], 2, 30, now)
        assert waits == {"A": 0, "B": 0}
        assert estimate_wait([long_job, short], [], 2, 30, now) == 10

    def test_missing_duration_uses_default(self, make_walkin, now):
        a = make_walkin("A", position=1)
        assert estimate_wait([a], [], 1, 25, now) == 25

    def test_explicit_zero_default_is_kept(self, make_walkin, now, monkeypatch):
        """Test that a default duration of 0 is used as given, not replaced by the configured one."""
        monkeypatch.setattr(settings, "default_service_minutes", 30)
        queue = [make_walkin("A", position=1), make_walkin("B", position=2)]
        assert estimate_wait(queue, [], 1, 0, now) == 0
        assert estimate_all_waits(queue, [], 1, 0, now) == {"A": 0, "B": 0}
        assert estimate_wait(queue, [], 1, None, now) == 60

    def test_monotonic_as_queue_grows(self, make_walkin, now):
        """Test that appending jobs never lowers the estimate."""
        busy = [make_walkin("P1", duration=30, remaining=12), make_walkin("P2", duration=40, remaining=33)]
        queue = [make_walkin(f"W{i}", duration=d, position=i + 1) for i, d in enumerate([15, 40, 5, 25, 60, 10])]
        previous = -1
        for i in range(len(queue) + 1):
            wait = estimate_wait(queue[:i], busy, 3, 30, now)
            assert wait >= previous
            previous = wait


class TestEstimateAllWaits:

    def test_matches_prefix_calls(self, make_walkin, now):
        """Test that each position equals estimate_wait over its prefix."""
        busy = [make_walkin("P1", duration=30, remaining=7)]
        queue = [
            make_walkin("A", duration=20, position=1),
            make_walkin("B", duration=45, position=2),
            make_walkin("C", duration=15, position=3),
        ]
        waits = estimate_all_waits(queue, busy, 2, 30, now)
        assert waits == {
            "A": estimate_wait([], busy, 2, 30, now),
            "B": estimate_wait(queue[:1], busy, 2, 30, now),
            "C": estimate_wait(queue[:2], busy, 2, 30, now),
        }
        assert waits == {"A": 0, "B": 7, "C": 20}

    def test_empty_queue(self, now):
        assert estimate_all_waits([], [], 1, 30, now) == {}


class TestBoardStats:

    def test_active_staff_count(self):
        """Test that only staff explicitly inactive are excluded, with a floor of one."""
        staff = [{"id": "a"}, {"id": "b", "active": True}, {"id": "c", "active": False}]
        assert active_staff_count(staff) == 2
        assert active_staff_count([]) == 1
        assert active_staff_count([{"id": "c", "active": False}]) == 1

    def test_queue_stats(self, make_walkin, now):
        """Test average wait and counts over today's finished walk-ins."""
        done_a = make_walkin("A", duration=30, joined_minutes_ago=120)
        done_a = replace(
            done_a,
            status=QueueStatus.COMPLETED,
            started_at=done_a.joined_at + timedelta(minutes=10),
            completed_at=now - timedelta(minutes=30),
        )
        done_b = replace(done_a, id="B", started_at=done_a.joined_at + timedelta(minutes=21))
        no_show = replace(done_a, id="C", status=QueueStatus.NO_SHOW, started_at=None)
        yesterday = replace(done_a, id="D", completed_at=now - timedelta(days=1))
        waiting = make_walkin("E", position=1)

        stats = queue_stats([done_a, done_b, no_show, yesterday, waiting], now, "America/New_York")
        assert stats == {"waiting": 1, "avg_wait": 16, "completed_today": 2, "no_shows_today": 1}

    def test_queue_stats_empty(self, now):
        assert queue_stats([], now)["avg_wait"] == 0

    def test_upcoming_bookings(self, now):
        """Test the look-ahead window is today-only, live bookings, ordered by time."""
        # now is 11:00 in New York
        bookings = [
            Booking(id="1", client_name="a", date="2024-05-01", time="13:30"),
            Booking(id="2", client_name="b", date="2024-05-01", time="11:15"),
            Booking(id="3", client_name="c", date="2024-05-01", time="10:00"),
            Booking(id="4", client_name="d", date="2024-05-01", time="15:00"),
            Booking(id="5", client_name="e", date="2024-05-02", time="11:30"),
            Booking(id="6", client_name="f", date="2024-05-01", time="12:00", status=BookingStatus.CANCELLED),
        ]
        upcoming = upcoming_bookings(bookings, now, 3, "America/New_York")
        assert [b.id for b in upcoming] == ["2", "1"]
