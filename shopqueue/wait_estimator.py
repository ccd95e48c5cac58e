"""
Walk-in wait estimates.

Waiting clients are dispatched in arrival order to whichever server frees up
first (greedy list scheduling, no reordering by duration). The estimate for a
queue position is the earliest moment any server is free once everyone ahead
of that position has been assigned.

Also computes the board statistics shown next to the queue: average wait of
today's completed clients, active staff count and upcoming online bookings.
"""

from __future__ import annotations

import math
import zoneinfo
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from shopqueue.config import settings
from shopqueue.models import Booking, BookingStatus, QueueEntry, QueueStatus
from shopqueue.server_pool import assign, free_at_offsets, job_duration
from shopqueue.timemodel import hhmm_to_minutes, utcnow


def estimate_wait(
    waiting_ahead: Sequence[QueueEntry],
    in_progress: Iterable[QueueEntry],
    server_count: int = 1,
    default_duration: Optional[int] = None,
    now: Optional[datetime] = None,
) -> int:
    """Minutes until a client queued behind ``waiting_ahead`` can be served."""
    if default_duration is None:
        default_duration = settings.default_service_minutes
    now = now or utcnow()

    offsets = free_at_offsets(in_progress, server_count, now, default_duration)
    for entry in waiting_ahead:
        offsets = assign(offsets, job_duration(entry, default_duration))
    return offsets[0]


def estimate_all_waits(
    queue: Sequence[QueueEntry],
    in_progress: Iterable[QueueEntry],
    server_count: int = 1,
    default_duration: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    """
    Wait for every entry of a position-ordered queue, keyed by entry id.

    Equivalent to calling :func:`estimate_wait` once per prefix; the
    simulation is advanced incrementally instead of being replayed.
    """
    if default_duration is None:
        default_duration = settings.default_service_minutes
    now = now or utcnow()

    offsets = free_at_offsets(in_progress, server_count, now, default_duration)
    waits: Dict[str, int] = {}
    for entry in queue:
        waits[entry.id] = offsets[0]
        offsets = assign(offsets, job_duration(entry, default_duration))
    return waits


def estimate_new_arrival(
    queue: Sequence[QueueEntry],
    in_progress: Iterable[QueueEntry],
    server_count: int = 1,
    default_duration: Optional[int] = None,
    now: Optional[datetime] = None,
) -> int:
    """Wait quoted to someone who would join behind the whole queue."""
    return estimate_wait(queue, in_progress, server_count, default_duration, now)


# ---------------------------------------------------------------------------
# Board statistics
# ---------------------------------------------------------------------------


def active_staff_count(staff: Iterable[dict]) -> int:
    """Staff without an explicit ``active: False``; never below one."""
    return max(sum(1 for s in staff if s.get("active") is not False), 1)


def _shop_zone(tz: Optional[str]) -> zoneinfo.ZoneInfo:
    return zoneinfo.ZoneInfo(tz or settings.shop_timezone)


def queue_stats(
    entries: Iterable[QueueEntry],
    now: Optional[datetime] = None,
    tz: Optional[str] = None,
) -> dict:
    now = now or utcnow()
    zone = _shop_zone(tz)
    today = now.astimezone(zone).date()

    entries = list(entries)
    completed_today = [
        e for e in entries
        if e.status in (QueueStatus.COMPLETED, QueueStatus.NO_SHOW)
        and e.completed_at is not None
        and e.completed_at.astimezone(zone).date() == today
    ]

    waits: List[int] = []
    for e in completed_today:
        if e.status != QueueStatus.COMPLETED or not e.joined_at or not e.started_at:
            continue
        minutes = math.floor((e.started_at - e.joined_at).total_seconds() / 60)
        if minutes >= 0:
            waits.append(minutes)

    avg_wait = math.floor(sum(waits) / len(waits) + 0.5) if waits else 0

    return {
        "waiting": sum(1 for e in entries if e.is_waiting),
        "avg_wait": avg_wait,
        "completed_today": sum(1 for e in completed_today if e.status == QueueStatus.COMPLETED),
        "no_shows_today": sum(1 for e in completed_today if e.status == QueueStatus.NO_SHOW),
    }


def upcoming_bookings(
    bookings: Iterable[Booking],
    now: Optional[datetime] = None,
    hours_ahead: Optional[int] = None,
    tz: Optional[str] = None,
) -> List[Booking]:
    """Today's live bookings starting between now and ``hours_ahead`` from now."""
    now = now or utcnow()
    hours_ahead = settings.upcoming_hours_ahead if hours_ahead is None else hours_ahead
    local_now = now.astimezone(_shop_zone(tz))
    today = local_now.date().isoformat()
    start = local_now.hour * 60 + local_now.minute
    cutoff = local_now + timedelta(hours=hours_ahead)
    end = start + hours_ahead * 60 if cutoff.date() == local_now.date() else 24 * 60

    upcoming = [
        b for b in bookings
        if b.status not in (BookingStatus.CANCELLED, BookingStatus.REJECTED)
        and b.date == today
        and start <= hhmm_to_minutes(b.time) <= end
    ]
    return sorted(upcoming, key=lambda b: hhmm_to_minutes(b.time))
