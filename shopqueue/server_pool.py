"""
Server pool simulation for walk-in wait estimates.

Each server (an active staff member) is reduced to a single number: the
minutes from "now" until it can take the next client. In-progress work
occupies the first servers with whatever time it has left; any remaining
servers are idle and free at 0.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List

from shopqueue.models import QueueEntry
from shopqueue.timemodel import elapsed_minutes


def effective_servers(server_count: int) -> int:
    """Zero or negative staff counts are modelled as a single server."""
    return max(server_count or 0, 1)


def job_duration(entry: QueueEntry, default_duration: int) -> int:
    return entry.estimated_duration_minutes or default_duration


def remaining_minutes(entry: QueueEntry, now: datetime, default_duration: int) -> int:
    """Minutes of work left on an in-progress job; 0 once it overruns or if it never started."""
    if entry.started_at is None:
        return 0
    return max(0, job_duration(entry, default_duration) - elapsed_minutes(entry.started_at, now))


def free_at_offsets(
    in_progress: Iterable[QueueEntry],
    server_count: int,
    now: datetime,
    default_duration: int,
) -> List[int]:
    """
    Per-server "free at" offsets in minutes, ascending.

    The i-th smallest remaining time fills server i. When more jobs are in
    progress than there are servers, only the soonest-finishing ones count.
    """
    remaining = sorted(remaining_minutes(e, now, default_duration) for e in in_progress)
    servers = effective_servers(server_count)
    offsets = [remaining[i] if i < len(remaining) else 0 for i in range(servers)]
    offsets.sort()
    return offsets


def assign(offsets: List[int], duration: int) -> List[int]:
    """Give a job to the earliest-free server and return the re-sorted offsets."""
    updated = list(offsets)
    updated[0] += duration
    updated.sort()
    return updated
