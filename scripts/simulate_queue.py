#!/usr/bin/env python3
"""
Print wait estimates for a sample walk-in queue.

Useful for sanity-checking staffing changes before opening:

    python scripts/simulate_queue.py --staff 2 --in-progress 10 25 --waiting 30 45 20

Durations are in minutes. In-progress values are minutes of work remaining.
"""

import argparse
import os
import sys
from datetime import timedelta

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from dotenv import load_dotenv
load_dotenv()

from shopqueue.config import settings
from shopqueue.models import QueueEntry, QueueStatus
from shopqueue.timemodel import utcnow
from shopqueue.wait_estimator import estimate_all_waits, estimate_new_arrival


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--staff", type=int, default=1)
    parser.add_argument("--in-progress", type=int, nargs="*", default=[])
    parser.add_argument("--waiting", type=int, nargs="*", default=[])
    args = parser.parse_args()

    now = utcnow()
    default = settings.default_service_minutes

    # An in-progress job with R minutes left started (default - R) minutes ago
    in_progress = [
        QueueEntry(
            id=f"P{i + 1}",
            client_name=f"Chair {i + 1}",
            joined_at=now,
            status=QueueStatus.IN_PROGRESS,
            estimated_duration_minutes=default,
            started_at=now - timedelta(minutes=default - remaining),
        )
        for i, remaining in enumerate(args.in_progress)
    ]
    waiting = [
        QueueEntry(
            id=f"W{i + 1}",
            client_name=f"Walk-in {i + 1}",
            joined_at=now,
            position=i + 1,
            estimated_duration_minutes=duration,
        )
        for i, duration in enumerate(args.waiting)
    ]

    waits = estimate_all_waits(waiting, in_progress, args.staff, default, now)

    print(f"Staff on floor: {max(args.staff, 1)}")
    for entry in waiting:
        print(
            f"  #{entry.position} {entry.client_name} "
            f"({entry.estimated_duration_minutes} min) -> wait {waits[entry.id]} min"
        )
    print(f"Next walk-in would wait: {estimate_new_arrival(waiting, in_progress, args.staff, default, now)} min")


if __name__ == "__main__":
    main()
