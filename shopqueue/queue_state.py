"""
Lifecycle transitions for walk-in queue entries and waitlist entries.

Every function takes a snapshot (a sequence of entries for one shop) and
returns a new list; nothing is modified in place. A transition whose
precondition fails raises :class:`TransitionRejected` so the caller can
re-read current state instead of applying a partial update.

Walk-ins:   waiting -> in-progress -> completed
            waiting -> no-show
Waitlist:   waiting -> notified -> booked | expired
            waiting -> expired
"""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple

from shopqueue.models import (
    FreedSlot,
    QueueEntry,
    QueueStatus,
    WaitlistEntry,
    WaitlistStatus,
)
from shopqueue.timemodel import EPOCH, utcnow


class QueueError(Exception):
    pass


class EntryNotFound(QueueError):
    pass


class TransitionRejected(QueueError):
    pass


# ---------------------------------------------------------------------------
# Walk-in queue
# ---------------------------------------------------------------------------


def waiting_in_order(entries: Iterable[QueueEntry]) -> List[QueueEntry]:
    return sorted(
        (e for e in entries if e.is_waiting),
        key=lambda e: (e.position or 0, e.joined_at or EPOCH, e.id),
    )


def renumber(entries: Sequence[QueueEntry]) -> List[QueueEntry]:
    """Dense 1..N positions for waiting entries in their current order; None for the rest."""
    positions = {e.id: i + 1 for i, e in enumerate(waiting_in_order(entries))}
    result = []
    for e in entries:
        position = positions.get(e.id)
        result.append(e if e.position == position else replace(e, position=position))
    return result


def next_position(entries: Iterable[QueueEntry]) -> int:
    return max((e.position or 0 for e in entries if e.is_waiting), default=0) + 1


def _find(entries: Sequence[QueueEntry], entry_id: str) -> QueueEntry:
    for e in entries:
        if e.id == entry_id:
            return e
    raise EntryNotFound(f"No walk-in found with ID {entry_id}.")


def _require(entry, expected, action: str) -> None:
    if entry.status != expected:
        raise TransitionRejected(
            f"Cannot {action} {entry.id}: status is {entry.status.value}, "
            f"expected {expected.value}."
        )


def _swap_in(entries: Sequence[QueueEntry], *updated: QueueEntry) -> List[QueueEntry]:
    by_id = {e.id: e for e in updated}
    return [by_id.get(e.id, e) for e in entries]


def join_queue(
    entries: Sequence[QueueEntry],
    client_name: str,
    service_id: Optional[str] = None,
    staff_id: Optional[str] = None,
    estimated_duration_minutes: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Tuple[List[QueueEntry], QueueEntry]:
    """Append a walk-in at the back of the waiting order."""
    entry = QueueEntry(
        id=str(uuid.uuid4())[:8].upper(),
        client_name=client_name,
        service_id=service_id or None,
        staff_id=staff_id or None,
        estimated_duration_minutes=estimated_duration_minutes or None,
        status=QueueStatus.WAITING,
        position=next_position(entries),
        joined_at=now or utcnow(),
    )
    return list(entries) + [entry], entry


def start_service(
    entries: Sequence[QueueEntry], entry_id: str, now: Optional[datetime] = None
) -> List[QueueEntry]:
    entry = _find(entries, entry_id)
    _require(entry, QueueStatus.WAITING, "start service for")
    started = replace(
        entry, status=QueueStatus.IN_PROGRESS, started_at=now or utcnow(), position=None
    )
    return renumber(_swap_in(entries, started))


def complete_service(
    entries: Sequence[QueueEntry], entry_id: str, now: Optional[datetime] = None
) -> List[QueueEntry]:
    entry = _find(entries, entry_id)
    _require(entry, QueueStatus.IN_PROGRESS, "complete service for")
    return _swap_in(
        entries, replace(entry, status=QueueStatus.COMPLETED, completed_at=now or utcnow())
    )


def mark_no_show(
    entries: Sequence[QueueEntry], entry_id: str, now: Optional[datetime] = None
) -> List[QueueEntry]:
    entry = _find(entries, entry_id)
    _require(entry, QueueStatus.WAITING, "mark no-show for")
    gone = replace(entry, status=QueueStatus.NO_SHOW, completed_at=now or utcnow(), position=None)
    return renumber(_swap_in(entries, gone))


def _move(entries: Sequence[QueueEntry], entry_id: str, step: int) -> List[QueueEntry]:
    entry = _find(entries, entry_id)
    _require(entry, QueueStatus.WAITING, "move")
    order = waiting_in_order(entries)
    idx = next(i for i, e in enumerate(order) if e.id == entry_id)
    other_idx = idx + step
    if other_idx < 0 or other_idx >= len(order):
        return list(entries)
    other = order[other_idx]
    return _swap_in(
        entries,
        replace(entry, position=other.position),
        replace(other, position=entry.position),
    )


def move_up(entries: Sequence[QueueEntry], entry_id: str) -> List[QueueEntry]:
    """Swap with the entry directly ahead; no-op at the front."""
    return _move(entries, entry_id, -1)


def move_down(entries: Sequence[QueueEntry], entry_id: str) -> List[QueueEntry]:
    """Swap with the entry directly behind; no-op at the back."""
    return _move(entries, entry_id, 1)


# ---------------------------------------------------------------------------
# Waitlist
# ---------------------------------------------------------------------------


def _find_waitlist(entries: Sequence[WaitlistEntry], entry_id: str) -> WaitlistEntry:
    for e in entries:
        if e.id == entry_id:
            return e
    raise EntryNotFound(f"No waitlist entry found with ID {entry_id}.")


def notify(
    entry: WaitlistEntry, slot: Optional[FreedSlot] = None, now: Optional[datetime] = None
) -> WaitlistEntry:
    _require(entry, WaitlistStatus.WAITING, "notify")
    return replace(
        entry,
        status=WaitlistStatus.NOTIFIED,
        notified_at=now or utcnow(),
        notified_slot=slot,
    )


def notify_many(
    entries: Sequence[WaitlistEntry],
    entry_ids: Iterable[str],
    slot: Optional[FreedSlot] = None,
    now: Optional[datetime] = None,
) -> List[WaitlistEntry]:
    """Notify several entries at once; all must be waiting or nothing changes."""
    now = now or utcnow()
    updated = [notify(_find_waitlist(entries, i), slot, now) for i in entry_ids]
    return _swap_in(entries, *updated)


def mark_booked(entry: WaitlistEntry) -> WaitlistEntry:
    _require(entry, WaitlistStatus.NOTIFIED, "book")
    return replace(entry, status=WaitlistStatus.BOOKED)


def expire(entry: WaitlistEntry) -> WaitlistEntry:
    if entry.status not in (WaitlistStatus.WAITING, WaitlistStatus.NOTIFIED):
        raise TransitionRejected(
            f"Cannot expire {entry.id}: status is {entry.status.value}."
        )
    return replace(entry, status=WaitlistStatus.EXPIRED)


def apply_to_waitlist(
    entries: Sequence[WaitlistEntry], entry_id: str, transition
) -> Tuple[List[WaitlistEntry], WaitlistEntry]:
    updated = transition(_find_waitlist(entries, entry_id))
    return _swap_in(entries, updated), updated


def expire_stale_offers(
    entries: Sequence[WaitlistEntry], max_age: timedelta, now: Optional[datetime] = None
) -> Tuple[List[WaitlistEntry], List[str]]:
    """Expire notified entries whose offer is older than ``max_age``."""
    now = now or utcnow()
    stale = [
        e for e in entries
        if e.status == WaitlistStatus.NOTIFIED
        and e.notified_at is not None
        and now - e.notified_at >= max_age
    ]
    return _swap_in(entries, *(expire(e) for e in stale)), [e.id for e in stale]
