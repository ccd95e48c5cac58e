"""
Waitlist matching. Clients join the waitlist when nothing suitable is open
and are offered a slot when a cancellation or rejection frees one that fits
their preferences.
"""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime
from typing import Iterable, List, Optional

from shopqueue.models import (
    FreedSlot,
    StaffPreference,
    TimeRange,
    WaitlistEntry,
    WaitlistStatus,
    normalize_days,
)
from shopqueue.timemodel import EPOCH, utcnow, weekday_name

REF_CODE_PREFIX = "WL"
REF_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"  # no 0/O/1/I
REF_CODE_LENGTH = 4


def generate_ref_code() -> str:
    return REF_CODE_PREFIX + "".join(
        secrets.choice(REF_CODE_ALPHABET) for _ in range(REF_CODE_LENGTH)
    )


def new_waitlist_entry(
    client_name: str,
    service_id: Optional[str] = None,
    staff_id: Optional[str] = None,
    preferred_date: Optional[str] = None,
    preferred_days: Optional[Iterable[str]] = None,
    preferred_time_range=None,
    client_phone: Optional[str] = None,
    client_email: Optional[str] = None,
    now: Optional[datetime] = None,
) -> WaitlistEntry:
    """Build a fresh ``waiting`` entry with its own id and reference code."""
    return WaitlistEntry(
        id=str(uuid.uuid4())[:8].upper(),
        ref_code=generate_ref_code(),
        client_name=client_name,
        client_phone=client_phone,
        client_email=client_email,
        service_id=service_id or None,
        staff=StaffPreference.parse(staff_id),
        preferred_date=preferred_date or None,
        preferred_days=normalize_days(preferred_days),
        preferred_time_range=TimeRange.parse(preferred_time_range),
        created_at=now or utcnow(),
    )


def matches(entry: WaitlistEntry, slot: FreedSlot) -> bool:
    """
    True if a waiting entry would accept the freed slot.

    Every check must pass. A field missing on either side is a wildcard; an
    exact preferred date overrides any preferred weekdays.
    """
    if entry.status != WaitlistStatus.WAITING:
        return False

    if entry.service_id and slot.service_id and entry.service_id != slot.service_id:
        return False

    if entry.staff and not entry.staff.is_any and slot.staff_id:
        if entry.staff.staff_id != slot.staff_id:
            return False

    if slot.date:
        if entry.preferred_date:
            if entry.preferred_date != slot.date:
                return False
        elif entry.preferred_days:
            if weekday_name(slot.date) not in entry.preferred_days:
                return False

    if slot.time and entry.preferred_time_range:
        if not entry.preferred_time_range.contains(slot.time):
            return False

    return True


def _created_order(entry: WaitlistEntry):
    return (entry.created_at or EPOCH, entry.id)


def find_matches(entries: Iterable[WaitlistEntry], slot: FreedSlot) -> List[WaitlistEntry]:
    """Entries that accept ``slot``, oldest request first."""
    return sorted((e for e in entries if matches(e, slot)), key=_created_order)


def waitlist_position(entries: Iterable[WaitlistEntry], entry: WaitlistEntry) -> Optional[int]:
    """1-based place among waiting entries for the same service, or None once not waiting."""
    if entry.status != WaitlistStatus.WAITING:
        return None
    same_service = sorted(
        (
            e for e in entries
            if e.status == WaitlistStatus.WAITING and e.service_id == entry.service_id
        ),
        key=_created_order,
    )
    for idx, e in enumerate(same_service):
        if e.id == entry.id:
            return idx + 1
    return None


def get_waitlist(entries: Iterable[WaitlistEntry], status: Optional[str] = "waiting") -> List[WaitlistEntry]:
    selected = [e for e in entries if not status or e.status.value == status]
    return sorted(selected, key=_created_order)
