"""
Plain records exchanged between the shop store and the queue engine.

Records are frozen dataclasses; transitions build new instances with
``dataclasses.replace`` instead of mutating shared state.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional

from shopqueue.timemodel import hhmm_to_minutes, isoformat, parse_timestamp

ANY_STAFF = "any"
ANY_TIME_START = "00:00"
ANY_TIME_END = "23:59"


class QueueStatus(str, Enum):
    WAITING = "waiting"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    NO_SHOW = "no-show"


class WaitlistStatus(str, Enum):
    WAITING = "waiting"
    NOTIFIED = "notified"
    BOOKED = "booked"
    EXPIRED = "expired"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    COMPLETED = "completed"


# ---------------------------------------------------------------------------
# Wildcards
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StaffPreference:
    """
    A waitlist staff preference.

    ``staff_id=None`` is the explicit "any available" choice; a missing
    preference is represented by the entry holding ``None`` instead of a
    StaffPreference. Both behave as a wildcard when matching.
    """

    staff_id: Optional[str] = None

    @property
    def is_any(self) -> bool:
        return self.staff_id is None

    @classmethod
    def parse(cls, raw) -> Optional["StaffPreference"]:
        if isinstance(raw, StaffPreference):
            return raw
        if raw is None or raw == "":
            return None
        if raw == ANY_STAFF:
            return cls()
        return cls(str(raw))

    def to_raw(self) -> str:
        return ANY_STAFF if self.is_any else self.staff_id


@dataclass(frozen=True)
class TimeRange:
    start: str
    end: str

    @property
    def is_any(self) -> bool:
        return self.start == ANY_TIME_START and self.end == ANY_TIME_END

    def contains(self, clock_time: str) -> bool:
        """Inclusive at both ends."""
        if self.is_any:
            return True
        minutes = hhmm_to_minutes(clock_time)
        return hhmm_to_minutes(self.start) <= minutes <= hhmm_to_minutes(self.end)

    @classmethod
    def parse(cls, raw) -> Optional["TimeRange"]:
        if isinstance(raw, TimeRange):
            return raw
        if not raw:
            return None
        if isinstance(raw, str):
            return TIME_RANGE_PRESETS.get(raw.lower())
        if not isinstance(raw, dict):
            return None
        return cls(start=str(raw.get("start", ANY_TIME_START)), end=str(raw.get("end", ANY_TIME_END)))

    def to_dict(self) -> dict:
        return {"start": self.start, "end": self.end}


ANY_TIME = TimeRange(ANY_TIME_START, ANY_TIME_END)

TIME_RANGE_PRESETS = {
    "morning": TimeRange("09:00", "12:00"),
    "afternoon": TimeRange("12:00", "17:00"),
    "evening": TimeRange("17:00", "21:00"),
    "any": ANY_TIME,
}


# ---------------------------------------------------------------------------
# Walk-in queue
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class QueueEntry:
    id: str
    client_name: str
    joined_at: datetime
    status: QueueStatus = QueueStatus.WAITING
    position: Optional[int] = None          # Only set while waiting
    service_id: Optional[str] = None
    staff_id: Optional[str] = None
    estimated_duration_minutes: Optional[int] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_waiting(self) -> bool:
        return self.status == QueueStatus.WAITING

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "client_name": self.client_name,
            "service_id": self.service_id,
            "staff_id": self.staff_id,
            "estimated_duration_minutes": self.estimated_duration_minutes,
            "status": self.status.value,
            "position": self.position,
            "joined_at": isoformat(self.joined_at),
            "started_at": isoformat(self.started_at),
            "completed_at": isoformat(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "QueueEntry":
        duration = data.get("estimated_duration_minutes")
        return cls(
            id=str(data["id"]),
            client_name=data.get("client_name", ""),
            joined_at=parse_timestamp(data.get("joined_at")),
            status=QueueStatus(data.get("status", QueueStatus.WAITING.value)),
            position=data.get("position"),
            service_id=data.get("service_id"),
            staff_id=data.get("staff_id"),
            estimated_duration_minutes=int(duration) if duration else None,
            started_at=parse_timestamp(data.get("started_at")),
            completed_at=parse_timestamp(data.get("completed_at")),
        )


# ---------------------------------------------------------------------------
# Waitlist
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FreedSlot:
    """An appointment slot reopened by a cancellation or rejection."""

    date: Optional[str] = None       # YYYY-MM-DD
    time: Optional[str] = None       # HH:MM
    staff_id: Optional[str] = None
    service_id: Optional[str] = None

    @classmethod
    def from_booking(cls, booking: "Booking") -> "FreedSlot":
        return cls(
            date=booking.date,
            time=booking.time,
            staff_id=booking.staff_id,
            service_id=booking.service_id,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "FreedSlot":
        return cls(
            date=data.get("date") or None,
            time=data.get("time") or None,
            staff_id=data.get("staff_id") or None,
            service_id=data.get("service_id") or None,
        )

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "time": self.time,
            "staff_id": self.staff_id,
            "service_id": self.service_id,
        }


@dataclass(frozen=True)
class WaitlistEntry:
    id: str
    client_name: str
    created_at: Optional[datetime]
    status: WaitlistStatus = WaitlistStatus.WAITING
    service_id: Optional[str] = None
    staff: Optional[StaffPreference] = None
    preferred_date: Optional[str] = None
    preferred_days: frozenset = field(default_factory=frozenset)
    preferred_time_range: Optional[TimeRange] = None
    ref_code: Optional[str] = None
    client_phone: Optional[str] = None
    client_email: Optional[str] = None
    notified_at: Optional[datetime] = None
    notified_slot: Optional[FreedSlot] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ref_code": self.ref_code,
            "client_name": self.client_name,
            "client_phone": self.client_phone,
            "client_email": self.client_email,
            "service_id": self.service_id,
            "staff_id": self.staff.to_raw() if self.staff else None,
            "preferred_date": self.preferred_date,
            "preferred_days": sorted(self.preferred_days),
            "preferred_time_range": (
                self.preferred_time_range.to_dict() if self.preferred_time_range else None
            ),
            "status": self.status.value,
            "created_at": isoformat(self.created_at),
            "notified_at": isoformat(self.notified_at),
            "notified_slot": self.notified_slot.to_dict() if self.notified_slot else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WaitlistEntry":
        slot = data.get("notified_slot")
        return cls(
            id=str(data["id"]),
            client_name=data.get("client_name", ""),
            created_at=parse_timestamp(data.get("created_at")),
            status=WaitlistStatus(data.get("status", WaitlistStatus.WAITING.value)),
            service_id=data.get("service_id") or None,
            staff=StaffPreference.parse(data.get("staff_id")),
            preferred_date=data.get("preferred_date") or None,
            preferred_days=normalize_days(data.get("preferred_days")),
            preferred_time_range=TimeRange.parse(data.get("preferred_time_range")),
            ref_code=data.get("ref_code"),
            client_phone=data.get("client_phone"),
            client_email=data.get("client_email"),
            notified_at=parse_timestamp(data.get("notified_at")),
            notified_slot=FreedSlot.from_dict(slot) if slot else None,
        )


def normalize_days(days) -> frozenset:
    if not days:
        return frozenset()
    if isinstance(days, str):
        days = [days]
    return frozenset(str(d).strip().lower() for d in days if d)


# ---------------------------------------------------------------------------
# Bookings (only the fields needed to derive a freed slot)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Booking:
    id: str
    client_name: str
    date: str
    time: str
    status: BookingStatus = BookingStatus.PENDING
    service_id: Optional[str] = None
    staff_id: Optional[str] = None
    notes: str = ""

    @property
    def holds_slot(self) -> bool:
        return self.status in (BookingStatus.PENDING, BookingStatus.CONFIRMED)

    def with_status(self, status: BookingStatus, note: str = "") -> "Booking":
        notes = self.notes
        if note:
            notes = f"{notes} | {note}" if notes else note
        return replace(self, status=status, notes=notes)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "client_name": self.client_name,
            "service_id": self.service_id,
            "staff_id": self.staff_id,
            "date": self.date,
            "time": self.time,
            "status": self.status.value,
            "notes": self.notes,
        }
