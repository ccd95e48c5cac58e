"""
Shop store: in-memory walk-in queue, waitlist and bookings per shop.

In production, replace this module with calls to your booking database. The
queue engine never touches this state directly: each mutation reads a
snapshot, runs a pure transition from ``queue_state`` and commits the result
as one write under the shop lock, bumping the shop's ``version``.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from shopqueue import queue_state, wait_estimator, waitlist
from shopqueue.config import settings
from shopqueue.models import Booking, BookingStatus, FreedSlot, QueueStatus
from shopqueue.queue_state import EntryNotFound, QueueError
from shopqueue.timemodel import utcnow

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Data store
# ---------------------------------------------------------------------------


@dataclass
class Shop:
    shop_id: str
    walkins: list = field(default_factory=list)
    waitlist: list = field(default_factory=list)
    bookings: dict = field(default_factory=dict)
    staff: dict = field(default_factory=dict)
    services: dict = field(default_factory=dict)
    version: int = 0


shops: dict[str, Shop] = {}
_lock = threading.RLock()


def get_shop(shop_id: str) -> Shop:
    with _lock:
        if shop_id not in shops:
            shops[shop_id] = Shop(shop_id=shop_id)
        return shops[shop_id]


def reset() -> None:
    with _lock:
        shops.clear()


def _commit(shop: Shop, **changes) -> None:
    for name, value in changes.items():
        setattr(shop, name, value)
    shop.version += 1


def _error(exc: QueueError) -> dict:
    code = "not_found" if isinstance(exc, EntryNotFound) else "rejected"
    return {"error": str(exc), "code": code}


# ---------------------------------------------------------------------------
# Staff & services (only what the estimator needs)
# ---------------------------------------------------------------------------


def register_staff(shop_id: str, staff_id: str, name: str = "", active: bool = True) -> dict:
    with _lock:
        shop = get_shop(shop_id)
        record = {"id": staff_id, "name": name or staff_id, "active": active}
        _commit(shop, staff={**shop.staff, staff_id: record})
    return record


def register_service(shop_id: str, service_id: str, name: str = "", duration_minutes: int = 0) -> dict:
    with _lock:
        shop = get_shop(shop_id)
        record = {
            "id": service_id,
            "name": name or service_id,
            "duration": duration_minutes or settings.default_service_minutes,
        }
        _commit(shop, services={**shop.services, service_id: record})
    return record


# ---------------------------------------------------------------------------
# Walk-ins
# ---------------------------------------------------------------------------


def _estimate_inputs(shop: Shop) -> tuple:
    waiting = queue_state.waiting_in_order(shop.walkins)
    in_progress = [w for w in shop.walkins if w.status == QueueStatus.IN_PROGRESS]
    servers = wait_estimator.active_staff_count(shop.staff.values())
    return waiting, in_progress, servers


def add_walkin(
    shop_id: str,
    client_name: str,
    service_id: Optional[str] = None,
    staff_id: Optional[str] = None,
    estimated_duration_minutes: Optional[int] = None,
    now: Optional[datetime] = None,
) -> dict:
    """Put a walk-in at the back of the queue and quote their wait."""
    now = now or utcnow()
    with _lock:
        shop = get_shop(shop_id)
        service = shop.services.get(service_id) if service_id else None
        duration = (service or {}).get("duration") or estimated_duration_minutes

        waiting, in_progress, servers = _estimate_inputs(shop)
        quoted = wait_estimator.estimate_new_arrival(
            waiting, in_progress, servers, settings.default_service_minutes, now
        )
        walkins, entry = queue_state.join_queue(
            shop.walkins, client_name, service_id, staff_id, duration, now
        )
        _commit(shop, walkins=walkins)

    logger.info("Walk-in %s joined %s at position %d", entry.id, shop_id, entry.position)
    return {"success": True, "walkin": entry.to_dict(), "estimated_wait": quoted}


def _apply_walkin(
    shop_id: str,
    walkin_id: str,
    transition: Callable,
    label: str,
    **kwargs,
) -> dict:
    with _lock:
        shop = get_shop(shop_id)
        try:
            walkins = transition(shop.walkins, walkin_id, **kwargs)
        except QueueError as exc:
            logger.warning("Walk-in %s %s rejected: %s", walkin_id, label, exc)
            return _error(exc)
        _commit(shop, walkins=walkins)
        entry = next(w for w in walkins if w.id == walkin_id)

    logger.info("Walk-in %s %s (shop %s)", walkin_id, label, shop_id)
    return {"success": True, "walkin": entry.to_dict()}


def start_walkin(shop_id: str, walkin_id: str, now: Optional[datetime] = None) -> dict:
    return _apply_walkin(shop_id, walkin_id, queue_state.start_service, "started", now=now)


def complete_walkin(shop_id: str, walkin_id: str, now: Optional[datetime] = None) -> dict:
    return _apply_walkin(shop_id, walkin_id, queue_state.complete_service, "completed", now=now)


def no_show_walkin(shop_id: str, walkin_id: str, now: Optional[datetime] = None) -> dict:
    return _apply_walkin(shop_id, walkin_id, queue_state.mark_no_show, "marked no-show", now=now)


def move_walkin(shop_id: str, walkin_id: str, direction: str) -> dict:
    transition = queue_state.move_up if direction == "up" else queue_state.move_down
    return _apply_walkin(shop_id, walkin_id, transition, f"moved {direction}")


def walkin_board(shop_id: str, now: Optional[datetime] = None) -> dict:
    """Everything the front desk shows: queue with waits, chairs in use, stats."""
    now = now or utcnow()
    with _lock:
        shop = get_shop(shop_id)
        walkins = list(shop.walkins)
        bookings = list(shop.bookings.values())
        version = shop.version
        waiting, in_progress, servers = _estimate_inputs(shop)

    default = settings.default_service_minutes
    waits = wait_estimator.estimate_all_waits(waiting, in_progress, servers, default, now)
    in_progress.sort(key=lambda w: w.started_at or now)

    return {
        "version": version,
        "staff_count": servers,
        "waiting": [{**w.to_dict(), "estimated_wait": waits[w.id]} for w in waiting],
        "in_progress": [w.to_dict() for w in in_progress],
        "new_arrival_wait": wait_estimator.estimate_new_arrival(
            waiting, in_progress, servers, default, now
        ),
        "stats": wait_estimator.queue_stats(walkins, now),
        "upcoming_bookings": [
            b.to_dict() for b in wait_estimator.upcoming_bookings(bookings, now)
        ],
    }


# ---------------------------------------------------------------------------
# Waitlist
# ---------------------------------------------------------------------------


def join_waitlist(shop_id: str, client_name: str, now: Optional[datetime] = None, **preferences) -> dict:
    entry = waitlist.new_waitlist_entry(client_name, now=now, **preferences)
    with _lock:
        shop = get_shop(shop_id)
        entries = shop.waitlist + [entry]
        _commit(shop, waitlist=entries)
        position = waitlist.waitlist_position(entries, entry)

    logger.info("Waitlist entry %s (%s) added to %s", entry.id, entry.ref_code, shop_id)
    return {"success": True, "entry": entry.to_dict(), "position": position}


def list_waitlist(shop_id: str, status: Optional[str] = "waiting") -> list[dict]:
    with _lock:
        entries = list(get_shop(shop_id).waitlist)
    return [e.to_dict() for e in waitlist.get_waitlist(entries, status)]


def waitlist_status(shop_id: str, ref_code: str) -> dict:
    """Client self-lookup by reference code."""
    with _lock:
        entries = list(get_shop(shop_id).waitlist)
    code = ref_code.strip().upper()
    for entry in entries:
        if entry.ref_code == code:
            return {
                "entry": entry.to_dict(),
                "position": waitlist.waitlist_position(entries, entry),
            }
    return {"error": f"No waitlist entry found with reference code {code}.", "code": "not_found"}


def notify_waitlist(
    shop_id: str,
    entry_ids: Iterable[str],
    slot: Optional[FreedSlot] = None,
    now: Optional[datetime] = None,
) -> dict:
    entry_ids = list(entry_ids)
    with _lock:
        shop = get_shop(shop_id)
        try:
            entries = queue_state.notify_many(shop.waitlist, entry_ids, slot, now)
        except QueueError as exc:
            logger.warning("Waitlist notify rejected in %s: %s", shop_id, exc)
            return _error(exc)
        _commit(shop, waitlist=entries)

    by_id = {e.id: e for e in entries}
    notified = [by_id[i].to_dict() for i in dict.fromkeys(entry_ids)]
    for entry in notified:
        logger.info("Waitlist offer queued for %s (%s)", entry["client_name"], entry["id"])
    return {"success": True, "notified": notified}


def _apply_waitlist(shop_id: str, entry_id: str, transition: Callable, label: str) -> dict:
    with _lock:
        shop = get_shop(shop_id)
        try:
            entries, entry = queue_state.apply_to_waitlist(shop.waitlist, entry_id, transition)
        except QueueError as exc:
            logger.warning("Waitlist entry %s %s rejected: %s", entry_id, label, exc)
            return _error(exc)
        _commit(shop, waitlist=entries)

    logger.info("Waitlist entry %s %s (shop %s)", entry_id, label, shop_id)
    return {"success": True, "entry": entry.to_dict()}


def book_waitlist(shop_id: str, entry_id: str) -> dict:
    return _apply_waitlist(shop_id, entry_id, queue_state.mark_booked, "booked")


def remove_from_waitlist(shop_id: str, entry_id: str) -> dict:
    return _apply_waitlist(shop_id, entry_id, queue_state.expire, "removed")


def match_slot(shop_id: str, slot: FreedSlot) -> list[dict]:
    """Who would be offered ``slot`` right now; changes nothing."""
    with _lock:
        entries = list(get_shop(shop_id).waitlist)
    return [e.to_dict() for e in waitlist.find_matches(entries, slot)]


def expire_stale_offers(now: Optional[datetime] = None) -> int:
    """Expire notified entries older than the offer window, across all shops."""
    now = now or utcnow()
    max_age = timedelta(hours=settings.offer_expiry_hours)
    total = 0
    with _lock:
        for shop in shops.values():
            entries, expired = queue_state.expire_stale_offers(shop.waitlist, max_age, now)
            if expired:
                _commit(shop, waitlist=entries)
                total += len(expired)
                for entry_id in expired:
                    logger.info("Waitlist entry %s expired (offer lapsed)", entry_id)
    return total


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------


def _slot_taken(shop: Shop, date_str: str, time_str: str, staff_id: Optional[str]) -> bool:
    return any(
        b.holds_slot and b.date == date_str and b.time == time_str and b.staff_id == staff_id
        for b in shop.bookings.values()
    )


def create_booking(
    shop_id: str,
    client_name: str,
    date_str: str,
    time_str: str,
    service_id: Optional[str] = None,
    staff_id: Optional[str] = None,
    confirmed: bool = False,
) -> dict:
    with _lock:
        shop = get_shop(shop_id)
        if _slot_taken(shop, date_str, time_str, staff_id):
            return {
                "error": f"{time_str} on {date_str} is no longer available. Please choose another slot.",
                "code": "rejected",
            }
        booking = Booking(
            id=str(uuid.uuid4())[:8].upper(),
            client_name=client_name,
            date=date_str,
            time=time_str,
            service_id=service_id or None,
            staff_id=staff_id or None,
            status=BookingStatus.CONFIRMED if confirmed else BookingStatus.PENDING,
        )
        _commit(shop, bookings={**shop.bookings, booking.id: booking})

    logger.info("Booking %s created for %s %s", booking.id, date_str, time_str)
    return {"success": True, "booking": booking.to_dict()}


def _release_booking(
    shop_id: str,
    booking_id: str,
    status: BookingStatus,
    reason: str = "",
    now: Optional[datetime] = None,
) -> dict:
    """Cancel or reject a booking, then reconcile the freed slot against the waitlist."""
    now = now or utcnow()
    label = "Cancelled" if status == BookingStatus.CANCELLED else "Rejected"
    with _lock:
        shop = get_shop(shop_id)
        booking = shop.bookings.get(booking_id)
        if not booking:
            return {"error": f"No booking found with ID {booking_id}.", "code": "not_found"}
        if not booking.holds_slot:
            return {"error": f"Booking {booking_id} is already {booking.status.value}.", "code": "rejected"}

        released = booking.with_status(status, f"{label}: {reason}" if reason else label)
        slot = FreedSlot.from_booking(released)
        matches = waitlist.find_matches(shop.waitlist, slot)
        offered = matches[: settings.waitlist_max_offers] if settings.waitlist_auto_notify else []

        entries = shop.waitlist
        if offered:
            entries = queue_state.notify_many(entries, [e.id for e in offered], slot, now)
        _commit(shop, bookings={**shop.bookings, booking_id: released}, waitlist=entries)

    logger.info("Booking %s %s; %d waitlist match(es)", booking_id, label.lower(), len(matches))
    by_id = {e.id: e for e in entries}
    return {
        "success": True,
        "booking": released.to_dict(),
        "freed_slot": slot.to_dict(),
        "matches": [e.to_dict() for e in matches],
        "notified": [by_id[e.id].to_dict() for e in offered],
    }


def cancel_booking(shop_id: str, booking_id: str, reason: str = "", now: Optional[datetime] = None) -> dict:
    return _release_booking(shop_id, booking_id, BookingStatus.CANCELLED, reason, now)


def reject_booking(shop_id: str, booking_id: str, reason: str = "", now: Optional[datetime] = None) -> dict:
    return _release_booking(shop_id, booking_id, BookingStatus.REJECTED, reason, now)
