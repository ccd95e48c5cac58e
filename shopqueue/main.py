"""
Walk-in queue & waitlist service (FastAPI server)

Handles:
  - Walk-in queue board with live wait estimates
  - Walk-in lifecycle (start / complete / no-show / reorder)
  - Online waitlist sign-up, self-lookup and staff actions
  - Booking cancellation / rejection -> waitlist reconciliation
  - Background expiry of stale waitlist offers (APScheduler)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from shopqueue import shop_store
from shopqueue.config import settings
from shopqueue.models import FreedSlot
from shopqueue.scheduler import get_scheduler

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# App lifespan: start/stop APScheduler
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = get_scheduler()
    scheduler.start()
    logger.info("Scheduler started with %d jobs", len(scheduler.get_jobs()))
    yield
    scheduler.shutdown(wait=False)


app = FastAPI(
    title="Walk-in Queue & Waitlist",
    version="1.0.0",
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Utilities
# ---------------------------------------------------------------------------

_STATUS_FOR_CODE = {"not_found": 404, "rejected": 409}


async def _body(request: Request) -> dict:
    try:
        body = await request.json()
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="JSON object expected")
    return body


def _required(body: dict, key: str):
    value = body.get(key)
    if value in (None, ""):
        raise HTTPException(status_code=400, detail=f"'{key}' is required")
    return value


def _respond(result: dict, status_code: int = 200) -> JSONResponse:
    if "error" in result:
        raise HTTPException(
            status_code=_STATUS_FOR_CODE.get(result.get("code"), 400),
            detail=result["error"],
        )
    return JSONResponse(result, status_code=status_code)


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health")
async def health():
    return {
        "status": "ok",
        "business": settings.business_name,
        "shops": len(shop_store.shops),
        "walkins_waiting": sum(
            1 for shop in shop_store.shops.values() for w in shop.walkins if w.is_waiting
        ),
    }


# ---------------------------------------------------------------------------
# Staff & services
# ---------------------------------------------------------------------------

@app.post("/shops/{shop_id}/staff")
async def add_staff(shop_id: str, request: Request):
    body = await _body(request)
    record = shop_store.register_staff(
        shop_id,
        staff_id=str(_required(body, "id")),
        name=body.get("name", ""),
        active=body.get("active", True) is not False,
    )
    return JSONResponse(record, status_code=201)


@app.post("/shops/{shop_id}/services")
async def add_service(shop_id: str, request: Request):
    body = await _body(request)
    record = shop_store.register_service(
        shop_id,
        service_id=str(_required(body, "id")),
        name=body.get("name", ""),
        duration_minutes=int(body.get("duration") or 0),
    )
    return JSONResponse(record, status_code=201)


# ---------------------------------------------------------------------------
# Walk-ins
# ---------------------------------------------------------------------------

@app.get("/shops/{shop_id}/walkins")
async def walkin_board(shop_id: str):
    return JSONResponse(shop_store.walkin_board(shop_id))


@app.post("/shops/{shop_id}/walkins")
async def add_walkin(shop_id: str, request: Request):
    body = await _body(request)
    duration = body.get("estimated_duration_minutes")
    result = shop_store.add_walkin(
        shop_id,
        client_name=_required(body, "client_name"),
        service_id=body.get("service_id"),
        staff_id=body.get("staff_id"),
        estimated_duration_minutes=int(duration) if duration else None,
    )
    return _respond(result, status_code=201)


@app.post("/shops/{shop_id}/walkins/{walkin_id}/start")
async def start_walkin(shop_id: str, walkin_id: str):
    return _respond(shop_store.start_walkin(shop_id, walkin_id))


@app.post("/shops/{shop_id}/walkins/{walkin_id}/complete")
async def complete_walkin(shop_id: str, walkin_id: str):
    return _respond(shop_store.complete_walkin(shop_id, walkin_id))


@app.post("/shops/{shop_id}/walkins/{walkin_id}/no-show")
async def no_show_walkin(shop_id: str, walkin_id: str):
    return _respond(shop_store.no_show_walkin(shop_id, walkin_id))


@app.post("/shops/{shop_id}/walkins/{walkin_id}/move-up")
async def move_walkin_up(shop_id: str, walkin_id: str):
    return _respond(shop_store.move_walkin(shop_id, walkin_id, "up"))


@app.post("/shops/{shop_id}/walkins/{walkin_id}/move-down")
async def move_walkin_down(shop_id: str, walkin_id: str):
    return _respond(shop_store.move_walkin(shop_id, walkin_id, "down"))


# ---------------------------------------------------------------------------
# Waitlist
# ---------------------------------------------------------------------------

@app.post("/shops/{shop_id}/waitlist")
async def join_waitlist(shop_id: str, request: Request):
    body = await _body(request)
    result = shop_store.join_waitlist(
        shop_id,
        client_name=_required(body, "client_name"),
        client_phone=body.get("client_phone"),
        client_email=body.get("client_email"),
        service_id=body.get("service_id"),
        staff_id=body.get("staff_id"),
        preferred_date=body.get("preferred_date"),
        preferred_days=body.get("preferred_days"),
        preferred_time_range=body.get("preferred_time_range"),
    )
    return _respond(result, status_code=201)


@app.get("/shops/{shop_id}/waitlist")
async def list_waitlist(shop_id: str, status: str = "waiting"):
    return JSONResponse(shop_store.list_waitlist(shop_id, status))


@app.get("/shops/{shop_id}/waitlist/ref/{ref_code}")
async def waitlist_lookup(shop_id: str, ref_code: str):
    return _respond(shop_store.waitlist_status(shop_id, ref_code))


@app.post("/shops/{shop_id}/waitlist/notify")
async def notify_waitlist(shop_id: str, request: Request):
    """Body: {"entry_ids": [...], "slot": {"date", "time", "staff_id", "service_id"}}"""
    body = await _body(request)
    entry_ids = _required(body, "entry_ids")
    if isinstance(entry_ids, str):
        entry_ids = [entry_ids]
    slot = FreedSlot.from_dict(body["slot"]) if body.get("slot") else None
    return _respond(shop_store.notify_waitlist(shop_id, entry_ids, slot))


@app.post("/shops/{shop_id}/waitlist/{entry_id}/book")
async def book_waitlist(shop_id: str, entry_id: str):
    return _respond(shop_store.book_waitlist(shop_id, entry_id))


@app.delete("/shops/{shop_id}/waitlist/{entry_id}")
async def remove_waitlist(shop_id: str, entry_id: str):
    return _respond(shop_store.remove_from_waitlist(shop_id, entry_id))


@app.post("/shops/{shop_id}/match")
async def match_slot(shop_id: str, request: Request):
    """Preview which waitlist entries a slot would be offered to."""
    body = await _body(request)
    return JSONResponse(shop_store.match_slot(shop_id, FreedSlot.from_dict(body)))


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------

@app.post("/shops/{shop_id}/bookings")
async def create_booking(shop_id: str, request: Request):
    body = await _body(request)
    result = shop_store.create_booking(
        shop_id,
        client_name=_required(body, "client_name"),
        date_str=_required(body, "date"),
        time_str=_required(body, "time"),
        service_id=body.get("service_id"),
        staff_id=body.get("staff_id"),
        confirmed=bool(body.get("confirmed", False)),
    )
    return _respond(result, status_code=201)


async def _reason(request: Request) -> str:
    if not await request.body():
        return ""
    return str((await _body(request)).get("reason", ""))


@app.post("/shops/{shop_id}/bookings/{booking_id}/cancel")
async def cancel_booking(shop_id: str, booking_id: str, request: Request):
    reason = await _reason(request)
    return _respond(shop_store.cancel_booking(shop_id, booking_id, reason))


@app.post("/shops/{shop_id}/bookings/{booking_id}/reject")
async def reject_booking(shop_id: str, booking_id: str, request: Request):
    reason = await _reason(request)
    return _respond(shop_store.reject_booking(shop_id, booking_id, reason))


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------

@app.get("/admin/scheduler/jobs")
async def admin_scheduler_jobs():
    """List scheduled background jobs and their next run times."""
    scheduler = get_scheduler()
    jobs = [
        {
            "id": job.id,
            "next_run": (
                job.next_run_time.isoformat()
                if getattr(job, "next_run_time", None)
                else None
            ),
        }
        for job in scheduler.get_jobs()
    ]
    return JSONResponse(jobs)
