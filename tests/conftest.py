"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Generator

import pytest
from fastapi.testclient import TestClient

from shopqueue import shop_store
from shopqueue.main import app
from shopqueue.models import QueueEntry, QueueStatus, WaitlistEntry

# Wednesday 2024-05-01, 11:00 in America/New_York
NOW = datetime(2024, 5, 1, 15, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture(autouse=True)
def clean_store() -> Generator[None, None, None]:
    """Every test starts with no shops."""
    shop_store.reset()
    yield
    shop_store.reset()


@pytest.fixture
def client() -> TestClient:
    """HTTP client without lifespan, so the background scheduler stays off."""
    return TestClient(app)


@pytest.fixture
def make_walkin():
    """Factory for queue entries; ``remaining`` builds an in-progress job with that much work left."""

    def _make(
        entry_id: str,
        duration=None,
        position=None,
        status=QueueStatus.WAITING,
        remaining=None,
        joined_minutes_ago: int = 0,
    ) -> QueueEntry:
        started_at = None
        if remaining is not None:
            status = QueueStatus.IN_PROGRESS
            started_at = NOW - timedelta(minutes=(duration or 30) - remaining)
        return QueueEntry(
            id=entry_id,
            client_name=f"Client {entry_id}",
            joined_at=NOW - timedelta(minutes=joined_minutes_ago),
            status=status,
            position=position,
            estimated_duration_minutes=duration,
            started_at=started_at,
        )

    return _make


@pytest.fixture
def make_waitlist_entry():
    """Factory for waitlist entries created ``age_minutes`` before NOW."""

    def _make(
        entry_id: str,
        age_minutes: int = 0,
        service_id=None,
        staff_id=None,
        preferred_date=None,
        preferred_days=(),
        time_range=None,
        status="waiting",
    ) -> WaitlistEntry:
        return WaitlistEntry.from_dict({
            "id": entry_id,
            "client_name": f"Client {entry_id}",
            "created_at": (NOW - timedelta(minutes=age_minutes)).isoformat(),
            "service_id": service_id,
            "staff_id": staff_id,
            "preferred_date": preferred_date,
            "preferred_days": list(preferred_days),
            "preferred_time_range": time_range,
            "status": status,
        })

    return _make
