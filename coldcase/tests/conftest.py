"""
Pytest configuration and shared fixtures for the cold case backend tests.

Provides:
- A fixed clock (NOW) so day-count thresholds are deterministic
- Settings built without reading .env
- A CaseStore with the default checklist template and a coordinator over it
  (LogOnlyDispatcher, recompute queue drained inline)
- A mock asyncpg pool for repository and job tests
- A case_factory producing CaseRecords by days since last lead/tip/activity

Dependencies:
- pytest
- pytest-asyncio
"""

from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional
from unittest.mock import AsyncMock, Mock

import pytest

from coldcase.core.config import Settings
from coldcase.models.schemas import CaseRecord, RegisterReviewerRequest
from coldcase.services.checklist import default_template
from coldcase.services.coordinator import ColdCaseCoordinator
from coldcase.services.notifications import LogOnlyDispatcher
from coldcase.services.recompute import RecomputeQueue
from coldcase.services.store import CaseStore


NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)
TODAY = NOW.date()

# Anniversary (March 1) is well outside the 30-day window around NOW
DEFAULT_LAST_SEEN = date(2023, 3, 1)


def pytest_configure(config) -> None:
    config.addinivalue_line('markers', 'slow: marks tests as slow (deselect with -m "not slow")')


# ============================================================
# SETTINGS / STORE / COORDINATOR
# ============================================================

@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, slack_webhook_url=None)


@pytest.fixture
def store() -> CaseStore:
    store = CaseStore()
    store.add_template(default_template())
    return store


@pytest.fixture
def dispatcher() -> LogOnlyDispatcher:
    return LogOnlyDispatcher()


@pytest.fixture
def coordinator(store: CaseStore, settings: Settings, dispatcher: LogOnlyDispatcher) -> ColdCaseCoordinator:
    """Coordinator on the fixed clock. The recompute queue has no workers; call drain()."""
    recompute = RecomputeQueue(store, settings, today_fn=lambda: TODAY)
    return ColdCaseCoordinator(store, recompute, dispatcher, settings, now_fn=lambda: NOW)


# ============================================================
# CASE FACTORY
# ============================================================

@pytest.fixture
def case_factory() -> Callable[..., CaseRecord]:
    """
    Build a CaseRecord from day counts relative to NOW.

    Defaults describe a case that meets all three automated cold criteria.

    Usage:
        case = case_factory("case-1", lead_days=10)
    """

    def _make(
        case_id: str = "case-1",
        lead_days: Optional[int] = 91,
        tip_days: Optional[int] = 61,
        activity_days: Optional[int] = 181,
        last_seen_date: date = DEFAULT_LAST_SEEN,
        **overrides,
    ) -> CaseRecord:
        fields = dict(
            case_id=case_id,
            case_number=f"MP-{case_id.upper()}",
            last_seen_date=last_seen_date,
            last_lead_at=NOW - timedelta(days=lead_days) if lead_days is not None else None,
            last_tip_at=NOW - timedelta(days=tip_days) if tip_days is not None else None,
            last_activity_at=NOW - timedelta(days=activity_days) if activity_days is not None else None,
        )
        fields.update(overrides)
        return CaseRecord(**fields)

    return _make


@pytest.fixture
def reviewer_request() -> Callable[..., RegisterReviewerRequest]:
    def _make(name: str = "Det. Reyes", **overrides) -> RegisterReviewerRequest:
        return RegisterReviewerRequest(name=name, **overrides)

    return _make


# ============================================================
# DATABASE MOCK FIXTURES
# ============================================================

@pytest.fixture
def mock_db_pool() -> AsyncMock:
    """
    Mock asyncpg pool whose acquire() yields a connection mock.

    Usage:
        conn = mock_db_pool.acquire.return_value.__aenter__.return_value
        conn.fetchrow.return_value = {...}
    """
    pool = AsyncMock()

    conn = AsyncMock()
    conn.execute = AsyncMock(return_value=None)
    conn.executemany = AsyncMock(return_value=None)
    conn.fetch = AsyncMock(return_value=[])
    conn.fetchrow = AsyncMock(return_value=None)
    conn.fetchval = AsyncMock(return_value=None)

    transaction = AsyncMock()
    transaction.__aenter__ = AsyncMock(return_value=None)
    transaction.__aexit__ = AsyncMock(return_value=None)
    conn.transaction = Mock(return_value=transaction)

    acquire_context = AsyncMock()
    acquire_context.__aenter__ = AsyncMock(return_value=conn)
    acquire_context.__aexit__ = AsyncMock(return_value=None)
    pool.acquire = Mock(return_value=acquire_context)

    pool.release = AsyncMock(return_value=None)
    pool.close = AsyncMock(return_value=None)
    return pool


@pytest.fixture
def mock_slack_response() -> Mock:
    response = Mock()
    response.status_code = 200
    response.body = 'ok'
    return response
