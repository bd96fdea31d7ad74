"""
Case repository adapter and SQL builder tests.

asyncpg is never contacted: the query helpers and the pool are patched at
the repository module.
"""

import json
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, patch

import asyncpg
import pytest

from coldcase.core.errors import TransientDependencyError
from coldcase.models.enums import ColdCaseClassification
from coldcase.models.schemas import ColdCaseMetricsSnapshot, ColdCaseProfile
from coldcase.services import repository
from coldcase.services.metrics import load_persisted_history
from coldcase.sql import get_case_records_query, get_profile_upsert_query


AUTO = ColdCaseClassification.AUTO_CLASSIFIED


def _case_row(case_id=101, **overrides) -> dict:
    row = {
        "case_id": case_id,
        "case_number": f"MP-{case_id}",
        "jurisdiction_id": "ON-TPS",
        "region": "Ontario",
        "last_seen_date": date(2021, 9, 14),
        "last_seen_latitude": 43.65,
        "last_seen_longitude": -79.38,
        "age_at_disappearance": 16,
        "gender": "female",
        "is_minor": True,
        "is_indigenous": False,
        "is_high_vulnerability": False,
        "is_resolved": False,
        "circumstance_tags": None,
        "last_lead_at": datetime(2025, 1, 2, tzinfo=timezone.utc),
        "last_tip_at": None,
        "last_activity_at": None,
        "manually_marked_cold": False,
        "resource_constrained": False,
        "revival_approved": False,
    }
    row.update(overrides)
    return row


class TestCaseRecordsQuery:

    def test_default_excludes_resolved(self) -> None:
        query = get_case_records_query()

        assert "c.status <> 'resolved'" in query
        assert "$1" not in query

    def test_jurisdiction_parameter(self) -> None:
        query = get_case_records_query(include_resolved=True, jurisdiction="ON-TPS")

        assert "WHERE c.jurisdiction_id = $1" in query
        assert "resolved'" not in query.split("FROM")[1]

    def test_upsert_keeps_newer_versions(self) -> None:
        assert "WHERE cold_case_profiles.version <= EXCLUDED.version" in get_profile_upsert_query()


@pytest.mark.asyncio
class TestLoadCases:

    async def test_rows_become_case_records(self) -> None:
        rows = [_case_row(), _case_row(102, circumstance_tags=["hitchhiking"])]

        with patch("coldcase.services.repository.execute_query", new=AsyncMock(return_value=rows)) as query:
            cases = await repository.load_cases(jurisdiction="ON-TPS")

        assert query.await_args.args[1:] == ("ON-TPS",)
        assert [c.case_id for c in cases] == ["101", "102"]
        assert cases[0].circumstance_tags == []
        assert cases[1].circumstance_tags == ["hitchhiking"]
        assert cases[0].is_minor is True

    async def test_database_error_is_transient(self) -> None:
        failing = AsyncMock(side_effect=OSError("connection refused"))

        with patch("coldcase.services.repository.execute_query", new=failing):
            with pytest.raises(TransientDependencyError) as exc_info:
                await repository.load_cases()

        assert exc_info.value.code == "dependency_unavailable"

    async def test_single_case_missing(self) -> None:
        with patch("coldcase.services.repository.execute_query_one", new=AsyncMock(return_value=None)):
            assert await repository.load_case("404") is None

    async def test_profiles_from_json_payload(self) -> None:
        profile = ColdCaseProfile(case_id="101", classification=AUTO)
        payload = json.dumps(profile.model_dump(mode="json", by_alias=True))

        with patch("coldcase.services.repository.execute_query",
                   new=AsyncMock(return_value=[{"payload": payload}])):
            [loaded] = await repository.load_profiles()

        assert loaded.id == profile.id
        assert loaded.classification == ColdCaseClassification.AUTO_CLASSIFIED


@pytest.mark.asyncio
class TestPersistProfiles:

    async def test_nothing_to_write(self) -> None:
        assert await repository.persist_profiles([]) == 0

    async def test_batch_upsert_in_transaction(self, mock_db_pool) -> None:
        conn = mock_db_pool.acquire.return_value.__aenter__.return_value
        profiles = [
            ColdCaseProfile(case_id="101", classification=AUTO, revival_priority_score=42.5, version=3),
            ColdCaseProfile(case_id="102", classification=AUTO),
        ]

        with patch("coldcase.services.repository.get_db_pool", new=AsyncMock(return_value=mock_db_pool)):
            written = await repository.persist_profiles(profiles)

        assert written == 2
        conn.transaction.assert_called_once()
        query, args = conn.executemany.await_args.args
        assert query == get_profile_upsert_query()
        assert args[0][1:4] == ("101", profiles[0].classification.value, 42.5)
        assert args[0][5] == 3

    async def test_write_failure_is_transient(self, mock_db_pool) -> None:
        conn = mock_db_pool.acquire.return_value.__aenter__.return_value
        conn.executemany.side_effect = asyncpg.PostgresError("deadlock detected")

        with patch("coldcase.services.repository.get_db_pool", new=AsyncMock(return_value=mock_db_pool)):
            with pytest.raises(TransientDependencyError):
                await repository.persist_profiles([ColdCaseProfile(case_id="101", classification=AUTO)])


@pytest.mark.asyncio
class TestPersistedMetricsHistory:

    async def test_history_oldest_first(self) -> None:
        newer = ColdCaseMetricsSnapshot(snapshot_at=datetime(2026, 6, 2, tzinfo=timezone.utc), total_cold_cases=5)
        older = ColdCaseMetricsSnapshot(snapshot_at=datetime(2026, 6, 1, tzinfo=timezone.utc), total_cold_cases=4)
        rows = [
            {"snapshot_date": date(2026, 6, 2), "payload": newer.model_dump(mode="json", by_alias=True)},
            {"snapshot_date": date(2026, 6, 1), "payload": json.dumps(older.model_dump(mode="json", by_alias=True))},
        ]

        with patch("coldcase.services.metrics.execute_query", new=AsyncMock(return_value=rows)) as query:
            history = await load_persisted_history(limit=2)

        assert query.await_args.args[1] == 2
        assert [s.total_cold_cases for s in history] == [4, 5]
