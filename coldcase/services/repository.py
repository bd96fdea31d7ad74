"""
Case Repository adapter.

Loads CaseRecords from PostgreSQL through the shared asyncpg pool and writes
cold case profiles back. Database failures surface as
TransientDependencyError so the batch pass can skip and retry next run.

Usage:
    cases = await load_cases()
    for case in cases:
        await coordinator.upsert_case(case)

    await persist_profiles(store.profiles.values())
"""

import json
import logging
from typing import Any, Iterable, List, Mapping, Optional

import asyncpg

from coldcase.core.database import execute_query, execute_query_one, get_db_pool
from coldcase.core.errors import TransientDependencyError
from coldcase.models.schemas import CaseRecord, ColdCaseProfile
from coldcase.sql import (
    get_case_record_query,
    get_case_records_query,
    get_profile_upsert_query,
    get_profiles_query,
)


logger = logging.getLogger(__name__)


def record_to_case(row: Mapping[str, Any]) -> CaseRecord:
    """Build a CaseRecord from a repository row."""
    data = dict(row)
    data["case_id"] = str(data["case_id"])
    data["circumstance_tags"] = list(data.get("circumstance_tags") or [])
    return CaseRecord.model_validate(data)


async def load_cases(include_resolved: bool = False, jurisdiction: Optional[str] = None) -> List[CaseRecord]:
    """
    Load every tracked case from the repository.

    Raises:
        TransientDependencyError: if the repository query fails
    """
    query = get_case_records_query(include_resolved=include_resolved, jurisdiction=jurisdiction)
    args = [jurisdiction] if jurisdiction is not None else []
    try:
        rows = await execute_query(query, *args)
    except (asyncpg.PostgresError, OSError) as e:
        raise TransientDependencyError(f"Case repository unavailable: {e}") from e

    cases = [record_to_case(row) for row in rows]
    logger.info(f"Loaded {len(cases)} cases from the case repository")
    return cases


async def load_case(case_id: str) -> Optional[CaseRecord]:
    try:
        row = await execute_query_one(get_case_record_query(), case_id)
    except (asyncpg.PostgresError, OSError) as e:
        raise TransientDependencyError(f"Case repository unavailable: {e}") from e
    return record_to_case(row) if row else None


async def load_profiles() -> List[ColdCaseProfile]:
    """Persisted cold case profiles, used to warm the store at startup."""
    try:
        rows = await execute_query(get_profiles_query())
    except (asyncpg.PostgresError, OSError) as e:
        raise TransientDependencyError(f"Case repository unavailable: {e}") from e

    profiles = []
    for row in rows:
        payload = row["payload"]
        if isinstance(payload, str):
            payload = json.loads(payload)
        profiles.append(ColdCaseProfile.model_validate(payload))
    return profiles


def _profile_args(profile: ColdCaseProfile) -> tuple:
    return (
        profile.id,
        profile.case_id,
        profile.classification.value,
        profile.revival_priority_score,
        profile.next_review_date,
        profile.version,
        json.dumps(profile.model_dump(mode="json", by_alias=True)),
    )


async def persist_profiles(profiles: Iterable[ColdCaseProfile]) -> int:
    """
    Upsert profiles in one transaction. Rows already holding a newer
    version are left alone.

    Returns:
        Number of profiles written

    Raises:
        TransientDependencyError: if the write fails
    """
    args = [_profile_args(p) for p in profiles]
    if not args:
        return 0

    pool = await get_db_pool()
    try:
        async with pool.acquire() as conn:
            async with conn.transaction():
                await conn.executemany(get_profile_upsert_query(), args)
    except (asyncpg.PostgresError, OSError) as e:
        raise TransientDependencyError(f"Failed to persist profiles: {e}") from e

    logger.info(f"Persisted {len(args)} cold case profiles")
    return len(args)
