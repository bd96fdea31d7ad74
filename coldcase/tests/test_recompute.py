"""
Priority recompute queue and trigger stream tests.

Covers request coalescing, abandonment of superseded computations, the
optimistic version check on commit, and the sequence-numbered trigger log.
"""

import asyncio
from unittest.mock import patch

import pytest

from coldcase.core.errors import ConflictError
from coldcase.models.enums import (
    PatternConfidence,
    PatternDetermination,
    PatternMatchType,
    PriorityFactorKind,
    RevivalTriggerType,
)
from coldcase.models.schemas import PatternMatch, PatternReviewRequest
from coldcase.services.priority import compute_priority, score_from_factors
from coldcase.services.triggers import TriggerLog


def _medium_match(source: str, other: str) -> PatternMatch:
    return PatternMatch(
        source_case_id=source,
        matched_case_id=other,
        match_type=PatternMatchType.GEOGRAPHIC,
        similarity_score=0.5,
        confidence=PatternConfidence.MEDIUM,
    )


@pytest.mark.asyncio
class TestCoalescing:

    async def test_requests_coalesce_per_case(self, coordinator, case_factory) -> None:
        queue = coordinator.recompute
        await coordinator.upsert_case(case_factory())
        await queue.drain()

        for _ in range(3):
            queue.request("case-1")

        assert queue.pending == 1
        assert queue.generation("case-1") == 4

    async def test_two_confirmed_matches_commit_once(self, coordinator, case_factory) -> None:
        for case_id in ("case-1", "case-2", "case-3"):
            await coordinator.upsert_case(case_factory(case_id))
        queue = coordinator.recompute
        await queue.drain()

        first = coordinator.store.add_pattern_match(_medium_match("case-1", "case-2"))
        second = coordinator.store.add_pattern_match(_medium_match("case-3", "case-1"))
        for match in (first, second):
            await coordinator.review_pattern_match(match.id, PatternReviewRequest(
                determination=PatternDetermination.CONFIRMED, reviewed_by="analyst-1",
            ))

        profile = coordinator.store.profile_for_case("case-1")
        version = profile.version
        committed = queue.stats.committed
        assert queue.pending == 3

        await queue.drain()

        assert queue.stats.committed == committed + 3
        assert profile.version == version + 1
        [pattern_factor] = [
            f for f in profile.revival_priority_factors if f.factor.startswith("pattern:")
        ]
        assert pattern_factor.weight == 12.0
        assert profile.revival_priority_score == 12.0
        assert score_from_factors(profile.revival_priority_factors) == profile.revival_priority_score

        triggers = coordinator.store.triggers.for_case("case-1")
        assert [t.trigger_type for t in triggers].count(RevivalTriggerType.PATTERN_MATCH) == 2

    async def test_queue_with_workers(self, coordinator, case_factory) -> None:
        queue = coordinator.recompute
        await coordinator.upsert_case(case_factory())
        await queue.start()
        try:
            queue.request("case-1")
            await queue.drain()
        finally:
            await queue.stop()

        assert queue.pending == 0
        assert coordinator.store.profile_for_case("case-1").priority_computed_at is not None


@pytest.mark.asyncio
class TestSupersessionAndConflicts:

    async def test_superseded_computation_abandoned(self, coordinator, case_factory) -> None:
        queue = coordinator.recompute
        await coordinator.upsert_case(case_factory())
        await queue.drain()
        profile = coordinator.store.profile_for_case("case-1")
        version = profile.version

        def newer_request_arrives(*args):
            queue._generation["case-1"] += 1
            return 42.0, []

        with patch("coldcase.services.recompute.compute_priority", side_effect=newer_request_arrives):
            committed = await queue.recompute_now("case-1")

        assert committed is False
        assert queue.stats.abandoned == 1
        assert profile.revival_priority_score == 0.0
        assert profile.version == version

    async def test_version_conflict_retries_once(self, coordinator, case_factory) -> None:
        queue = coordinator.recompute
        await coordinator.upsert_case(case_factory())
        await queue.drain()
        profile = coordinator.store.profile_for_case("case-1")
        calls = []

        def concurrent_write_once(*args):
            calls.append(1)
            if len(calls) == 1:
                profile.version += 1
            return compute_priority(*args)

        with patch("coldcase.services.recompute.compute_priority", side_effect=concurrent_write_once):
            committed = await queue.recompute_now("case-1")

        assert committed is True
        assert len(calls) == 2
        assert queue.stats.conflicts == 1

    async def test_repeated_conflict_raises(self, coordinator, case_factory) -> None:
        queue = coordinator.recompute
        await coordinator.upsert_case(case_factory())
        await queue.drain()
        profile = coordinator.store.profile_for_case("case-1")
        profile.revival_priority_score = 7.0

        def always_concurrent(*args):
            profile.version += 1
            return 99.0, []

        with patch("coldcase.services.recompute.compute_priority", side_effect=always_concurrent):
            with pytest.raises(ConflictError) as exc_info:
                await queue.recompute_now("case-1")

        assert exc_info.value.code == "concurrent_score_mutation"
        assert queue.stats.conflicts == 2
        assert profile.revival_priority_score == 7.0

    async def test_case_without_profile_skipped(self, coordinator, case_factory) -> None:
        await coordinator.upsert_case(case_factory(lead_days=3))

        assert await coordinator.recompute.recompute_now("case-1") is False

    async def test_committed_factors_reproduce_score(self, coordinator, case_factory) -> None:
        await coordinator.upsert_case(case_factory(is_indigenous=True))
        profile = coordinator.store.profile_for_case("case-1")
        profile.anniversary_date = profile.anniversary_date.replace(month=7, day=1)
        coordinator.recompute.request("case-1")

        await coordinator.recompute.drain()

        assert profile.revival_priority_score == 11.5
        kinds = {f.kind for f in profile.revival_priority_factors}
        assert kinds == {PriorityFactorKind.ADDITIVE, PriorityFactorKind.MULTIPLIER}
        assert score_from_factors(profile.revival_priority_factors) == 11.5


@pytest.mark.asyncio
class TestTriggerLog:

    async def test_sequence_starts_at_one(self) -> None:
        log = TriggerLog()
        first = log.append("case-1", RevivalTriggerType.NEW_TIP, "Tip")
        second = log.append("case-2", RevivalTriggerType.MANUAL, "Requested")

        assert (first.seq, second.seq) == (1, 2)
        assert log.after(0) == [first, second]
        assert log.after(1) == [second]
        assert log.after(2) == []
        assert log.for_case("case-2") == [second]

    async def test_wait_times_out_empty(self) -> None:
        log = TriggerLog()

        assert await log.wait_for_after(0, timeout=0.01) == []

    async def test_waiter_woken_by_append(self) -> None:
        log = TriggerLog()
        waiter = asyncio.create_task(log.wait_for_after(0, timeout=1.0))
        await asyncio.sleep(0)

        trigger = log.append("case-1", RevivalTriggerType.FAMILY_REQUEST, "Family asked for review")

        assert await waiter == [trigger]
