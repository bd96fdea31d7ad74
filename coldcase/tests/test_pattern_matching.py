"""
Pattern matcher tests: similarity sub-scores, confidence buckets, the
minimum confidence floor, edge deduplication, human review and geographic
clustering.
"""

from datetime import date

import numpy as np
import pytest

from coldcase.core.errors import ValidationError
from coldcase.models.enums import (
    PatternConfidence,
    PatternDetermination,
    PatternMatchType,
    ReviewType,
    RevivalTriggerType,
)
from coldcase.models.schemas import PatternReviewRequest
from coldcase.services.pattern_clusters import cluster_cases
from coldcase.services.pattern_matching import (
    confidence_for,
    find_candidates,
    haversine_km,
    meets_minimum,
    modus_operandi_score,
    temporal_score,
)


TORONTO = (43.65, -79.38)
TORONTO_EAST = (43.66, -79.39)
VANCOUVER = (49.28, -123.12)

# Winter Monday and summer Wednesday, more than three years apart
WINTER_MONDAY = date(2015, 1, 5)
SUMMER_WEDNESDAY = date(2024, 7, 10)


@pytest.fixture
def located_case(case_factory):
    def _make(case_id, point, **overrides):
        return case_factory(
            case_id,
            last_seen_latitude=point[0],
            last_seen_longitude=point[1],
            **overrides,
        )

    return _make


class TestSubScores:

    @pytest.mark.parametrize(
        "similarity,expected",
        [
            (0.0, PatternConfidence.LOW),
            (0.3999, PatternConfidence.LOW),
            (0.40, PatternConfidence.MEDIUM),
            (0.6499, PatternConfidence.MEDIUM),
            (0.65, PatternConfidence.HIGH),
            (0.85, PatternConfidence.VERY_HIGH),
            (1.0, PatternConfidence.VERY_HIGH),
        ],
    )
    def test_confidence_buckets(self, similarity, expected) -> None:
        assert confidence_for(similarity) == expected

    def test_minimum_confidence_ordering(self) -> None:
        assert meets_minimum(PatternConfidence.HIGH, PatternConfidence.MEDIUM)
        assert meets_minimum(PatternConfidence.MEDIUM, PatternConfidence.MEDIUM)
        assert not meets_minimum(PatternConfidence.LOW, PatternConfidence.MEDIUM)

    def test_haversine_known_distance(self) -> None:
        distances = haversine_km(TORONTO[0], TORONTO[1], np.array([VANCOUVER[0]]), np.array([VANCOUVER[1]]))
        assert 3300 < distances[0] < 3400

    def test_temporal_score_same_day_is_one(self) -> None:
        assert temporal_score(WINTER_MONDAY, WINTER_MONDAY, 365 * 3) == pytest.approx(1.0)
        assert temporal_score(WINTER_MONDAY, SUMMER_WEDNESDAY, 365 * 3) == 0.0

    def test_modus_operandi_jaccard(self) -> None:
        assert modus_operandi_score(["Hitchhiking", "highway"], ["hitchhiking"]) == 0.5
        assert modus_operandi_score([], ["hitchhiking"]) == 0.0


class TestFindCandidates:

    def test_near_identical_cases_match_very_high(self, settings, located_case) -> None:
        shared = dict(age_at_disappearance=30, gender="female", circumstance_tags=["hitchhiking"])
        source = located_case("a", TORONTO, **shared)
        other = located_case("b", TORONTO, **shared)

        [candidate] = find_candidates(source, [source, other], settings)

        assert candidate.matched_case_id == "b"
        assert candidate.similarity == 1.0
        assert candidate.confidence == PatternConfidence.VERY_HIGH
        # No single dimension carries 40% of the total
        assert candidate.match_type == PatternMatchType.CIRCUMSTANTIAL
        assert "same gender" in candidate.matching_factors

    def test_geographic_dominant_match(self, settings, located_case) -> None:
        source = located_case("a", TORONTO, last_seen_date=WINTER_MONDAY, circumstance_tags=["hitchhiking"])
        other = located_case("b", TORONTO_EAST, last_seen_date=SUMMER_WEDNESDAY, circumstance_tags=["hitchhiking"])

        [candidate] = find_candidates(source, [other], settings)

        assert candidate.confidence == PatternConfidence.MEDIUM
        assert candidate.match_type == PatternMatchType.GEOGRAPHIC
        assert candidate.distance_km is not None and candidate.distance_km < 5

    def test_below_minimum_never_returned(self, settings, located_case) -> None:
        source = located_case("a", TORONTO, last_seen_date=WINTER_MONDAY)
        other = located_case("b", VANCOUVER, last_seen_date=SUMMER_WEDNESDAY)

        assert find_candidates(source, [other], settings) == []

    def test_missing_coordinates_score_zero_geography(self, settings, case_factory) -> None:
        shared = dict(age_at_disappearance=30, gender="female", circumstance_tags=["hitchhiking"])
        source = case_factory("a", **shared)
        other = case_factory("b", **shared)

        [candidate] = find_candidates(source, [other], settings)

        assert candidate.sub_scores["geographic"] == 0.0
        assert candidate.distance_km is None
        assert candidate.similarity == 0.65


@pytest.mark.asyncio
class TestPatternPersistence:

    async def test_dissimilar_cases_never_persisted(self, coordinator, located_case) -> None:
        await coordinator.upsert_case(located_case("a", TORONTO, last_seen_date=WINTER_MONDAY))
        await coordinator.upsert_case(located_case("b", VANCOUVER, last_seen_date=SUMMER_WEDNESDAY))

        matches = await coordinator.run_pattern_analysis("a")

        assert matches == []
        assert coordinator.store.pattern_matches == {}

    async def test_edge_deduplicated_in_either_direction(self, coordinator, located_case) -> None:
        shared = dict(age_at_disappearance=30, gender="female", circumstance_tags=["hitchhiking"])
        await coordinator.upsert_case(located_case("a", TORONTO, **shared))
        await coordinator.upsert_case(located_case("b", TORONTO, **shared))

        first = await coordinator.run_pattern_analysis("a")
        second = await coordinator.run_pattern_analysis("b")

        assert len(coordinator.store.pattern_matches) == 1
        assert first[0].id == second[0].id
        assert coordinator.store.profile_for_case("a").last_pattern_analysis is not None

    async def test_confirmed_match_triggers_both_cold_sides(self, coordinator, located_case) -> None:
        shared = dict(age_at_disappearance=30, gender="female", circumstance_tags=["hitchhiking"])
        await coordinator.upsert_case(located_case("a", TORONTO, **shared))
        await coordinator.upsert_case(located_case("b", TORONTO, **shared))
        [match] = await coordinator.run_pattern_analysis("a")

        await coordinator.review_pattern_match(match.id, PatternReviewRequest(
            determination=PatternDetermination.CONFIRMED,
            reviewed_by="analyst-1",
            open_investigation=True,
        ))

        assert match.reviewed
        assert coordinator.store.linked_case_ids("a") == ["b"]
        for case_id in ("a", "b"):
            triggers = coordinator.store.triggers.for_case(case_id)
            assert triggers[-1].trigger_type == RevivalTriggerType.PATTERN_MATCH
            profile = coordinator.store.profile_for_case(case_id)
            assert coordinator.store.open_review_for(profile.id).review_type == ReviewType.SPECIAL

    async def test_reviewed_match_is_final(self, coordinator, located_case) -> None:
        shared = dict(age_at_disappearance=30, gender="female", circumstance_tags=["hitchhiking"])
        await coordinator.upsert_case(located_case("a", TORONTO, **shared))
        await coordinator.upsert_case(located_case("b", TORONTO, **shared))
        [match] = await coordinator.run_pattern_analysis("a")
        await coordinator.review_pattern_match(match.id, PatternReviewRequest(
            determination=PatternDetermination.REJECTED, reviewed_by="analyst-1",
        ))

        with pytest.raises(ValidationError) as exc_info:
            await coordinator.review_pattern_match(match.id, PatternReviewRequest(
                determination=PatternDetermination.CONFIRMED, reviewed_by="analyst-2",
            ))

        assert exc_info.value.code == "already_reviewed"
        assert match.determination == PatternDetermination.REJECTED
        assert coordinator.store.linked_case_ids("a") == []

        await coordinator.run_pattern_analysis("a")
        assert len(coordinator.store.pattern_matches) == 1
        assert match.determination == PatternDetermination.REJECTED

    async def test_unreviewed_edge_dropped_when_pair_stops_qualifying(
        self, coordinator, located_case
    ) -> None:
        shared = dict(age_at_disappearance=30, gender="female", circumstance_tags=["hitchhiking"])
        await coordinator.upsert_case(located_case("a", TORONTO, last_seen_date=WINTER_MONDAY, **shared))
        await coordinator.upsert_case(located_case("b", TORONTO, last_seen_date=WINTER_MONDAY, **shared))
        [match] = await coordinator.run_pattern_analysis("a")
        assert match.confidence == PatternConfidence.VERY_HIGH

        await coordinator.upsert_case(located_case("b", VANCOUVER, last_seen_date=SUMMER_WEDNESDAY))
        matches = await coordinator.run_pattern_analysis("a")

        assert matches == []
        assert coordinator.store.pattern_matches == {}
        assert coordinator.store.find_pattern_match("a", "b", match.match_type) is None

    async def test_shard_source_without_candidates_is_pruned(self, coordinator, located_case) -> None:
        shared = dict(age_at_disappearance=30, gender="female", circumstance_tags=["hitchhiking"])
        await coordinator.upsert_case(located_case("a", TORONTO, **shared))
        await coordinator.upsert_case(located_case("b", TORONTO, **shared))
        await coordinator.run_pattern_analysis("a")

        await coordinator.persist_pattern_candidates([], ["a"])

        assert coordinator.store.pattern_matches == {}

    async def test_reviewed_edge_kept_when_pair_stops_qualifying(self, coordinator, located_case) -> None:
        shared = dict(age_at_disappearance=30, gender="female", circumstance_tags=["hitchhiking"])
        await coordinator.upsert_case(located_case("a", TORONTO, **shared))
        await coordinator.upsert_case(located_case("b", TORONTO, **shared))
        [match] = await coordinator.run_pattern_analysis("a")
        await coordinator.review_pattern_match(match.id, PatternReviewRequest(
            determination=PatternDetermination.POSSIBLE, reviewed_by="analyst-1",
        ))

        await coordinator.upsert_case(located_case("b", VANCOUVER, last_seen_date=SUMMER_WEDNESDAY))
        await coordinator.run_pattern_analysis("a")

        assert list(coordinator.store.pattern_matches) == [match.id]
        assert match.determination == PatternDetermination.POSSIBLE

    async def test_investigation_requires_confirmation(self, coordinator, located_case) -> None:
        shared = dict(age_at_disappearance=30, gender="female", circumstance_tags=["hitchhiking"])
        await coordinator.upsert_case(located_case("a", TORONTO, **shared))
        await coordinator.upsert_case(located_case("b", TORONTO, **shared))
        [match] = await coordinator.run_pattern_analysis("a")

        with pytest.raises(ValidationError):
            await coordinator.review_pattern_match(match.id, PatternReviewRequest(
                determination=PatternDetermination.POSSIBLE,
                reviewed_by="analyst-1",
                open_investigation=True,
            ))
        assert match.reviewed is False


class TestClusters:

    def test_nearby_cases_share_cluster(self, settings, located_case) -> None:
        cases = [
            located_case("c2", TORONTO_EAST),
            located_case("c1", TORONTO),
            located_case("c3", (43.70, -79.42)),
            located_case("far", VANCOUVER),
        ]

        membership = cluster_cases(cases, settings)

        assert membership["c1"] == ["geo-c1"]
        assert membership["c2"] == ["geo-c1"]
        assert membership["c3"] == ["geo-c1"]
        assert membership["far"] == []

    def test_too_few_located_cases(self, settings, located_case, case_factory) -> None:
        cases = [located_case("c1", TORONTO), located_case("c2", TORONTO_EAST), case_factory("c3")]

        membership = cluster_cases(cases, settings)

        assert membership == {"c1": [], "c2": [], "c3": []}

    @pytest.mark.asyncio
    async def test_cluster_membership_written_to_profiles(self, coordinator, located_case) -> None:
        await coordinator.upsert_case(located_case("c1", TORONTO))

        changed = await coordinator.apply_pattern_clusters({"c1": ["geo-c1"], "unknown": ["geo-x"]})

        assert changed == 1
        assert coordinator.store.profile_for_case("c1").pattern_clusters == ["geo-c1"]
