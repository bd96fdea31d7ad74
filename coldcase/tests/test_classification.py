"""
Classification engine tests.

Covers the joint automated criteria, manual precedence, transitions to and
from cold, the revival recommendation raised when an auto-classified case
regains activity, and idempotency on unchanged inputs.
"""

from datetime import date, timedelta

import pytest

from coldcase.models.enums import (
    ClassificationOutcome,
    ColdCaseClassification,
    ReviewFrequency,
    ReviewType,
    RevivalTriggerType,
)
from coldcase.models.schemas import CaseActivitySummary, ColdCaseProfile
from coldcase.services.classification import (
    apply_classification,
    build_activity_summary,
    classify_batch,
    evaluate_classification,
    frequency_for_case,
    next_review_after,
)
from coldcase.tests.conftest import NOW, TODAY


def _summary(lead: int = 91, tip: int = 61, activity: int = 181, **flags) -> CaseActivitySummary:
    return CaseActivitySummary(
        days_since_last_lead=lead,
        days_since_last_tip=tip,
        days_since_last_activity=activity,
        **flags,
    )


# =============================================================================
# Evaluation
# =============================================================================

class TestEvaluateClassification:

    def test_all_three_criteria_newly_cold(self, settings) -> None:
        result = evaluate_classification(_summary(), None, settings)

        assert result.outcome == ClassificationOutcome.NEWLY_COLD
        assert result.classification == ColdCaseClassification.AUTO_CLASSIFIED
        assert result.criteria_no_leads_90_days
        assert result.criteria_no_tips_60_days
        assert result.criteria_no_activity_180_days

    @pytest.mark.parametrize(
        "lead,tip,activity",
        [
            (89, 61, 181),
            (91, 59, 181),
            (91, 61, 179),
            (400, 0, 0),
            (0, 0, 400),
        ],
    )
    def test_no_single_criterion_suffices(self, settings, lead, tip, activity) -> None:
        result = evaluate_classification(_summary(lead, tip, activity), None, settings)

        assert result.outcome == ClassificationOutcome.UNCHANGED
        assert result.classification is None

    def test_thresholds_are_inclusive(self, settings) -> None:
        result = evaluate_classification(_summary(90, 60, 180), None, settings)
        assert result.outcome == ClassificationOutcome.NEWLY_COLD

    def test_manual_mark_overrides_recent_activity(self, settings) -> None:
        result = evaluate_classification(_summary(1, 1, 1, manually_marked_cold=True), None, settings)

        assert result.outcome == ClassificationOutcome.NEWLY_COLD
        assert result.classification == ColdCaseClassification.MANUALLY_CLASSIFIED
        assert result.reason == "Manually marked cold"

    def test_resource_constraint_marks_cold(self, settings) -> None:
        result = evaluate_classification(_summary(1, 1, 1, resource_constrained=True), None, settings)

        assert result.classification == ColdCaseClassification.MANUALLY_CLASSIFIED
        assert "resource" in result.reason

    def test_approved_revival_beats_manual_mark(self, settings, case_factory) -> None:
        cold = evaluate_classification(_summary(), None, settings)
        profile = apply_classification(case_factory(), None, cold, NOW, settings)

        result = evaluate_classification(
            _summary(manually_marked_cold=True, revival_approved=True), profile, settings
        )
        assert result.outcome == ClassificationOutcome.RECLASSIFY_ACTIVE
        assert result.classification == ColdCaseClassification.RECLASSIFIED_ACTIVE

    def test_approved_revival_on_active_case_is_unchanged(self, settings) -> None:
        result = evaluate_classification(_summary(revival_approved=True), None, settings)
        assert result.outcome == ClassificationOutcome.UNCHANGED


# =============================================================================
# Activity summary
# =============================================================================

class TestActivitySummary:

    def test_day_counts_from_timestamps(self, case_factory) -> None:
        summary = build_activity_summary(case_factory(), NOW)

        assert summary.days_since_last_lead == 91
        assert summary.days_since_last_tip == 61
        assert summary.days_since_last_activity == 181

    def test_missing_lead_and_tip_count_from_last_seen(self, case_factory) -> None:
        case = case_factory(lead_days=None, tip_days=None, activity_days=None,
                            last_seen_date=TODAY - timedelta(days=200))
        summary = build_activity_summary(case, NOW)

        assert summary.days_since_last_lead == 200
        assert summary.days_since_last_tip == 200
        assert summary.days_since_last_activity == 200

    def test_revive_decision_restarts_clocks(self, settings, case_factory) -> None:
        profile = ColdCaseProfile(
            case_id="case-1",
            classification=ColdCaseClassification.RECLASSIFIED_ACTIVE,
            revival_approved_at=NOW - timedelta(days=10),
        )

        summary = build_activity_summary(case_factory(), NOW, profile, settings)

        assert summary.revival_approved is True
        assert summary.days_since_last_lead == 10
        assert summary.days_since_last_activity == 10

    def test_revive_decision_lapses_after_activity_window(self, settings, case_factory) -> None:
        profile = ColdCaseProfile(
            case_id="case-1",
            classification=ColdCaseClassification.RECLASSIFIED_ACTIVE,
            revival_approved_at=NOW - timedelta(days=200),
        )

        summary = build_activity_summary(case_factory(), NOW, profile, settings)

        assert summary.revival_approved is False
        assert summary.days_since_last_activity == 181

    def test_frequency_by_severity(self, case_factory) -> None:
        assert frequency_for_case(case_factory()) == ReviewFrequency.SEMI_ANNUAL
        assert frequency_for_case(case_factory(is_minor=True)) == ReviewFrequency.QUARTERLY
        assert frequency_for_case(case_factory(is_high_vulnerability=True)) == ReviewFrequency.QUARTERLY

    def test_next_review_clamps_month_end(self) -> None:
        assert next_review_after(date(2024, 8, 31), ReviewFrequency.SEMI_ANNUAL) == date(2025, 2, 28)

    def test_classify_batch_preserves_input_order(self, settings, case_factory) -> None:
        cases = [case_factory("b"), case_factory("a", lead_days=5)]
        results = classify_batch(cases, {}, NOW, settings)

        assert list(results) == ["b", "a"]
        assert results["b"].outcome == ClassificationOutcome.NEWLY_COLD
        assert results["a"].outcome == ClassificationOutcome.UNCHANGED


# =============================================================================
# Coordinator transitions
# =============================================================================

@pytest.mark.asyncio
class TestClassificationTransitions:

    async def test_scenario_auto_classified_first_review_six_months_out(
        self, coordinator, case_factory
    ) -> None:
        result = await coordinator.upsert_case(case_factory())
        profile = coordinator.store.profile_for_case("case-1")

        assert result.outcome == ClassificationOutcome.NEWLY_COLD
        assert profile.classification == ColdCaseClassification.AUTO_CLASSIFIED
        assert profile.is_cold
        assert profile.review_frequency == ReviewFrequency.SEMI_ANNUAL
        assert profile.next_review_date == date(2026, 12, 15)
        assert profile.became_cold_at == NOW
        assert profile.anniversary_date == date(2023, 3, 1)

    async def test_active_case_gets_no_profile(self, coordinator, case_factory) -> None:
        result = await coordinator.upsert_case(case_factory(lead_days=10))

        assert result.outcome == ClassificationOutcome.UNCHANGED
        assert coordinator.store.profile_for_case("case-1") is None

    async def test_reclassification_is_idempotent(self, coordinator, case_factory) -> None:
        await coordinator.upsert_case(case_factory())
        profile = coordinator.store.profile_for_case("case-1")
        version = profile.version

        result = await coordinator.classify_case("case-1")

        assert result.outcome == ClassificationOutcome.UNCHANGED
        assert profile.version == version

    async def test_revival_approval_pauses_scheduling_and_keeps_history(
        self, coordinator, case_factory
    ) -> None:
        await coordinator.upsert_case(case_factory())
        profile = coordinator.store.profile_for_case("case-1")
        profile_id = profile.id

        await coordinator.upsert_case(case_factory(revival_approved=True))

        profile = coordinator.store.profile_for_case("case-1")
        assert profile.id == profile_id
        assert profile.classification == ColdCaseClassification.RECLASSIFIED_ACTIVE
        assert profile.next_review_date is None
        assert profile.became_cold_at == NOW

    async def test_regained_activity_recommends_revival_review(
        self, coordinator, case_factory
    ) -> None:
        await coordinator.upsert_case(case_factory())

        await coordinator.record_lead("case-1", at=NOW)

        profile = coordinator.store.profile_for_case("case-1")
        assert profile.classification == ColdCaseClassification.AUTO_CLASSIFIED
        assert profile.revival_recommended is True
        assert profile.criteria_no_leads_90_days is False

        triggers = coordinator.store.triggers.for_case("case-1")
        assert [t.trigger_type for t in triggers] == [RevivalTriggerType.ELIGIBILITY_ENGINE]
        review = coordinator.store.open_review_for(profile.id)
        assert review is not None
        assert review.review_type == ReviewType.TIP_TRIGGERED
        assert triggers[0].id in review.trigger_ids

    async def test_classify_all_counts_outcomes(self, coordinator, case_factory) -> None:
        coordinator.store.upsert_case(case_factory("cold-1"))
        coordinator.store.upsert_case(case_factory("cold-2"))
        coordinator.store.upsert_case(case_factory("active-1", tip_days=3))

        counts = await coordinator.classify_all()

        assert counts[ClassificationOutcome.NEWLY_COLD.value] == 2
        assert counts[ClassificationOutcome.UNCHANGED.value] == 1
