"""
Classification Engine Service

Decides when a missing-person case becomes cold and when a cold case returns
to active investigation. Evaluation is a pure function of the case activity
summary and the current profile; applying a result mutates the profile and is
done by the coordinator under the profile lock.

Precedence (first match wins, manual decisions dominate automated ones):
1. Human-approved revival            -> reclassify_active
   (a repository approval, or a reviewer's revive decision for
   no_activity_days after it is made)
2. Manually marked cold              -> manually_classified
3. Marked cold for resource reasons  -> manually_classified
4. Automated thresholds, ALL of:
   - no lead for >= no_lead_days (90)
   - no tip for >= no_tip_days (60)
   - no activity for >= no_activity_days (180)
                                     -> auto_classified

A reviewer's revive decision also counts as activity, so the automated
thresholds can only hold again once the full windows have elapsed after it.

An auto-classified cold case that stops meeting the joint criteria is not
reclassified automatically: the criteria flags are refreshed and
revival_recommended is raised so a human can decide.

Evaluation is idempotent: the same inputs always yield `unchanged` once the
profile reflects them.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, List, Optional

from coldcase.core.config import Settings, get_settings
from coldcase.core.timeutil import add_months, days_between, next_anniversary, utc_now
from coldcase.models.enums import (
    ClassificationOutcome,
    ColdCaseClassification,
    ReviewFrequency,
)
from coldcase.models.schemas import (
    CaseActivitySummary,
    CaseRecord,
    ClassificationResult,
    ColdCaseProfile,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Review cadence
# =============================================================================

FREQUENCY_MONTHS: Dict[ReviewFrequency, int] = {
    ReviewFrequency.MONTHLY: 1,
    ReviewFrequency.QUARTERLY: 3,
    ReviewFrequency.SEMI_ANNUAL: 6,
    ReviewFrequency.ANNUAL: 12,
    ReviewFrequency.BIENNIAL: 24,
}


def next_review_after(last_review: date, frequency: ReviewFrequency) -> date:
    """The periodic review date following last_review at the given cadence."""
    return add_months(last_review, FREQUENCY_MONTHS[frequency])


def frequency_for_case(case: CaseRecord) -> ReviewFrequency:
    """
    Default review cadence by severity.

    Minors and high-vulnerability cases are reviewed quarterly, everything
    else semi-annually.
    """
    if case.is_minor or case.is_high_vulnerability:
        return ReviewFrequency.QUARTERLY
    return ReviewFrequency.SEMI_ANNUAL


# =============================================================================
# Activity summary
# =============================================================================

def _as_datetime(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def build_activity_summary(
    case: CaseRecord,
    now: Optional[datetime] = None,
    profile: Optional[ColdCaseProfile] = None,
    settings: Optional[Settings] = None,
) -> CaseActivitySummary:
    """
    Build the classification input from a case record.

    A case with no recorded lead or tip counts from its last-seen date. The
    repository's activity timestamp is used as recorded; without one, last
    activity is the most recent of the last lead and the last tip.

    A revive decision recorded on the profile restarts every clock and keeps
    the approval in force for no_activity_days.
    """
    now = now or utc_now()
    settings = settings or get_settings()
    last_seen = _as_datetime(case.last_seen_date)

    last_lead = case.last_lead_at or last_seen
    last_tip = case.last_tip_at or last_seen
    last_activity = case.last_activity_at or max(last_lead, last_tip)

    revival_approved = case.revival_approved
    approved_at = profile.revival_approved_at if profile is not None else None
    if approved_at is not None:
        last_lead = max(last_lead, approved_at)
        last_tip = max(last_tip, approved_at)
        last_activity = max(last_activity, approved_at)
        if days_between(approved_at, now) < settings.no_activity_days:
            revival_approved = True

    return CaseActivitySummary(
        days_since_last_lead=days_between(last_lead, now),
        days_since_last_tip=days_between(last_tip, now),
        days_since_last_activity=days_between(last_activity, now),
        manually_marked_cold=case.manually_marked_cold,
        resource_constrained=case.resource_constrained,
        revival_approved=revival_approved,
    )


# =============================================================================
# Evaluation
# =============================================================================

def evaluate_classification(
    summary: CaseActivitySummary,
    profile: Optional[ColdCaseProfile] = None,
    settings: Optional[Settings] = None,
) -> ClassificationResult:
    """
    Classify a case from its activity summary.

    Args:
        summary: Days since last lead/tip/activity plus manual flags
        profile: Current cold case profile, None when the case was never cold
        settings: Threshold overrides (uses config if not provided)

    Returns:
        ClassificationResult with the outcome, target classification and the
        refreshed criteria flags
    """
    settings = settings or get_settings()
    is_cold = profile is not None and profile.is_cold

    no_leads = summary.days_since_last_lead >= settings.no_lead_days
    no_tips = summary.days_since_last_tip >= settings.no_tip_days
    no_activity = summary.days_since_last_activity >= settings.no_activity_days
    automated = no_leads and no_tips and no_activity

    flags = dict(
        criteria_no_leads_90_days=no_leads,
        criteria_no_tips_60_days=no_tips,
        criteria_no_activity_180_days=no_activity,
        criteria_manually_marked=summary.manually_marked_cold,
        criteria_resource_constraints=summary.resource_constrained,
    )

    # 1. Human-approved revival
    if summary.revival_approved:
        if is_cold:
            return ClassificationResult(
                outcome=ClassificationOutcome.RECLASSIFY_ACTIVE,
                classification=ColdCaseClassification.RECLASSIFIED_ACTIVE,
                reason="Revival approved by investigator",
                **flags,
            )
        return ClassificationResult(
            outcome=ClassificationOutcome.UNCHANGED,
            reason="Revival approved; case is not cold",
            **flags,
        )

    # 2-3. Manual markings
    manual_reason = None
    if summary.manually_marked_cold:
        manual_reason = "Manually marked cold"
    elif summary.resource_constrained:
        manual_reason = "Marked cold due to resource constraints"

    if manual_reason is not None:
        if is_cold:
            return ClassificationResult(
                outcome=ClassificationOutcome.UNCHANGED,
                classification=profile.classification,
                reason=manual_reason,
                **flags,
            )
        return ClassificationResult(
            outcome=ClassificationOutcome.NEWLY_COLD,
            classification=ColdCaseClassification.MANUALLY_CLASSIFIED,
            reason=manual_reason,
            **flags,
        )

    # 4. Automated thresholds
    if automated:
        reason = (
            f"No leads for {summary.days_since_last_lead} days, no tips for "
            f"{summary.days_since_last_tip} days, no activity for "
            f"{summary.days_since_last_activity} days"
        )
        if is_cold:
            return ClassificationResult(
                outcome=ClassificationOutcome.UNCHANGED,
                classification=profile.classification,
                reason=reason,
                **flags,
            )
        return ClassificationResult(
            outcome=ClassificationOutcome.NEWLY_COLD,
            classification=ColdCaseClassification.AUTO_CLASSIFIED,
            reason=reason,
            **flags,
        )

    if is_cold and _cold_basis(profile) == ColdCaseClassification.AUTO_CLASSIFIED:
        return ClassificationResult(
            outcome=ClassificationOutcome.UNCHANGED,
            classification=profile.classification,
            reason="Automated cold criteria no longer met; revival review recommended",
            revival_recommended=True,
            **flags,
        )

    return ClassificationResult(
        outcome=ClassificationOutcome.UNCHANGED,
        classification=profile.classification if profile else None,
        reason="Cold criteria not met",
        **flags,
    )


def _cold_basis(profile: ColdCaseProfile) -> ColdCaseClassification:
    """Classification the profile is cold under, looking through under_review."""
    if profile.classification == ColdCaseClassification.UNDER_REVIEW:
        return profile.classification_before_review or ColdCaseClassification.AUTO_CLASSIFIED
    return profile.classification


def classify_batch(
    cases: List[CaseRecord],
    profiles_by_case: Dict[str, ColdCaseProfile],
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> Dict[str, ClassificationResult]:
    """
    Evaluate every case in one pass.

    Returns:
        Dict of case_id -> ClassificationResult, in input order
    """
    now = now or utc_now()
    settings = settings or get_settings()

    results: Dict[str, ClassificationResult] = {}
    for case in cases:
        profile = profiles_by_case.get(case.case_id)
        summary = build_activity_summary(case, now, profile, settings)
        results[case.case_id] = evaluate_classification(summary, profile, settings)
    return results


# =============================================================================
# Applying results
# =============================================================================

def apply_classification(
    case: CaseRecord,
    profile: Optional[ColdCaseProfile],
    result: ClassificationResult,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
    classified_by: str = "system",
) -> Optional[ColdCaseProfile]:
    """
    Apply a classification result to the case's profile.

    Creates the profile on the first transition to cold. On the transition to
    active, periodic scheduling is paused while reviews, triggers and
    submissions are kept.

    Returns:
        The (possibly new) profile, or None when the case has no profile and
        did not become cold
    """
    now = now or utc_now()
    settings = settings or get_settings()
    today = now.date()

    if result.outcome == ClassificationOutcome.NEWLY_COLD:
        if profile is None:
            profile = ColdCaseProfile(
                case_id=case.case_id,
                classification=result.classification,
                created_at=now,
            )

        frequency = frequency_for_case(case)
        profile.classification = result.classification
        profile.classification_reason = result.reason
        profile.classified_at = now
        profile.classified_by = classified_by
        profile.became_cold_at = now
        profile.classification_before_review = None
        profile.revival_approved_at = None
        profile.revival_recommended = False
        profile.review_frequency = frequency
        profile.next_review_date = next_review_after(today, frequency)
        profile.next_review_deferred = False
        profile.anniversary_date = case.last_seen_date

        upcoming = next_anniversary(case.last_seen_date, today)
        profile.next_anniversary_campaign = _campaign_date_for(upcoming, today, settings)

        _copy_flags(profile, result)
        logger.info(
            f"Case {case.case_id} classified cold ({result.classification.value}): "
            f"{result.reason}; first review {profile.next_review_date}"
        )
        return profile

    if profile is None:
        return None

    if result.outcome == ClassificationOutcome.RECLASSIFY_ACTIVE:
        profile.classification = ColdCaseClassification.RECLASSIFIED_ACTIVE
        profile.classification_reason = result.reason
        profile.classified_at = now
        profile.revival_approved_at = profile.revival_approved_at or now
        profile.classified_by = classified_by
        profile.classification_before_review = None
        profile.revival_recommended = False
        profile.next_review_date = None
        profile.next_review_deferred = False
        profile.next_anniversary_campaign = None
        _copy_flags(profile, result)
        logger.info(f"Case {case.case_id} reclassified active: {result.reason}")
        return profile

    _copy_flags(profile, result)
    profile.revival_recommended = result.revival_recommended
    return profile


def _campaign_date_for(anniversary: Optional[date], today: date, settings: Settings) -> Optional[date]:
    if anniversary is None:
        return None
    return max(today, anniversary - timedelta(days=settings.campaign_lead_days))


def _copy_flags(profile: ColdCaseProfile, result: ClassificationResult) -> None:
    profile.criteria_no_leads_90_days = result.criteria_no_leads_90_days
    profile.criteria_no_tips_60_days = result.criteria_no_tips_60_days
    profile.criteria_no_activity_180_days = result.criteria_no_activity_180_days
    profile.criteria_manually_marked = result.criteria_manually_marked
    profile.criteria_resource_constraints = result.criteria_resource_constraints
