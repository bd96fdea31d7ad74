"""
Review Scheduler Service

Creates, assigns, starts, completes and defers cold case reviews, and keeps
the reviewer registry. Functions here mutate store entities and are called
by the coordinator while it holds the owning profile's lock.

Key Rules:
- A profile is due when next_review_date <= today and no review is open
- At most one open (pending / in_progress) review per profile; creating a
  second raises ConflictError
- Due windows: 7 days for anniversary and tip_triggered reviews, 30 days for
  periodic and special reviews
- Only periodic reviews own the periodic slot: out-of-band reviews
  (special, tip_triggered, anniversary) never consume, reset or defer it
- No eligible reviewer leaves the review pending and unassigned; the next
  pass retries
- Overdue reviews are listed, never escalated

Reviewer Assignment:
1. Candidates: active, below max_concurrent_reviews, available
   (next_available_date unset or <= today), jurisdiction not excluded
2. Prefer reviewers with a matching specialization (indigenous_liaison for
   Indigenous cases, child_cases for minors) when any exist
3. Order by rotation_priority, next_available_date, current_assignments,
   reviewer id
4. Assigning bumps rotation_priority and current_assignments
"""

import logging
from datetime import date, datetime, timedelta
from typing import List, Optional, Set

from coldcase.core.config import Settings, get_settings
from coldcase.core.errors import ConflictError, ValidationError
from coldcase.core.timeutil import next_anniversary, utc_now
from coldcase.models.enums import (
    ColdCaseClassification,
    ReviewStatus,
    ReviewType,
    RevivalDecision,
)
from coldcase.models.schemas import (
    CaseRecord,
    ColdCaseProfile,
    ColdCaseReview,
    CompleteReviewRequest,
    DeferReviewRequest,
    RegisterReviewerRequest,
    Reviewer,
    UpdateReviewerRequest,
)
from coldcase.services.checklist import instantiate_checklist, non_terminal_items, select_template
from coldcase.services.classification import next_review_after
from coldcase.services.store import CaseStore


logger = logging.getLogger(__name__)


PERIODIC_SLOT_TYPES = frozenset({ReviewType.PERIODIC})


def review_window_days(review_type: ReviewType, settings: Settings) -> int:
    if review_type in (ReviewType.ANNIVERSARY, ReviewType.TIP_TRIGGERED):
        return settings.urgent_review_window_days
    if review_type == ReviewType.SPECIAL:
        return settings.special_review_window_days
    return settings.periodic_review_window_days


# =============================================================================
# Due detection
# =============================================================================

def find_due_profiles(store: CaseStore, today: date) -> List[ColdCaseProfile]:
    """Cold profiles whose periodic review is due and that have no open review."""
    due = [
        p for p in store.cold_profiles()
        if p.next_review_date is not None
        and p.next_review_date <= today
        and store.open_review_for(p.id) is None
    ]
    return sorted(due, key=lambda p: (p.next_review_date, p.id))


def is_anniversary_due(
    store: CaseStore,
    profile: ColdCaseProfile,
    today: date,
    settings: Settings,
) -> bool:
    """
    True when the disappearance anniversary falls inside the window, the
    profile has had no anniversary review for that year and nothing is open.
    """
    if not profile.is_cold:
        return False
    upcoming = next_anniversary(profile.anniversary_date, today)
    if upcoming is None:
        return False
    if (upcoming - today).days > settings.anniversary_window_days:
        return False
    if profile.last_anniversary_review_year == upcoming.year:
        return False
    return store.open_review_for(profile.id) is None


def find_anniversary_due(
    store: CaseStore,
    today: date,
    settings: Optional[Settings] = None,
) -> List[ColdCaseProfile]:
    settings = settings or get_settings()
    return [p for p in store.cold_profiles() if is_anniversary_due(store, p, today, settings)]


def list_overdue_reviews(store: CaseStore, today: date) -> List[ColdCaseReview]:
    """Open reviews past their due date, oldest due first."""
    overdue = [r for r in store.reviews.values() if r.is_open and r.due_date < today]
    return sorted(overdue, key=lambda r: (r.due_date, r.id))


# =============================================================================
# Creation
# =============================================================================

def create_review(
    store: CaseStore,
    profile: ColdCaseProfile,
    case: CaseRecord,
    review_type: ReviewType,
    today: date,
    settings: Optional[Settings] = None,
) -> ColdCaseReview:
    """
    Create a pending review with its checklist.

    Unprocessed evidence not yet attached to a review is attached to this one
    so completing the review processes it.

    Raises:
        ValidationError: if the case is not cold
        ConflictError: if the profile already has an open review
    """
    settings = settings or get_settings()

    if not profile.is_cold:
        raise ValidationError(f"Case {case.case_id} is not cold; reviews are paused")

    existing = store.open_review_for(profile.id)
    if existing is not None:
        raise ConflictError(
            f"Profile {profile.id} already has open review {existing.id}",
            code="open_review_exists",
        )

    template = select_template(list(store.templates.values()), case)
    review = ColdCaseReview(
        profile_id=profile.id,
        case_id=case.case_id,
        review_number=store.next_review_number(profile.id),
        review_type=review_type,
        due_date=today + timedelta(days=review_window_days(review_type, settings)),
        template_id=template.id,
    )
    store.add_review(review)
    store.add_checklist_items(instantiate_checklist(review, template))

    for evidence in store.evidence_for(profile.id):
        if not evidence.processed and evidence.triggered_review_id is None:
            evidence.triggered_review_id = review.id

    if review_type == ReviewType.ANNIVERSARY:
        upcoming = next_anniversary(profile.anniversary_date, today)
        profile.last_anniversary_review_year = upcoming.year if upcoming else today.year

    profile.review_due_date = review.due_date
    logger.info(
        f"Created {review_type.value} review #{review.review_number} for case "
        f"{case.case_id} due {review.due_date} ({len(template.items)} checklist items)"
    )
    return review


# =============================================================================
# Assignment
# =============================================================================

def preferred_specializations(case: CaseRecord, settings: Settings) -> Set[str]:
    preferred = set()
    if case.is_indigenous:
        preferred.add(settings.indigenous_specialization)
    if case.is_minor:
        preferred.add(settings.minor_specialization)
    return preferred


def eligible_reviewers(
    reviewers: List[Reviewer],
    case: CaseRecord,
    today: date,
    settings: Optional[Settings] = None,
) -> List[Reviewer]:
    """
    Eligible reviewers in assignment order.

    Specialists are preferred: when any candidate shares a preferred
    specialization, only those candidates are returned.
    """
    settings = settings or get_settings()
    candidates = [
        r for r in reviewers
        if r.is_active
        and r.current_assignments < r.max_concurrent_reviews
        and (r.next_available_date is None or r.next_available_date <= today)
        and not (case.jurisdiction_id and case.jurisdiction_id in r.excluded_jurisdictions)
    ]

    preferred = preferred_specializations(case, settings)
    if preferred:
        specialists = [r for r in candidates if preferred & set(r.specializations)]
        if specialists:
            candidates = specialists

    return sorted(
        candidates,
        key=lambda r: (
            r.rotation_priority,
            r.next_available_date or date.min,
            r.current_assignments,
            r.id,
        ),
    )


def assign_reviewer(
    store: CaseStore,
    review: ColdCaseReview,
    profile: ColdCaseProfile,
    case: CaseRecord,
    today: date,
    settings: Optional[Settings] = None,
) -> Optional[Reviewer]:
    """
    Assign the best eligible reviewer to a pending review.

    Returns:
        The assigned reviewer, or None when nobody is eligible. The review
        stays pending and unassigned in that case; this is not an error.
    """
    if review.reviewer_id is not None or review.status != ReviewStatus.PENDING:
        return store.reviewers.get(review.reviewer_id) if review.reviewer_id else None

    candidates = eligible_reviewers(list(store.reviewers.values()), case, today, settings)
    if not candidates:
        logger.warning(
            f"No eligible reviewer for review {review.id} (case {case.case_id}); left pending"
        )
        return None

    reviewer = candidates[0]
    _book_reviewer(reviewer, today)
    review.reviewer_id = reviewer.id
    review.assigned_at = utc_now()
    profile.current_reviewer_id = reviewer.id
    logger.info(f"Assigned reviewer {reviewer.id} to review {review.id}")
    return reviewer


def _book_reviewer(reviewer: Reviewer, today: date) -> None:
    reviewer.current_assignments += 1
    reviewer.rotation_priority += 1
    reviewer.last_assignment_date = today


def _release_reviewer(store: CaseStore, reviewer_id: Optional[str]) -> Optional[Reviewer]:
    if reviewer_id is None:
        return None
    reviewer = store.reviewers.get(reviewer_id)
    if reviewer is not None:
        reviewer.current_assignments = max(0, reviewer.current_assignments - 1)
    return reviewer


# =============================================================================
# Lifecycle
# =============================================================================

def start_review(
    store: CaseStore,
    review: ColdCaseReview,
    profile: ColdCaseProfile,
    reviewer_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ColdCaseReview:
    """
    Move a pending review to in_progress and mark the profile under_review.

    An unassigned review can be started by naming the reviewer explicitly.

    Raises:
        ValidationError: if the review is not pending or has no reviewer
    """
    now = now or utc_now()
    if review.status != ReviewStatus.PENDING:
        raise ValidationError(f"Review {review.id} is {review.status.value}, not pending")

    if review.reviewer_id is None:
        if reviewer_id is None:
            raise ValidationError(f"Review {review.id} has no assigned reviewer")
        reviewer = store.get_reviewer(reviewer_id)
        if not reviewer.is_active:
            raise ValidationError(f"Reviewer {reviewer_id} is inactive")
        _book_reviewer(reviewer, now.date())
        review.reviewer_id = reviewer.id
        review.assigned_at = now
    elif reviewer_id is not None and reviewer_id != review.reviewer_id:
        raise ValidationError(f"Review {review.id} is assigned to {review.reviewer_id}")

    review.status = ReviewStatus.IN_PROGRESS
    review.started_at = now

    if profile.classification != ColdCaseClassification.UNDER_REVIEW:
        profile.classification_before_review = profile.classification
        profile.classification = ColdCaseClassification.UNDER_REVIEW
    profile.current_reviewer_id = review.reviewer_id
    profile.review_started_at = now
    return review


def _restore_classification(profile: ColdCaseProfile) -> None:
    if profile.classification == ColdCaseClassification.UNDER_REVIEW:
        profile.classification = (
            profile.classification_before_review or ColdCaseClassification.AUTO_CLASSIFIED
        )
    profile.classification_before_review = None


def _clear_open_review_state(profile: ColdCaseProfile) -> None:
    profile.current_reviewer_id = None
    profile.review_started_at = None
    profile.review_due_date = None


def validate_completion(store: CaseStore, review: ColdCaseReview, request: CompleteReviewRequest) -> None:
    """
    Check every completion precondition before anything is mutated.

    Raises:
        ValidationError: review not in progress, checklist items still open,
            or a campaign recommendation without a campaign type
    """
    if review.status != ReviewStatus.IN_PROGRESS:
        raise ValidationError(f"Review {review.id} is {review.status.value}, not in_progress")

    open_items = non_terminal_items(store.checklist_for(review.id))
    if open_items:
        names = ", ".join(i.item_name for i in open_items[:5])
        raise ValidationError(
            f"{len(open_items)} checklist item(s) still open: {names}",
            code="checklist_incomplete",
        )

    if request.campaign_recommended and request.recommended_campaign_type is None:
        raise ValidationError("campaign_recommended requires recommended_campaign_type")


def complete_review(
    store: CaseStore,
    review: ColdCaseReview,
    profile: ColdCaseProfile,
    request: CompleteReviewRequest,
    now: Optional[datetime] = None,
) -> ColdCaseReview:
    """
    Complete an in-progress review.

    Effects:
    - review outcome fields recorded, status completed
    - evidence attached to the review marked processed
    - periodic reviews advance last/next review date; out-of-band reviews
      leave the periodic slot alone
    - reviewer statistics updated
    - a revive decision reclassifies the profile reclassified_active and
      records the approval, which the classification engine honours over
      the automated thresholds
    """
    validate_completion(store, review, request)
    now = now or utc_now()
    today = now.date()

    review.status = ReviewStatus.COMPLETED
    review.completed_at = now
    review.revival_decision = request.revival_decision
    review.revival_justification = request.revival_justification
    review.summary = request.summary
    review.recommendations = request.recommendations
    review.next_steps = request.next_steps
    review.new_leads_identified = request.new_leads_identified
    review.new_evidence_found = request.new_evidence_found
    review.dna_resubmission_recommended = request.dna_resubmission_recommended
    review.campaign_recommended = request.campaign_recommended
    review.recommended_campaign_type = request.recommended_campaign_type
    review.escalation_recommended = request.escalation_recommended
    review.family_notified = request.family_notified
    if request.family_notified:
        review.family_notification_date = now
        review.family_notification_method = request.family_notification_method
        profile.family_last_contact_date = now

    for evidence in store.evidence_for(profile.id):
        if evidence.triggered_review_id == review.id and not evidence.processed:
            evidence.processed = True
            evidence.processed_at = now

    _restore_classification(profile)
    _clear_open_review_state(profile)
    profile.reviews_completed += 1

    if review.review_type in PERIODIC_SLOT_TYPES:
        profile.last_review_date = today
        profile.next_review_date = next_review_after(today, profile.review_frequency)
        profile.next_review_deferred = False

    revived = request.revival_decision == RevivalDecision.REVIVE
    if revived:
        profile.revival_attempts += 1
        profile.last_revival_attempt = now
        profile.revival_success_count += 1
        profile.revival_approved_at = now
        profile.classification = ColdCaseClassification.RECLASSIFIED_ACTIVE
        profile.classification_reason = f"Revived by review #{review.review_number}"
        profile.classified_at = now
        profile.classified_by = review.reviewer_id or "reviewer"
        profile.revival_recommended = False
        profile.next_review_date = None
        profile.next_review_deferred = False
        profile.next_anniversary_campaign = None

    reviewer = _release_reviewer(store, review.reviewer_id)
    if reviewer is not None:
        _record_reviewer_outcome(reviewer, review, revived)

    logger.info(
        f"Completed review {review.id} for case {review.case_id}: "
        f"{request.revival_decision.value}"
    )
    return review


def _record_reviewer_outcome(reviewer: Reviewer, review: ColdCaseReview, revived: bool) -> None:
    previous = reviewer.total_reviews_completed
    reviewer.total_reviews_completed += 1
    if revived:
        reviewer.total_revivals_achieved += 1
    reviewer.revival_success_rate = round(
        reviewer.total_revivals_achieved / reviewer.total_reviews_completed, 4
    )

    started = review.started_at or review.assigned_at
    if started is not None and review.completed_at is not None:
        duration = (review.completed_at - started).total_seconds() / 86400
        average = reviewer.average_review_duration_days or 0.0
        reviewer.average_review_duration_days = round(
            (average * previous + duration) / reviewer.total_reviews_completed, 2
        )


def defer_review(
    store: CaseStore,
    review: ColdCaseReview,
    profile: ColdCaseProfile,
    request: DeferReviewRequest,
    today: date,
) -> ColdCaseReview:
    """
    Defer an open review to an explicit future date.

    The deferred review closes. Deferring a periodic review moves the
    profile's next_review_date to the deferral date so the scheduler opens a
    fresh review then; deferring an out-of-band review leaves the periodic
    slot as it was and only records deferred_until on the review.

    Raises:
        ValidationError: review not open, or defer_until not after today
    """
    if not review.is_open:
        raise ValidationError(f"Review {review.id} is {review.status.value} and cannot be deferred")
    if request.defer_until <= today:
        raise ValidationError("defer_until must be a future date")

    review.status = ReviewStatus.DEFERRED
    review.deferred_until = request.defer_until
    review.defer_reason = request.reason

    _release_reviewer(store, review.reviewer_id)
    _restore_classification(profile)
    _clear_open_review_state(profile)
    if review.review_type in PERIODIC_SLOT_TYPES:
        profile.next_review_date = request.defer_until
        profile.next_review_deferred = True

    logger.info(f"Deferred review {review.id} until {request.defer_until}: {request.reason}")
    return review


# =============================================================================
# Reviewer Registry
# =============================================================================

def register_reviewer(store: CaseStore, request: RegisterReviewerRequest) -> Reviewer:
    reviewer = Reviewer(
        name=request.name,
        email=request.email,
        specializations=request.specializations,
        max_concurrent_reviews=request.max_concurrent_reviews,
        excluded_jurisdictions=request.excluded_jurisdictions,
        next_available_date=request.next_available_date,
    )
    # New reviewers join at the front of the rotation
    if store.reviewers:
        reviewer.rotation_priority = min(r.rotation_priority for r in store.reviewers.values())
    store.add_reviewer(reviewer)
    logger.info(f"Registered reviewer {reviewer.id} ({reviewer.name})")
    return reviewer


def update_reviewer(store: CaseStore, reviewer_id: str, request: UpdateReviewerRequest) -> Reviewer:
    reviewer = store.get_reviewer(reviewer_id)
    changes = request.model_dump(exclude_unset=True)
    for name, value in changes.items():
        setattr(reviewer, name, value)
    if "max_concurrent_reviews" in changes and reviewer.current_assignments > reviewer.max_concurrent_reviews:
        logger.warning(
            f"Reviewer {reviewer_id} holds {reviewer.current_assignments} reviews, "
            f"above new limit {reviewer.max_concurrent_reviews}"
        )
    return reviewer
