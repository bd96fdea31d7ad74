"""
Cold Case Coordinator

Command layer tying the services together. Every command:
1. validates completely before mutating anything
2. takes the case lock (store.lock_for(case_id)) for the mutation
3. bumps the profile version
4. appends revival triggers
5. enqueues a priority recompute instead of scoring inline

Signals flow: evidence / DNA results / pattern matches / tips update a
profile -> classification may change -> reviews are created or advanced ->
the checklist gates completion -> the scorer recomputes -> campaigns are
proposed when score or anniversary cross their thresholds.

Nothing destructive happens automatically: archive decisions are recorded as
admin_review triggers, revival recommendations open a review for a human.

Usage:
    coordinator = ColdCaseCoordinator(store, recompute, dispatcher)
    await coordinator.upsert_case(case)
    review = await coordinator.create_review(CreateReviewRequest(profile_id=...))
"""

import asyncio
import logging
from datetime import date, datetime
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from coldcase.core.config import Settings, get_settings
from coldcase.core.errors import ValidationError
from coldcase.core.timeutil import next_anniversary, utc_now
from coldcase.models.enums import (
    ClassificationOutcome,
    ColdCaseClassification,
    DNASubmissionStatus,
    PatternDetermination,
    ReviewStatus,
    ReviewType,
    RevivalDecision,
    RevivalTriggerSource,
    RevivalTriggerType,
)
from coldcase.models.schemas import (
    AdvanceDNASubmissionRequest,
    Campaign,
    CaseRecord,
    ChecklistItem,
    ChecklistItemUpdate,
    ClassificationResult,
    ColdCaseProfile,
    ColdCaseReview,
    ColdCaseSummary,
    CompleteCampaignRequest,
    CompleteReviewRequest,
    CreateCampaignRequest,
    CreateDNASubmissionRequest,
    CreateReviewRequest,
    DeferReviewRequest,
    DNALabResult,
    DNASubmission,
    FamilyRequestEvent,
    NewEvidence,
    PatternMatch,
    PatternReviewRequest,
    RecordEvidenceRequest,
    RegisterReviewerRequest,
    Reviewer,
    RevivalTrigger,
    ScheduleCampaignRequest,
    TipReceivedEvent,
    UpdateReviewerRequest,
    VerifyEvidenceRequest,
)
from coldcase.services import (
    campaigns,
    checklist,
    classification,
    forensics,
    pattern_matching,
    review_scheduler,
)
from coldcase.services.notifications import LogOnlyDispatcher, NotificationDispatcher
from coldcase.services.recompute import RecomputeQueue
from coldcase.services.store import CaseStore


logger = logging.getLogger(__name__)


class ColdCaseCoordinator:
    """Serialized, validated commands over the case store."""

    def __init__(
        self,
        store: CaseStore,
        recompute: Optional[RecomputeQueue] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        settings: Optional[Settings] = None,
        now_fn: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.now_fn = now_fn or utc_now
        self.recompute = recompute or RecomputeQueue(
            store, self.settings, today_fn=lambda: self.now_fn().date()
        )
        self.dispatcher = dispatcher or LogOnlyDispatcher()

    def now(self) -> datetime:
        return self.now_fn()

    def today(self) -> date:
        return self.now_fn().date()

    # =========================================================================
    # Internal helpers (caller holds the case lock)
    # =========================================================================

    def _commit(self, profile: ColdCaseProfile, rescore: bool = True) -> None:
        self.store.touch(profile)
        if rescore:
            self.recompute.request(profile.case_id)

    def _trigger(
        self,
        case_id: str,
        trigger_type: RevivalTriggerType,
        summary: str,
        profile: Optional[ColdCaseProfile] = None,
        source: RevivalTriggerSource = RevivalTriggerSource.SYSTEM,
        details: Optional[Dict] = None,
    ) -> RevivalTrigger:
        return self.store.triggers.append(
            case_id=case_id,
            trigger_type=trigger_type,
            summary=summary,
            profile_id=profile.id if profile else None,
            source=source,
            details=details,
        )

    def _request_review(
        self,
        profile: ColdCaseProfile,
        case: CaseRecord,
        review_type: ReviewType,
        trigger: Optional[RevivalTrigger] = None,
    ) -> Tuple[Optional[ColdCaseReview], bool]:
        """
        Open a review for a trigger, or record the trigger against the review
        that is already open.

        Returns:
            (review, created); review is None when the case is not cold
        """
        if not profile.is_cold:
            return None, False

        review = self.store.open_review_for(profile.id)
        created = False
        if review is None:
            review = review_scheduler.create_review(
                self.store, profile, case, review_type, self.today(), self.settings
            )
            review_scheduler.assign_reviewer(
                self.store, review, profile, case, self.today(), self.settings
            )
            created = True
        else:
            logger.info(
                f"Review {review.id} already open for case {case.case_id}; "
                f"recording {review_type.value} request against it"
            )

        if trigger is not None:
            review.trigger_ids.append(trigger.id)
        return review, created

    def _classify_locked(self, case_id: str, classified_by: str = "system") -> ClassificationResult:
        case = self.store.get_case(case_id)
        profile = self.store.profile_for_case(case_id)
        was_recommended = profile.revival_recommended if profile else False
        snapshot = profile.model_dump() if profile else None

        summary = classification.build_activity_summary(case, self.now(), profile, self.settings)
        result = classification.evaluate_classification(summary, profile, self.settings)
        updated = classification.apply_classification(
            case, profile, result, self.now(), self.settings, classified_by
        )
        if updated is None:
            return result

        if profile is None:
            self.store.add_profile(updated)
        profile = updated

        if result.outcome == ClassificationOutcome.NEWLY_COLD:
            self._commit(profile)
            return result
        if result.outcome == ClassificationOutcome.RECLASSIFY_ACTIVE:
            self._commit(profile)
            return result

        if result.revival_recommended and not was_recommended:
            trigger = self._trigger(
                case_id,
                RevivalTriggerType.ELIGIBILITY_ENGINE,
                "Automated cold criteria no longer met",
                profile,
                details={
                    "noLeads": result.criteria_no_leads_90_days,
                    "noTips": result.criteria_no_tips_60_days,
                    "noActivity": result.criteria_no_activity_180_days,
                },
            )
            self._request_review(profile, case, ReviewType.TIP_TRIGGERED, trigger)

        if profile.model_dump() != snapshot:
            self._commit(profile)
        return result

    # =========================================================================
    # Cases and classification
    # =========================================================================

    async def upsert_case(self, case: CaseRecord) -> ClassificationResult:
        """Load or refresh a case from the repository, then classify it."""
        async with self.store.lock_for(case.case_id):
            self.store.upsert_case(case)
            return self._classify_locked(case.case_id)

    async def classify_case(self, case_id: str, classified_by: str = "system") -> ClassificationResult:
        async with self.store.lock_for(case_id):
            return self._classify_locked(case_id, classified_by)

    async def classify_all(self) -> Dict[str, int]:
        """Batch auto-classification over every known case."""
        counts = {outcome.value: 0 for outcome in ClassificationOutcome}
        for case_id in list(self.store.cases):
            result = await self.classify_case(case_id)
            counts[result.outcome.value] += 1
        logger.info(f"Batch classification: {counts}")
        return counts

    async def record_tip(self, event: TipReceivedEvent) -> RevivalTrigger:
        """
        Record a tip: advance timestamps, log a new_tip trigger, open (or
        join) a tip_triggered review on a cold case, then reclassify.
        """
        received = event.received_at or self.now()
        async with self.store.lock_for(event.case_id):
            case = self.store.get_case(event.case_id)
            case.last_tip_at = received
            case.last_activity_at = max(received, case.last_activity_at or received)

            profile = self.store.profile_for_case(case.case_id)
            trigger = self._trigger(case.case_id, RevivalTriggerType.NEW_TIP, event.summary, profile, event.source)
            if profile is not None and profile.is_cold and self.settings.tip_triggers_review:
                self._request_review(profile, case, ReviewType.TIP_TRIGGERED, trigger)
                self._commit(profile, rescore=False)

            self._classify_locked(case.case_id)
            return trigger

    async def record_lead(self, case_id: str, at: Optional[datetime] = None) -> ClassificationResult:
        at = at or self.now()
        async with self.store.lock_for(case_id):
            case = self.store.get_case(case_id)
            case.last_lead_at = at
            case.last_activity_at = max(at, case.last_activity_at or at)
            return self._classify_locked(case_id)

    async def record_family_request(self, event: FamilyRequestEvent) -> RevivalTrigger:
        async with self.store.lock_for(event.case_id):
            case = self.store.get_case(event.case_id)
            profile = self.store.require_profile_for_case(event.case_id)
            trigger = self._trigger(
                case.case_id, RevivalTriggerType.FAMILY_REQUEST, event.summary, profile,
                RevivalTriggerSource.FAMILY,
            )
            self._request_review(profile, case, ReviewType.SPECIAL, trigger)
            profile.family_last_contact_date = self.now()
            self._commit(profile, rescore=False)
            return trigger

    # =========================================================================
    # Reviews
    # =========================================================================

    async def create_review(self, request: CreateReviewRequest) -> ColdCaseReview:
        """
        Explicitly create a review.

        Raises:
            ConflictError: if the profile already has an open review
        """
        profile = self.store.get_profile(request.profile_id)
        async with self.store.lock_for(profile.case_id):
            case = self.store.get_case(profile.case_id)
            review = review_scheduler.create_review(
                self.store, profile, case, request.review_type, self.today(), self.settings
            )
            review_scheduler.assign_reviewer(self.store, review, profile, case, self.today(), self.settings)
            if request.review_type != ReviewType.PERIODIC:
                trigger = self._trigger(
                    case.case_id,
                    RevivalTriggerType.MANUAL,
                    request.reason or f"{request.review_type.value} review requested",
                    profile,
                    RevivalTriggerSource.ADMIN,
                    details={"requestedBy": request.requested_by},
                )
                review.trigger_ids.append(trigger.id)
            self._commit(profile, rescore=False)
            return review

    async def assign_pending_reviews(self) -> int:
        """Retry assignment for every pending, unassigned review."""
        assigned = 0
        pending = sorted(
            (r for r in self.store.reviews.values() if r.status == ReviewStatus.PENDING and r.reviewer_id is None),
            key=lambda r: (r.created_at, r.id),
        )
        for review in pending:
            async with self.store.lock_for(review.case_id):
                async with self.store.reviewer_lock:
                    profile = self.store.get_profile(review.profile_id)
                    case = self.store.get_case(review.case_id)
                    if review_scheduler.assign_reviewer(
                        self.store, review, profile, case, self.today(), self.settings
                    ):
                        assigned += 1
                        self._commit(profile, rescore=False)
        return assigned

    async def start_review(self, review_id: str, reviewer_id: Optional[str] = None) -> ColdCaseReview:
        review = self.store.get_review(review_id)
        async with self.store.lock_for(review.case_id):
            profile = self.store.get_profile(review.profile_id)
            review_scheduler.start_review(self.store, review, profile, reviewer_id, self.now())
            self._commit(profile, rescore=False)
            return review

    async def update_checklist_item(
        self,
        review_id: str,
        item_id: str,
        update: ChecklistItemUpdate,
    ) -> ChecklistItem:
        review = self.store.get_review(review_id)
        async with self.store.lock_for(review.case_id):
            item = self.store.get_checklist_item(review_id, item_id)
            checklist.apply_item_update(review, item, update, self.now())
            self._commit(self.store.get_profile(review.profile_id), rescore=False)
            return item

    async def complete_review(self, review_id: str, request: CompleteReviewRequest) -> ColdCaseReview:
        """
        Complete a review. Rejected with ValidationError, leaving the review
        unchanged, while any checklist item is non-terminal.
        """
        review = self.store.get_review(review_id)
        async with self.store.lock_for(review.case_id):
            profile = self.store.get_profile(review.profile_id)
            case = self.store.get_case(review.case_id)
            review_scheduler.complete_review(self.store, review, profile, request, self.now())

            if request.revival_decision == RevivalDecision.ARCHIVE:
                trigger = self._trigger(
                    case.case_id,
                    RevivalTriggerType.ADMIN_REVIEW,
                    f"Archive recommended by review #{review.review_number}",
                    profile,
                    details={"reviewId": review.id, "justification": request.revival_justification},
                )
                review.trigger_ids.append(trigger.id)

            if request.campaign_recommended and profile.is_cold:
                if not any(c.is_open for c in self.store.campaigns_for(profile.id)):
                    self.store.add_campaign(Campaign(
                        profile_id=profile.id,
                        case_id=case.case_id,
                        campaign_type=request.recommended_campaign_type,
                        title=f"Campaign recommended by review #{review.review_number}",
                        proposed_by=review.reviewer_id or "reviewer",
                    ))

            self._commit(profile)
            return review

    async def defer_review(self, review_id: str, request: DeferReviewRequest) -> ColdCaseReview:
        review = self.store.get_review(review_id)
        async with self.store.lock_for(review.case_id):
            profile = self.store.get_profile(review.profile_id)
            review_scheduler.defer_review(self.store, review, profile, request, self.today())
            self._commit(profile, rescore=False)
            return review

    async def schedule_due_reviews(self, case_id: str) -> Optional[ColdCaseReview]:
        """Create the periodic or anniversary review a cold case is due for, if any."""
        async with self.store.lock_for(case_id):
            profile = self.store.profile_for_case(case_id)
            if profile is None or not profile.is_cold:
                return None
            if self.store.open_review_for(profile.id) is not None:
                return None
            case = self.store.get_case(case_id)
            today = self.today()

            review_type = None
            if profile.next_review_date is not None and profile.next_review_date <= today:
                review_type = ReviewType.PERIODIC
            elif review_scheduler.is_anniversary_due(self.store, profile, today, self.settings):
                review_type = ReviewType.ANNIVERSARY
            if review_type is None:
                return None

            trigger = None
            if review_type == ReviewType.ANNIVERSARY:
                upcoming = next_anniversary(profile.anniversary_date, today)
                trigger = self._trigger(
                    case_id, RevivalTriggerType.ANNIVERSARY,
                    f"Disappearance anniversary on {upcoming}", profile,
                )
            review, _ = self._request_review(profile, case, review_type, trigger)
            self._commit(profile, rescore=False)
            return review

    # =========================================================================
    # Reviewer registry
    # =========================================================================

    async def register_reviewer(self, request: RegisterReviewerRequest) -> Reviewer:
        async with self.store.reviewer_lock:
            return review_scheduler.register_reviewer(self.store, request)

    async def update_reviewer(self, reviewer_id: str, request: UpdateReviewerRequest) -> Reviewer:
        async with self.store.reviewer_lock:
            return review_scheduler.update_reviewer(self.store, reviewer_id, request)

    # =========================================================================
    # Evidence and DNA
    # =========================================================================

    async def record_evidence(self, request: RecordEvidenceRequest) -> NewEvidence:
        """
        Record new evidence. High and critical evidence requests a special
        review; lower significance joins an already open review.
        """
        async with self.store.lock_for(request.case_id):
            case = self.store.get_case(request.case_id)
            profile = self.store.require_profile_for_case(request.case_id)
            evidence = forensics.record_evidence(profile, request, self.now())
            self.store.add_evidence(evidence)

            trigger = self._trigger(
                case.case_id,
                RevivalTriggerType.NEW_EVIDENCE,
                f"{evidence.significance.value} {evidence.evidence_type.value} evidence recorded",
                profile,
                details={"evidenceId": evidence.id},
            )
            review = None
            if forensics.requires_special_review(evidence):
                review, _ = self._request_review(profile, case, ReviewType.SPECIAL, trigger)
            else:
                review = self.store.open_review_for(profile.id)
            if review is not None:
                evidence.triggered_review_id = review.id

            self._commit(profile)
            return evidence

    async def verify_evidence(self, evidence_id: str, request: VerifyEvidenceRequest) -> NewEvidence:
        evidence = self.store.get_evidence(evidence_id)
        async with self.store.lock_for(evidence.case_id):
            forensics.verify_evidence(evidence, request, self.now())
            self._commit(self.store.get_profile(evidence.profile_id))
            return evidence

    async def mark_evidence_processed(self, evidence_id: str) -> NewEvidence:
        evidence = self.store.get_evidence(evidence_id)
        async with self.store.lock_for(evidence.case_id):
            forensics.mark_evidence_processed(evidence, self.now())
            self._commit(self.store.get_profile(evidence.profile_id))
            return evidence

    async def create_dna_submission(self, request: CreateDNASubmissionRequest) -> DNASubmission:
        async with self.store.lock_for(request.case_id):
            profile = self.store.require_profile_for_case(request.case_id)
            submission = forensics.create_dna_submission(profile, request, self.now())
            self.store.add_dna_submission(submission)
            profile.dna_samples_available = True
            self._sync_dna_status(profile)
            self._commit(profile)
            return submission

    async def advance_dna_submission(
        self,
        submission_id: str,
        request: AdvanceDNASubmissionRequest,
    ) -> DNASubmission:
        submission = self.store.get_dna_submission(submission_id)
        async with self.store.lock_for(submission.case_id):
            profile = self.store.get_profile(submission.profile_id)
            forensics.advance_dna_submission(submission, request, self.now())
            self._after_dna_change(profile, submission)
            return submission

    async def record_lab_result(self, result: DNALabResult) -> DNASubmission:
        """Apply a forensic lab result delivered by reference id."""
        submission = self.store.dna_by_lab_reference(result.lab_reference_id)
        async with self.store.lock_for(submission.case_id):
            profile = self.store.get_profile(submission.profile_id)
            forensics.record_lab_result(submission, result, self.now())
            self._after_dna_change(profile, submission)
            return submission

    def _sync_dna_status(self, profile: ColdCaseProfile) -> None:
        profile.dna_status = forensics.derive_profile_dna_status(self.store.dna_for(profile.id))

    def _after_dna_change(self, profile: ColdCaseProfile, submission: DNASubmission) -> None:
        self._sync_dna_status(profile)
        if submission.submitted_at is not None:
            profile.dna_last_submission_date = submission.submitted_at.date()

        if submission.status == DNASubmissionStatus.MATCH_FOUND:
            case = self.store.get_case(profile.case_id)
            trigger = self._trigger(
                case.case_id,
                RevivalTriggerType.NEW_EVIDENCE,
                f"DNA match reported by {submission.database_name}",
                profile,
                RevivalTriggerSource.PARTNER,
                details={"submissionId": submission.id, "labReferenceId": submission.lab_reference_id},
            )
            self._request_review(profile, case, ReviewType.SPECIAL, trigger)
        self._commit(profile)

    # =========================================================================
    # Pattern matching
    # =========================================================================

    def _upsert_candidates(self, candidates: List[pattern_matching.PatternCandidate]) -> List[PatternMatch]:
        """
        Persist candidates. Existing unreviewed edges (in either direction)
        are updated in place; reviewed edges are left as decided.
        """
        now = self.now()
        persisted: List[PatternMatch] = []
        for candidate in candidates:
            existing = self.store.find_pattern_match(
                candidate.source_case_id, candidate.matched_case_id, candidate.match_type
            ) or self.store.find_pattern_match(
                candidate.matched_case_id, candidate.source_case_id, candidate.match_type
            )
            if existing is not None:
                if not existing.reviewed:
                    existing.similarity_score = candidate.similarity
                    existing.confidence = candidate.confidence
                    existing.sub_scores = candidate.sub_scores
                    existing.matching_factors = candidate.matching_factors
                    existing.distance_km = candidate.distance_km
                    existing.days_apart = candidate.days_apart
                    existing.updated_at = now
                persisted.append(existing)
                continue

            persisted.append(self.store.add_pattern_match(PatternMatch(
                source_case_id=candidate.source_case_id,
                matched_case_id=candidate.matched_case_id,
                match_type=candidate.match_type,
                similarity_score=candidate.similarity,
                confidence=candidate.confidence,
                matching_factors=candidate.matching_factors,
                sub_scores=candidate.sub_scores,
                distance_km=candidate.distance_km,
                days_apart=candidate.days_apart,
                created_at=now,
                updated_at=now,
            )))
        return persisted

    def _drop_unqualified_edges(
        self,
        scanned_case_ids: Iterable[str],
        candidates: List[pattern_matching.PatternCandidate],
    ) -> int:
        """
        Remove unreviewed edges of the scanned cases that the latest scan no
        longer produced, so stored matches stay at or above the minimum
        confidence. Reviewed edges keep their determination.
        """
        qualifying = {
            (frozenset((c.source_case_id, c.matched_case_id)), c.match_type) for c in candidates
        }
        dropped = 0
        for case_id in scanned_case_ids:
            for match in self.store.matches_for_case(case_id):
                key = (frozenset((match.source_case_id, match.matched_case_id)), match.match_type)
                if match.reviewed or key in qualifying:
                    continue
                self.store.remove_pattern_match(match.id)
                dropped += 1
        if dropped:
            logger.info(f"Dropped {dropped} unreviewed pattern match(es) below the minimum confidence")
        return dropped

    async def run_pattern_analysis(self, case_id: str) -> List[PatternMatch]:
        """Compare one case against the corpus and persist qualifying matches."""
        source = self.store.get_case(case_id).model_copy(deep=True)
        corpus = [c.model_copy(deep=True) for c in self.store.cases.values()]
        candidates = await asyncio.to_thread(
            pattern_matching.find_candidates, source, corpus, self.settings
        )
        async with self.store.lock_for(case_id):
            self._drop_unqualified_edges([case_id], candidates)
            matches = self._upsert_candidates(candidates)
            profile = self.store.profile_for_case(case_id)
            if profile is not None:
                profile.last_pattern_analysis = self.now()
                self._commit(profile, rescore=False)
        return matches

    async def persist_pattern_candidates(
        self,
        candidates: List[pattern_matching.PatternCandidate],
        scanned_case_ids: Optional[Iterable[str]] = None,
    ) -> List[PatternMatch]:
        """
        Persist candidates produced by a corpus scan shard. Pass the shard's
        source ids so sources that no longer match anything are pruned too.
        """
        scanned = sorted(set(scanned_case_ids or ()) | {c.source_case_id for c in candidates})
        self._drop_unqualified_edges(scanned, candidates)
        matches = self._upsert_candidates(candidates)
        now = self.now()
        for case_id in scanned:
            profile = self.store.profile_for_case(case_id)
            if profile is not None:
                async with self.store.lock_for(case_id):
                    profile.last_pattern_analysis = now
                    self._commit(profile, rescore=False)
        return matches

    async def review_pattern_match(self, match_id: str, request: PatternReviewRequest) -> PatternMatch:
        """
        Record a human determination on a pattern match.

        confirmed / possible link the two cases; confirmed also writes a
        pattern_match trigger and requests a special review on each cold side,
        and feeds both scores.

        Raises:
            ValidationError: if the match was already reviewed, or an
                investigation is requested on a non-confirmed match
        """
        match = self.store.get_pattern_match(match_id)
        if match.reviewed:
            raise ValidationError(f"Pattern match {match_id} has already been reviewed", code="already_reviewed")
        confirmed = request.determination == PatternDetermination.CONFIRMED
        if request.open_investigation and not confirmed:
            raise ValidationError("Only a confirmed pattern match can open an investigation")

        match.reviewed = True
        match.determination = request.determination
        match.reviewed_by = request.reviewed_by
        match.reviewed_at = self.now()
        match.review_notes = request.notes
        match.investigation_opened = request.open_investigation
        match.updated_at = self.now()

        if request.determination in (PatternDetermination.CONFIRMED, PatternDetermination.POSSIBLE):
            self.store.link_cases(match.source_case_id, match.matched_case_id, pattern_match_id=match.id)

        if confirmed:
            for case_id, other_id in (
                (match.source_case_id, match.matched_case_id),
                (match.matched_case_id, match.source_case_id),
            ):
                async with self.store.lock_for(case_id):
                    profile = self.store.profile_for_case(case_id)
                    if profile is None:
                        continue
                    case = self.store.get_case(case_id)
                    trigger = self._trigger(
                        case_id,
                        RevivalTriggerType.PATTERN_MATCH,
                        f"Confirmed {match.confidence.value} {match.match_type.value} match with case {other_id}",
                        profile,
                        details={"patternMatchId": match.id, "matchedCaseId": other_id},
                    )
                    self._request_review(profile, case, ReviewType.SPECIAL, trigger)
                    self._commit(profile)

        logger.info(f"Pattern match {match_id} reviewed: {request.determination.value}")
        return match

    async def apply_pattern_clusters(self, membership: Dict[str, List[str]]) -> int:
        """Write cluster membership to profiles; returns the number changed."""
        changed = 0
        for case_id, clusters in membership.items():
            profile = self.store.profile_for_case(case_id)
            if profile is None or profile.pattern_clusters == clusters:
                continue
            async with self.store.lock_for(case_id):
                profile.pattern_clusters = clusters
                self._commit(profile, rescore=False)
                changed += 1
        return changed

    # =========================================================================
    # Campaigns
    # =========================================================================

    async def create_campaign(self, request: CreateCampaignRequest) -> Campaign:
        async with self.store.lock_for(request.case_id):
            profile = self.store.require_profile_for_case(request.case_id)
            campaign = self.store.add_campaign(campaigns.create_campaign(profile, request))
            self._commit(profile, rescore=False)
            return campaign

    async def schedule_campaign(self, campaign_id: str, request: ScheduleCampaignRequest) -> Campaign:
        campaign = self.store.get_campaign(campaign_id)
        async with self.store.lock_for(campaign.case_id):
            campaigns.schedule_campaign(campaign, request)
            self._commit(self.store.get_profile(campaign.profile_id), rescore=False)
            return campaign

    async def activate_campaign(self, campaign_id: str) -> Campaign:
        """
        Activate a scheduled campaign and hand its payload to the dispatcher.

        The campaign stays scheduled when the dispatcher fails
        (TransientDependencyError propagates).
        """
        campaign = self.store.get_campaign(campaign_id)
        async with self.store.lock_for(campaign.case_id):
            campaigns.validate_activation(campaign)
            await self.dispatcher.dispatch_campaign(campaigns.campaign_payload(campaign))
            campaigns.activate_campaign(campaign, self.now())
            self._commit(self.store.get_profile(campaign.profile_id), rescore=False)
            return campaign

    async def complete_campaign(self, campaign_id: str, request: CompleteCampaignRequest) -> Campaign:
        """Complete a campaign; its tips and leads feed the classification engine."""
        campaign = self.store.get_campaign(campaign_id)
        async with self.store.lock_for(campaign.case_id):
            campaigns.complete_campaign(campaign, request, self.now())
            case = self.store.get_case(campaign.case_id)
            profile = self.store.get_profile(campaign.profile_id)
            if campaigns.apply_campaign_feedback(case, campaign, self.now()):
                self._classify_locked(case.case_id)
            self._commit(profile, rescore=False)
            return campaign

    async def cancel_campaign(self, campaign_id: str, reason: Optional[str] = None) -> Campaign:
        campaign = self.store.get_campaign(campaign_id)
        async with self.store.lock_for(campaign.case_id):
            campaigns.cancel_campaign(campaign, reason, self.now())
            self._commit(self.store.get_profile(campaign.profile_id), rescore=False)
            return campaign

    async def propose_anniversary_campaign(self, case_id: str) -> Optional[Campaign]:
        async with self.store.lock_for(case_id):
            profile = self.store.profile_for_case(case_id)
            if profile is None:
                return None
            before = profile.next_anniversary_campaign
            campaign = campaigns.propose_anniversary_campaign(
                self.store, profile, self.store.get_case(case_id), self.today(), self.settings
            )
            if campaign is not None or profile.next_anniversary_campaign != before:
                self._commit(profile, rescore=False)
            return campaign

    # =========================================================================
    # Queries
    # =========================================================================

    def ranked_cold_cases(
        self,
        classification_filter: Optional[ColdCaseClassification] = None,
        dna_status: Optional[DNASubmissionStatus] = None,
        overdue_only: bool = False,
        upcoming_anniversary_days: Optional[int] = None,
        min_score: Optional[float] = None,
        limit: int = 100,
    ) -> List[ColdCaseSummary]:
        """Cold cases ordered by revival priority score, highest first."""
        today = self.today()
        overdue_profiles = {r.profile_id for r in review_scheduler.list_overdue_reviews(self.store, today)}

        rows: List[ColdCaseSummary] = []
        for profile in self.store.cold_profiles():
            if classification_filter is not None and profile.classification != classification_filter:
                continue
            if dna_status is not None and profile.dna_status != dna_status:
                continue
            if min_score is not None and profile.revival_priority_score < min_score:
                continue

            review_overdue = (
                profile.id in overdue_profiles
                or (profile.next_review_date is not None and profile.next_review_date < today
                    and self.store.open_review_for(profile.id) is None)
            )
            if overdue_only and not review_overdue:
                continue
            if upcoming_anniversary_days is not None:
                upcoming = next_anniversary(profile.anniversary_date, today)
                if upcoming is None or (upcoming - today).days > upcoming_anniversary_days:
                    continue

            case = self.store.get_case(profile.case_id)
            rows.append(ColdCaseSummary(
                profile_id=profile.id,
                case_id=case.case_id,
                case_number=case.case_number,
                classification=profile.classification,
                revival_priority_score=profile.revival_priority_score,
                review_frequency=profile.review_frequency,
                next_review_date=profile.next_review_date,
                dna_status=profile.dna_status,
                anniversary_date=profile.anniversary_date,
                days_since_cold=profile.days_since_cold(self.now()),
                is_overdue=review_overdue,
                has_open_review=self.store.open_review_for(profile.id) is not None,
            ))

        rows.sort(key=lambda r: (-r.revival_priority_score, r.case_number))
        return rows[:limit]
