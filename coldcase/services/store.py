"""
Case Store

In-memory arena holding every cold case entity by id. Relations are kept as
id indexes (profile -> reviews, review -> checklist items, case -> pattern
matches, ...) rather than object references, so entities can be serialized
and persisted independently.

Concurrency:
- lock_for(case_id) returns the per-profile asyncio.Lock that serializes
  state transitions on one case; it is keyed by case id because a case owns
  exactly one profile, and exists before the profile does
- touch(profile) bumps profile.version on every committed mutation; the
  recompute queue uses the version for optimistic commits
- the reviewer registry is shared across cases and has its own lock

The store is loaded from the case repository at startup (see
services/repository.py) and is the source of truth for the API.
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from coldcase.core.errors import NotFoundError
from coldcase.core.timeutil import utc_now
from coldcase.models.enums import CaseLinkType, ChecklistCategory, PatternMatchType
from coldcase.models.schemas import (
    Campaign,
    CaseLink,
    CaseRecord,
    ChecklistItem,
    ChecklistTemplate,
    ColdCaseMetricsSnapshot,
    ColdCaseProfile,
    ColdCaseReview,
    DNASubmission,
    NewEvidence,
    PatternMatch,
    Reviewer,
)
from coldcase.services.triggers import TriggerLog


logger = logging.getLogger(__name__)

PatternKey = Tuple[str, str, PatternMatchType]

_CATEGORY_ORDER = {category: index for index, category in enumerate(ChecklistCategory)}


class CaseStore:
    """Arena of cases, profiles and their child entities."""

    def __init__(self) -> None:
        self.cases: Dict[str, CaseRecord] = {}
        self.profiles: Dict[str, ColdCaseProfile] = {}
        self.reviews: Dict[str, ColdCaseReview] = {}
        self.checklist_items: Dict[str, ChecklistItem] = {}
        self.templates: Dict[str, ChecklistTemplate] = {}
        self.dna_submissions: Dict[str, DNASubmission] = {}
        self.evidence: Dict[str, NewEvidence] = {}
        self.pattern_matches: Dict[str, PatternMatch] = {}
        self.campaigns: Dict[str, Campaign] = {}
        self.reviewers: Dict[str, Reviewer] = {}
        self.metrics_history: List[ColdCaseMetricsSnapshot] = []
        self.triggers = TriggerLog()

        # Ownership indexes
        self._profile_by_case: Dict[str, str] = {}
        self._reviews_by_profile: Dict[str, List[str]] = {}
        self._items_by_review: Dict[str, List[str]] = {}
        self._dna_by_profile: Dict[str, List[str]] = {}
        self._evidence_by_profile: Dict[str, List[str]] = {}
        self._campaigns_by_profile: Dict[str, List[str]] = {}
        self._pattern_by_key: Dict[PatternKey, str] = {}
        self._links: Dict[Tuple[str, str], CaseLink] = {}

        self._locks: Dict[str, asyncio.Lock] = {}
        self.reviewer_lock = asyncio.Lock()

    # =========================================================================
    # Locking and versioning
    # =========================================================================

    def lock_for(self, case_id: str) -> asyncio.Lock:
        lock = self._locks.get(case_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[case_id] = lock
        return lock

    def touch(self, profile: ColdCaseProfile) -> int:
        """Record a committed mutation on the profile and return its new version."""
        profile.version += 1
        profile.updated_at = utc_now()
        return profile.version

    # =========================================================================
    # Cases and profiles
    # =========================================================================

    def upsert_case(self, case: CaseRecord) -> CaseRecord:
        self.cases[case.case_id] = case
        return case

    def get_case(self, case_id: str) -> CaseRecord:
        case = self.cases.get(case_id)
        if case is None:
            raise NotFoundError(f"Case {case_id} not found")
        return case

    def add_profile(self, profile: ColdCaseProfile) -> ColdCaseProfile:
        self.profiles[profile.id] = profile
        self._profile_by_case[profile.case_id] = profile.id
        return profile

    def get_profile(self, profile_id: str) -> ColdCaseProfile:
        profile = self.profiles.get(profile_id)
        if profile is None:
            raise NotFoundError(f"Cold case profile {profile_id} not found")
        return profile

    def profile_for_case(self, case_id: str) -> Optional[ColdCaseProfile]:
        profile_id = self._profile_by_case.get(case_id)
        return self.profiles.get(profile_id) if profile_id else None

    def require_profile_for_case(self, case_id: str) -> ColdCaseProfile:
        profile = self.profile_for_case(case_id)
        if profile is None:
            raise NotFoundError(f"Case {case_id} has no cold case profile")
        return profile

    def cold_profiles(self) -> List[ColdCaseProfile]:
        return [p for p in self.profiles.values() if p.is_cold]

    # =========================================================================
    # Reviews and checklist items
    # =========================================================================

    def add_review(self, review: ColdCaseReview) -> ColdCaseReview:
        self.reviews[review.id] = review
        self._reviews_by_profile.setdefault(review.profile_id, []).append(review.id)
        return review

    def get_review(self, review_id: str) -> ColdCaseReview:
        review = self.reviews.get(review_id)
        if review is None:
            raise NotFoundError(f"Review {review_id} not found")
        return review

    def reviews_for(self, profile_id: str) -> List[ColdCaseReview]:
        return [self.reviews[rid] for rid in self._reviews_by_profile.get(profile_id, [])]

    def open_review_for(self, profile_id: str) -> Optional[ColdCaseReview]:
        for review in self.reviews_for(profile_id):
            if review.is_open:
                return review
        return None

    def next_review_number(self, profile_id: str) -> int:
        return len(self._reviews_by_profile.get(profile_id, [])) + 1

    def add_checklist_items(self, items: Iterable[ChecklistItem]) -> None:
        for item in items:
            self.checklist_items[item.id] = item
            self._items_by_review.setdefault(item.review_id, []).append(item.id)

    def checklist_for(self, review_id: str) -> List[ChecklistItem]:
        items = [self.checklist_items[iid] for iid in self._items_by_review.get(review_id, [])]
        return sorted(items, key=lambda i: (i.item_order, _CATEGORY_ORDER[i.category]))

    def get_checklist_item(self, review_id: str, item_id: str) -> ChecklistItem:
        item = self.checklist_items.get(item_id)
        if item is None or item.review_id != review_id:
            raise NotFoundError(f"Checklist item {item_id} not found on review {review_id}")
        return item

    def add_template(self, template: ChecklistTemplate) -> ChecklistTemplate:
        self.templates[template.id] = template
        return template

    # =========================================================================
    # Forensics
    # =========================================================================

    def add_dna_submission(self, submission: DNASubmission) -> DNASubmission:
        self.dna_submissions[submission.id] = submission
        self._dna_by_profile.setdefault(submission.profile_id, []).append(submission.id)
        return submission

    def get_dna_submission(self, submission_id: str) -> DNASubmission:
        submission = self.dna_submissions.get(submission_id)
        if submission is None:
            raise NotFoundError(f"DNA submission {submission_id} not found")
        return submission

    def dna_for(self, profile_id: str) -> List[DNASubmission]:
        return [self.dna_submissions[sid] for sid in self._dna_by_profile.get(profile_id, [])]

    def dna_by_lab_reference(self, lab_reference_id: str) -> DNASubmission:
        for submission in self.dna_submissions.values():
            if submission.lab_reference_id == lab_reference_id:
                return submission
        raise NotFoundError(f"No DNA submission with lab reference {lab_reference_id}")

    def add_evidence(self, evidence: NewEvidence) -> NewEvidence:
        self.evidence[evidence.id] = evidence
        self._evidence_by_profile.setdefault(evidence.profile_id, []).append(evidence.id)
        return evidence

    def get_evidence(self, evidence_id: str) -> NewEvidence:
        evidence = self.evidence.get(evidence_id)
        if evidence is None:
            raise NotFoundError(f"Evidence {evidence_id} not found")
        return evidence

    def evidence_for(self, profile_id: str) -> List[NewEvidence]:
        return [self.evidence[eid] for eid in self._evidence_by_profile.get(profile_id, [])]

    # =========================================================================
    # Pattern matches and case links
    # =========================================================================

    def find_pattern_match(
        self,
        source_case_id: str,
        matched_case_id: str,
        match_type: PatternMatchType,
    ) -> Optional[PatternMatch]:
        match_id = self._pattern_by_key.get((source_case_id, matched_case_id, match_type))
        return self.pattern_matches.get(match_id) if match_id else None

    def add_pattern_match(self, match: PatternMatch) -> PatternMatch:
        key = (match.source_case_id, match.matched_case_id, match.match_type)
        if key in self._pattern_by_key:
            raise ValueError(f"Pattern match already exists for {key}")
        self.pattern_matches[match.id] = match
        self._pattern_by_key[key] = match.id
        return match

    def remove_pattern_match(self, match_id: str) -> None:
        match = self.pattern_matches.pop(match_id)
        self._pattern_by_key.pop((match.source_case_id, match.matched_case_id, match.match_type), None)

    def get_pattern_match(self, match_id: str) -> PatternMatch:
        match = self.pattern_matches.get(match_id)
        if match is None:
            raise NotFoundError(f"Pattern match {match_id} not found")
        return match

    def matches_for_case(self, case_id: str) -> List[PatternMatch]:
        """Edges where the case is either the source or the matched side."""
        return [
            m for m in self.pattern_matches.values()
            if m.source_case_id == case_id or m.matched_case_id == case_id
        ]

    def link_cases(
        self,
        case_a: str,
        case_b: str,
        link_type: CaseLinkType = CaseLinkType.POTENTIALLY_LINKED,
        pattern_match_id: Optional[str] = None,
    ) -> CaseLink:
        """Create the undirected link between two cases, returning the existing one if present."""
        key = tuple(sorted((case_a, case_b)))
        link = self._links.get(key)
        if link is None:
            link = CaseLink(
                source_case_id=key[0],
                linked_case_id=key[1],
                link_type=link_type,
                pattern_match_id=pattern_match_id,
            )
            self._links[key] = link
        return link

    def linked_case_ids(self, case_id: str) -> List[str]:
        linked = []
        for a, b in self._links:
            if a == case_id:
                linked.append(b)
            elif b == case_id:
                linked.append(a)
        return sorted(linked)

    # =========================================================================
    # Campaigns and reviewers
    # =========================================================================

    def add_campaign(self, campaign: Campaign) -> Campaign:
        self.campaigns[campaign.id] = campaign
        self._campaigns_by_profile.setdefault(campaign.profile_id, []).append(campaign.id)
        return campaign

    def get_campaign(self, campaign_id: str) -> Campaign:
        campaign = self.campaigns.get(campaign_id)
        if campaign is None:
            raise NotFoundError(f"Campaign {campaign_id} not found")
        return campaign

    def campaigns_for(self, profile_id: str) -> List[Campaign]:
        return [self.campaigns[cid] for cid in self._campaigns_by_profile.get(profile_id, [])]

    def add_reviewer(self, reviewer: Reviewer) -> Reviewer:
        self.reviewers[reviewer.id] = reviewer
        return reviewer

    def get_reviewer(self, reviewer_id: str) -> Reviewer:
        reviewer = self.reviewers.get(reviewer_id)
        if reviewer is None:
            raise NotFoundError(f"Reviewer {reviewer_id} not found")
        return reviewer
