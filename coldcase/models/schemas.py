"""
Pydantic entities and request/response models for the cold case backend.

Entities (ColdCaseProfile, ColdCaseReview, ChecklistItem, ...) are held in the
in-memory CaseStore arena and mutated under the owning profile's lock. All
models use snake_case attributes with camelCase aliases so the API speaks the
same JSON shape as the case repository front end.

Sections:
- Shared configuration and priority factors
- Case repository input (CaseRecord, CaseActivitySummary)
- Profile, review, checklist, trigger entities
- Forensic entities (DNASubmission, NewEvidence)
- Pattern entities (PatternMatch, CaseLink)
- Campaign and reviewer entities
- Metrics snapshot
- Command request models
- Query response models
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from coldcase.core.timeutil import days_between, utc_now
from coldcase.models.enums import (
    CampaignStatus,
    CampaignType,
    CaseLinkType,
    ChecklistCategory,
    ChecklistStatus,
    ClassificationOutcome,
    ColdCaseClassification,
    DNASubmissionStatus,
    EvidenceType,
    PatternConfidence,
    PatternDetermination,
    PatternMatchType,
    PriorityFactorKind,
    ReviewFrequency,
    ReviewStatus,
    ReviewType,
    RevivalDecision,
    RevivalTriggerSource,
    RevivalTriggerType,
    SignificanceLevel,
    VerificationStatus,
)


def new_id() -> str:
    return str(uuid4())


# =============================================================================
# Shared Configuration
# =============================================================================


class CamelModel(BaseModel):
    """Base model: snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class PriorityFactor(CamelModel):
    """
    One stored contribution to a revival priority score.

    additive factors are summed, the decay factor is subtracted (floored at 0),
    multiplier factors are applied to the decayed sum.
    """
    factor: str
    weight: float
    kind: PriorityFactorKind = PriorityFactorKind.ADDITIVE


# =============================================================================
# Case Repository Input
# =============================================================================


class CaseRecord(CamelModel):
    """
    Case metadata consumed from the case repository.

    The cold case backend never edits case intake fields; it only advances the
    activity timestamps when completed campaigns report tips and leads.
    """
    case_id: str
    case_number: str
    jurisdiction_id: Optional[str] = None
    region: Optional[str] = None
    last_seen_date: date
    last_seen_latitude: Optional[float] = None
    last_seen_longitude: Optional[float] = None
    age_at_disappearance: Optional[int] = Field(default=None, ge=0, le=130)
    gender: Optional[str] = None
    is_minor: bool = False
    is_indigenous: bool = False
    is_high_vulnerability: bool = False
    is_resolved: bool = False
    circumstance_tags: List[str] = Field(default_factory=list)
    last_lead_at: Optional[datetime] = None
    last_tip_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None
    manually_marked_cold: bool = False
    resource_constrained: bool = False
    revival_approved: bool = False


class CaseActivitySummary(CamelModel):
    """
    Classification engine input.

    Day counts are None when the case has no recorded event of that kind, in
    which case the elapsed time since the last-seen date is used upstream.
    """
    days_since_last_lead: int = Field(ge=0)
    days_since_last_tip: int = Field(ge=0)
    days_since_last_activity: int = Field(ge=0)
    manually_marked_cold: bool = False
    resource_constrained: bool = False
    revival_approved: bool = False


class ClassificationResult(CamelModel):
    """Decision produced by evaluate_classification()."""
    outcome: ClassificationOutcome
    classification: Optional[ColdCaseClassification] = None
    reason: str
    criteria_no_leads_90_days: bool = False
    criteria_no_tips_60_days: bool = False
    criteria_no_activity_180_days: bool = False
    criteria_manually_marked: bool = False
    criteria_resource_constraints: bool = False
    revival_recommended: bool = False


# =============================================================================
# Profile, Review, Checklist, Trigger Entities
# =============================================================================


class ColdCaseProfile(CamelModel):
    """
    Cold case state for one case. Exactly one profile exists per case;
    reclassification to active keeps the profile and its history.
    """
    id: str = Field(default_factory=new_id)
    case_id: str

    classification: ColdCaseClassification
    classification_reason: str = ""
    classified_at: datetime = Field(default_factory=utc_now)
    classified_by: str = "system"
    became_cold_at: Optional[datetime] = None
    # Classification to restore when an in-progress review finishes
    classification_before_review: Optional[ColdCaseClassification] = None

    criteria_no_leads_90_days: bool = False
    criteria_no_tips_60_days: bool = False
    criteria_no_activity_180_days: bool = False
    criteria_manually_marked: bool = False
    criteria_resource_constraints: bool = False
    revival_recommended: bool = False

    review_frequency: ReviewFrequency = ReviewFrequency.SEMI_ANNUAL
    last_review_date: Optional[date] = None
    next_review_date: Optional[date] = None
    next_review_deferred: bool = False
    reviews_completed: int = 0
    current_reviewer_id: Optional[str] = None
    review_started_at: Optional[datetime] = None
    review_due_date: Optional[date] = None

    revival_attempts: int = 0
    last_revival_attempt: Optional[datetime] = None
    revival_success_count: int = 0
    # Set when a reviewer decides to revive; dominates the automated thresholds
    revival_approved_at: Optional[datetime] = None

    dna_status: DNASubmissionStatus = DNASubmissionStatus.NOT_SUBMITTED
    dna_samples_available: bool = False
    dna_last_submission_date: Optional[date] = None

    anniversary_date: Optional[date] = None
    last_anniversary_campaign: Optional[date] = None
    next_anniversary_campaign: Optional[date] = None
    last_anniversary_review_year: Optional[int] = None

    pattern_match_enabled: bool = True
    last_pattern_analysis: Optional[datetime] = None
    pattern_clusters: List[str] = Field(default_factory=list)

    revival_priority_score: float = Field(default=0.0, ge=0.0, le=100.0)
    revival_priority_factors: List[PriorityFactor] = Field(default_factory=list)
    priority_computed_at: Optional[datetime] = None

    family_notified_of_cold_status: bool = False
    family_notification_date: Optional[datetime] = None
    family_contact_preference: Optional[str] = None
    family_last_contact_date: Optional[datetime] = None
    family_opted_out_notifications: bool = False

    revival_notes: Optional[str] = None
    version: int = 0
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_cold(self) -> bool:
        return self.classification != ColdCaseClassification.RECLASSIFIED_ACTIVE

    def days_since_cold(self, now: Optional[datetime] = None) -> Optional[int]:
        """Whole days since the case became cold, None when it never did."""
        return days_between(self.became_cold_at, now or utc_now())


class ColdCaseReview(CamelModel):
    id: str = Field(default_factory=new_id)
    profile_id: str
    case_id: str
    review_number: int
    review_type: ReviewType
    status: ReviewStatus = ReviewStatus.PENDING

    reviewer_id: Optional[str] = None
    assigned_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    due_date: date
    deferred_until: Optional[date] = None
    defer_reason: Optional[str] = None
    template_id: Optional[str] = None

    new_leads_identified: bool = False
    new_evidence_found: bool = False
    dna_resubmission_recommended: bool = False
    campaign_recommended: bool = False
    recommended_campaign_type: Optional[CampaignType] = None
    escalation_recommended: bool = False

    revival_decision: Optional[RevivalDecision] = None
    revival_justification: Optional[str] = None
    summary: Optional[str] = None
    recommendations: Optional[str] = None
    next_steps: Optional[str] = None

    family_notified: bool = False
    family_notification_date: Optional[datetime] = None
    family_notification_method: Optional[str] = None

    # Triggers recorded against this review, including ones that arrived
    # while it was already open
    trigger_ids: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def is_open(self) -> bool:
        return self.status in (ReviewStatus.PENDING, ReviewStatus.IN_PROGRESS)


class ChecklistTemplateItem(CamelModel):
    category: ChecklistCategory
    item_order: int
    item_name: str
    item_description: Optional[str] = None


class ChecklistTemplate(CamelModel):
    id: str = Field(default_factory=new_id)
    name: str
    description: Optional[str] = None
    items: List[ChecklistTemplateItem]
    is_default: bool = False
    is_active: bool = True
    # Case flags this template applies to: "minor", "indigenous", "high_vulnerability"
    case_types: List[str] = Field(default_factory=list)


class ChecklistItem(CamelModel):
    id: str = Field(default_factory=new_id)
    review_id: str
    category: ChecklistCategory
    item_order: int
    item_name: str
    item_description: Optional[str] = None
    status: ChecklistStatus = ChecklistStatus.PENDING
    completed_at: Optional[datetime] = None
    completed_by: Optional[str] = None
    result_summary: Optional[str] = None
    findings: Optional[str] = None
    action_required: bool = False
    action_description: Optional[str] = None
    notes: Optional[str] = None
    updated_at: datetime = Field(default_factory=utc_now)


class RevivalTrigger(CamelModel):
    """Append-only revival trigger; never edited once written."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    id: str = Field(default_factory=new_id)
    seq: int
    case_id: str
    profile_id: Optional[str] = None
    trigger_type: RevivalTriggerType
    trigger_source: RevivalTriggerSource = RevivalTriggerSource.SYSTEM
    trigger_summary: str
    trigger_details: Dict[str, Any] = Field(default_factory=dict)
    review_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# Forensic Entities
# =============================================================================


class DNASubmission(CamelModel):
    id: str = Field(default_factory=new_id)
    profile_id: str
    case_id: str
    database_name: str
    submission_type: str = "initial"
    sample_type: Optional[str] = None
    status: DNASubmissionStatus = DNASubmissionStatus.PENDING_SUBMISSION
    lab_reference_id: Optional[str] = None
    submitted_at: Optional[datetime] = None
    result_received_at: Optional[datetime] = None
    result_summary: Optional[str] = None
    match_details: Dict[str, Any] = Field(default_factory=dict)
    resubmission_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class NewEvidence(CamelModel):
    id: str = Field(default_factory=new_id)
    profile_id: str
    case_id: str
    evidence_type: EvidenceType
    evidence_description: str
    evidence_source: Optional[str] = None
    discovered_at: datetime = Field(default_factory=utc_now)
    significance: SignificanceLevel
    verification_status: VerificationStatus = VerificationStatus.UNVERIFIED
    verified_at: Optional[datetime] = None
    verified_by: Optional[str] = None
    processed: bool = False
    processed_at: Optional[datetime] = None
    triggered_review_id: Optional[str] = None


# =============================================================================
# Pattern Entities
# =============================================================================


class PatternMatch(CamelModel):
    """Directed similarity edge from source_case_id to matched_case_id."""
    id: str = Field(default_factory=new_id)
    source_case_id: str
    matched_case_id: str
    match_type: PatternMatchType
    similarity_score: float = Field(ge=0.0, le=1.0)
    confidence: PatternConfidence
    matching_factors: List[str] = Field(default_factory=list)
    sub_scores: Dict[str, float] = Field(default_factory=dict)
    distance_km: Optional[float] = None
    days_apart: Optional[int] = None
    reviewed: bool = False
    determination: Optional[PatternDetermination] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    investigation_opened: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class CaseLink(CamelModel):
    source_case_id: str
    linked_case_id: str
    link_type: CaseLinkType = CaseLinkType.POTENTIALLY_LINKED
    pattern_match_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# Campaign and Reviewer Entities
# =============================================================================


class Campaign(CamelModel):
    id: str = Field(default_factory=new_id)
    profile_id: str
    case_id: str
    campaign_type: CampaignType
    status: CampaignStatus = CampaignStatus.DRAFT
    title: str
    headline: Optional[str] = None
    description: Optional[str] = None
    channels: List[str] = Field(default_factory=list)

    scheduled_start: Optional[date] = None
    scheduled_end: Optional[date] = None
    activated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None

    target_reach: Optional[int] = Field(default=None, ge=0)
    target_engagement: Optional[float] = Field(default=None, ge=0)
    target_tips: Optional[int] = Field(default=None, ge=0)
    actual_reach: Optional[int] = Field(default=None, ge=0)
    actual_shares: Optional[int] = Field(default=None, ge=0)
    actual_tips: Optional[int] = Field(default=None, ge=0)
    actual_leads: Optional[int] = Field(default=None, ge=0)
    engagement_rate: Optional[float] = None

    is_anniversary_campaign: bool = False
    anniversary_year: Optional[int] = None
    years_since_disappearance: Optional[int] = None
    proposed_by: str = "system"
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def is_open(self) -> bool:
        return self.status in (
            CampaignStatus.DRAFT,
            CampaignStatus.SCHEDULED,
            CampaignStatus.ACTIVE,
        )


class Reviewer(CamelModel):
    id: str = Field(default_factory=new_id)
    name: str
    email: Optional[str] = None
    is_active: bool = True
    specializations: List[str] = Field(default_factory=list)
    max_concurrent_reviews: int = Field(default=5, ge=1)
    current_assignments: int = Field(default=0, ge=0)
    rotation_priority: int = 0
    last_assignment_date: Optional[date] = None
    next_available_date: Optional[date] = None
    excluded_jurisdictions: List[str] = Field(default_factory=list)

    total_reviews_completed: int = 0
    total_revivals_achieved: int = 0
    revival_success_rate: float = 0.0
    average_review_duration_days: Optional[float] = None


# =============================================================================
# Metrics Snapshot
# =============================================================================


class ColdCaseMetricsSnapshot(CamelModel):
    """Timestamped program statistics, recomputed on demand or daily."""
    snapshot_at: datetime = Field(default_factory=utc_now)
    total_cold_cases: int = 0
    by_classification: Dict[str, int] = Field(default_factory=dict)

    cold_under_1_year: int = 0
    cold_1_to_2_years: int = 0
    cold_2_to_5_years: int = 0
    cold_5_to_10_years: int = 0
    cold_over_10_years: int = 0

    reviews_due: int = 0
    reviews_overdue: int = 0
    reviews_in_progress: int = 0
    reviews_completed_30d: int = 0
    revivals_30d: int = 0
    revival_rate: float = 0.0

    campaigns_active: int = 0
    campaign_tips_total: int = 0
    campaign_leads_total: int = 0
    average_engagement_rate: Optional[float] = None

    dna_pending: int = 0
    dna_matches: int = 0

    pattern_matches_unreviewed: int = 0
    pattern_matches_confirmed: int = 0

    average_priority_score: float = 0.0
    high_priority_cases: int = 0


# =============================================================================
# Command Request Models
# =============================================================================


class CreateReviewRequest(CamelModel):
    profile_id: str
    review_type: ReviewType = ReviewType.SPECIAL
    requested_by: str = "admin"
    reason: Optional[str] = None


class CompleteReviewRequest(CamelModel):
    revival_decision: RevivalDecision
    revival_justification: Optional[str] = None
    summary: str = Field(..., min_length=1)
    recommendations: Optional[str] = None
    next_steps: Optional[str] = None
    new_leads_identified: bool = False
    new_evidence_found: bool = False
    dna_resubmission_recommended: bool = False
    campaign_recommended: bool = False
    recommended_campaign_type: Optional[CampaignType] = None
    escalation_recommended: bool = False
    family_notified: bool = False
    family_notification_method: Optional[str] = None


class DeferReviewRequest(CamelModel):
    defer_until: date
    reason: str = Field(..., min_length=1)


class ChecklistItemUpdate(CamelModel):
    status: Optional[ChecklistStatus] = None
    result_summary: Optional[str] = None
    findings: Optional[str] = None
    action_required: Optional[bool] = None
    action_description: Optional[str] = None
    notes: Optional[str] = None
    updated_by: Optional[str] = None


class RegisterReviewerRequest(CamelModel):
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    specializations: List[str] = Field(default_factory=list)
    max_concurrent_reviews: int = Field(default=5, ge=1)
    excluded_jurisdictions: List[str] = Field(default_factory=list)
    next_available_date: Optional[date] = None


class UpdateReviewerRequest(CamelModel):
    is_active: Optional[bool] = None
    specializations: Optional[List[str]] = None
    max_concurrent_reviews: Optional[int] = Field(default=None, ge=1)
    excluded_jurisdictions: Optional[List[str]] = None
    next_available_date: Optional[date] = None


class RecordEvidenceRequest(CamelModel):
    case_id: str
    evidence_type: EvidenceType
    evidence_description: str = Field(..., min_length=1)
    evidence_source: Optional[str] = None
    significance: SignificanceLevel
    discovered_at: Optional[datetime] = None


class VerifyEvidenceRequest(CamelModel):
    verification_status: VerificationStatus
    verified_by: str = Field(..., min_length=1)


class CreateDNASubmissionRequest(CamelModel):
    case_id: str
    database_name: str = Field(..., min_length=1)
    submission_type: str = "initial"
    sample_type: Optional[str] = None


class AdvanceDNASubmissionRequest(CamelModel):
    status: DNASubmissionStatus
    lab_reference_id: Optional[str] = None
    resubmission_reason: Optional[str] = None


class DNALabResult(CamelModel):
    """Result delivered by a forensic lab, keyed by its reference id."""
    lab_reference_id: str
    matched: bool
    result_summary: Optional[str] = None
    match_details: Dict[str, Any] = Field(default_factory=dict)


class PatternReviewRequest(CamelModel):
    determination: PatternDetermination
    reviewed_by: str = Field(..., min_length=1)
    notes: Optional[str] = None
    open_investigation: bool = False


class CreateCampaignRequest(CamelModel):
    case_id: str
    campaign_type: CampaignType
    title: str = Field(..., min_length=1)
    headline: Optional[str] = None
    description: Optional[str] = None
    channels: List[str] = Field(default_factory=list)
    target_reach: Optional[int] = Field(default=None, ge=0)
    target_engagement: Optional[float] = Field(default=None, ge=0)
    target_tips: Optional[int] = Field(default=None, ge=0)


class ScheduleCampaignRequest(CamelModel):
    scheduled_start: Optional[date] = None
    scheduled_end: Optional[date] = None


class CompleteCampaignRequest(CamelModel):
    actual_reach: Optional[int] = Field(default=None, ge=0)
    actual_shares: Optional[int] = Field(default=None, ge=0)
    actual_tips: Optional[int] = Field(default=None, ge=0)
    actual_leads: Optional[int] = Field(default=None, ge=0)


class CancelCampaignRequest(CamelModel):
    reason: Optional[str] = None


class TipReceivedEvent(CamelModel):
    """Tip ingested from the tip line; payload content is opaque here."""
    case_id: str
    received_at: Optional[datetime] = None
    source: RevivalTriggerSource = RevivalTriggerSource.PUBLIC
    summary: str = "New tip received"


class LeadReceivedEvent(CamelModel):
    case_id: str
    received_at: Optional[datetime] = None


class FamilyRequestEvent(CamelModel):
    case_id: str
    summary: str = Field(..., min_length=1)


# =============================================================================
# Query Response Models
# =============================================================================


class ColdCaseSummary(CamelModel):
    """Row of the ranked cold case query."""
    profile_id: str
    case_id: str
    case_number: str
    classification: ColdCaseClassification
    revival_priority_score: float
    review_frequency: ReviewFrequency
    next_review_date: Optional[date] = None
    dna_status: DNASubmissionStatus
    anniversary_date: Optional[date] = None
    days_since_cold: Optional[int] = None
    is_overdue: bool = False
    has_open_review: bool = False


class ReviewDetail(CamelModel):
    review: ColdCaseReview
    checklist: List[ChecklistItem]


class TriggerPage(CamelModel):
    triggers: List[RevivalTrigger]
    next_after: int


class PriorityBreakdown(CamelModel):
    profile_id: str
    score: float
    factors: List[PriorityFactor]
    computed_at: Optional[datetime] = None
