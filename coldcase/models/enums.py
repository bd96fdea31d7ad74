"""
Enumeration definitions for the cold case revival backend.

All enums inherit from both `str` and `Enum` so they serialize as plain
strings through Pydantic models and FastAPI responses, and compare equal to
the raw values stored by the case repository.
"""

from enum import Enum


class ColdCaseClassification(str, Enum):
    """
    Classification state of a cold case profile.

    - auto_classified: all three automated inactivity criteria held
    - manually_classified: a human marked the case cold (manual or
      resource-constraint flag)
    - reclassified_active: previously cold, returned to active investigation
    - under_review: cold, with a review currently in progress
    """
    AUTO_CLASSIFIED = "auto_classified"
    MANUALLY_CLASSIFIED = "manually_classified"
    RECLASSIFIED_ACTIVE = "reclassified_active"
    UNDER_REVIEW = "under_review"


class ClassificationOutcome(str, Enum):
    """Decision returned by the classification engine for one evaluation."""
    NEWLY_COLD = "newly_cold"
    RECLASSIFY_ACTIVE = "reclassify_active"
    UNCHANGED = "unchanged"


class ReviewFrequency(str, Enum):
    """Periodic review cadence for a cold case."""
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMI_ANNUAL = "semi_annual"
    ANNUAL = "annual"
    BIENNIAL = "biennial"


class DNASubmissionStatus(str, Enum):
    """
    Lifecycle of a DNA database submission.

    not_submitted → pending_submission → submitted → {match_found, no_match}
    → resubmission_pending → resubmitted → {match_found, no_match}
    """
    NOT_SUBMITTED = "not_submitted"
    PENDING_SUBMISSION = "pending_submission"
    SUBMITTED = "submitted"
    MATCH_FOUND = "match_found"
    NO_MATCH = "no_match"
    RESUBMISSION_PENDING = "resubmission_pending"
    RESUBMITTED = "resubmitted"


class CampaignType(str, Enum):
    SOCIAL_MEDIA = "social_media"
    PRESS_RELEASE = "press_release"
    BILLBOARD = "billboard"
    TV_SPOT = "tv_spot"
    RADIO_SPOT = "radio_spot"
    ANNIVERSARY_PUSH = "anniversary_push"
    COMMUNITY_EVENT = "community_event"
    PODCAST_FEATURE = "podcast_feature"
    DOCUMENTARY = "documentary"
    REWARD_INCREASE = "reward_increase"


class CampaignStatus(str, Enum):
    """draft → scheduled → active → {completed, cancelled}"""
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ChecklistStatus(str, Enum):
    """pending → in_progress → {completed, skipped, not_applicable}"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    NOT_APPLICABLE = "not_applicable"


class ChecklistCategory(str, Enum):
    EVIDENCE = "evidence"
    WITNESSES = "witnesses"
    TECHNOLOGY = "technology"
    DATABASES = "databases"
    FAMILY = "family"
    MEDIA = "media"
    CROSSREF = "crossref"
    ADMIN = "admin"


class PatternConfidence(str, Enum):
    """
    Confidence bucket for a pattern match similarity score.

    low < 0.40 <= medium < 0.65 <= high < 0.85 <= very_high
    """
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


class PatternMatchType(str, Enum):
    GEOGRAPHIC = "geographic"
    DEMOGRAPHIC = "demographic"
    TEMPORAL = "temporal"
    MODUS_OPERANDI = "modus_operandi"
    CIRCUMSTANTIAL = "circumstantial"


class PatternDetermination(str, Enum):
    """Human review outcome for a persisted pattern match."""
    CONFIRMED = "confirmed"
    POSSIBLE = "possible"
    REJECTED = "rejected"


class ReviewStatus(str, Enum):
    """pending → in_progress → {completed, deferred}"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DEFERRED = "deferred"


class ReviewType(str, Enum):
    """
    - periodic: scheduled by review_frequency, consumes the periodic slot
    - anniversary: created near the disappearance anniversary, consumes the slot
    - special / tip_triggered: out-of-band, never reset the periodic slot
    """
    PERIODIC = "periodic"
    SPECIAL = "special"
    ANNIVERSARY = "anniversary"
    TIP_TRIGGERED = "tip_triggered"


class RevivalDecision(str, Enum):
    REVIVE = "revive"
    MAINTAIN_COLD = "maintain_cold"
    ARCHIVE = "archive"


class EvidenceType(str, Enum):
    PHYSICAL = "physical"
    DIGITAL = "digital"
    WITNESS = "witness"
    FORENSIC = "forensic"
    DOCUMENTARY = "documentary"


class SignificanceLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class VerificationStatus(str, Enum):
    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    DISPUTED = "disputed"


class RevivalTriggerType(str, Enum):
    ELIGIBILITY_ENGINE = "eligibility_engine"
    NEW_TIP = "new_tip"
    NEW_EVIDENCE = "new_evidence"
    FAMILY_REQUEST = "family_request"
    ANNIVERSARY = "anniversary"
    PATTERN_MATCH = "pattern_match"
    ADMIN_REVIEW = "admin_review"
    MANUAL = "manual"


class RevivalTriggerSource(str, Enum):
    SYSTEM = "system"
    FAMILY = "family"
    LAW_ENFORCEMENT = "law_enforcement"
    PARTNER = "partner"
    PUBLIC = "public"
    ADMIN = "admin"


class CaseLinkType(str, Enum):
    """Relation kinds for the linked-case edges between two cases."""
    POTENTIALLY_LINKED = "potentially_linked"
    LINKED_RESOLVED = "linked_resolved"


class PriorityFactorKind(str, Enum):
    """How a stored priority factor participates in the score."""
    ADDITIVE = "additive"
    DECAY = "decay"
    MULTIPLIER = "multiplier"
