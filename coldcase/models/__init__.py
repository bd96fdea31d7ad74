"""
Package initialization file for cold case models.

Re-exports the enumerations and Pydantic entities so other modules can import
them from coldcase.models directly.

Usage:
    from coldcase.models import (
        ColdCaseClassification,
        ColdCaseProfile,
        ColdCaseReview,
        # ... etc
    )
"""

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

from coldcase.models.schemas import (
    Campaign,
    CaseActivitySummary,
    CaseLink,
    CaseRecord,
    ChecklistItem,
    ChecklistTemplate,
    ChecklistTemplateItem,
    ClassificationResult,
    ColdCaseMetricsSnapshot,
    ColdCaseProfile,
    ColdCaseReview,
    ColdCaseSummary,
    DNASubmission,
    NewEvidence,
    PatternMatch,
    PriorityFactor,
    Reviewer,
    RevivalTrigger,
)


__all__ = [
    # Enums
    "CampaignStatus",
    "CampaignType",
    "CaseLinkType",
    "ChecklistCategory",
    "ChecklistStatus",
    "ClassificationOutcome",
    "ColdCaseClassification",
    "DNASubmissionStatus",
    "EvidenceType",
    "PatternConfidence",
    "PatternDetermination",
    "PatternMatchType",
    "PriorityFactorKind",
    "ReviewFrequency",
    "ReviewStatus",
    "ReviewType",
    "RevivalDecision",
    "RevivalTriggerSource",
    "RevivalTriggerType",
    "SignificanceLevel",
    "VerificationStatus",
    # Entities
    "Campaign",
    "CaseActivitySummary",
    "CaseLink",
    "CaseRecord",
    "ChecklistItem",
    "ChecklistTemplate",
    "ChecklistTemplateItem",
    "ClassificationResult",
    "ColdCaseMetricsSnapshot",
    "ColdCaseProfile",
    "ColdCaseReview",
    "ColdCaseSummary",
    "DNASubmission",
    "NewEvidence",
    "PatternMatch",
    "PriorityFactor",
    "Reviewer",
    "RevivalTrigger",
]
