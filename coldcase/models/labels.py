"""
Display labels for UI lookups.

Presentation only: scoring, scheduling and classification never read these.
"""

from typing import Dict

from coldcase.models.enums import (
    CampaignStatus,
    CampaignType,
    ChecklistCategory,
    ColdCaseClassification,
    DNASubmissionStatus,
    PatternConfidence,
    ReviewFrequency,
    ReviewType,
    RevivalDecision,
    RevivalTriggerType,
)


CLASSIFICATION_LABELS: Dict[ColdCaseClassification, str] = {
    ColdCaseClassification.AUTO_CLASSIFIED: "Auto-Classified",
    ColdCaseClassification.MANUALLY_CLASSIFIED: "Manually Classified",
    ColdCaseClassification.RECLASSIFIED_ACTIVE: "Reclassified Active",
    ColdCaseClassification.UNDER_REVIEW: "Under Review",
}

FREQUENCY_LABELS: Dict[ReviewFrequency, str] = {
    ReviewFrequency.MONTHLY: "Monthly",
    ReviewFrequency.QUARTERLY: "Quarterly",
    ReviewFrequency.SEMI_ANNUAL: "Semi-Annual",
    ReviewFrequency.ANNUAL: "Annual",
    ReviewFrequency.BIENNIAL: "Biennial",
}

DNA_STATUS_LABELS: Dict[DNASubmissionStatus, str] = {
    DNASubmissionStatus.NOT_SUBMITTED: "Not Submitted",
    DNASubmissionStatus.PENDING_SUBMISSION: "Pending Submission",
    DNASubmissionStatus.SUBMITTED: "Submitted",
    DNASubmissionStatus.MATCH_FOUND: "Match Found",
    DNASubmissionStatus.NO_MATCH: "No Match",
    DNASubmissionStatus.RESUBMISSION_PENDING: "Resubmission Pending",
    DNASubmissionStatus.RESUBMITTED: "Resubmitted",
}

CAMPAIGN_TYPE_LABELS: Dict[CampaignType, str] = {
    CampaignType.SOCIAL_MEDIA: "Social Media",
    CampaignType.PRESS_RELEASE: "Press Release",
    CampaignType.BILLBOARD: "Billboard",
    CampaignType.TV_SPOT: "TV Spot",
    CampaignType.RADIO_SPOT: "Radio Spot",
    CampaignType.ANNIVERSARY_PUSH: "Anniversary Push",
    CampaignType.COMMUNITY_EVENT: "Community Event",
    CampaignType.PODCAST_FEATURE: "Podcast Feature",
    CampaignType.DOCUMENTARY: "Documentary",
    CampaignType.REWARD_INCREASE: "Reward Increase",
}

CAMPAIGN_STATUS_LABELS: Dict[CampaignStatus, str] = {
    CampaignStatus.DRAFT: "Draft",
    CampaignStatus.SCHEDULED: "Scheduled",
    CampaignStatus.ACTIVE: "Active",
    CampaignStatus.COMPLETED: "Completed",
    CampaignStatus.CANCELLED: "Cancelled",
}

CHECKLIST_CATEGORY_LABELS: Dict[ChecklistCategory, str] = {
    ChecklistCategory.EVIDENCE: "Evidence Review",
    ChecklistCategory.WITNESSES: "Witness Follow-up",
    ChecklistCategory.TECHNOLOGY: "Technology & Digital",
    ChecklistCategory.DATABASES: "Database Checks",
    ChecklistCategory.FAMILY: "Family Contact",
    ChecklistCategory.MEDIA: "Media & Publicity",
    ChecklistCategory.CROSSREF: "Cross-Reference",
    ChecklistCategory.ADMIN: "Administrative",
}

PATTERN_CONFIDENCE_LABELS: Dict[PatternConfidence, str] = {
    PatternConfidence.LOW: "Low",
    PatternConfidence.MEDIUM: "Medium",
    PatternConfidence.HIGH: "High",
    PatternConfidence.VERY_HIGH: "Very High",
}

REVIEW_TYPE_LABELS: Dict[ReviewType, str] = {
    ReviewType.PERIODIC: "Periodic Review",
    ReviewType.SPECIAL: "Special Review",
    ReviewType.ANNIVERSARY: "Anniversary Review",
    ReviewType.TIP_TRIGGERED: "Tip-Triggered Review",
}

REVIVAL_DECISION_LABELS: Dict[RevivalDecision, str] = {
    RevivalDecision.REVIVE: "Revive Case",
    RevivalDecision.MAINTAIN_COLD: "Maintain Cold Status",
    RevivalDecision.ARCHIVE: "Recommend Archive",
}

TRIGGER_TYPE_LABELS: Dict[RevivalTriggerType, str] = {
    RevivalTriggerType.ELIGIBILITY_ENGINE: "Eligibility Engine",
    RevivalTriggerType.NEW_TIP: "New Tip",
    RevivalTriggerType.NEW_EVIDENCE: "New Evidence",
    RevivalTriggerType.FAMILY_REQUEST: "Family Request",
    RevivalTriggerType.ANNIVERSARY: "Anniversary",
    RevivalTriggerType.PATTERN_MATCH: "Pattern Match",
    RevivalTriggerType.ADMIN_REVIEW: "Admin Review",
    RevivalTriggerType.MANUAL: "Manual",
}


def label_for(value) -> str:
    """
    Look up the display label for any labelled enum member.

    Falls back to a title-cased version of the raw value.
    """
    for table in (
        CLASSIFICATION_LABELS,
        FREQUENCY_LABELS,
        DNA_STATUS_LABELS,
        CAMPAIGN_TYPE_LABELS,
        CAMPAIGN_STATUS_LABELS,
        CHECKLIST_CATEGORY_LABELS,
        PATTERN_CONFIDENCE_LABELS,
        REVIEW_TYPE_LABELS,
        REVIVAL_DECISION_LABELS,
        TRIGGER_TYPE_LABELS,
    ):
        if value in table:
            return table[value]
    raw = getattr(value, "value", str(value))
    return raw.replace("_", " ").title()
