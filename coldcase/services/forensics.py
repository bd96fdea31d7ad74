"""
Forensic and Evidence Tracking Service

DNA submissions and newly discovered evidence for cold case profiles. Lab
matching itself happens outside the system; results arrive keyed by the lab
reference id.

DNA lifecycle:
    not_submitted -> pending_submission -> submitted -> {match_found, no_match}
    {match_found, no_match} -> resubmission_pending -> resubmitted
    resubmitted -> {match_found, no_match}

The profile's DNA status is match_found when any submission matched,
otherwise the status of the most recently created submission.

Evidence is recorded unverified and unprocessed, verified or disputed by an
investigator, and processed when the review it is attached to completes.
High and critical evidence requests a special review.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Set

from coldcase.core.errors import ValidationError
from coldcase.core.timeutil import utc_now
from coldcase.models.enums import DNASubmissionStatus, SignificanceLevel, VerificationStatus
from coldcase.models.schemas import (
    AdvanceDNASubmissionRequest,
    ColdCaseProfile,
    CreateDNASubmissionRequest,
    DNALabResult,
    DNASubmission,
    NewEvidence,
    RecordEvidenceRequest,
    VerifyEvidenceRequest,
)


logger = logging.getLogger(__name__)


DNA_TRANSITIONS: Dict[DNASubmissionStatus, Set[DNASubmissionStatus]] = {
    DNASubmissionStatus.NOT_SUBMITTED: {DNASubmissionStatus.PENDING_SUBMISSION},
    DNASubmissionStatus.PENDING_SUBMISSION: {DNASubmissionStatus.SUBMITTED},
    DNASubmissionStatus.SUBMITTED: {DNASubmissionStatus.MATCH_FOUND, DNASubmissionStatus.NO_MATCH},
    DNASubmissionStatus.MATCH_FOUND: {DNASubmissionStatus.RESUBMISSION_PENDING},
    DNASubmissionStatus.NO_MATCH: {DNASubmissionStatus.RESUBMISSION_PENDING},
    DNASubmissionStatus.RESUBMISSION_PENDING: {DNASubmissionStatus.RESUBMITTED},
    DNASubmissionStatus.RESUBMITTED: {DNASubmissionStatus.MATCH_FOUND, DNASubmissionStatus.NO_MATCH},
}

AWAITING_RESULT = frozenset({DNASubmissionStatus.SUBMITTED, DNASubmissionStatus.RESUBMITTED})

SPECIAL_REVIEW_SIGNIFICANCE = frozenset({SignificanceLevel.HIGH, SignificanceLevel.CRITICAL})


# =============================================================================
# DNA Submissions
# =============================================================================

def create_dna_submission(
    profile: ColdCaseProfile,
    request: CreateDNASubmissionRequest,
    now: Optional[datetime] = None,
) -> DNASubmission:
    now = now or utc_now()
    return DNASubmission(
        profile_id=profile.id,
        case_id=profile.case_id,
        database_name=request.database_name,
        submission_type=request.submission_type,
        sample_type=request.sample_type,
        status=DNASubmissionStatus.PENDING_SUBMISSION,
        created_at=now,
        updated_at=now,
    )


def advance_dna_submission(
    submission: DNASubmission,
    request: AdvanceDNASubmissionRequest,
    now: Optional[datetime] = None,
) -> DNASubmission:
    """
    Move a submission along the allowed transition table.

    Raises:
        ValidationError: for a transition outside the table, or a submit
            without a lab reference id
    """
    target = request.status
    if target not in DNA_TRANSITIONS.get(submission.status, set()):
        raise ValidationError(
            f"DNA submission cannot move from {submission.status.value} to {target.value}",
            code="invalid_transition",
        )

    lab_reference = request.lab_reference_id or submission.lab_reference_id
    if target in AWAITING_RESULT and not lab_reference:
        raise ValidationError("Submitting to a lab requires lab_reference_id")

    now = now or utc_now()
    submission.status = target
    submission.lab_reference_id = lab_reference
    if target in AWAITING_RESULT:
        submission.submitted_at = now
    if target == DNASubmissionStatus.RESUBMISSION_PENDING:
        submission.resubmission_reason = request.resubmission_reason
        submission.submission_type = "resubmission"
    if target in (DNASubmissionStatus.MATCH_FOUND, DNASubmissionStatus.NO_MATCH):
        submission.result_received_at = now
    submission.updated_at = now
    logger.info(f"DNA submission {submission.id} -> {target.value}")
    return submission


def record_lab_result(
    submission: DNASubmission,
    result: DNALabResult,
    now: Optional[datetime] = None,
) -> DNASubmission:
    """
    Apply a lab result to the submission it references.

    Raises:
        ValidationError: if the submission is not awaiting a result
    """
    if submission.status not in AWAITING_RESULT:
        raise ValidationError(
            f"DNA submission {submission.id} is {submission.status.value}, not awaiting a result"
        )
    target = DNASubmissionStatus.MATCH_FOUND if result.matched else DNASubmissionStatus.NO_MATCH
    advance_dna_submission(submission, AdvanceDNASubmissionRequest(status=target), now)
    submission.result_summary = result.result_summary
    submission.match_details = result.match_details
    return submission


def derive_profile_dna_status(submissions: List[DNASubmission]) -> DNASubmissionStatus:
    if not submissions:
        return DNASubmissionStatus.NOT_SUBMITTED
    if any(s.status == DNASubmissionStatus.MATCH_FOUND for s in submissions):
        return DNASubmissionStatus.MATCH_FOUND
    latest = max(enumerate(submissions), key=lambda pair: (pair[1].created_at, pair[0]))[1]
    return latest.status


# =============================================================================
# Evidence
# =============================================================================

def record_evidence(
    profile: ColdCaseProfile,
    request: RecordEvidenceRequest,
    now: Optional[datetime] = None,
) -> NewEvidence:
    now = now or utc_now()
    evidence = NewEvidence(
        profile_id=profile.id,
        case_id=profile.case_id,
        evidence_type=request.evidence_type,
        evidence_description=request.evidence_description,
        evidence_source=request.evidence_source,
        discovered_at=request.discovered_at or now,
        significance=request.significance,
    )
    logger.info(
        f"Recorded {evidence.significance.value} {evidence.evidence_type.value} evidence "
        f"for case {profile.case_id}"
    )
    return evidence


def verify_evidence(
    evidence: NewEvidence,
    request: VerifyEvidenceRequest,
    now: Optional[datetime] = None,
) -> NewEvidence:
    """
    Record an investigator's verification decision.

    Raises:
        ValidationError: when the target status is unverified
    """
    if request.verification_status == VerificationStatus.UNVERIFIED:
        raise ValidationError("Verification must set verified or disputed")
    now = now or utc_now()
    evidence.verification_status = request.verification_status
    evidence.verified_at = now
    evidence.verified_by = request.verified_by
    return evidence


def mark_evidence_processed(evidence: NewEvidence, now: Optional[datetime] = None) -> NewEvidence:
    if not evidence.processed:
        evidence.processed = True
        evidence.processed_at = now or utc_now()
    return evidence


def requires_special_review(evidence: NewEvidence) -> bool:
    return evidence.significance in SPECIAL_REVIEW_SIGNIFICANCE
