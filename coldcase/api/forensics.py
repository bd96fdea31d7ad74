"""
FastAPI router for DNA submissions and new evidence.

Key Endpoints:
- GET  /forensics/dna?caseId= - Submissions for a case
- POST /forensics/dna - Create a submission
- POST /forensics/dna/{submission_id}/advance - Move along the status table
- POST /forensics/dna/results - Lab result delivered by reference id
- GET  /forensics/evidence?caseId=
- POST /forensics/evidence - Record evidence (high/critical requests a review)
- POST /forensics/evidence/{evidence_id}/verify
- POST /forensics/evidence/{evidence_id}/processed
"""

import logging
from typing import List

from fastapi import APIRouter, Query

from coldcase.core.dependencies import CoordinatorDep
from coldcase.core.errors import ColdCaseError, to_http_exception
from coldcase.models.schemas import (
    AdvanceDNASubmissionRequest,
    CreateDNASubmissionRequest,
    DNALabResult,
    DNASubmission,
    NewEvidence,
    RecordEvidenceRequest,
    VerifyEvidenceRequest,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/forensics", tags=["forensics"])


# =============================================================================
# DNA Submissions
# =============================================================================


@router.get("/dna", response_model=List[DNASubmission], response_model_by_alias=True)
async def list_dna_submissions(
    coordinator: CoordinatorDep,
    case_id: str = Query(..., alias="caseId"),
) -> List[DNASubmission]:
    try:
        profile = coordinator.store.require_profile_for_case(case_id)
    except ColdCaseError as e:
        raise to_http_exception(e)
    return coordinator.store.dna_for(profile.id)


@router.post("/dna", response_model=DNASubmission, response_model_by_alias=True, status_code=201)
async def create_dna_submission(
    request: CreateDNASubmissionRequest,
    coordinator: CoordinatorDep,
) -> DNASubmission:
    try:
        return await coordinator.create_dna_submission(request)
    except ColdCaseError as e:
        raise to_http_exception(e)


@router.post("/dna/results", response_model=DNASubmission, response_model_by_alias=True)
async def record_lab_result(result: DNALabResult, coordinator: CoordinatorDep) -> DNASubmission:
    try:
        return await coordinator.record_lab_result(result)
    except ColdCaseError as e:
        raise to_http_exception(e)


@router.post(
    "/dna/{submission_id}/advance",
    response_model=DNASubmission,
    response_model_by_alias=True,
)
async def advance_dna_submission(
    submission_id: str,
    request: AdvanceDNASubmissionRequest,
    coordinator: CoordinatorDep,
) -> DNASubmission:
    try:
        return await coordinator.advance_dna_submission(submission_id, request)
    except ColdCaseError as e:
        raise to_http_exception(e)


# =============================================================================
# Evidence
# =============================================================================


@router.get("/evidence", response_model=List[NewEvidence], response_model_by_alias=True)
async def list_evidence(
    coordinator: CoordinatorDep,
    case_id: str = Query(..., alias="caseId"),
) -> List[NewEvidence]:
    try:
        profile = coordinator.store.require_profile_for_case(case_id)
    except ColdCaseError as e:
        raise to_http_exception(e)
    return coordinator.store.evidence_for(profile.id)


@router.post("/evidence", response_model=NewEvidence, response_model_by_alias=True, status_code=201)
async def record_evidence(request: RecordEvidenceRequest, coordinator: CoordinatorDep) -> NewEvidence:
    try:
        return await coordinator.record_evidence(request)
    except ColdCaseError as e:
        raise to_http_exception(e)


@router.post(
    "/evidence/{evidence_id}/verify",
    response_model=NewEvidence,
    response_model_by_alias=True,
)
async def verify_evidence(
    evidence_id: str,
    request: VerifyEvidenceRequest,
    coordinator: CoordinatorDep,
) -> NewEvidence:
    try:
        return await coordinator.verify_evidence(evidence_id, request)
    except ColdCaseError as e:
        raise to_http_exception(e)


@router.post(
    "/evidence/{evidence_id}/processed",
    response_model=NewEvidence,
    response_model_by_alias=True,
)
async def mark_processed(evidence_id: str, coordinator: CoordinatorDep) -> NewEvidence:
    try:
        return await coordinator.mark_evidence_processed(evidence_id)
    except ColdCaseError as e:
        raise to_http_exception(e)
