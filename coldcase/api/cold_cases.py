"""
FastAPI router for cold case profiles and the ranked query API.

Key Endpoints:
- GET  /cold-cases - Cold cases ranked by revival priority score, with filters
- GET  /cold-cases/{case_id} - Profile for one case
- GET  /cold-cases/{case_id}/priority - Stored score and its factors
- GET  /cold-cases/{case_id}/reviews - Review history
- GET  /cold-cases/{case_id}/linked-cases - Linked case ids
- PUT  /cold-cases/records - Load or refresh a case record, then classify
- POST /cold-cases/{case_id}/refresh - Reload one case from the repository
- POST /cold-cases/classify - Batch auto-classification
- POST /cold-cases/{case_id}/classify - Classify one case
- POST /cold-cases/events/tips | /events/leads | /events/family-requests

Scoring is never done inline: events enqueue a recompute and the ranked
query reflects the committed score.
"""

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query

from coldcase.core.dependencies import CoordinatorDep
from coldcase.core.errors import ColdCaseError, NotFoundError, to_http_exception
from coldcase.models.enums import ColdCaseClassification, DNASubmissionStatus
from coldcase.models.schemas import (
    CaseRecord,
    ClassificationResult,
    ColdCaseProfile,
    ColdCaseReview,
    ColdCaseSummary,
    FamilyRequestEvent,
    LeadReceivedEvent,
    PriorityBreakdown,
    RevivalTrigger,
    TipReceivedEvent,
)
from coldcase.services import repository


logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT: int = 100
MAX_LIST_LIMIT: int = 500

router = APIRouter(prefix="/cold-cases", tags=["cold-cases"])


# =============================================================================
# Queries
# =============================================================================


@router.get("", response_model=List[ColdCaseSummary], response_model_by_alias=True)
async def list_cold_cases(
    coordinator: CoordinatorDep,
    classification: Optional[ColdCaseClassification] = Query(None),
    dna_status: Optional[DNASubmissionStatus] = Query(None, alias="dnaStatus"),
    overdue: bool = Query(False),
    upcoming_anniversary_days: Optional[int] = Query(None, ge=0, alias="upcomingAnniversaryDays"),
    min_score: Optional[float] = Query(None, ge=0, le=100, alias="minScore"),
    limit: int = Query(DEFAULT_LIST_LIMIT, ge=1, le=MAX_LIST_LIMIT),
) -> List[ColdCaseSummary]:
    """
    Cold cases ordered by revival_priority_score, highest first.

    Args:
        classification: Only this classification
        dnaStatus: Only this profile DNA status
        overdue: Only cases with an overdue review
        upcomingAnniversaryDays: Only anniversaries within this many days
        minScore: Minimum revival priority score
        limit: Maximum rows
    """
    return coordinator.ranked_cold_cases(
        classification_filter=classification,
        dna_status=dna_status,
        overdue_only=overdue,
        upcoming_anniversary_days=upcoming_anniversary_days,
        min_score=min_score,
        limit=limit,
    )


@router.get("/{case_id}", response_model=ColdCaseProfile, response_model_by_alias=True)
async def get_cold_case(case_id: str, coordinator: CoordinatorDep) -> ColdCaseProfile:
    try:
        return coordinator.store.require_profile_for_case(case_id)
    except ColdCaseError as e:
        raise to_http_exception(e)


@router.get("/{case_id}/priority", response_model=PriorityBreakdown, response_model_by_alias=True)
async def get_priority(case_id: str, coordinator: CoordinatorDep) -> PriorityBreakdown:
    """Stored score and the factors it is reproducible from."""
    try:
        profile = coordinator.store.require_profile_for_case(case_id)
    except ColdCaseError as e:
        raise to_http_exception(e)
    return PriorityBreakdown(
        profile_id=profile.id,
        score=profile.revival_priority_score,
        factors=profile.revival_priority_factors,
        computed_at=profile.priority_computed_at,
    )


@router.get("/{case_id}/reviews", response_model=List[ColdCaseReview], response_model_by_alias=True)
async def list_case_reviews(case_id: str, coordinator: CoordinatorDep) -> List[ColdCaseReview]:
    try:
        profile = coordinator.store.require_profile_for_case(case_id)
    except ColdCaseError as e:
        raise to_http_exception(e)
    return sorted(coordinator.store.reviews_for(profile.id), key=lambda r: r.review_number)


@router.get("/{case_id}/linked-cases")
async def list_linked_cases(case_id: str, coordinator: CoordinatorDep) -> Dict[str, List[str]]:
    try:
        coordinator.store.get_case(case_id)
    except ColdCaseError as e:
        raise to_http_exception(e)
    return {"caseId": case_id, "linkedCaseIds": coordinator.store.linked_case_ids(case_id)}


# =============================================================================
# Commands
# =============================================================================


@router.put("/records", response_model=ClassificationResult, response_model_by_alias=True)
async def upsert_case_record(case: CaseRecord, coordinator: CoordinatorDep) -> ClassificationResult:
    """Load or refresh a case from the case repository, then classify it."""
    try:
        return await coordinator.upsert_case(case)
    except ColdCaseError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to upsert case {case.case_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to upsert case: {e}")


@router.post("/{case_id}/refresh", response_model=ClassificationResult, response_model_by_alias=True)
async def refresh_case(case_id: str, coordinator: CoordinatorDep) -> ClassificationResult:
    """Reload one case from the case repository and reclassify it."""
    try:
        case = await repository.load_case(case_id)
        if case is None:
            raise NotFoundError(f"Case {case_id} not found in the case repository")
        return await coordinator.upsert_case(case)
    except ColdCaseError as e:
        raise to_http_exception(e)


@router.post("/classify")
async def classify_all(coordinator: CoordinatorDep) -> Dict[str, int]:
    """Batch auto-classification; returns counts per outcome."""
    try:
        return await coordinator.classify_all()
    except Exception as e:
        logger.error(f"Batch classification failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Batch classification failed: {e}")


@router.post("/{case_id}/classify", response_model=ClassificationResult, response_model_by_alias=True)
async def classify_case(
    case_id: str,
    coordinator: CoordinatorDep,
    classified_by: str = Query("admin", alias="classifiedBy"),
) -> ClassificationResult:
    try:
        return await coordinator.classify_case(case_id, classified_by)
    except ColdCaseError as e:
        raise to_http_exception(e)


# =============================================================================
# Ingestion Events
# =============================================================================


@router.post("/events/tips", response_model=RevivalTrigger, response_model_by_alias=True)
async def tip_received(event: TipReceivedEvent, coordinator: CoordinatorDep) -> RevivalTrigger:
    try:
        return await coordinator.record_tip(event)
    except ColdCaseError as e:
        raise to_http_exception(e)


@router.post("/events/leads", response_model=ClassificationResult, response_model_by_alias=True)
async def lead_received(event: LeadReceivedEvent, coordinator: CoordinatorDep) -> ClassificationResult:
    try:
        return await coordinator.record_lead(event.case_id, event.received_at)
    except ColdCaseError as e:
        raise to_http_exception(e)


@router.post("/events/family-requests", response_model=RevivalTrigger, response_model_by_alias=True)
async def family_request(event: FamilyRequestEvent, coordinator: CoordinatorDep) -> RevivalTrigger:
    try:
        return await coordinator.record_family_request(event)
    except ColdCaseError as e:
        raise to_http_exception(e)
