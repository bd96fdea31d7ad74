"""
FastAPI router for the review command API and the checklist.

Key Endpoints:
- POST  /reviews - Create a review (409 when one is already open)
- GET   /reviews/overdue - Open reviews past their due date
- GET   /reviews/due - Cases with a periodic or anniversary review due
- POST  /reviews/assign-pending - Retry assignment for unassigned reviews
- GET   /reviews/{review_id} - Review with its checklist
- POST  /reviews/{review_id}/start
- POST  /reviews/{review_id}/complete - 400 while any checklist item is open
- POST  /reviews/{review_id}/defer
- PATCH /reviews/{review_id}/checklist/{item_id}

Every command validates completely before mutating; a rejected command leaves
the review and its checklist untouched.
"""

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query

from coldcase.core.dependencies import CoordinatorDep
from coldcase.core.errors import ColdCaseError, to_http_exception
from coldcase.models.schemas import (
    ChecklistItem,
    ChecklistItemUpdate,
    ColdCaseReview,
    CompleteReviewRequest,
    CreateReviewRequest,
    DeferReviewRequest,
    ReviewDetail,
)
from coldcase.services.checklist import checklist_progress
from coldcase.services.review_scheduler import (
    find_anniversary_due,
    find_due_profiles,
    list_overdue_reviews,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reviews", tags=["reviews"])


@router.post("", response_model=ColdCaseReview, response_model_by_alias=True, status_code=201)
async def create_review(request: CreateReviewRequest, coordinator: CoordinatorDep) -> ColdCaseReview:
    try:
        return await coordinator.create_review(request)
    except ColdCaseError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to create review for profile {request.profile_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to create review: {e}")


@router.get("/overdue", response_model=List[ColdCaseReview], response_model_by_alias=True)
async def overdue_reviews(coordinator: CoordinatorDep) -> List[ColdCaseReview]:
    """Overdue reviews are listed, never escalated."""
    return list_overdue_reviews(coordinator.store, coordinator.today())


@router.get("/due")
async def due_reviews(coordinator: CoordinatorDep) -> Dict[str, List[str]]:
    """Case ids the next scheduling pass would open a periodic or anniversary review for."""
    today = coordinator.today()
    return {
        "periodic": [p.case_id for p in find_due_profiles(coordinator.store, today)],
        "anniversary": [
            p.case_id for p in find_anniversary_due(coordinator.store, today, coordinator.settings)
        ],
    }


@router.post("/assign-pending")
async def assign_pending(coordinator: CoordinatorDep) -> Dict[str, int]:
    assigned = await coordinator.assign_pending_reviews()
    return {"assigned": assigned}


@router.get("/{review_id}", response_model=ReviewDetail, response_model_by_alias=True)
async def get_review(review_id: str, coordinator: CoordinatorDep) -> ReviewDetail:
    try:
        review = coordinator.store.get_review(review_id)
    except ColdCaseError as e:
        raise to_http_exception(e)
    return ReviewDetail(review=review, checklist=coordinator.store.checklist_for(review_id))


@router.get("/{review_id}/progress")
async def get_review_progress(review_id: str, coordinator: CoordinatorDep) -> Dict[str, int]:
    try:
        coordinator.store.get_review(review_id)
    except ColdCaseError as e:
        raise to_http_exception(e)
    return checklist_progress(coordinator.store.checklist_for(review_id))


@router.post("/{review_id}/start", response_model=ColdCaseReview, response_model_by_alias=True)
async def start_review(
    review_id: str,
    coordinator: CoordinatorDep,
    reviewer_id: Optional[str] = Query(None, alias="reviewerId"),
) -> ColdCaseReview:
    try:
        return await coordinator.start_review(review_id, reviewer_id)
    except ColdCaseError as e:
        raise to_http_exception(e)


@router.post("/{review_id}/complete", response_model=ColdCaseReview, response_model_by_alias=True)
async def complete_review(
    review_id: str,
    request: CompleteReviewRequest,
    coordinator: CoordinatorDep,
) -> ColdCaseReview:
    try:
        return await coordinator.complete_review(review_id, request)
    except ColdCaseError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to complete review {review_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to complete review: {e}")


@router.post("/{review_id}/defer", response_model=ColdCaseReview, response_model_by_alias=True)
async def defer_review(
    review_id: str,
    request: DeferReviewRequest,
    coordinator: CoordinatorDep,
) -> ColdCaseReview:
    try:
        return await coordinator.defer_review(review_id, request)
    except ColdCaseError as e:
        raise to_http_exception(e)


@router.patch(
    "/{review_id}/checklist/{item_id}",
    response_model=ChecklistItem,
    response_model_by_alias=True,
)
async def update_checklist_item(
    review_id: str,
    item_id: str,
    update: ChecklistItemUpdate,
    coordinator: CoordinatorDep,
) -> ChecklistItem:
    try:
        return await coordinator.update_checklist_item(review_id, item_id, update)
    except ColdCaseError as e:
        raise to_http_exception(e)
