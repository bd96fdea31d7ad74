"""
FastAPI router for the reviewer registry.

Key Endpoints:
- GET   /reviewers - Registry, optionally active only
- POST  /reviewers - Register a reviewer
- PATCH /reviewers/{reviewer_id} - Update availability, capacity, exclusions
"""

import logging
from typing import List

from fastapi import APIRouter, Query

from coldcase.core.dependencies import CoordinatorDep
from coldcase.core.errors import ColdCaseError, to_http_exception
from coldcase.models.schemas import RegisterReviewerRequest, Reviewer, UpdateReviewerRequest


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reviewers", tags=["reviewers"])


@router.get("", response_model=List[Reviewer], response_model_by_alias=True)
async def list_reviewers(
    coordinator: CoordinatorDep,
    active_only: bool = Query(False, alias="activeOnly"),
) -> List[Reviewer]:
    reviewers = list(coordinator.store.reviewers.values())
    if active_only:
        reviewers = [r for r in reviewers if r.is_active]
    return sorted(reviewers, key=lambda r: (r.rotation_priority, r.name, r.id))


@router.post("", response_model=Reviewer, response_model_by_alias=True, status_code=201)
async def register_reviewer(request: RegisterReviewerRequest, coordinator: CoordinatorDep) -> Reviewer:
    return await coordinator.register_reviewer(request)


@router.patch("/{reviewer_id}", response_model=Reviewer, response_model_by_alias=True)
async def update_reviewer(
    reviewer_id: str,
    request: UpdateReviewerRequest,
    coordinator: CoordinatorDep,
) -> Reviewer:
    try:
        return await coordinator.update_reviewer(reviewer_id, request)
    except ColdCaseError as e:
        raise to_http_exception(e)
