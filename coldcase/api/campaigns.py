"""
FastAPI router for awareness campaigns.

Key Endpoints:
- GET  /campaigns - Campaigns, filterable by case and status
- POST /campaigns - Create a draft campaign
- POST /campaigns/{campaign_id}/schedule
- POST /campaigns/{campaign_id}/activate - Hands the payload to the dispatcher
- POST /campaigns/{campaign_id}/complete - Requires every actual metric
- POST /campaigns/{campaign_id}/cancel
- POST /campaigns/anniversary/{case_id} - Propose the anniversary campaign now

A dispatcher failure on activation returns 503 and leaves the campaign
scheduled.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query

from coldcase.core.dependencies import CoordinatorDep
from coldcase.core.errors import ColdCaseError, to_http_exception
from coldcase.models.enums import CampaignStatus
from coldcase.models.schemas import (
    Campaign,
    CancelCampaignRequest,
    CompleteCampaignRequest,
    CreateCampaignRequest,
    ScheduleCampaignRequest,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/campaigns", tags=["campaigns"])


@router.get("", response_model=List[Campaign], response_model_by_alias=True)
async def list_campaigns(
    coordinator: CoordinatorDep,
    case_id: Optional[str] = Query(None, alias="caseId"),
    status: Optional[CampaignStatus] = Query(None),
) -> List[Campaign]:
    campaigns = list(coordinator.store.campaigns.values())
    if case_id is not None:
        campaigns = [c for c in campaigns if c.case_id == case_id]
    if status is not None:
        campaigns = [c for c in campaigns if c.status == status]
    return sorted(campaigns, key=lambda c: (c.created_at, c.id))


@router.post("", response_model=Campaign, response_model_by_alias=True, status_code=201)
async def create_campaign(request: CreateCampaignRequest, coordinator: CoordinatorDep) -> Campaign:
    try:
        return await coordinator.create_campaign(request)
    except ColdCaseError as e:
        raise to_http_exception(e)


@router.post("/{campaign_id}/schedule", response_model=Campaign, response_model_by_alias=True)
async def schedule_campaign(
    campaign_id: str,
    request: ScheduleCampaignRequest,
    coordinator: CoordinatorDep,
) -> Campaign:
    try:
        return await coordinator.schedule_campaign(campaign_id, request)
    except ColdCaseError as e:
        raise to_http_exception(e)


@router.post("/{campaign_id}/activate", response_model=Campaign, response_model_by_alias=True)
async def activate_campaign(campaign_id: str, coordinator: CoordinatorDep) -> Campaign:
    try:
        return await coordinator.activate_campaign(campaign_id)
    except ColdCaseError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to activate campaign {campaign_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to activate campaign: {e}")


@router.post("/{campaign_id}/complete", response_model=Campaign, response_model_by_alias=True)
async def complete_campaign(
    campaign_id: str,
    request: CompleteCampaignRequest,
    coordinator: CoordinatorDep,
) -> Campaign:
    try:
        return await coordinator.complete_campaign(campaign_id, request)
    except ColdCaseError as e:
        raise to_http_exception(e)


@router.post("/{campaign_id}/cancel", response_model=Campaign, response_model_by_alias=True)
async def cancel_campaign(
    campaign_id: str,
    request: CancelCampaignRequest,
    coordinator: CoordinatorDep,
) -> Campaign:
    try:
        return await coordinator.cancel_campaign(campaign_id, request.reason)
    except ColdCaseError as e:
        raise to_http_exception(e)


@router.post("/anniversary/{case_id}", response_model=Optional[Campaign], response_model_by_alias=True)
async def propose_anniversary(case_id: str, coordinator: CoordinatorDep) -> Optional[Campaign]:
    """Returns null when no anniversary campaign is due or one already exists."""
    try:
        return await coordinator.propose_anniversary_campaign(case_id)
    except ColdCaseError as e:
        raise to_http_exception(e)
