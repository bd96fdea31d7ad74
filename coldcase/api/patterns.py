"""
FastAPI router for cross-case pattern matches.

Key Endpoints:
- GET  /patterns/matches - Persisted matches, filterable by case and review state
- POST /patterns/analyze/{case_id} - Compare one case against the corpus
- POST /patterns/matches/{match_id}/review - Record a human determination
- POST /patterns/clusters - Recompute DBSCAN geographic clusters

Matches below the configured minimum confidence never reach the store, so
they never appear here.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query

from coldcase.core.dependencies import CoordinatorDep
from coldcase.core.errors import ColdCaseError, to_http_exception
from coldcase.models.enums import PatternConfidence
from coldcase.models.schemas import PatternMatch, PatternReviewRequest
from coldcase.services.pattern_clusters import cluster_cases
from coldcase.services.pattern_matching import CONFIDENCE_ORDER


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/patterns", tags=["patterns"])


@router.get("/matches", response_model=List[PatternMatch], response_model_by_alias=True)
async def list_matches(
    coordinator: CoordinatorDep,
    case_id: Optional[str] = Query(None, alias="caseId"),
    reviewed: Optional[bool] = Query(None),
    min_confidence: Optional[PatternConfidence] = Query(None, alias="minConfidence"),
) -> List[PatternMatch]:
    """Matches ordered by similarity, strongest first."""
    store = coordinator.store
    matches = store.matches_for_case(case_id) if case_id else list(store.pattern_matches.values())
    if reviewed is not None:
        matches = [m for m in matches if m.reviewed == reviewed]
    if min_confidence is not None:
        floor = CONFIDENCE_ORDER.index(min_confidence)
        matches = [m for m in matches if CONFIDENCE_ORDER.index(m.confidence) >= floor]
    return sorted(matches, key=lambda m: (-m.similarity_score, m.id))


@router.post("/analyze/{case_id}", response_model=List[PatternMatch], response_model_by_alias=True)
async def analyze_case(case_id: str, coordinator: CoordinatorDep) -> List[PatternMatch]:
    try:
        return await coordinator.run_pattern_analysis(case_id)
    except ColdCaseError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Pattern analysis failed for case {case_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Pattern analysis failed: {e}")


@router.post(
    "/matches/{match_id}/review",
    response_model=PatternMatch,
    response_model_by_alias=True,
)
async def review_match(
    match_id: str,
    request: PatternReviewRequest,
    coordinator: CoordinatorDep,
) -> PatternMatch:
    try:
        return await coordinator.review_pattern_match(match_id, request)
    except ColdCaseError as e:
        raise to_http_exception(e)


@router.post("/clusters")
async def recompute_clusters(coordinator: CoordinatorDep) -> Dict[str, int]:
    """Cluster every cold case by last-seen location."""
    store = coordinator.store
    cases = [store.get_case(p.case_id).model_copy(deep=True) for p in store.cold_profiles()]
    try:
        membership = await asyncio.to_thread(cluster_cases, cases, coordinator.settings)
    except Exception as e:
        logger.error(f"Pattern clustering failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Pattern clustering failed: {e}")
    changed = await coordinator.apply_pattern_clusters(membership)
    clusters = {c for ids in membership.values() for c in ids}
    return {"clusters": len(clusters), "profilesUpdated": changed}
