"""
FastAPI router for cold case program metrics.

Key Endpoints:
- GET /metrics - Fresh snapshot computed from the current store
- GET /metrics/history - Recorded snapshots, newest first
- GET /metrics/latest - Most recent recorded snapshot
"""

import logging
from typing import List

from fastapi import APIRouter, HTTPException, Query

from coldcase.core.dependencies import CoordinatorDep, StoreDep
from coldcase.core.errors import NotFoundError, to_http_exception
from coldcase.models.schemas import ColdCaseMetricsSnapshot
from coldcase.services.metrics import (
    compute_metrics_snapshot,
    latest_snapshot,
    record_snapshot,
    snapshot_history,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get("", response_model=ColdCaseMetricsSnapshot, response_model_by_alias=True)
async def get_metrics(
    coordinator: CoordinatorDep,
    record: bool = Query(False, description="Append the snapshot to the history"),
) -> ColdCaseMetricsSnapshot:
    try:
        snapshot = compute_metrics_snapshot(coordinator.store, coordinator.now(), coordinator.settings)
    except Exception as e:
        logger.error(f"Failed to compute metrics snapshot: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to compute metrics: {e}")
    if record:
        record_snapshot(coordinator.store, snapshot)
    return snapshot


@router.get("/history", response_model=List[ColdCaseMetricsSnapshot], response_model_by_alias=True)
async def get_metrics_history(
    store: StoreDep,
    limit: int = Query(30, ge=1, le=365),
) -> List[ColdCaseMetricsSnapshot]:
    return snapshot_history(store, limit)


@router.get("/latest", response_model=ColdCaseMetricsSnapshot, response_model_by_alias=True)
async def get_latest_metrics(store: StoreDep) -> ColdCaseMetricsSnapshot:
    """Most recently recorded snapshot (daily pass or GET /metrics?record=true)."""
    snapshot = latest_snapshot(store)
    if snapshot is None:
        raise to_http_exception(NotFoundError("No metrics snapshot recorded yet"))
    return snapshot
