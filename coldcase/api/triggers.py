"""
FastAPI router for the revival trigger event stream.

GET /triggers?after=<seq> returns triggers with a sequence number greater
than `after`, oldest first, plus the cursor to pass on the next call. With
waitSeconds > 0 the request long-polls until a trigger arrives or the wait
expires (empty page, unchanged cursor).
"""

from typing import List, Optional

from fastapi import APIRouter, Query

from coldcase.core.dependencies import CoordinatorDep
from coldcase.models.schemas import RevivalTrigger, TriggerPage


router = APIRouter(prefix="/triggers", tags=["triggers"])

MAX_WAIT_SECONDS = 30.0


@router.get("", response_model=TriggerPage, response_model_by_alias=True)
async def list_triggers(
    coordinator: CoordinatorDep,
    after: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    case_id: Optional[str] = Query(None, alias="caseId"),
    wait_seconds: float = Query(0.0, ge=0.0, le=MAX_WAIT_SECONDS, alias="waitSeconds"),
) -> TriggerPage:
    log = coordinator.store.triggers
    if wait_seconds > 0:
        triggers: List[RevivalTrigger] = await log.wait_for_after(after, wait_seconds, limit)
    else:
        triggers = log.after(after, limit)

    next_after = triggers[-1].seq if triggers else after
    if case_id is not None:
        triggers = [t for t in triggers if t.case_id == case_id]
    return TriggerPage(triggers=triggers, next_after=next_after)
