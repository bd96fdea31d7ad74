"""
FastAPI dependencies for the cold case backend.

The coordinator (and the CaseStore it owns) is created in the application
lifespan and kept on app.state; routers receive it through the Annotated
aliases below.

Usage Examples:
    @router.get("/cold-cases")
    async def list_cold_cases(coordinator: CoordinatorDep) -> List[ColdCaseSummary]:
        return coordinator.ranked_cold_cases()

In tests, override the state-backed dependency:
    app.dependency_overrides[get_coordinator] = lambda: coordinator
"""

from typing import Annotated

from fastapi import Depends, Request

from coldcase.services.coordinator import ColdCaseCoordinator
from coldcase.services.store import CaseStore


def get_coordinator(request: Request) -> ColdCaseCoordinator:
    return request.app.state.coordinator


def get_store(coordinator: ColdCaseCoordinator = Depends(get_coordinator)) -> CaseStore:
    """Read-only endpoints that never go through coordinator commands."""
    return coordinator.store


CoordinatorDep = Annotated[ColdCaseCoordinator, Depends(get_coordinator)]

StoreDep = Annotated[CaseStore, Depends(get_store)]
