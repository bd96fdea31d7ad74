"""
FastAPI application entry point for the Cold Case Revival API.

Startup wires the in-memory case store, the priority recompute queue, the
notification dispatcher and the coordinator, then warms the store from the
case repository when the database is reachable.

Run with:
    uvicorn coldcase.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coldcase.api import api_router
from coldcase.core.config import get_settings
from coldcase.core.database import close_db, init_db
from coldcase.core.errors import TransientDependencyError
from coldcase.services import repository
from coldcase.services.checklist import default_template
from coldcase.services.coordinator import ColdCaseCoordinator
from coldcase.services.metrics import load_persisted_history
from coldcase.services.notifications import build_dispatcher
from coldcase.services.recompute import RecomputeQueue
from coldcase.services.store import CaseStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_coordinator() -> ColdCaseCoordinator:
    """Store with the default checklist template, recompute queue and dispatcher."""
    settings = get_settings()
    store = CaseStore()
    store.add_template(default_template())
    recompute = RecomputeQueue(store, settings)
    return ColdCaseCoordinator(store, recompute, build_dispatcher(settings), settings)


async def warm_store(coordinator: ColdCaseCoordinator) -> int:
    """Load persisted profiles, metrics history and every tracked case; returns the case count."""
    for profile in await repository.load_profiles():
        coordinator.store.add_profile(profile)
    coordinator.store.metrics_history.extend(await load_persisted_history())
    cases = await repository.load_cases(include_resolved=True)
    for case in cases:
        await coordinator.upsert_case(case)
    return len(cases)


def create_app(coordinator: Optional[ColdCaseCoordinator] = None) -> FastAPI:
    """
    Build the application.

    Args:
        coordinator: Pre-built coordinator (tests). When omitted, one is built
            at startup and warmed from the case repository.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Cold Case Revival API starting")
        use_repository = coordinator is None
        app.state.coordinator = coordinator or build_coordinator()

        if use_repository:
            try:
                await init_db()
                logger.info("Database connection pool initialized")
                loaded = await warm_store(app.state.coordinator)
                logger.info(f"Loaded {loaded} cases into the store")
            except TransientDependencyError as e:
                logger.error(f"Case repository unavailable at startup: {e.message}")
            except Exception as e:
                logger.error(f"Failed to initialize database: {e}")
                # Continue startup; the store is filled through PUT /cold-cases/records

        await app.state.coordinator.recompute.start()

        yield

        logger.info("Cold Case Revival API shutting down")
        await app.state.coordinator.recompute.stop()
        if use_repository:
            try:
                await close_db()
                logger.info("Database connection pool closed")
            except Exception as e:
                logger.error(f"Error closing database pool: {e}")

    app = FastAPI(
        title="Cold Case Revival API",
        version="1.0.0",
        description=(
            "Cold case lifecycle backend: classification, review scheduling, "
            "checklists, revival priority scoring, pattern matching, forensic "
            "tracking and awareness campaigns."
        ),
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    @app.get("/")
    async def root():
        return {
            "name": "Cold Case Revival API",
            "version": "1.0.0",
            "docs": "/docs",
            "openapi": "/openapi.json",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "coldcase.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
