"""
Cold case API package.

Router modules:
- cold_cases: ranked query API, classification, ingestion events
- reviews: review commands and checklist items
- patterns: pattern matches and clusters
- campaigns: awareness campaign lifecycle
- forensics: DNA submissions and new evidence
- reviewers: reviewer registry
- triggers: revival trigger event stream
- metrics: program metrics snapshots
"""

from fastapi import APIRouter

from coldcase.api.campaigns import router as campaigns_router
from coldcase.api.cold_cases import router as cold_cases_router
from coldcase.api.forensics import router as forensics_router
from coldcase.api.metrics import router as metrics_router
from coldcase.api.patterns import router as patterns_router
from coldcase.api.reviewers import router as reviewers_router
from coldcase.api.reviews import router as reviews_router
from coldcase.api.triggers import router as triggers_router

# Each router carries its own prefix and tags
api_router = APIRouter()
api_router.include_router(cold_cases_router)
api_router.include_router(reviews_router)
api_router.include_router(patterns_router)
api_router.include_router(campaigns_router)
api_router.include_router(forensics_router)
api_router.include_router(reviewers_router)
api_router.include_router(triggers_router)
api_router.include_router(metrics_router)

__all__ = [
    "api_router",
    "campaigns_router",
    "cold_cases_router",
    "forensics_router",
    "metrics_router",
    "patterns_router",
    "reviewers_router",
    "reviews_router",
    "triggers_router",
]
