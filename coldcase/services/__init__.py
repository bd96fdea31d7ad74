"""
Cold Case Services Module

Business logic for the cold case revival workflow. The rule modules are pure
functions over pydantic entities; state lives in the CaseStore arena and every
mutation goes through the ColdCaseCoordinator.

Services:
- store / triggers: entity arena, per-case locks, append-only trigger log
- classification: cold / active decisions and first-review scheduling
- review_scheduler: due detection, reviewer assignment, review lifecycle
- checklist: template instantiation and item transitions
- priority: revival priority scoring
- pattern_matching / pattern_clusters: cross-case similarity and DBSCAN clusters
- forensics: DNA submissions and new evidence
- campaigns: awareness campaign lifecycle and proposals
- notifications: campaign-ready payload dispatch (Slack webhook)
- recompute: coalescing priority recompute queue
- coordinator: validated, serialized commands
- metrics: pandas metrics snapshot
- repository: asyncpg case repository adapter
"""

# =============================================================================
# State
# =============================================================================

from coldcase.services.store import CaseStore
from coldcase.services.triggers import TriggerLog

# =============================================================================
# Rules
# =============================================================================

from coldcase.services.classification import (
    apply_classification,
    build_activity_summary,
    classify_batch,
    evaluate_classification,
)
from coldcase.services.priority import compute_priority, score_from_factors
from coldcase.services.pattern_matching import PatternCandidate, find_candidates, scan_shard
from coldcase.services.pattern_clusters import cluster_cases

# =============================================================================
# Coordination
# =============================================================================

from coldcase.services.notifications import (
    LogOnlyDispatcher,
    NotificationDispatcher,
    SlackCampaignDispatcher,
    build_dispatcher,
)
from coldcase.services.recompute import RecomputeQueue
from coldcase.services.coordinator import ColdCaseCoordinator
from coldcase.services.metrics import compute_metrics_snapshot, persist_snapshot


__all__ = [
    "CaseStore",
    "TriggerLog",
    "apply_classification",
    "build_activity_summary",
    "classify_batch",
    "evaluate_classification",
    "compute_priority",
    "score_from_factors",
    "PatternCandidate",
    "find_candidates",
    "scan_shard",
    "cluster_cases",
    "LogOnlyDispatcher",
    "NotificationDispatcher",
    "SlackCampaignDispatcher",
    "build_dispatcher",
    "RecomputeQueue",
    "ColdCaseCoordinator",
    "compute_metrics_snapshot",
    "persist_snapshot",
]
