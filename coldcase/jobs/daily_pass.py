"""
Daily batch pass over every tracked case.

Steps:
1. Refresh case records from the case repository (optional)
2. Per case, with bounded concurrency and a per-case timeout: classify,
   open any periodic or anniversary review that is due, propose the
   anniversary campaign
3. Retry reviewer assignment for pending, unassigned reviews
4. Corpus-wide pattern scan in worker-thread shards, then DBSCAN clusters
5. Drain the priority recompute queue
6. Record (and persist) the metrics snapshot, persist profiles

A case that times out or hits a TransientDependencyError is logged and
skipped; it is picked up again on the next pass. Nothing in a single case
aborts the pass.

Usage:
    result = await run_daily_pass(coordinator)
    result = await run_daily_pass(coordinator, refresh=False, persist=False)
"""

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from coldcase.core.errors import ColdCaseError, TransientDependencyError
from coldcase.models.enums import ClassificationOutcome
from coldcase.models.schemas import CaseRecord
from coldcase.services import repository
from coldcase.services.coordinator import ColdCaseCoordinator
from coldcase.services.metrics import compute_metrics_snapshot, persist_snapshot, record_snapshot
from coldcase.services.pattern_clusters import cluster_cases
from coldcase.services.pattern_matching import scan_shard


logger = logging.getLogger(__name__)


@dataclass
class DailyPassResult:
    """Counters for one pass."""
    pass_date: date
    cases_loaded: int = 0
    cases_processed: int = 0
    skipped_cases: List[str] = field(default_factory=list)
    classification: Dict[str, int] = field(
        default_factory=lambda: {outcome.value: 0 for outcome in ClassificationOutcome}
    )
    reviews_created: int = 0
    reviews_assigned: int = 0
    campaigns_proposed: int = 0
    pattern_matches: int = 0
    clusters_changed: int = 0
    profiles_persisted: int = 0
    snapshot_recorded: bool = False
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['pass_date'] = str(self.pass_date)
        return data


# =============================================================================
# Per-case step
# =============================================================================

async def process_case(
    coordinator: ColdCaseCoordinator,
    case_id: str,
    result: DailyPassResult,
    record: Optional[CaseRecord] = None,
) -> None:
    """Classify one case and open whatever review or campaign it is due for."""
    if record is not None:
        outcome = await coordinator.upsert_case(record)
    else:
        outcome = await coordinator.classify_case(case_id)
    result.classification[outcome.outcome.value] += 1

    if await coordinator.schedule_due_reviews(case_id) is not None:
        result.reviews_created += 1
    if await coordinator.propose_anniversary_campaign(case_id) is not None:
        result.campaigns_proposed += 1
    result.cases_processed += 1


async def _guarded(
    coordinator: ColdCaseCoordinator,
    semaphore: asyncio.Semaphore,
    case_id: str,
    result: DailyPassResult,
    record: Optional[CaseRecord],
) -> None:
    timeout = coordinator.settings.batch_case_timeout_seconds
    async with semaphore:
        try:
            await asyncio.wait_for(process_case(coordinator, case_id, result, record), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Daily pass: case {case_id} timed out after {timeout}s; skipped")
            result.skipped_cases.append(case_id)
        except TransientDependencyError as e:
            logger.warning(f"Daily pass: case {case_id} skipped, dependency unavailable: {e.message}")
            result.skipped_cases.append(case_id)
        except ColdCaseError as e:
            logger.error(f"Daily pass: case {case_id} failed: {e.message}")
            result.skipped_cases.append(case_id)
            result.errors.append(f"{case_id}: {e.message}")
        except Exception as e:
            logger.error(f"Daily pass: unexpected error on case {case_id}: {e}", exc_info=True)
            result.skipped_cases.append(case_id)
            result.errors.append(f"{case_id}: {e}")


# =============================================================================
# Corpus-wide steps
# =============================================================================

async def run_pattern_scan(coordinator: ColdCaseCoordinator) -> int:
    """
    Compare every cold case against the corpus in shards of
    pattern_shard_size, each shard in a worker thread.

    Returns:
        Number of pattern matches created or refreshed
    """
    store = coordinator.store
    settings = coordinator.settings
    corpus = [c.model_copy(deep=True) for c in store.cases.values()]
    cold_ids = {p.case_id for p in store.cold_profiles()}
    sources = sorted((c for c in corpus if c.case_id in cold_ids), key=lambda c: c.case_id)

    total = 0
    size = max(1, settings.pattern_shard_size)
    for start in range(0, len(sources), size):
        shard = sources[start:start + size]
        try:
            candidates = await asyncio.to_thread(scan_shard, shard, corpus, settings)
        except Exception as e:
            logger.error(
                f"Pattern scan shard starting at {shard[0].case_id} failed: {e}", exc_info=True
            )
            continue
        total += len(await coordinator.persist_pattern_candidates(
            candidates, [c.case_id for c in shard]
        ))

    logger.info(f"Pattern scan: {len(sources)} cold cases, {total} matches")
    return total


async def run_pattern_clustering(coordinator: ColdCaseCoordinator) -> int:
    """Recompute geographic clusters over cold cases; returns profiles changed."""
    store = coordinator.store
    cold_cases = [
        store.get_case(p.case_id).model_copy(deep=True) for p in store.cold_profiles()
    ]
    membership = await asyncio.to_thread(cluster_cases, cold_cases, coordinator.settings)
    return await coordinator.apply_pattern_clusters(membership)


# =============================================================================
# Main Entry Point
# =============================================================================

async def run_daily_pass(
    coordinator: ColdCaseCoordinator,
    refresh: bool = True,
    persist: bool = True,
) -> DailyPassResult:
    """
    Run the daily pass.

    Args:
        coordinator: Command layer over the case store
        refresh: Reload case records from the case repository first
        persist: Write the metrics snapshot and profiles back to the database

    Returns:
        DailyPassResult with counters and the ids of skipped cases
    """
    result = DailyPassResult(pass_date=coordinator.today())
    logger.info(f"Daily pass starting for {result.pass_date}")

    records: Dict[str, CaseRecord] = {}
    if refresh:
        try:
            loaded = await repository.load_cases(include_resolved=True)
            records = {c.case_id: c for c in loaded}
            result.cases_loaded = len(loaded)
        except TransientDependencyError as e:
            logger.warning(f"Daily pass: case refresh skipped: {e.message}")
            result.errors.append(f"refresh: {e.message}")

    case_ids = sorted(set(coordinator.store.cases) | set(records))
    semaphore = asyncio.Semaphore(max(1, coordinator.settings.batch_max_concurrency))
    await asyncio.gather(*(
        _guarded(coordinator, semaphore, case_id, result, records.get(case_id))
        for case_id in case_ids
    ))

    result.reviews_assigned = await coordinator.assign_pending_reviews()
    result.pattern_matches = await run_pattern_scan(coordinator)
    try:
        result.clusters_changed = await run_pattern_clustering(coordinator)
    except Exception as e:
        logger.error(f"Pattern clustering failed: {e}", exc_info=True)
        result.errors.append(f"clustering: {e}")

    try:
        await coordinator.recompute.drain()
    except ColdCaseError as e:
        logger.warning(f"Daily pass: recompute left work for the next pass: {e.message}")
        result.errors.append(f"recompute: {e.message}")

    snapshot = compute_metrics_snapshot(coordinator.store, coordinator.now(), coordinator.settings)
    record_snapshot(coordinator.store, snapshot)
    result.snapshot_recorded = True

    if persist:
        try:
            await persist_snapshot(snapshot)
        except Exception as e:
            logger.error(f"Failed to persist metrics snapshot: {e}")
            result.errors.append(f"snapshot: {e}")
        try:
            result.profiles_persisted = await repository.persist_profiles(
                list(coordinator.store.profiles.values())
            )
        except TransientDependencyError as e:
            logger.warning(f"Profiles not persisted this pass: {e.message}")
            result.errors.append(f"profiles: {e.message}")

    logger.info(
        f"Daily pass for {result.pass_date} done: {result.cases_processed} processed, "
        f"{len(result.skipped_cases)} skipped, {result.reviews_created} reviews, "
        f"{result.campaigns_proposed} campaigns, {result.pattern_matches} pattern matches"
    )
    return result
