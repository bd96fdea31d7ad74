"""
Priority Recompute Queue

Writes never score inline: every mutation that can move a revival priority
score calls request(case_id), and the queue recomputes it.

Guarantees:
- Coalescing: a case is queued at most once; requests arriving while it is
  queued only bump its generation
- Supersession: a computation that finishes after a newer request for the
  same case is abandoned, never merged, and the queued request recomputes
  from the latest state
- Optimistic commit: the result commits under the case lock only if
  profile.version is unchanged since the inputs were read; a version
  conflict retries once, then raises ConflictError

Scoring runs in a worker thread on deep copies of the inputs so the event
loop keeps serving commands meanwhile.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Dict, List, Optional, Set

from coldcase.core.config import Settings, get_settings
from coldcase.core.errors import ColdCaseError, ConflictError
from coldcase.core.timeutil import utc_now
from coldcase.services.campaigns import propose_outreach_campaign
from coldcase.services.priority import compute_priority
from coldcase.services.store import CaseStore


logger = logging.getLogger(__name__)


@dataclass
class RecomputeStats:
    requested: int = 0
    committed: int = 0
    abandoned: int = 0
    conflicts: int = 0


class RecomputeQueue:
    """Coalescing, supersession-aware queue of priority recomputations."""

    def __init__(
        self,
        store: CaseStore,
        settings: Optional[Settings] = None,
        workers: int = 2,
        today_fn: Optional[Callable[[], date]] = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.workers = workers
        self.today_fn = today_fn or (lambda: utc_now().date())
        self.stats = RecomputeStats()

        self._queue: asyncio.Queue = asyncio.Queue()
        self._queued: Set[str] = set()
        self._generation: Dict[str, int] = {}
        self._tasks: List[asyncio.Task] = []

    # =========================================================================
    # Requests
    # =========================================================================

    def request(self, case_id: str) -> int:
        """Ask for a recomputation of the case's score; returns its new generation."""
        generation = self._generation.get(case_id, 0) + 1
        self._generation[case_id] = generation
        self.stats.requested += 1
        if case_id not in self._queued:
            self._queued.add(case_id)
            self._queue.put_nowait(case_id)
        return generation

    def generation(self, case_id: str) -> int:
        return self._generation.get(case_id, 0)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    # =========================================================================
    # Workers
    # =========================================================================

    async def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._worker(), name=f"recompute-{i}")
            for i in range(self.workers)
        ]
        logger.info(f"Recompute queue started with {self.workers} workers")

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

    async def _worker(self) -> None:
        while True:
            case_id = await self._queue.get()
            try:
                await self._process(case_id)
            except ColdCaseError as e:
                logger.warning(f"Recompute for case {case_id} failed: {e.message}")
            except Exception as e:
                logger.error(f"Unexpected recompute error for case {case_id}: {e}", exc_info=True)
            finally:
                self._queue.task_done()

    async def drain(self) -> None:
        """
        Wait until every queued recomputation has been handled.

        Without running workers the queue is processed inline.
        """
        if self._tasks:
            await self._queue.join()
            return
        while not self._queue.empty():
            case_id = self._queue.get_nowait()
            try:
                await self._process(case_id)
            finally:
                self._queue.task_done()

    async def _process(self, case_id: str) -> None:
        self._queued.discard(case_id)
        await self.recompute_now(case_id)

    # =========================================================================
    # Recompute
    # =========================================================================

    async def recompute_now(self, case_id: str) -> bool:
        """
        Recompute and commit one case's score.

        Returns:
            True when a score was committed, False when the computation was
            superseded or the case has no profile

        Raises:
            ConflictError: if the profile version moved twice in a row
        """
        for attempt in range(2):
            generation = self.generation(case_id)
            profile = self.store.profile_for_case(case_id)
            if profile is None:
                return False

            version = profile.version
            case = self.store.get_case(case_id).model_copy(deep=True)
            profile_copy = profile.model_copy(deep=True)
            evidence = [e.model_copy(deep=True) for e in self.store.evidence_for(profile.id)]
            matches = [m.model_copy(deep=True) for m in self.store.matches_for_case(case_id)]
            today = self.today_fn()

            score, factors = await asyncio.to_thread(
                compute_priority, profile_copy, case, evidence, matches, today, self.settings
            )

            if self.generation(case_id) != generation:
                self.stats.abandoned += 1
                logger.debug(f"Recompute for case {case_id} superseded; abandoned")
                return False

            async with self.store.lock_for(case_id):
                if profile.version != version:
                    self.stats.conflicts += 1
                    if attempt == 0:
                        continue
                    raise ConflictError(
                        f"Profile for case {case_id} changed during recompute",
                        code="concurrent_score_mutation",
                    )

                previous = profile.revival_priority_score
                profile.revival_priority_score = score
                profile.revival_priority_factors = factors
                profile.priority_computed_at = utc_now()
                self.store.touch(profile)
                propose_outreach_campaign(self.store, profile, self.store.get_case(case_id), self.settings)

            self.stats.committed += 1
            if previous != score:
                logger.info(f"Priority for case {case_id}: {previous} -> {score}")
            return True

        return False
