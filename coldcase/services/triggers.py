"""
Revival Trigger Log

Append-only, sequence-numbered record of every revival trigger written by the
system (eligibility engine, tips, evidence, DNA matches, pattern matches,
family requests, anniversaries, admin recommendations). Triggers are frozen
Pydantic models; nothing edits or deletes them.

The log doubles as the event stream exposed at GET /triggers?after=<seq>:
consumers poll with the last sequence number they saw, or await new entries
with wait_for_after().
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from coldcase.core.timeutil import utc_now
from coldcase.models.enums import RevivalTriggerSource, RevivalTriggerType
from coldcase.models.schemas import RevivalTrigger


logger = logging.getLogger(__name__)


class TriggerLog:
    """Sequence-numbered, append-only trigger stream."""

    def __init__(self) -> None:
        self._entries: List[RevivalTrigger] = []
        self._appended = asyncio.Event()

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def last_seq(self) -> int:
        return self._entries[-1].seq if self._entries else 0

    def append(
        self,
        case_id: str,
        trigger_type: RevivalTriggerType,
        summary: str,
        profile_id: Optional[str] = None,
        source: RevivalTriggerSource = RevivalTriggerSource.SYSTEM,
        details: Optional[Dict[str, Any]] = None,
        review_id: Optional[str] = None,
    ) -> RevivalTrigger:
        """
        Append a trigger and wake any waiting stream consumers.

        Sequence numbers start at 1 and increase by one per trigger.
        """
        trigger = RevivalTrigger(
            seq=self.last_seq + 1,
            case_id=case_id,
            profile_id=profile_id,
            trigger_type=trigger_type,
            trigger_source=source,
            trigger_summary=summary,
            trigger_details=details or {},
            review_id=review_id,
            created_at=utc_now(),
        )
        self._entries.append(trigger)
        logger.info(
            f"Trigger #{trigger.seq} {trigger_type.value} for case {case_id}: {summary}"
        )

        # Release current waiters, then re-arm for the next append
        self._appended.set()
        self._appended = asyncio.Event()
        return trigger

    def after(self, seq: int = 0, limit: int = 100) -> List[RevivalTrigger]:
        """Triggers with sequence number greater than seq, oldest first."""
        # seq N lives at index N-1
        start = max(0, seq)
        return self._entries[start:start + limit]

    def for_case(self, case_id: str) -> List[RevivalTrigger]:
        return [t for t in self._entries if t.case_id == case_id]

    async def wait_for_after(
        self,
        seq: int,
        timeout: float,
        limit: int = 100,
    ) -> List[RevivalTrigger]:
        """
        Return triggers after seq, waiting up to timeout seconds for one to
        arrive when none is available yet. Returns an empty list on timeout.
        """
        entries = self.after(seq, limit)
        if entries:
            return entries

        event = self._appended
        try:
            await asyncio.wait_for(event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return []
        return self.after(seq, limit)
