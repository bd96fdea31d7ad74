"""
Daily automation jobs for the cold case program.

- daily_pass.py: batch classification, due reviews, anniversary campaigns,
  pattern scan and clustering, metrics snapshot
- slack_digest.py: Slack daily digest of the cold case workload

Idempotency Guarantees:
- Slack digest: never sent twice for the same date; sends are tracked in
  the job_digest_state table. force=True re-sends intentionally.
- Daily pass: safe to re-run; every step converges on the current state
  (open reviews are reused, pattern matches upserted, snapshots keyed by date)

Usage:
    from coldcase.jobs import run_daily_pass, send_slack_digest

    result = await run_daily_pass(coordinator)
    digest = await send_slack_digest(coordinator)
"""

from coldcase.jobs.daily_pass import DailyPassResult, run_daily_pass
from coldcase.jobs.slack_digest import (
    check_already_sent,
    get_digest_status,
    send_slack_digest,
)

__all__ = [
    'DailyPassResult',
    'run_daily_pass',
    'send_slack_digest',
    'check_already_sent',
    'get_digest_status',
]
