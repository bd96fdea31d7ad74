"""
Slack daily digest for the cold case program.

Posts one Block Kit message per day summarizing the cold case workload:
totals by classification, reviews due and overdue, the highest revival
priority cases, DNA and pattern-match backlog, and active campaigns.

Idempotency Guarantees:
- Never sends twice for the same date; state lives in the job_digest_state
  table (job_type = 'cold_case_digest')
- force=True bypasses the check

Environment Requirements:
- SLACK_WEBHOOK_URL: Slack incoming webhook URL

Usage:
    result = await send_slack_digest(coordinator)
    result = await send_slack_digest(coordinator, digest_date=date(2026, 10, 17))
    result = await send_slack_digest(coordinator, force=True)
    status = await get_digest_status()
"""

import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from slack_sdk.webhook import WebhookClient

from coldcase.core.config import get_settings
from coldcase.core.database import get_db_pool
from coldcase.core.timeutil import utc_now
from coldcase.models.labels import label_for
from coldcase.models.schemas import ColdCaseMetricsSnapshot, ColdCaseSummary
from coldcase.services.coordinator import ColdCaseCoordinator
from coldcase.services.metrics import compute_metrics_snapshot


logger = logging.getLogger(__name__)

JOB_TYPE = "cold_case_digest"
TOP_CASES = 5


# =============================================================================
# Idempotency
# =============================================================================

async def check_already_sent(digest_date: date) -> bool:
    """True when a digest was already sent for digest_date."""
    pool = await get_db_pool()

    async with pool.acquire() as conn:
        row = await conn.fetchrow(
            """
            SELECT digest_date, sent_at
            FROM job_digest_state
            WHERE job_type = $1
              AND digest_date = $2
            """,
            JOB_TYPE,
            digest_date,
        )
        return row is not None


async def mark_digest_sent(digest_date: date) -> None:
    """Record a sent digest; a forced re-send bumps digest_count."""
    pool = await get_db_pool()

    async with pool.acquire() as conn:
        await conn.execute(
            """
            INSERT INTO job_digest_state (job_type, digest_date, sent_at, digest_count)
            VALUES ($1, $2, $3, 1)
            ON CONFLICT (job_type, digest_date)
            DO UPDATE SET
                sent_at = EXCLUDED.sent_at,
                digest_count = job_digest_state.digest_count + 1
            """,
            JOB_TYPE,
            digest_date,
            utc_now(),
        )


# =============================================================================
# Slack Message Formatting
# =============================================================================

def format_slack_message(
    target_date: date,
    snapshot: ColdCaseMetricsSnapshot,
    top_cases: List[ColdCaseSummary],
) -> List[Dict[str, Any]]:
    """
    Build the Block Kit blocks for one digest.

    Args:
        target_date: Date the digest reports on
        snapshot: Program metrics at send time
        top_cases: Highest revival priority cases, strongest first
    """
    blocks: List[Dict[str, Any]] = [
        {
            "type": "header",
            "text": {
                "type": "plain_text",
                "text": f"Cold Case Daily Digest - {target_date.strftime('%B %d, %Y')}",
                "emoji": True,
            },
        },
        {"type": "divider"},
    ]

    by_class = "  |  ".join(
        f"{label_for(name)}: *{count:,}*"
        for name, count in snapshot.by_classification.items()
        if count
    ) or "No profiles yet"
    blocks.append({
        "type": "section",
        "text": {
            "type": "mrkdwn",
            "text": (
                f"*Cold cases: {snapshot.total_cold_cases:,}*\n\n"
                f"{by_class}\n"
                f"Average priority score: *{snapshot.average_priority_score}*  |  "
                f"High priority: *{snapshot.high_priority_cases:,}*"
            ),
        },
    })

    blocks.append({
        "type": "section",
        "text": {
            "type": "mrkdwn",
            "text": (
                f"*Reviews*\n\n"
                f"Due: *{snapshot.reviews_due:,}*  |  "
                f"Overdue: *{snapshot.reviews_overdue:,}*  |  "
                f"In progress: *{snapshot.reviews_in_progress:,}*\n"
                f"Completed (30d): *{snapshot.reviews_completed_30d:,}*  |  "
                f"Revivals (30d): *{snapshot.revivals_30d:,}* ({snapshot.revival_rate}%)"
            ),
        },
    })

    blocks.append({
        "type": "section",
        "text": {
            "type": "mrkdwn",
            "text": (
                f"*Forensics and patterns*\n\n"
                f"DNA pending: *{snapshot.dna_pending:,}*  |  DNA matches: *{snapshot.dna_matches:,}*\n"
                f"Pattern matches awaiting review: *{snapshot.pattern_matches_unreviewed:,}*  |  "
                f"Active campaigns: *{snapshot.campaigns_active:,}*"
            ),
        },
    })

    blocks.append({"type": "divider"})

    if top_cases:
        lines = [
            f"{i}. *{row.case_number}* score {row.revival_priority_score}"
            + (" (review overdue)" if row.is_overdue else "")
            for i, row in enumerate(top_cases, 1)
        ]
        text = f"*Top {len(top_cases)} revival priorities*\n\n" + "\n".join(lines)
    else:
        text = "*No cold cases to prioritize today.*"
    blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": text}})

    blocks.append({"type": "divider"})
    blocks.append({
        "type": "context",
        "elements": [
            {
                "type": "mrkdwn",
                "text": f"Generated at {utc_now().strftime('%Y-%m-%d %H:%M:%S UTC')}",
            }
        ],
    })
    return blocks


# =============================================================================
# Main Entry Points
# =============================================================================

async def send_slack_digest(
    coordinator: ColdCaseCoordinator,
    digest_date: Optional[date] = None,
    force: bool = False,
) -> Dict[str, Any]:
    """
    Send the daily digest.

    Args:
        coordinator: Source of the store contents to summarize
        digest_date: Date reported on (default: yesterday)
        force: Send even if a digest already went out for the date

    Returns:
        Dict with success, and skipped/reason, date or error. Errors are
        captured in the result instead of raised.
    """
    settings = get_settings()

    if not settings.slack_webhook_url:
        return {
            'success': False,
            'error': 'SLACK_WEBHOOK_URL not configured. Set this environment variable to enable Slack digests.',
        }

    target_date = digest_date or (coordinator.today() - timedelta(days=1))

    if not force:
        try:
            if await check_already_sent(target_date):
                return {
                    'success': True,
                    'skipped': True,
                    'reason': f'Digest already sent for {target_date}',
                    'date': str(target_date),
                }
        except Exception as e:
            # First run before job_digest_state exists
            logger.warning(f"Could not check digest state for {target_date}: {e}")

    snapshot = compute_metrics_snapshot(coordinator.store, coordinator.now(), coordinator.settings)
    if snapshot.total_cold_cases == 0:
        return {
            'success': True,
            'skipped': True,
            'reason': f'No cold cases to report for {target_date}',
            'date': str(target_date),
        }

    top_cases = coordinator.ranked_cold_cases(limit=TOP_CASES)
    blocks = format_slack_message(target_date, snapshot, top_cases)

    try:
        client = WebhookClient(settings.slack_webhook_url)
        response = client.send(text=f"Cold Case Daily Digest - {target_date}", blocks=blocks)
    except Exception as e:
        logger.error(f"Failed to send Slack digest for {target_date}: {e}", exc_info=True)
        return {
            'success': False,
            'error': f'Failed to send Slack message: {e}',
            'date': str(target_date),
        }

    if response.status_code != 200:
        return {
            'success': False,
            'error': f'Slack API returned status {response.status_code}: {response.body}',
            'date': str(target_date),
        }

    try:
        await mark_digest_sent(target_date)
    except Exception as e:
        # The message went out; a retry may duplicate it
        logger.error(f"Sent digest for {target_date} but failed to record it: {e}")

    logger.info(f"Sent cold case digest for {target_date}")
    return {
        'success': True,
        'date': str(target_date),
        'total_cold_cases': snapshot.total_cold_cases,
        'reviews_overdue': snapshot.reviews_overdue,
        'high_priority_cases': snapshot.high_priority_cases,
    }


async def get_digest_status() -> Dict[str, Any]:
    """Last successful digest date, total count and the last 7 sends."""
    settings = get_settings()
    configured = bool(settings.slack_webhook_url)

    try:
        pool = await get_db_pool()

        async with pool.acquire() as conn:
            recent = await conn.fetch(
                """
                SELECT digest_date, sent_at
                FROM job_digest_state
                WHERE job_type = $1
                ORDER BY digest_date DESC
                LIMIT 7
                """,
                JOB_TYPE,
            )
            count_row = await conn.fetchrow(
                """
                SELECT COALESCE(SUM(digest_count), 0) as total
                FROM job_digest_state
                WHERE job_type = $1
                """,
                JOB_TYPE,
            )
    except Exception as e:
        logger.warning(f"Digest state unavailable: {e}")
        return {
            'last_successful_date': None,
            'total_digest_count': 0,
            'recent_dates': [],
            'configured': configured,
            'note': 'Digest state table may not be initialized yet',
        }

    return {
        'last_successful_date': str(recent[0]['digest_date']) if recent else None,
        'total_digest_count': count_row['total'] if count_row else 0,
        'recent_dates': [
            {
                'date': str(row['digest_date']),
                'sent_at': row['sent_at'].isoformat() if row['sent_at'] else None,
            }
            for row in recent
        ],
        'configured': configured,
    }
