"""
Cold Case Metrics Service

Builds ColdCaseMetricsSnapshot from the case store and persists snapshots to
the cold_case_metrics table.

Each entity collection is flattened into a pandas DataFrame and aggregated
column-wise:
- profiles: counts by classification, cold-age buckets, priority stats
- reviews: due / overdue / in progress, completions and revivals in 30 days
- campaigns: active count, tips, leads, average engagement of completed ones
- DNA submissions and pattern matches: pending, matched, unreviewed, confirmed

Snapshots are recomputed on demand (GET /metrics) or by the daily pass, which
also persists them. The in-memory history is warmed from cold_case_metrics at
startup and keeps every snapshot taken after that.
"""

import json
import logging
from datetime import date, datetime, timedelta
from typing import List, Optional

import pandas as pd

from coldcase.core.config import Settings, get_settings
from coldcase.core.database import execute_query, execute_query_one
from coldcase.core.timeutil import utc_now
from coldcase.models.enums import (
    CampaignStatus,
    ColdCaseClassification,
    DNASubmissionStatus,
    PatternDetermination,
    ReviewStatus,
    RevivalDecision,
)
from coldcase.models.schemas import ColdCaseMetricsSnapshot
from coldcase.services.forensics import AWAITING_RESULT
from coldcase.services.store import CaseStore
from coldcase.sql import get_metrics_history_query


logger = logging.getLogger(__name__)


# Upper bounds (exclusive, in days) of the cold-age buckets
AGE_BUCKETS = [
    ("cold_under_1_year", 365),
    ("cold_1_to_2_years", 365 * 2),
    ("cold_2_to_5_years", 365 * 5),
    ("cold_5_to_10_years", 365 * 10),
    ("cold_over_10_years", None),
]

RECENT_DAYS = 30


# =============================================================================
# Frames
# =============================================================================

def _profiles_frame(store: CaseStore, now: datetime) -> pd.DataFrame:
    rows = [
        {
            "profile_id": p.id,
            "classification": p.classification.value,
            "is_cold": p.is_cold,
            "days_cold": p.days_since_cold(now),
            "score": p.revival_priority_score,
            "next_review_date": p.next_review_date,
        }
        for p in store.profiles.values()
    ]
    if not rows:
        return pd.DataFrame(columns=[
            "profile_id", "classification", "is_cold", "days_cold", "score", "next_review_date",
        ])
    return pd.DataFrame(rows)


def _reviews_frame(store: CaseStore) -> pd.DataFrame:
    rows = [
        {
            "status": r.status.value,
            "due_date": r.due_date,
            "completed_at": r.completed_at,
            "revived": r.revival_decision == RevivalDecision.REVIVE,
        }
        for r in store.reviews.values()
    ]
    if not rows:
        return pd.DataFrame(columns=["status", "due_date", "completed_at", "revived"])
    return pd.DataFrame(rows)


def _campaigns_frame(store: CaseStore) -> pd.DataFrame:
    rows = [
        {
            "status": c.status.value,
            "tips": c.actual_tips or 0,
            "leads": c.actual_leads or 0,
            "engagement_rate": c.engagement_rate,
        }
        for c in store.campaigns.values()
    ]
    if not rows:
        return pd.DataFrame(columns=["status", "tips", "leads", "engagement_rate"])
    return pd.DataFrame(rows)


def _age_bucket_counts(days_cold: pd.Series) -> dict:
    days = pd.to_numeric(days_cold, errors="coerce").dropna()
    counts = {}
    lower = 0
    for name, upper in AGE_BUCKETS:
        if upper is None:
            counts[name] = int((days >= lower).sum())
        else:
            counts[name] = int(((days >= lower) & (days < upper)).sum())
            lower = upper
    return counts


# =============================================================================
# Snapshot
# =============================================================================

def compute_metrics_snapshot(
    store: CaseStore,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> ColdCaseMetricsSnapshot:
    """
    Compute program statistics over the current store contents.

    Args:
        store: Case store to aggregate
        now: Snapshot time (defaults to utc_now())
        settings: Supplies the high-priority threshold

    Returns:
        ColdCaseMetricsSnapshot stamped with `now`
    """
    settings = settings or get_settings()
    now = now or utc_now()
    today: date = now.date()
    recent_cutoff = now - timedelta(days=RECENT_DAYS)

    profiles = _profiles_frame(store, now)
    cold = profiles[profiles["is_cold"].astype(bool)] if not profiles.empty else profiles

    by_classification = {c.value: 0 for c in ColdCaseClassification}
    if not profiles.empty:
        for value, count in profiles["classification"].value_counts().items():
            by_classification[value] = int(count)

    reviews = _reviews_frame(store)
    if reviews.empty:
        reviews_overdue = reviews_in_progress = reviews_completed_30d = revivals_30d = 0
    else:
        open_mask = reviews["status"].isin([ReviewStatus.PENDING.value, ReviewStatus.IN_PROGRESS.value])
        reviews_overdue = int((open_mask & (reviews["due_date"] < today)).sum())
        reviews_in_progress = int((reviews["status"] == ReviewStatus.IN_PROGRESS.value).sum())
        recent_mask = (reviews["status"] == ReviewStatus.COMPLETED.value) & reviews["completed_at"].map(
            lambda t: t is not None and not pd.isna(t) and t >= recent_cutoff
        ).astype(bool)
        reviews_completed_30d = int(recent_mask.sum())
        revivals_30d = int((recent_mask & reviews["revived"].astype(bool)).sum())

    reviews_due = 0
    if not cold.empty:
        due_mask = cold["next_review_date"].map(lambda d: d is not None and not pd.isna(d) and d <= today)
        reviews_due = int(due_mask.astype(bool).sum())

    campaigns = _campaigns_frame(store)
    if campaigns.empty:
        campaigns_active = tips_total = leads_total = 0
        average_engagement = None
    else:
        campaigns_active = int((campaigns["status"] == CampaignStatus.ACTIVE.value).sum())
        completed_campaigns = campaigns[campaigns["status"] == CampaignStatus.COMPLETED.value]
        tips_total = int(completed_campaigns["tips"].sum())
        leads_total = int(completed_campaigns["leads"].sum())
        rates = pd.to_numeric(completed_campaigns["engagement_rate"], errors="coerce").dropna()
        average_engagement = round(float(rates.mean()), 2) if not rates.empty else None

    submissions = list(store.dna_submissions.values())
    matches = list(store.pattern_matches.values())

    scores = pd.to_numeric(cold["score"], errors="coerce") if not cold.empty else pd.Series(dtype=float)

    snapshot = ColdCaseMetricsSnapshot(
        snapshot_at=now,
        total_cold_cases=int(len(cold)),
        by_classification=by_classification,
        **_age_bucket_counts(cold["days_cold"] if not cold.empty else pd.Series(dtype=float)),
        reviews_due=reviews_due,
        reviews_overdue=reviews_overdue,
        reviews_in_progress=reviews_in_progress,
        reviews_completed_30d=reviews_completed_30d,
        revivals_30d=revivals_30d,
        revival_rate=round(revivals_30d / reviews_completed_30d * 100, 2) if reviews_completed_30d else 0.0,
        campaigns_active=campaigns_active,
        campaign_tips_total=tips_total,
        campaign_leads_total=leads_total,
        average_engagement_rate=average_engagement,
        dna_pending=sum(
            1 for s in submissions
            if s.status in AWAITING_RESULT or s.status == DNASubmissionStatus.PENDING_SUBMISSION
        ),
        dna_matches=sum(1 for s in submissions if s.status == DNASubmissionStatus.MATCH_FOUND),
        pattern_matches_unreviewed=sum(1 for m in matches if not m.reviewed),
        pattern_matches_confirmed=sum(
            1 for m in matches if m.determination == PatternDetermination.CONFIRMED
        ),
        average_priority_score=round(float(scores.mean()), 2) if not scores.empty else 0.0,
        high_priority_cases=int((scores >= settings.campaign_priority_threshold).sum()),
    )
    return snapshot


def record_snapshot(store: CaseStore, snapshot: ColdCaseMetricsSnapshot) -> ColdCaseMetricsSnapshot:
    store.metrics_history.append(snapshot)
    return snapshot


def latest_snapshot(store: CaseStore) -> Optional[ColdCaseMetricsSnapshot]:
    return store.metrics_history[-1] if store.metrics_history else None


def snapshot_history(store: CaseStore, limit: int = 30) -> List[ColdCaseMetricsSnapshot]:
    return list(reversed(store.metrics_history[-limit:]))


# =============================================================================
# Persistence
# =============================================================================

async def persist_snapshot(snapshot: ColdCaseMetricsSnapshot) -> None:
    """
    Store a snapshot in cold_case_metrics, one row per snapshot date.

    Raises:
        asyncpg.PostgresError: If the database operation fails.
    """
    query = """
        INSERT INTO cold_case_metrics (
            snapshot_date, snapshot_at, total_cold_cases, average_priority_score,
            high_priority_cases, reviews_overdue, payload
        ) VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb)
        ON CONFLICT (snapshot_date) DO UPDATE SET
            snapshot_at = EXCLUDED.snapshot_at,
            total_cold_cases = EXCLUDED.total_cold_cases,
            average_priority_score = EXCLUDED.average_priority_score,
            high_priority_cases = EXCLUDED.high_priority_cases,
            reviews_overdue = EXCLUDED.reviews_overdue,
            payload = EXCLUDED.payload
        RETURNING snapshot_date
    """
    await execute_query_one(
        query,
        snapshot.snapshot_at.date(),
        snapshot.snapshot_at,
        snapshot.total_cold_cases,
        snapshot.average_priority_score,
        snapshot.high_priority_cases,
        snapshot.reviews_overdue,
        json.dumps(snapshot.model_dump(mode="json", by_alias=True)),
    )
    logger.info(
        f"Persisted metrics snapshot for {snapshot.snapshot_at.date()}: "
        f"{snapshot.total_cold_cases} cold cases"
    )


async def load_persisted_history(limit: int = 30) -> List[ColdCaseMetricsSnapshot]:
    """Most recent persisted snapshots, oldest first, for warming the history."""
    rows = await execute_query(get_metrics_history_query(), limit)
    snapshots = []
    for row in reversed(rows):
        payload = row["payload"]
        if isinstance(payload, str):
            payload = json.loads(payload)
        snapshots.append(ColdCaseMetricsSnapshot.model_validate(payload))
    return snapshots
