"""
Parameterized SQL queries for the case repository.

The cold case backend reads case metadata and activity timestamps from the
`missing_cases` table owned by the case intake system, and writes its own
state to `cold_case_profiles` and `cold_case_metrics`.

Placeholders use asyncpg's positional $n style.

Tables:
    missing_cases: case intake record plus activity timestamps (read only)
    cold_case_profiles: one row per profile, full profile JSON in `payload`
    cold_case_metrics: one metrics snapshot per day
"""

from typing import Optional


CASE_COLUMNS = """
        c.id AS case_id,
        c.case_number,
        c.jurisdiction_id,
        c.region,
        c.last_seen_date,
        c.last_seen_latitude,
        c.last_seen_longitude,
        c.age_at_disappearance,
        c.gender,
        COALESCE(c.is_minor, FALSE) AS is_minor,
        COALESCE(c.is_indigenous, FALSE) AS is_indigenous,
        COALESCE(c.is_high_vulnerability, FALSE) AS is_high_vulnerability,
        c.status = 'resolved' AS is_resolved,
        COALESCE(c.circumstance_tags, ARRAY[]::text[]) AS circumstance_tags,
        c.last_lead_at,
        c.last_tip_at,
        c.last_activity_at,
        COALESCE(c.manually_marked_cold, FALSE) AS manually_marked_cold,
        COALESCE(c.resource_constrained, FALSE) AS resource_constrained,
        COALESCE(c.revival_approved, FALSE) AS revival_approved
"""


def get_case_records_query(include_resolved: bool = False, jurisdiction: Optional[str] = None) -> str:
    """
    SQL to load every case the cold case program tracks.

    Args:
        include_resolved: Also return resolved cases (they never become cold,
            but an existing profile still needs to see the resolution)
        jurisdiction: When set, the query takes the jurisdiction id as $1

    Returns:
        str: asyncpg query string
    """
    where = []
    if not include_resolved:
        where.append("c.status <> 'resolved'")
    if jurisdiction is not None:
        where.append("c.jurisdiction_id = $1")
    where_clause = f"WHERE {' AND '.join(where)}" if where else ""

    return f"""
    -- Case repository load
    SELECT
        {CASE_COLUMNS}
    FROM missing_cases c
    {where_clause}
    ORDER BY c.last_seen_date, c.id
    """


def get_case_record_query() -> str:
    """SQL to load a single case by id ($1)."""
    return f"""
    SELECT
        {CASE_COLUMNS}
    FROM missing_cases c
    WHERE c.id = $1
    """


def get_profile_upsert_query() -> str:
    """
    SQL to upsert one cold case profile.

    Parameters:
        $1 id, $2 case_id, $3 classification, $4 revival_priority_score,
        $5 next_review_date, $6 version, $7 payload (jsonb text)
    """
    return """
    INSERT INTO cold_case_profiles (
        id,
        case_id,
        classification,
        revival_priority_score,
        next_review_date,
        version,
        payload,
        updated_at
    ) VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb, NOW())
    ON CONFLICT (case_id) DO UPDATE SET
        classification = EXCLUDED.classification,
        revival_priority_score = EXCLUDED.revival_priority_score,
        next_review_date = EXCLUDED.next_review_date,
        version = EXCLUDED.version,
        payload = EXCLUDED.payload,
        updated_at = NOW()
    WHERE cold_case_profiles.version <= EXCLUDED.version
    """


def get_profiles_query() -> str:
    """SQL to load every persisted profile payload."""
    return """
    SELECT payload
    FROM cold_case_profiles
    ORDER BY case_id
    """


def get_metrics_history_query() -> str:
    """SQL for the most recent $1 metrics snapshots, newest first."""
    return """
    SELECT snapshot_date, payload
    FROM cold_case_metrics
    ORDER BY snapshot_date DESC
    LIMIT $1
    """
