"""
SQL query module for the cold case backend.

Case repository reads and cold case state writes, as asyncpg query strings.

Example usage:
    from coldcase.sql import get_case_records_query

    rows = await execute_query(get_case_records_query())
"""

from coldcase.sql.case_queries import (
    CASE_COLUMNS,
    get_case_record_query,
    get_case_records_query,
    get_metrics_history_query,
    get_profile_upsert_query,
    get_profiles_query,
)

__all__ = [
    "CASE_COLUMNS",
    "get_case_record_query",
    "get_case_records_query",
    "get_metrics_history_query",
    "get_profile_upsert_query",
    "get_profiles_query",
]
