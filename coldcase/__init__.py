"""
Cold Case Revival Backend Package.

FastAPI service layer for the cold case revival workflow: classifying cases as
cold, scheduling and tracking periodic reviews, scoring revival priority,
matching patterns across the case corpus, and managing outreach campaigns and
forensic resubmissions.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration, database, errors, and dependencies
    - models: Pydantic schemas, enums, and display labels
    - services: Business logic services
    - jobs: Daily batch pass and Slack digest
    - sql: Parameterized SQL queries for the case repository
"""

__version__ = "1.0.0"
