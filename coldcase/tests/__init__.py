'''
Cold Case Backend Test Suite

Test Modules:
-------------
- test_classification.py: cold criteria, precedence, first-review scheduling
- test_priority.py: revival priority scoring, decay, multipliers, reproducibility
- test_review_scheduler.py: review creation, reviewer assignment, lifecycle
- test_checklist.py: checklist templates and item transitions
- test_pattern_matching.py: similarity scoring, confidence floor, clusters
- test_forensics.py: DNA submission lifecycle and evidence
- test_campaigns.py: campaign lifecycle and automatic proposals
- test_recompute.py: coalescing, supersession, optimistic commits
- test_daily_pass.py: batch pass skip-and-log behavior
- test_metrics.py: program metrics snapshots
- test_jobs.py: Slack digest idempotency
- test_repository.py: case repository adapter and SQL builders
- test_api.py: FastAPI contract
'''
