"""
Geographic pattern clustering using DBSCAN with the haversine metric.

Groups cold cases whose last-seen locations sit within
pattern_cluster_radius_km of each other, with at least
pattern_cluster_min_cases members per cluster. Cluster ids are written to
ColdCaseProfile.pattern_clusters by the daily pass.

Cluster labels are deterministic for a given input order: cases are sorted by
case_id before fitting and clusters are named by their smallest member.
"""

import logging
from typing import Dict, List, Optional, Sequence

import numpy as np
from sklearn.cluster import DBSCAN

from coldcase.core.config import Settings, get_settings
from coldcase.models.schemas import CaseRecord
from coldcase.services.pattern_matching import EARTH_RADIUS_KM


logger = logging.getLogger(__name__)


def cluster_cases(
    cases: Sequence[CaseRecord],
    settings: Optional[Settings] = None,
) -> Dict[str, List[str]]:
    """
    Assign geographic cluster membership.

    Args:
        cases: Cases to cluster; cases without coordinates are ignored
        settings: Cluster radius and minimum size

    Returns:
        Dict of case_id -> list of cluster ids (empty list for noise points)
    """
    settings = settings or get_settings()

    located = sorted(
        (c for c in cases if c.last_seen_latitude is not None and c.last_seen_longitude is not None),
        key=lambda c: c.case_id,
    )
    membership: Dict[str, List[str]] = {c.case_id: [] for c in cases}
    if len(located) < settings.pattern_cluster_min_cases:
        return membership

    coords = np.radians(np.array(
        [[c.last_seen_latitude, c.last_seen_longitude] for c in located], dtype=float
    ))
    model = DBSCAN(
        eps=settings.pattern_cluster_radius_km / EARTH_RADIUS_KM,
        min_samples=settings.pattern_cluster_min_cases,
        metric="haversine",
        algorithm="ball_tree",
    )
    labels = model.fit_predict(coords)

    names: Dict[int, str] = {}
    for case, label in zip(located, labels):
        if label == -1:
            continue
        # First member in case_id order names the cluster
        names.setdefault(int(label), f"geo-{case.case_id}")
        membership[case.case_id] = [names[int(label)]]

    logger.info(
        f"Pattern clustering: {len(located)} located cases, {len(names)} clusters"
    )
    return membership
