"""
Pattern Matcher Service

Scores similarity between a source case and every other case in the corpus
and turns the strong ones into PatternMatch candidates.

Sub-scores, each in [0, 1] and weighted independently (weights from Settings):
- geographic (0.35): haversine distance with linear falloff, 0 past
  pattern_radius_km
- temporal (0.20): proximity of last-seen dates inside
  pattern_temporal_window_days, boosted for the same season and the same day
  of week
- demographic (0.20): age bracket (0.6) and gender (0.4)
- modus_operandi (0.25): Jaccard overlap of circumstance tags

Confidence buckets:
    low < 0.40 <= medium < 0.65 <= high < 0.85 <= very_high

Candidates below the configured minimum confidence are dropped here and never
reach the store. The match type is the sub-score contributing most to the
total; when no single sub-score carries at least 40% of it the match is
`circumstantial`.

Distances are computed in one numpy pass per source case. Corpus scans are
split into shards by the batch pass and run in worker threads; everything in
this module is synchronous and side-effect free.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Sequence

import numpy as np

from coldcase.core.config import Settings, get_settings
from coldcase.models.enums import PatternConfidence, PatternMatchType
from coldcase.models.schemas import CaseRecord


EARTH_RADIUS_KM = 6371.0

CONFIDENCE_ORDER = [
    PatternConfidence.LOW,
    PatternConfidence.MEDIUM,
    PatternConfidence.HIGH,
    PatternConfidence.VERY_HIGH,
]

# Temporal sub-score composition
PROXIMITY_SHARE = 0.75
SEASON_BOOST = 0.15
WEEKDAY_BOOST = 0.10

# Demographic sub-score composition
AGE_BRACKET_SHARE = 0.6
GENDER_SHARE = 0.4
AGE_BRACKETS = [(0, 12), (13, 17), (18, 25), (26, 40), (41, 60), (61, 200)]

DOMINANT_SHARE = 0.4


@dataclass
class PatternCandidate:
    """
    Similarity result for one directed pair of cases.

    Attributes:
        source_case_id / matched_case_id: directed edge endpoints
        similarity: weighted similarity in [0, 1]
        confidence: bucket for the similarity
        match_type: dominant sub-score, or circumstantial
        sub_scores: raw per-dimension scores
        matching_factors: human-readable reasons
    """
    source_case_id: str
    matched_case_id: str
    similarity: float
    confidence: PatternConfidence
    match_type: PatternMatchType
    sub_scores: Dict[str, float] = field(default_factory=dict)
    matching_factors: List[str] = field(default_factory=list)
    distance_km: Optional[float] = None
    days_apart: Optional[int] = None


# =============================================================================
# Confidence Buckets
# =============================================================================

def confidence_for(similarity: float) -> PatternConfidence:
    if similarity >= 0.85:
        return PatternConfidence.VERY_HIGH
    if similarity >= 0.65:
        return PatternConfidence.HIGH
    if similarity >= 0.40:
        return PatternConfidence.MEDIUM
    return PatternConfidence.LOW


def meets_minimum(confidence: PatternConfidence, minimum: PatternConfidence) -> bool:
    return CONFIDENCE_ORDER.index(confidence) >= CONFIDENCE_ORDER.index(minimum)


# =============================================================================
# Sub-scores
# =============================================================================

def haversine_km(
    lat: float,
    lon: float,
    lats: np.ndarray,
    lons: np.ndarray,
) -> np.ndarray:
    """
    Great-circle distance in km from one point to arrays of points.

    NaN coordinates propagate to NaN distances.
    """
    lat1, lon1 = np.radians(lat), np.radians(lon)
    lat2, lon2 = np.radians(lats), np.radians(lons)
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = np.sin(dlat / 2) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))


def geographic_scores(distances: np.ndarray, radius_km: float) -> np.ndarray:
    """Linear falloff from 1 at 0 km to 0 at radius_km; unknown distance scores 0."""
    scores = np.clip(1.0 - distances / radius_km, 0.0, 1.0)
    return np.nan_to_num(scores, nan=0.0)


def _season(value: date) -> int:
    # Dec-Feb, Mar-May, Jun-Aug, Sep-Nov
    return (value.month % 12) // 3


def temporal_score(a: date, b: date, window_days: int) -> float:
    days_apart = abs((a - b).days)
    proximity = max(0.0, 1.0 - days_apart / window_days)
    score = PROXIMITY_SHARE * proximity
    if _season(a) == _season(b):
        score += SEASON_BOOST
    if a.weekday() == b.weekday():
        score += WEEKDAY_BOOST
    return min(1.0, score)


def _age_bracket(age: Optional[int]) -> Optional[int]:
    if age is None:
        return None
    for index, (low, high) in enumerate(AGE_BRACKETS):
        if low <= age <= high:
            return index
    return None


def demographic_score(a: CaseRecord, b: CaseRecord) -> float:
    score = 0.0
    bracket_a = _age_bracket(a.age_at_disappearance)
    bracket_b = _age_bracket(b.age_at_disappearance)
    if bracket_a is not None and bracket_b is not None:
        if bracket_a == bracket_b:
            score += AGE_BRACKET_SHARE
        elif abs(bracket_a - bracket_b) == 1:
            score += AGE_BRACKET_SHARE / 2
    if a.gender and b.gender and a.gender.lower() == b.gender.lower():
        score += GENDER_SHARE
    return score


def modus_operandi_score(a: Sequence[str], b: Sequence[str]) -> float:
    tags_a = {t.lower() for t in a}
    tags_b = {t.lower() for t in b}
    if not tags_a or not tags_b:
        return 0.0
    return len(tags_a & tags_b) / len(tags_a | tags_b)


# =============================================================================
# Matching
# =============================================================================

def _weights(settings: Settings) -> Dict[PatternMatchType, float]:
    return {
        PatternMatchType.GEOGRAPHIC: settings.pattern_weight_geographic,
        PatternMatchType.TEMPORAL: settings.pattern_weight_temporal,
        PatternMatchType.DEMOGRAPHIC: settings.pattern_weight_demographic,
        PatternMatchType.MODUS_OPERANDI: settings.pattern_weight_modus_operandi,
    }


def _dominant_type(contributions: Dict[PatternMatchType, float]) -> PatternMatchType:
    total = sum(contributions.values())
    if total <= 0:
        return PatternMatchType.CIRCUMSTANTIAL
    # Ties resolve in declaration order of the weights
    best = max(contributions, key=lambda k: contributions[k])
    if contributions[best] / total < DOMINANT_SHARE:
        return PatternMatchType.CIRCUMSTANTIAL
    return best


def find_candidates(
    source: CaseRecord,
    corpus: Sequence[CaseRecord],
    settings: Optional[Settings] = None,
) -> List[PatternCandidate]:
    """
    Compare one source case against a corpus.

    Args:
        source: Case being analyzed
        corpus: Cases to compare against; the source itself is skipped
        settings: Radius, window, weights and minimum confidence

    Returns:
        Candidates at or above the minimum confidence, strongest first
    """
    settings = settings or get_settings()
    minimum = PatternConfidence(settings.pattern_min_confidence)
    weights = _weights(settings)
    weight_total = sum(weights.values())

    others = [c for c in corpus if c.case_id != source.case_id]
    if not others:
        return []

    if source.last_seen_latitude is not None and source.last_seen_longitude is not None:
        lats = np.array([
            c.last_seen_latitude if c.last_seen_latitude is not None else np.nan for c in others
        ], dtype=float)
        lons = np.array([
            c.last_seen_longitude if c.last_seen_longitude is not None else np.nan for c in others
        ], dtype=float)
        distances = haversine_km(source.last_seen_latitude, source.last_seen_longitude, lats, lons)
    else:
        distances = np.full(len(others), np.nan)
    geo = geographic_scores(distances, settings.pattern_radius_km)

    candidates: List[PatternCandidate] = []
    for index, other in enumerate(others):
        sub_scores = {
            PatternMatchType.GEOGRAPHIC: float(geo[index]),
            PatternMatchType.TEMPORAL: temporal_score(
                source.last_seen_date, other.last_seen_date, settings.pattern_temporal_window_days
            ),
            PatternMatchType.DEMOGRAPHIC: demographic_score(source, other),
            PatternMatchType.MODUS_OPERANDI: modus_operandi_score(
                source.circumstance_tags, other.circumstance_tags
            ),
        }
        contributions = {k: weights[k] * v for k, v in sub_scores.items()}
        similarity = round(min(1.0, sum(contributions.values()) / weight_total), 4)
        confidence = confidence_for(similarity)
        if not meets_minimum(confidence, minimum):
            continue

        distance = None if np.isnan(distances[index]) else round(float(distances[index]), 1)
        days_apart = abs((source.last_seen_date - other.last_seen_date).days)

        candidates.append(PatternCandidate(
            source_case_id=source.case_id,
            matched_case_id=other.case_id,
            similarity=similarity,
            confidence=confidence,
            match_type=_dominant_type(contributions),
            sub_scores={k.value: round(v, 4) for k, v in sub_scores.items()},
            matching_factors=_describe(source, other, sub_scores, distance, days_apart),
            distance_km=distance,
            days_apart=days_apart,
        ))

    candidates.sort(key=lambda c: (-c.similarity, c.matched_case_id))
    return candidates


def scan_shard(
    sources: Sequence[CaseRecord],
    corpus: Sequence[CaseRecord],
    settings: Optional[Settings] = None,
) -> List[PatternCandidate]:
    """Run find_candidates for a shard of source cases. Safe to call from a worker thread."""
    settings = settings or get_settings()
    results: List[PatternCandidate] = []
    for source in sources:
        results.extend(find_candidates(source, corpus, settings))
    return results


def _describe(
    source: CaseRecord,
    other: CaseRecord,
    sub_scores: Dict[PatternMatchType, float],
    distance: Optional[float],
    days_apart: int,
) -> List[str]:
    factors: List[str] = []
    if distance is not None and sub_scores[PatternMatchType.GEOGRAPHIC] > 0:
        factors.append(f"last seen {distance} km apart")
    if sub_scores[PatternMatchType.TEMPORAL] > 0:
        factors.append(f"last seen {days_apart} days apart")
        if _season(source.last_seen_date) == _season(other.last_seen_date):
            factors.append("same season")
        if source.last_seen_date.weekday() == other.last_seen_date.weekday():
            factors.append("same day of week")
    if _age_bracket(source.age_at_disappearance) is not None and (
        _age_bracket(source.age_at_disappearance) == _age_bracket(other.age_at_disappearance)
    ):
        factors.append("same age bracket")
    if source.gender and other.gender and source.gender.lower() == other.gender.lower():
        factors.append("same gender")
    shared = sorted({t.lower() for t in source.circumstance_tags} & {t.lower() for t in other.circumstance_tags})
    if shared:
        factors.append(f"shared circumstances: {', '.join(shared)}")
    return factors
