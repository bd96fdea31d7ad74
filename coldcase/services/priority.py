"""
Revival Priority Scorer

Pure, deterministic scoring of how strongly a cold case should be revived.
The scorer never reads the clock or the store itself: callers pass the
profile, the case record, the eligible signals and `today`.

Scoring Steps:
1. Additive categories, each capped at its maximum weight:
   - evidence significance (unprocessed or newly verified only):
     critical 25, high 15, medium 8, low 3 (cap 25)
   - confirmed pattern matches by confidence:
     very_high 20, high 12, medium 6, low 2 (cap 20)
   - DNA: match_found 30, resubmission_pending / resubmitted 5
   - anniversary within 30 days: 10
2. Stagnation decay: -1 per full year cold beyond the first two, the
   decayed sum floored at 0
3. Vulnerability multipliers: x1.2 minor, x1.15 Indigenous
4. Clamp to [0, 100]

Every contribution is stored as a PriorityFactor so score_from_factors()
reproduces the committed score exactly.

Usage:
    score, factors = compute_priority(profile, case, evidence, matches, today)
    assert score == score_from_factors(factors)
"""

from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple

from coldcase.core.config import Settings, get_settings
from coldcase.core.timeutil import full_years_between, next_anniversary
from coldcase.models.enums import (
    DNASubmissionStatus,
    PatternConfidence,
    PatternDetermination,
    PriorityFactorKind,
    SignificanceLevel,
    VerificationStatus,
)
from coldcase.models.schemas import (
    CaseRecord,
    ColdCaseProfile,
    NewEvidence,
    PatternMatch,
    PriorityFactor,
)


MIN_SCORE = 0.0
MAX_SCORE = 100.0


def evidence_weights(settings: Settings) -> Dict[SignificanceLevel, float]:
    return {
        SignificanceLevel.CRITICAL: settings.evidence_weight_critical,
        SignificanceLevel.HIGH: settings.evidence_weight_high,
        SignificanceLevel.MEDIUM: settings.evidence_weight_medium,
        SignificanceLevel.LOW: settings.evidence_weight_low,
    }


def pattern_weights(settings: Settings) -> Dict[PatternConfidence, float]:
    return {
        PatternConfidence.VERY_HIGH: settings.pattern_weight_very_high,
        PatternConfidence.HIGH: settings.pattern_weight_high,
        PatternConfidence.MEDIUM: settings.pattern_weight_medium,
        PatternConfidence.LOW: settings.pattern_weight_low,
    }


# =============================================================================
# Signal eligibility
# =============================================================================

def is_scoring_evidence(evidence: NewEvidence, today: date, settings: Settings) -> bool:
    """
    Evidence counts toward the score while unprocessed, or for a window
    after it was verified. Disputed evidence never counts.
    """
    if evidence.verification_status == VerificationStatus.DISPUTED:
        return False
    if not evidence.processed:
        return True
    if evidence.verification_status == VerificationStatus.VERIFIED and evidence.verified_at:
        window = timedelta(days=settings.newly_verified_window_days)
        return today - evidence.verified_at.date() <= window
    return False


def confirmed_matches(matches: List[PatternMatch]) -> List[PatternMatch]:
    return [m for m in matches if m.determination == PatternDetermination.CONFIRMED]


# =============================================================================
# Scoring
# =============================================================================

def _capped_category(
    label: str,
    contributions: List[Tuple[str, float]],
    cap: float,
) -> Optional[PriorityFactor]:
    if not contributions:
        return None
    total = min(cap, sum(weight for _, weight in contributions))
    names = ", ".join(name for name, _ in contributions)
    return PriorityFactor(factor=f"{label}: {names}", weight=total, kind=PriorityFactorKind.ADDITIVE)


def compute_priority(
    profile: ColdCaseProfile,
    case: CaseRecord,
    evidence: List[NewEvidence],
    matches: List[PatternMatch],
    today: date,
    settings: Optional[Settings] = None,
) -> Tuple[float, List[PriorityFactor]]:
    """
    Score a cold case's revival priority.

    Args:
        profile: The cold case profile (DNA status, anniversary, became_cold_at)
        case: Case record with vulnerability flags
        evidence: All evidence recorded on the profile; ineligible items are ignored
        matches: Pattern matches touching the case; only confirmed ones count
        today: Scoring date
        settings: Weight overrides (uses config if not provided)

    Returns:
        Tuple of (score in [0, 100], stored factors)
    """
    settings = settings or get_settings()
    factors: List[PriorityFactor] = []

    # Evidence
    ev_weights = evidence_weights(settings)
    ev_contributions = [
        (f"{e.significance.value} {e.evidence_type.value} evidence", ev_weights[e.significance])
        for e in evidence
        if is_scoring_evidence(e, today, settings)
    ]
    ev_factor = _capped_category("evidence", ev_contributions, settings.evidence_weight_critical)
    if ev_factor:
        factors.append(ev_factor)

    # Pattern matches
    pt_weights = pattern_weights(settings)
    pt_contributions = [
        (f"{m.confidence.value} {m.match_type.value} match", pt_weights[m.confidence])
        for m in confirmed_matches(matches)
    ]
    pt_factor = _capped_category("pattern", pt_contributions, settings.pattern_weight_very_high)
    if pt_factor:
        factors.append(pt_factor)

    # DNA
    if profile.dna_status == DNASubmissionStatus.MATCH_FOUND:
        factors.append(PriorityFactor(factor="dna: match found", weight=settings.dna_match_weight))
    elif profile.dna_status in (
        DNASubmissionStatus.RESUBMISSION_PENDING,
        DNASubmissionStatus.RESUBMITTED,
    ):
        factors.append(PriorityFactor(
            factor=f"dna: {profile.dna_status.value}",
            weight=settings.dna_resubmission_weight,
        ))

    # Anniversary
    upcoming = next_anniversary(profile.anniversary_date or case.last_seen_date, today)
    if upcoming is not None and (upcoming - today).days <= settings.anniversary_window_days:
        factors.append(PriorityFactor(
            factor=f"anniversary in {(upcoming - today).days} days",
            weight=settings.anniversary_weight,
        ))

    # Stagnation decay
    if profile.became_cold_at is not None:
        years_cold = full_years_between(profile.became_cold_at.date(), today)
        decay = max(0, years_cold - settings.stagnation_grace_years)
        if decay > 0:
            factors.append(PriorityFactor(
                factor=f"stagnation: {years_cold} years cold",
                weight=float(decay),
                kind=PriorityFactorKind.DECAY,
            ))

    # Vulnerability multipliers
    if case.is_minor:
        factors.append(PriorityFactor(
            factor="minor", weight=settings.minor_multiplier, kind=PriorityFactorKind.MULTIPLIER,
        ))
    if case.is_indigenous:
        factors.append(PriorityFactor(
            factor="indigenous", weight=settings.indigenous_multiplier, kind=PriorityFactorKind.MULTIPLIER,
        ))

    return score_from_factors(factors), factors


def score_from_factors(factors: List[PriorityFactor]) -> float:
    """
    Recompute a score from stored factors.

    additive sum -> minus decay (floored at 0) -> times multipliers -> clamp
    """
    total = sum(f.weight for f in factors if f.kind == PriorityFactorKind.ADDITIVE)
    decay = sum(f.weight for f in factors if f.kind == PriorityFactorKind.DECAY)
    total = max(0.0, total - decay)
    for factor in factors:
        if factor.kind == PriorityFactorKind.MULTIPLIER:
            total *= factor.weight
    return round(min(MAX_SCORE, max(MIN_SCORE, total)), 2)
