"""
Campaign Manager Service

Awareness campaigns for cold cases.

Lifecycle:
    draft -> scheduled -> active -> {completed, cancelled}
    draft / scheduled / active may be cancelled

Rules:
- scheduling requires a start date
- activation produces the campaign-ready payload {caseId, headline, channels}
  handed to the notification dispatcher
- completion requires every actual metric; engagement_rate is derived as
  (shares + tips) / reach * 100
- completed campaign tips and leads advance the case's activity timestamps,
  which the classification engine then re-evaluates

Automatic proposals (always drafts, a human schedules them):
- anniversary_push when next_anniversary_campaign arrives and no campaign
  exists for that anniversary year
- social_media outreach when the revival priority score reaches
  campaign_priority_threshold and no campaign is open
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional

from coldcase.core.config import Settings, get_settings
from coldcase.core.errors import ValidationError
from coldcase.core.timeutil import anniversary_in_year, full_years_between, next_anniversary, utc_now
from coldcase.models.enums import CampaignStatus, CampaignType
from coldcase.models.schemas import (
    Campaign,
    CaseRecord,
    ColdCaseProfile,
    CompleteCampaignRequest,
    CreateCampaignRequest,
    ScheduleCampaignRequest,
)
from coldcase.services.store import CaseStore


logger = logging.getLogger(__name__)


DEFAULT_OUTREACH_CHANNELS = ["facebook", "x", "instagram"]
DEFAULT_ANNIVERSARY_CHANNELS = ["facebook", "x", "press"]


# =============================================================================
# Derived metrics
# =============================================================================

def engagement_rate(reach: int, shares: int, tips: int) -> float:
    """(shares + tips) / reach * 100, or 0 when nothing was reached."""
    if reach <= 0:
        return 0.0
    return round((shares + tips) / reach * 100, 2)


def campaign_payload(campaign: Campaign) -> Dict[str, Any]:
    """Campaign-ready payload for the notification dispatcher."""
    return {
        "caseId": campaign.case_id,
        "headline": campaign.headline or campaign.title,
        "channels": list(campaign.channels),
    }


# =============================================================================
# Lifecycle
# =============================================================================

def create_campaign(
    profile: ColdCaseProfile,
    request: CreateCampaignRequest,
    proposed_by: str = "admin",
) -> Campaign:
    return Campaign(
        profile_id=profile.id,
        case_id=profile.case_id,
        campaign_type=request.campaign_type,
        title=request.title,
        headline=request.headline,
        description=request.description,
        channels=request.channels,
        target_reach=request.target_reach,
        target_engagement=request.target_engagement,
        target_tips=request.target_tips,
        proposed_by=proposed_by,
    )


def _require_status(campaign: Campaign, *allowed: CampaignStatus) -> None:
    if campaign.status not in allowed:
        expected = " or ".join(s.value for s in allowed)
        raise ValidationError(
            f"Campaign {campaign.id} is {campaign.status.value}, expected {expected}",
            code="invalid_transition",
        )


def schedule_campaign(campaign: Campaign, request: ScheduleCampaignRequest) -> Campaign:
    _require_status(campaign, CampaignStatus.DRAFT)
    start = request.scheduled_start or campaign.scheduled_start
    end = request.scheduled_end or campaign.scheduled_end
    if start is None:
        raise ValidationError("Scheduling a campaign requires scheduled_start")
    if end is not None and end < start:
        raise ValidationError("scheduled_end must not precede scheduled_start")

    campaign.scheduled_start = start
    campaign.scheduled_end = end
    campaign.status = CampaignStatus.SCHEDULED
    return campaign


def validate_activation(campaign: Campaign) -> None:
    _require_status(campaign, CampaignStatus.SCHEDULED)


def activate_campaign(campaign: Campaign, now: Optional[datetime] = None) -> Campaign:
    validate_activation(campaign)
    campaign.status = CampaignStatus.ACTIVE
    campaign.activated_at = now or utc_now()
    logger.info(f"Campaign {campaign.id} active for case {campaign.case_id}")
    return campaign


def complete_campaign(
    campaign: Campaign,
    request: CompleteCampaignRequest,
    now: Optional[datetime] = None,
) -> Campaign:
    """
    Complete an active campaign with its actual metrics.

    Raises:
        ValidationError: not active, or any actual metric missing
    """
    _require_status(campaign, CampaignStatus.ACTIVE)

    actuals = {
        name: getattr(request, name) if getattr(request, name) is not None else getattr(campaign, name)
        for name in ("actual_reach", "actual_shares", "actual_tips", "actual_leads")
    }
    missing = [name for name, value in actuals.items() if value is None]
    if missing:
        raise ValidationError(f"Completing a campaign requires {', '.join(missing)}")

    for name, value in actuals.items():
        setattr(campaign, name, value)
    campaign.engagement_rate = engagement_rate(
        campaign.actual_reach, campaign.actual_shares, campaign.actual_tips
    )
    campaign.status = CampaignStatus.COMPLETED
    campaign.completed_at = now or utc_now()
    logger.info(
        f"Campaign {campaign.id} completed: reach={campaign.actual_reach} "
        f"tips={campaign.actual_tips} leads={campaign.actual_leads} "
        f"engagement={campaign.engagement_rate}%"
    )
    return campaign


def cancel_campaign(
    campaign: Campaign,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Campaign:
    _require_status(campaign, CampaignStatus.DRAFT, CampaignStatus.SCHEDULED, CampaignStatus.ACTIVE)
    campaign.status = CampaignStatus.CANCELLED
    campaign.cancelled_at = now or utc_now()
    campaign.cancel_reason = reason
    return campaign


def apply_campaign_feedback(case: CaseRecord, campaign: Campaign, now: Optional[datetime] = None) -> bool:
    """
    Advance the case's activity timestamps from a completed campaign.

    Returns:
        True when the campaign produced tips or leads
    """
    now = now or utc_now()
    changed = False
    if campaign.actual_tips:
        case.last_tip_at = now
        changed = True
    if campaign.actual_leads:
        case.last_lead_at = now
        changed = True
    if changed:
        case.last_activity_at = now
    return changed


# =============================================================================
# Automatic proposals
# =============================================================================

def _anniversary_proposal_date(anchor: date, year: int, settings: Settings) -> date:
    return anniversary_in_year(anchor, year) - timedelta(days=settings.campaign_lead_days)


def propose_anniversary_campaign(
    store: CaseStore,
    profile: ColdCaseProfile,
    case: CaseRecord,
    today: date,
    settings: Optional[Settings] = None,
) -> Optional[Campaign]:
    """
    Draft an anniversary_push campaign once next_anniversary_campaign arrives.

    Idempotent per anniversary year: a second call for the same year returns
    None. The profile's next_anniversary_campaign moves to the following year
    either way.
    """
    settings = settings or get_settings()
    if not profile.is_cold or profile.anniversary_date is None:
        return None
    if profile.next_anniversary_campaign is None or profile.next_anniversary_campaign > today:
        return None

    anniversary = next_anniversary(profile.anniversary_date, today)
    year = anniversary.year
    profile.next_anniversary_campaign = _anniversary_proposal_date(
        profile.anniversary_date, year + 1, settings
    )

    exists = any(
        c.is_anniversary_campaign and c.anniversary_year == year and c.status != CampaignStatus.CANCELLED
        for c in store.campaigns_for(profile.id)
    )
    if exists:
        return None

    years = full_years_between(case.last_seen_date, anniversary)
    campaign = Campaign(
        profile_id=profile.id,
        case_id=case.case_id,
        campaign_type=CampaignType.ANNIVERSARY_PUSH,
        title=f"{years}-year anniversary appeal for case {case.case_number}",
        headline=f"{years} years missing: help bring them home",
        channels=list(DEFAULT_ANNIVERSARY_CHANNELS),
        scheduled_start=anniversary,
        is_anniversary_campaign=True,
        anniversary_year=year,
        years_since_disappearance=years,
        proposed_by="system",
    )
    store.add_campaign(campaign)
    profile.last_anniversary_campaign = anniversary
    logger.info(f"Proposed anniversary campaign for case {case.case_id} ({year})")
    return campaign


def propose_outreach_campaign(
    store: CaseStore,
    profile: ColdCaseProfile,
    case: CaseRecord,
    settings: Optional[Settings] = None,
) -> Optional[Campaign]:
    """Draft an outreach campaign when the priority score crosses the threshold and none is open."""
    settings = settings or get_settings()
    if not profile.is_cold:
        return None
    if profile.revival_priority_score < settings.campaign_priority_threshold:
        return None
    if any(c.is_open for c in store.campaigns_for(profile.id)):
        return None

    campaign = Campaign(
        profile_id=profile.id,
        case_id=case.case_id,
        campaign_type=CampaignType.SOCIAL_MEDIA,
        title=f"Renewed appeal for case {case.case_number}",
        headline=f"New information sought in case {case.case_number}",
        channels=list(DEFAULT_OUTREACH_CHANNELS),
        proposed_by="system",
    )
    store.add_campaign(campaign)
    logger.info(
        f"Proposed outreach campaign for case {case.case_id} "
        f"(score {profile.revival_priority_score})"
    )
    return campaign
