"""
Campaign manager tests: lifecycle, dispatcher payloads, feedback into
classification and automatic proposals.
"""

from datetime import date, timedelta
from unittest.mock import AsyncMock, Mock

import pytest

from coldcase.core.errors import TransientDependencyError, ValidationError
from coldcase.models.enums import (
    CampaignStatus,
    CampaignType,
    DNASubmissionStatus,
    EvidenceType,
    RevivalTriggerType,
    SignificanceLevel,
)
from coldcase.models.schemas import (
    AdvanceDNASubmissionRequest,
    CompleteCampaignRequest,
    CreateCampaignRequest,
    CreateDNASubmissionRequest,
    DNALabResult,
    RecordEvidenceRequest,
    ScheduleCampaignRequest,
)
from coldcase.services.campaigns import engagement_rate
from coldcase.services.notifications import (
    LogOnlyDispatcher,
    SlackCampaignDispatcher,
    build_dispatcher,
)
from coldcase.tests.conftest import NOW, TODAY


async def _scheduled_campaign(coordinator, case_factory, **case_overrides):
    await coordinator.upsert_case(case_factory(**case_overrides))
    campaign = await coordinator.create_campaign(CreateCampaignRequest(
        case_id="case-1",
        campaign_type=CampaignType.SOCIAL_MEDIA,
        title="Renewed appeal",
        headline="Have you seen her?",
        channels=["facebook", "x"],
    ))
    await coordinator.schedule_campaign(
        campaign.id, ScheduleCampaignRequest(scheduled_start=TODAY + timedelta(days=3))
    )
    return campaign


FULL_RESULTS = CompleteCampaignRequest(actual_reach=1000, actual_shares=40, actual_tips=10, actual_leads=0)


@pytest.mark.asyncio
class TestCampaignLifecycle:

    async def test_schedule_requires_start(self, coordinator, case_factory) -> None:
        await coordinator.upsert_case(case_factory())
        campaign = await coordinator.create_campaign(CreateCampaignRequest(
            case_id="case-1", campaign_type=CampaignType.PRESS_RELEASE, title="Press release",
        ))

        with pytest.raises(ValidationError):
            await coordinator.schedule_campaign(campaign.id, ScheduleCampaignRequest())
        assert campaign.status == CampaignStatus.DRAFT

    async def test_activation_dispatches_payload(self, coordinator, case_factory, dispatcher) -> None:
        campaign = await _scheduled_campaign(coordinator, case_factory)

        await coordinator.activate_campaign(campaign.id)

        assert campaign.status == CampaignStatus.ACTIVE
        assert campaign.activated_at == NOW
        assert dispatcher.sent == [
            {"caseId": "case-1", "headline": "Have you seen her?", "channels": ["facebook", "x"]}
        ]

    async def test_draft_cannot_activate(self, coordinator, case_factory, dispatcher) -> None:
        await coordinator.upsert_case(case_factory())
        campaign = await coordinator.create_campaign(CreateCampaignRequest(
            case_id="case-1", campaign_type=CampaignType.BILLBOARD, title="Highway billboard",
        ))

        with pytest.raises(ValidationError) as exc_info:
            await coordinator.activate_campaign(campaign.id)

        assert exc_info.value.code == "invalid_transition"
        assert dispatcher.sent == []

    async def test_dispatch_failure_keeps_campaign_scheduled(self, coordinator, case_factory) -> None:
        campaign = await _scheduled_campaign(coordinator, case_factory)
        coordinator.dispatcher = AsyncMock()
        coordinator.dispatcher.dispatch_campaign.side_effect = TransientDependencyError("Slack down")

        with pytest.raises(TransientDependencyError):
            await coordinator.activate_campaign(campaign.id)
        assert campaign.status == CampaignStatus.SCHEDULED

    async def test_completion_requires_all_actuals(self, coordinator, case_factory) -> None:
        campaign = await _scheduled_campaign(coordinator, case_factory)
        await coordinator.activate_campaign(campaign.id)

        with pytest.raises(ValidationError):
            await coordinator.complete_campaign(campaign.id, CompleteCampaignRequest(actual_reach=1000))
        assert campaign.status == CampaignStatus.ACTIVE

    async def test_completion_derives_engagement(self, coordinator, case_factory) -> None:
        campaign = await _scheduled_campaign(coordinator, case_factory)
        await coordinator.activate_campaign(campaign.id)

        await coordinator.complete_campaign(campaign.id, FULL_RESULTS)

        assert campaign.status == CampaignStatus.COMPLETED
        assert campaign.engagement_rate == 5.0

    async def test_cancel_active_but_not_completed(self, coordinator, case_factory) -> None:
        campaign = await _scheduled_campaign(coordinator, case_factory)
        await coordinator.activate_campaign(campaign.id)

        await coordinator.cancel_campaign(campaign.id, reason="Family request")
        assert campaign.status == CampaignStatus.CANCELLED
        assert campaign.cancel_reason == "Family request"

        with pytest.raises(ValidationError):
            await coordinator.cancel_campaign(campaign.id)


@pytest.mark.asyncio
class TestCampaignFeedback:

    async def test_tips_feed_classification(self, coordinator, case_factory) -> None:
        campaign = await _scheduled_campaign(coordinator, case_factory)
        await coordinator.activate_campaign(campaign.id)

        await coordinator.complete_campaign(campaign.id, FULL_RESULTS)

        case = coordinator.store.get_case("case-1")
        profile = coordinator.store.profile_for_case("case-1")
        assert case.last_tip_at == NOW
        assert case.last_activity_at == NOW
        assert profile.revival_recommended is True
        assert coordinator.store.triggers.for_case("case-1")[-1].trigger_type == (
            RevivalTriggerType.ELIGIBILITY_ENGINE
        )

    async def test_no_results_leaves_case_untouched(self, coordinator, case_factory) -> None:
        campaign = await _scheduled_campaign(coordinator, case_factory)
        await coordinator.activate_campaign(campaign.id)
        before = coordinator.store.get_case("case-1").last_tip_at

        await coordinator.complete_campaign(campaign.id, CompleteCampaignRequest(
            actual_reach=500, actual_shares=3, actual_tips=0, actual_leads=0,
        ))

        assert coordinator.store.get_case("case-1").last_tip_at == before
        assert coordinator.store.profile_for_case("case-1").revival_recommended is False


@pytest.mark.asyncio
class TestAutomaticProposals:

    async def test_anniversary_campaign_proposed_once_per_year(self, coordinator, case_factory) -> None:
        await coordinator.upsert_case(case_factory(last_seen_date=date(2019, 6, 25)))
        profile = coordinator.store.profile_for_case("case-1")
        assert profile.next_anniversary_campaign == TODAY

        campaign = await coordinator.propose_anniversary_campaign("case-1")

        assert campaign.campaign_type == CampaignType.ANNIVERSARY_PUSH
        assert campaign.status == CampaignStatus.DRAFT
        assert campaign.anniversary_year == 2026
        assert campaign.years_since_disappearance == 7
        assert campaign.scheduled_start == date(2026, 6, 25)
        assert profile.next_anniversary_campaign == date(2027, 6, 11)

        assert await coordinator.propose_anniversary_campaign("case-1") is None
        profile.next_anniversary_campaign = TODAY
        assert await coordinator.propose_anniversary_campaign("case-1") is None
        assert len(coordinator.store.campaigns_for(profile.id)) == 1

    async def test_no_anniversary_campaign_before_date(self, coordinator, case_factory) -> None:
        await coordinator.upsert_case(case_factory())

        assert await coordinator.propose_anniversary_campaign("case-1") is None

    async def test_outreach_proposed_when_score_crosses_threshold(self, coordinator, case_factory) -> None:
        await coordinator.upsert_case(case_factory(is_minor=True))
        await coordinator.record_evidence(RecordEvidenceRequest(
            case_id="case-1",
            evidence_type=EvidenceType.FORENSIC,
            evidence_description="Remains located",
            significance=SignificanceLevel.CRITICAL,
        ))
        submission = await coordinator.create_dna_submission(
            CreateDNASubmissionRequest(case_id="case-1", database_name="NDDB")
        )
        await coordinator.advance_dna_submission(submission.id, AdvanceDNASubmissionRequest(
            status=DNASubmissionStatus.SUBMITTED, lab_reference_id="LAB-9",
        ))
        await coordinator.record_lab_result(DNALabResult(lab_reference_id="LAB-9", matched=True))

        await coordinator.recompute.drain()

        profile = coordinator.store.profile_for_case("case-1")
        assert profile.revival_priority_score == 66.0
        [campaign] = coordinator.store.campaigns_for(profile.id)
        assert campaign.campaign_type == CampaignType.SOCIAL_MEDIA
        assert campaign.status == CampaignStatus.DRAFT

        coordinator.recompute.request("case-1")
        await coordinator.recompute.drain()
        assert len(coordinator.store.campaigns_for(profile.id)) == 1


@pytest.mark.asyncio
class TestDispatchers:

    async def test_slack_dispatcher_posts_blocks(self) -> None:
        client = Mock()
        client.send.return_value = Mock(status_code=200, body="ok")
        dispatcher = SlackCampaignDispatcher("https://hooks.slack.com/services/T/B/X", client=client)

        await dispatcher.dispatch_campaign({"caseId": "case-1", "headline": "Appeal", "channels": ["x"]})

        kwargs = client.send.call_args.kwargs
        assert kwargs["text"] == "Campaign ready: Appeal"
        assert kwargs["blocks"][0]["type"] == "header"

    async def test_slack_rejection_is_transient(self) -> None:
        client = Mock()
        client.send.return_value = Mock(status_code=500, body="error")
        dispatcher = SlackCampaignDispatcher("https://hooks.slack.com/services/T/B/X", client=client)

        with pytest.raises(TransientDependencyError):
            await dispatcher.dispatch_campaign({"caseId": "case-1", "headline": "Appeal", "channels": []})


def test_engagement_rate_zero_reach() -> None:
    assert engagement_rate(0, 5, 5) == 0.0
    assert engagement_rate(200, 3, 1) == 2.0


def test_build_dispatcher_without_webhook(settings) -> None:
    assert isinstance(build_dispatcher(settings), LogOnlyDispatcher)
