"""
Notification dispatcher for campaign-ready payloads.

Delivery itself is an external concern; the cold case backend only hands over
{caseId, headline, channels} when a campaign is activated.

Implementations:
- SlackCampaignDispatcher: posts the payload to the Slack incoming webhook
  using slack_sdk's WebhookClient (same client as the daily digest)
- LogOnlyDispatcher: logs and keeps payloads in memory; used when
  SLACK_WEBHOOK_URL is not configured and in tests
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol

from slack_sdk.webhook import WebhookClient

from coldcase.core.config import Settings, get_settings
from coldcase.core.errors import TransientDependencyError


logger = logging.getLogger(__name__)


class NotificationDispatcher(Protocol):
    async def dispatch_campaign(self, payload: Dict[str, Any]) -> None:
        ...


def format_campaign_blocks(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Slack Block Kit rendering of a campaign-ready payload."""
    channels = ", ".join(payload.get("channels") or []) or "unspecified"
    return [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": "Campaign ready", "emoji": True},
        },
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": (
                    f"*{payload.get('headline')}*\n\n"
                    f"Case: `{payload.get('caseId')}`\n"
                    f"Channels: {channels}"
                ),
            },
        },
    ]


class SlackCampaignDispatcher:
    """Send campaign payloads to a Slack incoming webhook."""

    def __init__(self, webhook_url: str, client: Optional[WebhookClient] = None):
        self.client = client or WebhookClient(webhook_url)

    async def dispatch_campaign(self, payload: Dict[str, Any]) -> None:
        """
        Raises:
            TransientDependencyError: when Slack is unreachable or rejects the post
        """
        blocks = format_campaign_blocks(payload)
        try:
            response = await asyncio.to_thread(
                self.client.send,
                text=f"Campaign ready: {payload.get('headline')}",
                blocks=blocks,
            )
        except Exception as e:
            raise TransientDependencyError(f"Failed to send campaign payload: {e}") from e

        if response.status_code != 200:
            raise TransientDependencyError(
                f"Slack API returned status {response.status_code}: {response.body}"
            )
        logger.info(f"Dispatched campaign payload for case {payload.get('caseId')}")


class LogOnlyDispatcher:
    """Records payloads instead of delivering them."""

    def __init__(self) -> None:
        self.sent: List[Dict[str, Any]] = []

    async def dispatch_campaign(self, payload: Dict[str, Any]) -> None:
        self.sent.append(payload)
        logger.info(f"Campaign payload (not delivered): {payload}")


def build_dispatcher(settings: Optional[Settings] = None) -> NotificationDispatcher:
    settings = settings or get_settings()
    if settings.slack_webhook_url:
        return SlackCampaignDispatcher(settings.slack_webhook_url)
    logger.warning("SLACK_WEBHOOK_URL not configured; campaign payloads will only be logged")
    return LogOnlyDispatcher()
