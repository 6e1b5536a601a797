"""Slack webhook notifier for block/allow confirmations."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import httpx

from silencethelan.intents import IntentResponse
from silencethelan.models import Outcome

logger = logging.getLogger(__name__)

OUTCOME_COLORS = {
    Outcome.OK: "#4CAF50",                 # green
    Outcome.REJECTED: "#FF9800",           # orange
    Outcome.NOT_FOUND: "#808080",          # gray
    Outcome.STORE_UNAVAILABLE: "#F44336",  # red
}


@dataclass
class SlackConfig:
    """Configuration for Slack notifier."""
    webhook_url: str
    enabled: bool = True
    # Only post successful changes unless set
    notify_failures: bool = False


class SlackNotifier:
    """Async Slack webhook notifier."""

    def __init__(
        self,
        config: SlackConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=10.0, transport=self._transport)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    def _should_notify(self, response: IntentResponse) -> bool:
        return response.result.succeeded or self.config.notify_failures

    def _format_message(self, response: IntentResponse) -> dict:
        """Format a confirmation as a Slack message with attachment."""
        result = response.result
        fields = [
            {"title": "Outcome", "value": result.outcome.value, "short": True},
        ]
        if result.succeeded:
            fields.append({"title": "Rules", "value": str(result.affected_rule_count), "short": True})

        attachment = {
            "color": OUTCOME_COLORS.get(result.outcome, "#808080"),
            "title": response.dialog,
            "fields": fields,
            "footer": "silencethelan",
            "ts": int(datetime.now(timezone.utc).timestamp()),
        }
        return {"attachments": [attachment]}

    async def send(self, response: IntentResponse) -> bool:
        """Post a confirmation to Slack. Returns True if sent successfully."""
        if not self.config.enabled:
            return False

        if not self._should_notify(response):
            logger.debug(f"Skipping Slack notification for outcome {response.result.outcome.value}")
            return False

        try:
            client = await self._get_client()
            resp = await client.post(self.config.webhook_url, json=self._format_message(response))

            if resp.status_code == 200:
                logger.debug(f"Slack notification sent: {response.dialog}")
                return True
            else:
                logger.warning(f"Slack webhook failed: {resp.status_code} - {resp.text}")
                return False

        except httpx.TimeoutException:
            logger.warning("Slack webhook timeout")
            return False
        except httpx.HTTPError as e:
            logger.warning(f"Slack webhook error: {e}")
            return False
