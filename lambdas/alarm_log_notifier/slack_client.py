# lambdas/alarm_log_notifier/slack_client.py
import logging
from concurrent.futures import ThreadPoolExecutor

import requests

from .formatter import build_attachment, format_slack_message
from .models import AppSettings, Delivered, DeliveryResult, LogBundle, LogEvent, SlackCredentials, Suppressed
from .parameters import fetch_slack_credentials

logger = logging.getLogger()


class SlackApiError(RuntimeError):
    """Raised when Slack answers a Web API call with ok=false."""
    def __init__(self, error: str, response: dict | None = None):
        super().__init__(f"Slack API error: {error}")
        self.error = error
        self.response = response or {}


class SlackClient:
    """
    Minimal Slack Web API client for chat.postMessage, authenticated with a
    bot token.
    """
    def __init__(self, token: str, api_url: str = "https://slack.com/api", timeout: float = 10):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    def post_message(self, payload: dict) -> dict:
        """
        Posts a message and returns Slack's response body.

        Raises:
            requests.exceptions.RequestException: On network or HTTP errors.
            SlackApiError: If Slack rejects the message.
        """
        response = requests.post(
            f"{self.api_url}/chat.postMessage",
            json=payload,
            headers={"Authorization": f"Bearer {self.token}"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        body = response.json()
        if not body.get("ok"):
            raise SlackApiError(body.get("error", "unknown_error"), body)
        return body


def _post_event(client: SlackClient, channel: str, bundle: LogBundle, event: LogEvent, settings: AppSettings) -> DeliveryResult:
    try:
        attachment = build_attachment(bundle, event, settings.aws_region, settings.log_field_mode)
        body = client.post_message(format_slack_message(channel, attachment))
        return Delivered(channel=body.get("channel", channel), ts=body.get("ts"))
    except Exception as e:
        logger.error(f"❌ Could not send Slack message for alarm '{bundle.alarm_name}': {e}")
        return Suppressed(cause=e, stage="post", event=event)


def deliver(bundle: LogBundle, credentials: SlackCredentials, settings: AppSettings, client: SlackClient | None = None) -> list[DeliveryResult]:
    """
    Sends one Slack message per log event, all at once, and waits for every
    send to finish. Failures are not retried.

    Returns:
        One result per event, in event order. Arrival order in the channel
        is not guaranteed.
    """
    if not bundle.events:
        return []
    if client is None:
        client = SlackClient(credentials.token, settings.slack_api_url, settings.slack_timeout_seconds)

    logger.info(f"Sending {len(bundle.events)} message(s) to Slack...")
    with ThreadPoolExecutor(max_workers=len(bundle.events)) as executor:
        futures = [
            executor.submit(_post_event, client, credentials.channel, bundle, event, settings)
            for event in bundle.events
        ]
        return [f.result() for f in futures]


def notify(bundle: LogBundle, ssm_client, settings: AppSettings, client: SlackClient | None = None) -> list[DeliveryResult]:
    """
    Fetches Slack credentials and delivers the bundle. Never raises: every
    failure is logged and returned as a Suppressed result.
    """
    try:
        credentials = fetch_slack_credentials(ssm_client, settings)
    except Exception as e:
        logger.error(f"❌ Could not fetch Slack parameters: {e}")
        return [Suppressed(cause=e, stage="credentials")]

    if not credentials.is_complete:
        logger.warning("⚠️ Slack token, channel or signing secret not set. Skipping Slack notification.")
        return []

    results = deliver(bundle, credentials, settings, client)
    delivered = sum(1 for r in results if isinstance(r, Delivered))
    if delivered == len(results):
        logger.info(f"✅ All {delivered} message(s) sent to Slack successfully.")
    else:
        logger.warning(f"⚠️ Sent {delivered} of {len(results)} message(s) to Slack.")
    return results
