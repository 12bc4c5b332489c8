"""Output channel implementations for message delivery.

Provides an ABC for output channels plus concrete implementations for
webhooks, Slack, Telegram and the local log. Channels never raise on
delivery failure: they log the cause and return False, and may be called
concurrently for different messages.
"""

import logging
from abc import ABC, abstractmethod

import httpx
import structlog

from bili_relay.config.settings import Settings
from bili_relay.observability.logging import OUTPUT_LOGGER
from bili_relay.push.schemas import Message

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"
TELEGRAM_CAPTION_LIMIT = 1024
TELEGRAM_TEXT_LIMIT = 4096
SLACK_HEADER_LIMIT = 150
SLACK_SECTION_LIMIT = 3000


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


def format_plain_text(message: Message) -> str:
    """Render a message as plain text: headline, body, link."""
    parts = [message.headline, message.text, message.link]
    return "\n".join(part for part in parts if part)


class OutputChannel(ABC):
    """Abstract base for message delivery channels."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this channel (e.g. 'webhook', 'slack')."""

    @abstractmethod
    async def send(self, message: Message) -> bool:
        """Deliver a message through this channel.

        Args:
            message: Message to deliver.

        Returns:
            True if delivery succeeded, False otherwise.
        """


class WebhookChannel(OutputChannel):
    """Delivers messages as JSON POST to an arbitrary HTTP endpoint.

    Creates a new ``httpx.AsyncClient`` per call (short-lived, no pooling).
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._url = url
        self._headers = headers or {}
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "webhook"

    def _build_payload(self, message: Message) -> dict:
        return message.to_dict()

    async def send(self, message: Message) -> bool:
        payload = self._build_payload(message)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(
                    self._url,
                    json=payload,
                    headers=self._headers,
                )
                if resp.is_success:
                    return True
                logger.warning(
                    "Webhook %s returned %d for %s",
                    self._url, resp.status_code, message.link or message.title,
                )
                return False
        except httpx.TimeoutException:
            logger.warning("Webhook %s timed out", self._url)
            return False
        except Exception as e:
            logger.warning("Webhook %s failed: %s", self._url, e)
            return False


class SlackChannel(OutputChannel):
    """Delivers messages to a Slack channel via incoming webhook.

    Formats messages using Slack Block Kit, with the first image inline.
    """

    def __init__(
        self,
        webhook_url: str,
        channel: str | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._webhook_url = webhook_url
        self._channel = channel
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "slack"

    def _format_message(self, message: Message) -> dict:
        """Build Slack Block Kit payload from a message."""
        blocks: list[dict] = [
            {
                "type": "header",
                "text": {
                    "type": "plain_text",
                    "text": _truncate(message.headline or message.kind.value, SLACK_HEADER_LIMIT),
                },
            },
        ]
        if message.text:
            blocks.append({
                "type": "section",
                "text": {"type": "mrkdwn", "text": _truncate(message.text, SLACK_SECTION_LIMIT)},
            })
        if message.images:
            blocks.append({
                "type": "image",
                "image_url": message.images[0],
                "alt_text": message.title or "image",
            })

        context = f"*Posted:* {message.timestamp:%Y-%m-%d %H:%M:%S} UTC"
        if message.link:
            context += f" | <{message.link}|open>"
        blocks.append({
            "type": "context",
            "elements": [{"type": "mrkdwn", "text": context}],
        })

        payload: dict = {"text": message.headline, "blocks": blocks}
        if self._channel:
            payload["channel"] = self._channel
        return payload

    async def send(self, message: Message) -> bool:
        payload = self._format_message(message)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self._webhook_url, json=payload)
                if resp.is_success:
                    return True
                logger.warning("Slack webhook returned %d", resp.status_code)
                return False
        except httpx.TimeoutException:
            logger.warning("Slack webhook timed out")
            return False
        except Exception as e:
            logger.warning("Slack webhook failed: %s", e)
            return False


class TelegramChannel(OutputChannel):
    """Delivers messages to a Telegram chat through the Bot API.

    Messages with images are sent as a photo with caption, others as text.
    """

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        timeout: float = 10.0,
    ) -> None:
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "telegram"

    def _build_request(self, message: Message) -> tuple[str, dict]:
        """Return the Bot API method and JSON body for a message."""
        text = format_plain_text(message)
        if message.images:
            return "sendPhoto", {
                "chat_id": self._chat_id,
                "photo": message.images[0],
                "caption": _truncate(text, TELEGRAM_CAPTION_LIMIT),
            }
        return "sendMessage", {
            "chat_id": self._chat_id,
            "text": _truncate(text, TELEGRAM_TEXT_LIMIT),
            "disable_web_page_preview": True,
        }

    async def send(self, message: Message) -> bool:
        method, body = self._build_request(message)
        url = f"{TELEGRAM_API_BASE}/bot{self._bot_token}/{method}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body)
                if resp.is_success:
                    return True
                logger.warning(
                    "Telegram %s returned %d: %s",
                    method, resp.status_code, resp.text[:200],
                )
                return False
        except httpx.TimeoutException:
            logger.warning("Telegram %s timed out", method)
            return False
        except Exception as e:
            # Never log the URL, it contains the bot token
            logger.warning("Telegram %s failed: %s", method, type(e).__name__)
            return False


class ConsoleChannel(OutputChannel):
    """Writes each message to the structured log. Useful for dry runs."""

    def __init__(self) -> None:
        self._logger = structlog.get_logger(OUTPUT_LOGGER)

    @property
    def name(self) -> str:
        return "console"

    async def send(self, message: Message) -> bool:
        self._logger.info(
            message.headline or message.kind.value,
            kind=message.kind.value,
            text=message.text,
            images=list(message.images),
            link=message.link,
            timestamp=message.timestamp.isoformat(),
        )
        return True


def build_channels(settings: Settings) -> list[OutputChannel]:
    """Create every output channel the settings configure."""
    channels: list[OutputChannel] = []
    timeout = settings.output_timeout_seconds

    if settings.webhook_configured:
        channels.append(WebhookChannel(
            url=settings.webhook_url,
            headers=settings.webhook_headers,
            timeout=timeout,
        ))
    if settings.slack_configured:
        channels.append(SlackChannel(
            webhook_url=settings.slack_webhook_url,
            channel=settings.slack_channel,
            timeout=timeout,
        ))
    if settings.telegram_configured:
        channels.append(TelegramChannel(
            bot_token=settings.telegram_bot_token,
            chat_id=settings.telegram_chat_id,
            timeout=timeout,
        ))
    if settings.console_output:
        channels.append(ConsoleChannel())

    return channels
