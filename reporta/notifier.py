"""
Outbound notifications.

Reporters are reached over the WhatsApp Cloud API. Moderator alerts go to the
admin WhatsApp number and, when configured, to a Telegram admin chat. Every
send is best-effort: failures are logged and counted, never raised.
"""
import logging
from typing import List, Optional
from datetime import datetime, timezone

import httpx
from telegram import Bot
from telegram.error import TelegramError

from .config import Settings
from .observability import notifications_total

logger = logging.getLogger("reporta.notifier")

GRAPH_BASE_URL = "https://graph.facebook.com"


class Notifier:
    """Send a text message to a recipient. Returns True when delivered."""

    async def send(self, recipient_id: str, text: str) -> bool:
        raise NotImplementedError


class WhatsAppNotifier(Notifier):
    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None) -> None:
        self._token = settings.whatsapp_access_token
        self._phone_number_id = settings.whatsapp_phone_number_id
        self._api_version = settings.whatsapp_api_version
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.http_timeout_seconds, connect=5.0)
        )
        if not self._token or not self._phone_number_id:
            logger.warning(
                "WHATSAPP_ACCESS_TOKEN or WHATSAPP_PHONE_NUMBER_ID not configured. WhatsApp messages disabled."
            )

    async def send(self, recipient_id: str, text: str) -> bool:
        if not self._token or not self._phone_number_id:
            notifications_total.labels(channel="whatsapp", outcome="disabled").inc()
            return False

        url = f"{GRAPH_BASE_URL}/{self._api_version}/{self._phone_number_id}/messages"
        payload = {
            "messaging_product": "whatsapp",
            "to": recipient_id,
            "type": "text",
            "text": {"body": text},
        }
        try:
            resp = await self._client.post(
                url, json=payload, headers={"Authorization": f"Bearer {self._token}"}
            )
        except httpx.HTTPError as exc:
            notifications_total.labels(channel="whatsapp", outcome="error").inc()
            logger.error("Failed to send WhatsApp message to %s: %s", recipient_id, exc)
            return False

        if resp.is_error:
            notifications_total.labels(channel="whatsapp", outcome="error").inc()
            logger.error(
                "WhatsApp API rejected message to %s: %s %s",
                recipient_id, resp.status_code, resp.text,
            )
            return False

        notifications_total.labels(channel="whatsapp", outcome="sent").inc()
        return True

    async def aclose(self) -> None:
        await self._client.aclose()


class RateLimiter:
    """Simple sliding-window rate limiter for moderator alerts."""

    def __init__(self, max_requests: int = 10, time_window_minutes: int = 5):
        self.max_requests = max_requests
        self.time_window_minutes = time_window_minutes
        self.requests: List[datetime] = []

    def is_allowed(self) -> bool:
        now = datetime.now(timezone.utc)

        cutoff = now.timestamp() - (self.time_window_minutes * 60)
        self.requests = [req for req in self.requests if req.timestamp() > cutoff]

        if len(self.requests) >= self.max_requests:
            return False

        self.requests.append(now)
        return True


class TelegramAdminNotifier(Notifier):
    """Posts moderator alerts to a Telegram admin chat."""

    def __init__(self, settings: Settings, bot: Optional[Bot] = None, rate_limiter: Optional[RateLimiter] = None):
        self.chat_id = settings.telegram_admin_chat_id
        self.bot: Optional[Bot] = bot
        self.rate_limiter = rate_limiter or RateLimiter()
        if self.bot is None and settings.telegram_bot_token:
            self.bot = Bot(token=settings.telegram_bot_token)
            logger.info("Telegram admin bot initialized")

    @property
    def enabled(self) -> bool:
        return self.bot is not None and bool(self.chat_id)

    async def send(self, recipient_id: str, text: str) -> bool:
        if not self.enabled:
            return False

        if not self.rate_limiter.is_allowed():
            notifications_total.labels(channel="telegram", outcome="rate_limited").inc()
            logger.warning("Rate limit exceeded for Telegram notifications")
            return False

        try:
            await self.bot.send_message(chat_id=recipient_id or self.chat_id, text=text)
        except TelegramError as e:
            notifications_total.labels(channel="telegram", outcome="error").inc()
            logger.error("Failed to send Telegram notification: %s", e)
            return False

        notifications_total.labels(channel="telegram", outcome="sent").inc()
        return True


class ModeratorAlerts:
    """Fans a moderator alert out to every configured moderator channel."""

    def __init__(
        self,
        notifier: Notifier,
        admin_phone: Optional[str],
        telegram: Optional[TelegramAdminNotifier] = None,
    ) -> None:
        self._notifier = notifier
        self._admin_phone = admin_phone
        self._telegram = telegram

    async def send(self, text: str) -> bool:
        delivered = False
        if self._admin_phone:
            delivered = await self._notifier.send(self._admin_phone, text) or delivered
        if self._telegram is not None and self._telegram.enabled:
            delivered = await self._telegram.send(self._telegram.chat_id, text) or delivered
        if not delivered:
            logger.info("Moderator alert not delivered: no moderator channel configured or reachable")
        return delivered
