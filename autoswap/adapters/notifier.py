# /autoswap/adapters/notifier.py
# Best-effort Telegram sink: failures are logged and swallowed, never raised.
import asyncio

import aiohttp

from autoswap.core.config import settings
from autoswap.core.logger import NOTIFICATIONS, get_logger

log = get_logger(__name__)

TELEGRAM_API = "https://api.telegram.org/bot{token}/sendMessage"


class TelegramNotifier:
    def __init__(self, token: str | None = None, chat_id: str | None = None,
                 session: aiohttp.ClientSession | None = None, timeout: float = 10):
        if token is None and settings.TELEGRAM_BOT_TOKEN is not None:
            token = settings.TELEGRAM_BOT_TOKEN.get_secret_value()
        self.token = token
        self.chat_id = chat_id if chat_id is not None else settings.TELEGRAM_CHAT_ID
        self._session = session
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    @property
    def is_configured(self) -> bool:
        return bool(self.token and self.chat_id)

    async def notify(self, text: str) -> bool:
        if not self.is_configured:
            NOTIFICATIONS.labels("skipped").inc()
            log.warning("TELEGRAM_NOT_CONFIGURED_SKIPPING")
            return False

        payload = {"chat_id": self.chat_id, "text": text, "disable_web_page_preview": True}
        try:
            if self._session is not None:
                ok = await self._post(self._session, payload)
            else:
                async with aiohttp.ClientSession(timeout=self.timeout) as session:
                    ok = await self._post(session, payload)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            NOTIFICATIONS.labels("failed").inc()
            log.error("TELEGRAM_SEND_FAILED", error=str(e))
            return False

        NOTIFICATIONS.labels("sent" if ok else "failed").inc()
        return ok

    async def _post(self, session, payload: dict) -> bool:
        async with session.post(TELEGRAM_API.format(token=self.token), json=payload) as resp:
            if resp.status != 200:
                body = await resp.text()
                log.error("TELEGRAM_HTTP_ERROR", status=resp.status, body=body[:200])
                return False
        log.info("TELEGRAM_NOTIFICATION_SENT", chars=len(payload["text"]))
        return True
