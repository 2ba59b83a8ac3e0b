"""Telegram delivery of vault events."""
import html
import logging
import ssl

import aiohttp
import certifi

from ..config import TelegramConfig

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"


class TelegramNotifier:
    """Post vault events to a Telegram chat.

    Routine events go through the log bot (muted by default); alerts go
    through the alert bot with the subject in bold.
    """

    def __init__(self, config: TelegramConfig) -> None:
        self.alert_bot_token = config.alert_bot_token
        self.log_bot_token = config.log_bot_token
        self.chat_id = config.chat_id

    async def _post(self, bot_token: str, text: str, silent: bool) -> bool:
        if not bot_token or not self.chat_id:
            logger.warning("Telegram credentials not configured")
            return False

        payload = {
            "chat_id": self.chat_id,
            "text": text,
            "parse_mode": "HTML",
            "disable_notification": silent,
        }
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        async with aiohttp.ClientSession(connector=connector) as session:
            async with session.post(
                f"{TELEGRAM_API}/bot{bot_token}/sendMessage", json=payload
            ) as response:
                if response.status != 200:
                    logger.error("Telegram sendMessage failed: HTTP %s", response.status)
                    return False
                return True

    async def send_alert(self, message: str, subject: str = "") -> bool:
        text = html.escape(message)
        if subject:
            text = f"<b>{html.escape(subject)}</b>\n\n{text}"
        sent = await self._post(self.alert_bot_token, text, silent=False)
        if sent:
            logger.info("Telegram alert sent")
        return sent

    async def send_log(self, message: str, silent: bool = True) -> bool:
        return await self._post(self.log_bot_token, html.escape(message), silent=silent)
