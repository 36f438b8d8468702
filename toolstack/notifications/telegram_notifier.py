"""
Telegram Notifier for ToolStack
===============================

Sends bulk resync progress and summaries to a Telegram chat.

Configuration:
    TELEGRAM_BOT_TOKEN: Bot token (from .env)
    TELEGRAM_CHAT_ID: Target chat (from .env)
    ENABLE_NOTIFICATIONS: "true" to enable notifications (from .env)

The sink is fire-and-forget: failed deliveries are logged, never retried
and never raised to the caller.
"""

import asyncio
import logging
from typing import List, Optional

import requests

from ..data.config import NotificationConfig

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org/bot{token}/sendMessage"

# Telegram rejects longer message texts
MAX_MESSAGE_LENGTH = 4096


def split_message(text: str, limit: int = MAX_MESSAGE_LENGTH) -> List[str]:
    """Split on line boundaries so each chunk fits in one message."""
    if len(text) <= limit:
        return [text]

    chunks: List[str] = []
    current = ""
    for line in text.split("\n"):
        while len(line) > limit:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:limit])
            line = line[limit:]
        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > limit:
            chunks.append(current)
            current = line
        else:
            current = candidate
    if current:
        chunks.append(current)
    return chunks


class TelegramNotifier:
    """
    Posts plain-text messages through the Telegram Bot API.

    Usage:
        notifier = TelegramNotifier()
        notifier.send("Full sync completed")
    """

    def __init__(self, config: Optional[NotificationConfig] = None, timeout: int = 10):
        self.config = config or NotificationConfig()
        self.timeout = timeout
        self.enabled = self.config.enabled

        if self.enabled and not (self.config.bot_token and self.config.chat_id):
            logger.warning("Telegram notifications enabled but TELEGRAM_BOT_TOKEN/TELEGRAM_CHAT_ID not set")
            self.enabled = False

    def is_configured(self) -> bool:
        """Check if notifier is properly configured."""
        return bool(self.enabled and self.config.bot_token and self.config.chat_id)

    @property
    def url(self) -> str:
        return TELEGRAM_API_URL.format(token=self.config.bot_token)

    def send(self, text: str) -> bool:
        """
        Send a message, split into several if it is too long.

        Returns:
            True if every chunk was delivered
        """
        if not self.is_configured():
            logger.debug("Telegram notifications disabled or not configured")
            return False

        if not text.strip():
            return True

        delivered = True
        for chunk in split_message(text):
            try:
                response = requests.post(
                    self.url,
                    json={"chat_id": self.config.chat_id, "text": chunk},
                    timeout=self.timeout,
                )
                if not response.ok:
                    logger.error(f"Failed to send Telegram message: {response.status_code} {response.text[:200]}")
                    delivered = False
            except requests.RequestException as e:
                logger.error(f"Error sending Telegram message: {e}")
                delivered = False

        if delivered:
            logger.info("Telegram notification sent")
        return delivered

    async def send_async(self, text: str) -> bool:
        """send() without blocking the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.send, text)
