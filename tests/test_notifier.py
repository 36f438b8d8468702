"""
Tests for the Telegram notification sink.
"""

import asyncio
from unittest.mock import MagicMock, patch

import requests

from toolstack.data.config import NotificationConfig
from toolstack.notifications.telegram_notifier import (
    MAX_MESSAGE_LENGTH,
    TelegramNotifier,
    split_message,
)


def configured() -> TelegramNotifier:
    return TelegramNotifier(NotificationConfig(bot_token="123:abc", chat_id="-100200", enabled=True))


class TestSplitMessage:

    def test_short_message_untouched(self):
        assert split_message("Synced tool t001 (Prisma)") == ["Synced tool t001 (Prisma)"]

    def test_splits_on_lines(self):
        text = "\n".join(f"line {i:02d}" for i in range(10))

        chunks = split_message(text, limit=20)

        assert all(len(c) <= 20 for c in chunks)
        assert "\n".join(chunks) == text

    def test_hard_splits_long_line(self):
        chunks = split_message("x" * 45, limit=20)
        assert chunks == ["x" * 20, "x" * 20, "x" * 5]


class TestTelegramNotifier:

    def test_disabled_without_credentials(self):
        notifier = TelegramNotifier(NotificationConfig(bot_token=None, chat_id="-1", enabled=True))
        assert notifier.is_configured() is False

        with patch("toolstack.notifications.telegram_notifier.requests.post") as post:
            assert notifier.send("hello") is False
        post.assert_not_called()

    @patch("toolstack.notifications.telegram_notifier.requests.post")
    def test_send_payload(self, post):
        post.return_value = MagicMock(ok=True, status_code=200)

        assert configured().send("Full sync (all) completed") is True

        post.assert_called_once()
        args, kwargs = post.call_args
        assert args[0] == "https://api.telegram.org/bot123:abc/sendMessage"
        assert kwargs["json"] == {"chat_id": "-100200", "text": "Full sync (all) completed"}
        assert kwargs["timeout"] == 10

    @patch("toolstack.notifications.telegram_notifier.requests.post")
    def test_long_message_sent_in_chunks(self, post):
        post.return_value = MagicMock(ok=True, status_code=200)
        text = "\n".join("y" * 1000 for _ in range(10))

        assert configured().send(text) is True
        assert post.call_count == 3
        for call in post.call_args_list:
            assert len(call.kwargs["json"]["text"]) <= MAX_MESSAGE_LENGTH

    @patch("toolstack.notifications.telegram_notifier.requests.post")
    def test_non_ok_response(self, post):
        post.return_value = MagicMock(ok=False, status_code=400, text="Bad Request: chat not found")
        assert configured().send("hello") is False

    @patch("toolstack.notifications.telegram_notifier.requests.post")
    def test_request_exception_is_swallowed(self, post):
        post.side_effect = requests.ConnectionError("dns failure")
        assert configured().send("hello") is False

    @patch("toolstack.notifications.telegram_notifier.requests.post")
    def test_send_async(self, post):
        post.return_value = MagicMock(ok=True, status_code=200)
        assert asyncio.run(configured().send_async("hello")) is True
