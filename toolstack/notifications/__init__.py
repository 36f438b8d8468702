"""
ToolStack Notifications
=======================

Notification sink for bulk resync reports.
"""

from .telegram_notifier import TelegramNotifier, split_message

__all__ = ["TelegramNotifier", "split_message"]
