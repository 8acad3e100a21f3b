"""Notification senders"""
from .senders import (
    LoggingNotificationSender,
    SupabaseNotificationSender,
)

__all__ = [
    "LoggingNotificationSender",
    "SupabaseNotificationSender",
]
