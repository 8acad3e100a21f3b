"""Domain interfaces"""
from .card_store import CardStore
from .roster_store import RosterStore
from .notification_sender import NotificationSender
from .clock import Clock, SystemClock

__all__ = [
    "CardStore",
    "RosterStore",
    "NotificationSender",
    "Clock",
    "SystemClock",
]
