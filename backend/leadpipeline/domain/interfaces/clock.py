"""
Clock Interface
Injected time source
"""
from abc import ABC, abstractmethod
from datetime import datetime, timezone


class Clock(ABC):
    """Time source. now() always returns an aware UTC datetime."""

    @abstractmethod
    def now(self) -> datetime:
        pass


class SystemClock(Clock):
    """Wall-clock time"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
