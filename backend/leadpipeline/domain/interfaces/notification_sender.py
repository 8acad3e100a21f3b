"""
Notification Sender Interface
"""
from abc import ABC, abstractmethod
from typing import Any, Dict


class NotificationSender(ABC):
    """
    Delivers workflow notifications (push, email, in-app).

    Best effort from the engine's perspective: callers log failures and
    carry on.
    """

    @abstractmethod
    async def notify(self, recipient: str, kind: str, payload: Dict[str, Any]) -> None:
        """
        Send a notification.

        Raises:
            NotificationError: delivery failed
        """
        pass
