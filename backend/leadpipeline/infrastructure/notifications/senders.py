"""
Notification Senders
Log-only and Supabase-backed implementations of NotificationSender
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from supabase import Client

from leadpipeline.domain.interfaces.notification_sender import NotificationSender
from leadpipeline.domain.exceptions import NotificationError

logger = logging.getLogger(__name__)

NOTIFICATIONS_TABLE = "notifications"


class LoggingNotificationSender(NotificationSender):
    """
    Writes notifications to the log and keeps them in memory.

    Used in development and when no delivery backend is configured.
    """

    def __init__(self, keep_last: int = 500):
        self._keep_last = keep_last
        self.sent: List[Dict[str, Any]] = []

    async def notify(self, recipient: str, kind: str, payload: Dict[str, Any]) -> None:
        logger.info(f"Notification [{kind}] -> {recipient}: {payload.get('task_title') or payload}")
        self.sent.append({"recipient": recipient, "kind": kind, "payload": payload})
        if len(self.sent) > self._keep_last:
            self.sent = self.sent[-self._keep_last:]


class SupabaseNotificationSender(NotificationSender):
    """
    Inserts notifications into the in-app notifications table.

    Push and email fan-out happen downstream of that table.
    """

    def __init__(self, supabase: Client, table: str = NOTIFICATIONS_TABLE):
        self.supabase = supabase
        self._table = table

    async def notify(self, recipient: str, kind: str, payload: Dict[str, Any]) -> None:
        row = {
            "recipient_id": recipient,
            "type": kind,
            "title": self._title(kind, payload),
            "payload": payload,
            "read": False,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.supabase.table(self._table).insert(row).execute()
        except Exception as e:
            raise NotificationError(f"Failed to store {kind} notification for {recipient}: {e}")
        logger.debug(f"Stored {kind} notification for {recipient}")

    @staticmethod
    def _title(kind: str, payload: Dict[str, Any]) -> str:
        lead = payload.get("lead_name") or payload.get("lead_id", "lead")
        titles = {
            "task_created": f"New task: {payload.get('task_title', '')}",
            "task_reassigned": f"Task reassigned: {lead}",
            "lead_redistributed": f"Lead redistributed to you: {lead}",
            "task_overdue": f"Task overdue: {payload.get('task_title', '')}",
            "escalation": f"Escalation: {lead} exceeded redistribution limit",
        }
        return titles.get(kind, kind)

