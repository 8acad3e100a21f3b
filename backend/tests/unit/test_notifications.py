"""
Unit Tests for Notification Senders
"""
import pytest
from unittest.mock import MagicMock

from leadpipeline.domain.exceptions import NotificationError
from leadpipeline.infrastructure.notifications.senders import (
    LoggingNotificationSender,
    SupabaseNotificationSender,
)


class TestLoggingNotificationSender:
    """Tests for LoggingNotificationSender"""

    @pytest.mark.asyncio
    async def test_keeps_sent_notifications(self):
        sender = LoggingNotificationSender()

        await sender.notify("agent-a", "task_created", {"task_title": "Initial contact - Ana"})

        assert sender.sent == [
            {"recipient": "agent-a", "kind": "task_created", "payload": {"task_title": "Initial contact - Ana"}}
        ]

    @pytest.mark.asyncio
    async def test_history_is_bounded(self):
        sender = LoggingNotificationSender(keep_last=2)

        for index in range(3):
            await sender.notify(f"agent-{index}", "task_created", {})

        assert [n["recipient"] for n in sender.sent] == ["agent-1", "agent-2"]


class TestSupabaseNotificationSender:
    """Tests for SupabaseNotificationSender"""

    @pytest.mark.asyncio
    async def test_inserts_row(self):
        supabase = MagicMock()
        sender = SupabaseNotificationSender(supabase)

        await sender.notify("director-1", "escalation", {"lead_name": "Dr. Ana Souza"})

        supabase.table.assert_called_with("notifications")
        row = supabase.table.return_value.insert.call_args.args[0]
        assert row["recipient_id"] == "director-1"
        assert row["type"] == "escalation"
        assert row["title"] == "Escalation: Dr. Ana Souza exceeded redistribution limit"
        assert row["read"] is False

    @pytest.mark.asyncio
    async def test_failure_raises_notification_error(self):
        supabase = MagicMock()
        supabase.table.return_value.insert.return_value.execute.side_effect = ConnectionError("timeout")
        sender = SupabaseNotificationSender(supabase)

        with pytest.raises(NotificationError):
            await sender.notify("agent-a", "task_created", {"task_title": "Follow-up call"})
