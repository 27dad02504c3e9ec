"""Tests for Slack notifications."""

from datetime import date
from unittest.mock import MagicMock, patch

import pytest

from taskboard.db.models import Task
from taskboard.integrations import slack as slack_mod
from taskboard.integrations.slack import SlackError


class TestFormatting:
    def test_flagged_notification(self):
        blocks = slack_mod.format_health_notification(7, "Ship release", True, "No teammate free")
        text = blocks[0]["text"]["text"]
        assert "Task at risk" in text
        assert "*Ship release* (`#7`)" in text
        assert "No teammate free" in text

    def test_reassigned_notification(self):
        blocks = slack_mod.format_health_notification(7, "Ship release", False, "Re-assigned to Ben")
        assert "Task reassigned" in blocks[0]["text"]["text"]

    def test_board_summary(self):
        summary = {
            "counts": {"Pending": 2, "InProgress": 1, "Completed": 1},
            "total": 4,
            "flagged": 1,
            "completed_pct": 25.0,
        }
        text = slack_mod.format_board_summary(summary)[0]["text"]["text"]
        assert "Completed: 1" in text
        assert "Flagged: 1" in text
        assert "Progress: 25% (1/4)" in text


class TestSending:
    def test_not_configured(self):
        with pytest.raises(SlackError):
            slack_mod.send_message(None, "#ops", "hello")
        with pytest.raises(SlackError):
            slack_mod.health_notifier("", "#ops")

    def test_health_notifier_posts(self):
        client = MagicMock()
        client.chat_postMessage.return_value = {"channel": "C123", "ts": "1.0"}
        task = Task(id=3, title="Hotfix", deadline=date(2026, 10, 18), overload_flag=True)

        with patch("slack_sdk.WebClient", return_value=client):
            notify = slack_mod.health_notifier("xoxb-test", "#ops")
            notify(task, "Flagged, no teammate with lower workload: late")

        kwargs = client.chat_postMessage.call_args.kwargs
        assert kwargs["channel"] == "#ops"
        assert kwargs["text"] == "Health check: Hotfix"
        assert "Task at risk" in kwargs["blocks"][0]["text"]["text"]
