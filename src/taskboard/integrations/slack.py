"""Slack Web API integration."""

from dataclasses import dataclass


class SlackError(Exception):
    """Raised when a Slack operation fails."""


@dataclass
class SlackMessage:
    channel: str
    ts: str
    text: str


def get_client(token: str | None):
    """Get a Slack WebClient. Returns None if no token provided."""
    if not token:
        return None
    from slack_sdk import WebClient
    return WebClient(token=token)


def send_message(
    token: str | None,
    channel: str,
    text: str,
    blocks: list[dict] | None = None,
) -> SlackMessage:
    """Send a message to a Slack channel."""
    client = get_client(token)
    if not client:
        raise SlackError("Slack not configured: SLACK_BOT_TOKEN not set")

    from slack_sdk.errors import SlackApiError

    try:
        response = client.chat_postMessage(
            channel=channel,
            text=text,
            blocks=blocks,
        )
    except SlackApiError as e:
        raise SlackError(f"Slack API error: {e.response['error']}") from e

    return SlackMessage(
        channel=response["channel"],
        ts=response["ts"],
        text=text,
    )


def format_health_notification(task_id: int, title: str, flagged: bool, message: str) -> list[dict]:
    """Format a health-check outcome for one task as Slack blocks."""
    if flagged:
        emoji, heading = ":warning:", "Task at risk"
    else:
        emoji, heading = ":arrows_counterclockwise:", "Task reassigned"

    return [
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": f"{emoji} *{heading}*\n*{title}* (`#{task_id}`)\n{message}",
            },
        }
    ]


def format_board_summary(summary: dict) -> list[dict]:
    """Format task counts as a Slack status block."""
    counts = summary["counts"]
    return [
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": (
                    f":bar_chart: *Board Status*\n"
                    f":white_check_mark: Completed: {counts['Completed']} | "
                    f":large_blue_circle: In Progress: {counts['InProgress']} | "
                    f":white_circle: Pending: {counts['Pending']} | "
                    f":warning: Flagged: {summary['flagged']}\n"
                    f"Progress: {summary['completed_pct']:.0f}% "
                    f"({counts['Completed']}/{summary['total']})"
                ),
            },
        }
    ]


def health_notifier(token: str | None, channel: str):
    """Build a notifier for run_health_check that posts each outcome to a channel."""
    if not get_client(token):
        raise SlackError("Slack not configured: SLACK_BOT_TOKEN not set")

    def notify(task, message: str):
        blocks = format_health_notification(task.id, task.title, task.overload_flag, message)
        send_message(token, channel, f"Health check: {task.title}", blocks)

    return notify
