"""Slack Web API integration."""

import asyncio
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class SlackError(Exception):
    """Raised when a Slack operation fails."""


@dataclass
class SlackMessage:
    channel: str
    ts: str
    text: str


UPDATE_EMOJI = {
    "created": ":new:",
    "started": ":rocket:",
    "completed": ":white_check_mark:",
    "failed": ":x:",
}


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
    client=None,
) -> SlackMessage:
    """Send a message to a Slack channel."""
    from slack_sdk.errors import SlackApiError

    client = client or get_client(token)
    if not client:
        raise SlackError("Slack not configured: SLACK_BOT_TOKEN not set")

    try:
        response = client.chat_postMessage(
            channel=channel,
            text=text,
            blocks=blocks,
        )
    except SlackApiError as e:
        raise SlackError(f"Slack API error: {e.response.get('error', e)}") from e

    return SlackMessage(
        channel=response["channel"],
        ts=response["ts"],
        text=text,
    )


def format_task_update(
    title: str,
    agent: str,
    status: str,
    description: str,
    update_type: str,
    updated_at: str,
) -> list[dict]:
    """Format a task lifecycle update as Slack blocks."""
    emoji = UPDATE_EMOJI.get(update_type, ":grey_question:")
    blocks = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": f"Task {update_type.title()}", "emoji": True},
        },
        {
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f"*Title:*\n{emoji} {title}"},
                {"type": "mrkdwn", "text": f"*Agent:*\n{agent}"},
                {"type": "mrkdwn", "text": f"*Status:*\n{status}"},
                {"type": "mrkdwn", "text": f"*Updated:*\n{updated_at}"},
            ],
        },
    ]
    if description:
        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"*Description:*\n{description}"},
        })
    return blocks


def format_project_summary(counts: dict[str, int], total: int, completion_pct: int) -> list[dict]:
    """Format a project status update as Slack blocks."""
    return [
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": (
                    f":bar_chart: *Project Status Update*\n"
                    f":white_check_mark: Completed: {counts.get('done', 0)} | "
                    f":large_blue_circle: In Progress: {counts.get('in_progress', 0)} | "
                    f":white_circle: Queued: {counts.get('queued', 0)} | "
                    f":red_circle: Failed: {counts.get('failed', 0)}\n"
                    f"Progress: {completion_pct}% ({counts.get('done', 0)}/{total})"
                ),
            },
        }
    ]


def format_plan_created(problem: str, task_count: int) -> list[dict]:
    """Format a planning-complete notification as Slack blocks."""
    return [
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": (
                    f":clipboard: *Planning Complete!*\n"
                    f"*Problem:* {problem}\n"
                    f"*Tasks generated:* {task_count}"
                ),
            },
        }
    ]


def format_pr_created(title: str, pr_url: str) -> list[dict]:
    """Format a pull request notification as Slack blocks."""
    return [
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": f":eyes: *Pull Request Created*\n*{title}*\n<{pr_url}|View Pull Request>",
            },
        },
    ]


# ── Notifiers ─────────────────────────────────────────────────────────────────


class SlackNotifier:
    """Posts messages to one channel; failures are logged, never raised."""

    enabled = True

    def __init__(self, token: str, channel: str, client=None):
        self.token = token
        self.channel = channel
        self._client = client

    async def post(self, text: str, blocks: list[dict] | None = None) -> bool:
        try:
            await asyncio.to_thread(
                send_message, self.token, self.channel, text, blocks, self._client
            )
        except Exception:
            logger.exception("Failed to post Slack message to %s", self.channel)
            return False
        return True

    def status(self) -> dict:
        return {"enabled": True, "channel": self.channel}


class NullNotifier:
    """Notifier used when Slack is not configured."""

    enabled = False

    async def post(self, text: str, blocks: list[dict] | None = None) -> bool:
        return False

    def status(self) -> dict:
        return {"enabled": False, "channel": None}


def build_notifier(config):
    if config.slack_configured:
        return SlackNotifier(config.slack_bot_token, config.slack_channel)
    return NullNotifier()
