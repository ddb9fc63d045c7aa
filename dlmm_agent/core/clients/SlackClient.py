from __future__ import annotations

import json
from typing import Any

from dlmm_agent.core.clients.HttpClient import HttpClient
from dlmm_agent.core.config import get_slack_settings
from dlmm_agent.core.errors import AlertDeliveryError

SLACK_POST_MESSAGE_URL = "https://slack.com/api/chat.postMessage"


def _field_text(key: str, value: Any) -> str:
    if isinstance(value, (dict, list, tuple)):
        rendered = f"```{json.dumps(value, indent=2, default=str)}```"
    else:
        rendered = str(value)
    return f"*{key}:*\n{rendered}"


def build_error_blocks(
    message: str, error: BaseException | None, fields: dict[str, Any]
) -> list[dict[str, Any]]:
    blocks: list[dict[str, Any]] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": "Error", "emoji": True},
        },
        {"type": "section", "text": {"type": "mrkdwn", "text": message}},
        {"type": "divider"},
    ]
    for key, value in fields.items():
        blocks.append(
            {"type": "section", "text": {"type": "mrkdwn", "text": _field_text(key, value)}}
        )
    if error is not None:
        blocks.append(
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": f"*Error Message:*\n{error}\n*Type:* `{type(error).__name__}`",
                },
            }
        )
    return blocks


class SlackClient(HttpClient):
    def __init__(self, token: str | None = None, channel: str | None = None):
        default_token, default_channel = get_slack_settings()
        token = token or default_token
        self.channel = channel or default_channel
        if not token or not self.channel:
            raise ValueError("Slack token and channel must both be configured")
        super().__init__(headers={"Authorization": f"Bearer {token}"})

    async def post_error(
        self,
        message: str,
        error: BaseException | None = None,
        fields: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        payload = {
            "channel": self.channel,
            "text": message,
            "attachments": [
                {"color": "#F00", "blocks": build_error_blocks(message, error, fields or {})}
            ],
        }
        resp = await self._request("POST", SLACK_POST_MESSAGE_URL, json=payload)
        data = resp.json()
        # Slack reports API failures in the body with a 200 status
        if not data.get("ok"):
            raise AlertDeliveryError(f"Slack postMessage failed: {data.get('error')}")
        return data
