from __future__ import annotations

from typing import Any

from loguru import logger

from dlmm_agent.core.clients.SlackClient import SlackClient


class AlertLogger:
    """Operator-facing log sink. ``error`` is async so subclasses can deliver remotely."""

    def __init__(self, **default_fields: Any):
        self.default_fields = default_fields
        self.logger = logger.bind(**default_fields)

    def _fields(self, fields: dict[str, Any]) -> dict[str, Any]:
        return {**fields, **self.default_fields}

    def debug(self, message: str, **fields: Any) -> None:
        self.logger.bind(**fields).debug(message)

    def info(self, message: str, **fields: Any) -> None:
        self.logger.bind(**fields).info(message)

    def warning(self, message: str, **fields: Any) -> None:
        self.logger.bind(**fields).warning(message)

    async def error(
        self, message: str, error: BaseException | None = None, **fields: Any
    ) -> None:
        suffix = f": {error}" if error is not None else ""
        self.logger.bind(**fields).error(f"{message}{suffix}")


class SlackAlertLogger(AlertLogger):
    """Logs locally and posts errors to a Slack channel.

    Delivery failures propagate out of ``error``; callers decide whether an
    undeliverable alert matters.
    """

    def __init__(self, client: SlackClient, **default_fields: Any):
        super().__init__(**default_fields)
        self.client = client

    async def error(
        self, message: str, error: BaseException | None = None, **fields: Any
    ) -> None:
        await super().error(message, error, **fields)
        await self.client.post_error(message, error, self._fields(fields))
