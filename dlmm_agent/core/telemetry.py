from __future__ import annotations

import asyncio

from loguru import logger

from dlmm_agent.core.adapters.models import TelemetryEvent
from dlmm_agent.core.clients.protocols import TelemetryClientProtocol


class EventRecorder:
    """Fire-and-forget front for a telemetry client.

    ``record`` never raises and never waits on the network; delivery failures
    are logged. ``drain`` awaits whatever is still in flight.
    """

    def __init__(self, client: TelemetryClientProtocol | None = None):
        self.client = client
        self._pending: set[asyncio.Task] = set()

    def record(self, event: TelemetryEvent) -> None:
        if self.client is None:
            logger.debug(f"Telemetry disabled, dropping {event.type} event")
            return
        task = asyncio.create_task(self._send(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send(self, event: TelemetryEvent) -> None:
        try:
            await self.client.log_event(event)
        except Exception as exc:
            logger.warning(f"Failed to log {event.type} event for {event.pair}: {exc}")

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending))
