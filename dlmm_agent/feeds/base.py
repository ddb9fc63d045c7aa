from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

from loguru import logger

from dlmm_agent.core.constants.base import FEED_MAX_RECONNECTS, FEED_RECONNECT_DELAY_S
from dlmm_agent.core.errors import FeedDisconnectedError
from dlmm_agent.feeds.dispatcher import PriceFeedDispatcher
from dlmm_agent.feeds.types import PriceFeedSample


class PriceStream(ABC):
    """A feed transport that forwards parsed batches to a dispatcher.

    ``run`` reconnects after failures with a fixed delay. A session that
    delivered at least one batch resets the failure count; more than
    ``max_reconnects`` consecutive failures raise FeedDisconnectedError.
    """

    name = "feed"

    def __init__(
        self,
        dispatcher: PriceFeedDispatcher,
        *,
        max_reconnects: int = FEED_MAX_RECONNECTS,
        reconnect_delay_s: float = FEED_RECONNECT_DELAY_S,
    ):
        self.dispatcher = dispatcher
        self.max_reconnects = max_reconnects
        self.reconnect_delay_s = reconnect_delay_s
        self.logger = logger.bind(feed=self.name)

    @abstractmethod
    async def _session(self) -> bool:
        """Connect and stream until the connection ends. Returns whether any batch was delivered."""

    async def _deliver(self, samples: list[PriceFeedSample]) -> None:
        if samples:
            await self.dispatcher.dispatch(samples)

    async def run(self) -> None:
        failures = 0
        while True:
            delivered = False
            try:
                delivered = await self._session()
                self.logger.warning(f"{self.name} stream closed by remote")
            except Exception as exc:
                self.logger.error(f"Error receiving updates from {self.name}: {exc}")

            failures = 1 if delivered else failures + 1
            if failures > self.max_reconnects:
                raise FeedDisconnectedError(
                    f"{self.name} disconnected after {self.max_reconnects} reconnect attempts"
                )
            self.logger.info(
                f"Reconnecting to {self.name} in {self.reconnect_delay_s}s "
                f"(attempt {failures}/{self.max_reconnects})"
            )
            await asyncio.sleep(self.reconnect_delay_s)
