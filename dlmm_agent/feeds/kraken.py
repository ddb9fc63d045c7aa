from __future__ import annotations

import json
import time
from collections.abc import Callable
from typing import Any

import websockets

from dlmm_agent.core.config import get_kraken_ws_url
from dlmm_agent.feeds.base import PriceStream
from dlmm_agent.feeds.dispatcher import PriceFeedDispatcher
from dlmm_agent.feeds.types import PriceFeedSample


def parse_ticker_message(message: dict[str, Any]) -> list[PriceFeedSample]:
    # Kraken quotes symbols directly in USD, no exponent scaling
    if message.get("channel") != "ticker":
        return []
    samples = []
    for ticker in message.get("data") or []:
        if ticker.get("symbol") is None or ticker.get("last") is None:
            continue
        samples.append(
            PriceFeedSample(id=str(ticker["symbol"]), price=float(ticker["last"]), exponent=0)
        )
    return samples


class KrakenTickerStream(PriceStream):
    """Kraken v2 websocket ticker channel."""

    name = "kraken"

    def __init__(
        self,
        dispatcher: PriceFeedDispatcher,
        url: str | None = None,
        *,
        connect: Callable[..., Any] | None = None,
        **kwargs: Any,
    ):
        super().__init__(dispatcher, **kwargs)
        self.url = url or get_kraken_ws_url()
        self._connect = connect or websockets.connect

    def subscribe_payload(self) -> dict[str, Any]:
        return {
            "method": "subscribe",
            "params": {
                "channel": "ticker",
                "symbol": self.dispatcher.feed_ids,
                "event_trigger": "trades",
            },
            "req_id": int(time.time()),
        }

    async def _session(self) -> bool:
        symbols = self.dispatcher.feed_ids
        if not symbols:
            raise ValueError("No symbols provided for ticker subscription")

        delivered = False
        async with self._connect(self.url) as ws:
            await ws.send(json.dumps(self.subscribe_payload()))
            self.logger.info(f"Subscribed to ticker updates for symbols: {', '.join(symbols)}")
            async for raw in ws:
                try:
                    samples = parse_ticker_message(json.loads(raw))
                except (ValueError, TypeError) as exc:
                    self.logger.error(f"Error parsing event data: {exc}")
                    continue
                if samples:
                    await self._deliver(samples)
                    delivered = True
        return delivered
