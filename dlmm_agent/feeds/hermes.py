from __future__ import annotations

import json
from typing import Any

import httpx

from dlmm_agent.core.config import get_hermes_url
from dlmm_agent.feeds.base import PriceStream
from dlmm_agent.feeds.dispatcher import PriceFeedDispatcher
from dlmm_agent.feeds.types import PriceFeedSample


def parse_price_update(payload: dict[str, Any]) -> list[PriceFeedSample]:
    samples = []
    for entry in payload.get("parsed") or []:
        price = entry.get("price") or {}
        if entry.get("id") is None or price.get("price") is None:
            continue
        samples.append(
            PriceFeedSample(
                id=str(entry["id"]),
                price=int(price["price"]),
                exponent=int(price.get("expo", 0)),
            )
        )
    return samples


def parse_sse_line(line: str) -> list[PriceFeedSample] | None:
    """Samples carried by one server-sent-events line, or None for non-data lines."""
    if not line.startswith("data:"):
        return None
    data = line[len("data:") :].strip()
    if not data:
        return None
    return parse_price_update(json.loads(data))


class HermesPriceStream(PriceStream):
    """Pyth Hermes server-sent-events price stream."""

    name = "hermes"

    def __init__(
        self,
        dispatcher: PriceFeedDispatcher,
        url: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        **kwargs: Any,
    ):
        super().__init__(dispatcher, **kwargs)
        self.url = (url or get_hermes_url()).rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(10.0, read=None))

    @property
    def stream_url(self) -> str:
        return f"{self.url}/v2/updates/price/stream"

    def _params(self) -> list[tuple[str, str]]:
        params = [("ids[]", feed_id) for feed_id in self.dispatcher.feed_ids]
        params.append(("parsed", "true"))
        return params

    async def _session(self) -> bool:
        delivered = False
        async with self.client.stream("GET", self.stream_url, params=self._params()) as resp:
            resp.raise_for_status()
            self.logger.info(
                f"Connected to price streams for {len(self.dispatcher.feed_ids)} feed(s)"
            )
            async for line in resp.aiter_lines():
                try:
                    samples = parse_sse_line(line)
                except (ValueError, TypeError) as exc:
                    self.logger.error(f"Error parsing event data: {exc}")
                    continue
                if samples:
                    await self._deliver(samples)
                    delivered = True
        return delivered

    async def close(self) -> None:
        await self.client.aclose()
