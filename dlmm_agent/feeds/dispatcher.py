from __future__ import annotations

import asyncio
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from loguru import logger

from dlmm_agent.feeds.types import (
    PriceFeedSample,
    PriceTick,
    TickHandler,
    normalize_feed_id,
)


def compute_market_price(samples: Sequence[PriceFeedSample]) -> float:
    """One sample is a direct price; two are a base/quote ratio."""
    if len(samples) == 1:
        return samples[0].value
    if len(samples) == 2:
        base, quote = samples
        return base.value / quote.value
    raise ValueError(f"Expected one or two price samples, got {len(samples)}")


@dataclass(frozen=True)
class FeedRoute:
    strategy: TickHandler
    feed_ids: tuple[str, ...]

    def __post_init__(self) -> None:
        if len(self.feed_ids) not in (1, 2):
            raise ValueError(
                f"{self.strategy.pair}: a route needs one or two feed ids, "
                f"got {len(self.feed_ids)}"
            )


class PriceFeedDispatcher:
    """Turns raw feed batches into one market price per strategy and fans them out."""

    def __init__(self, routes: Iterable[FeedRoute]):
        self.routes = list(routes)

    @property
    def feed_ids(self) -> list[str]:
        """Every feed id any route needs, first-seen order, no duplicates."""
        seen: dict[str, None] = {}
        for route in self.routes:
            for feed_id in route.feed_ids:
                seen.setdefault(feed_id, None)
        return list(seen)

    def resolve(
        self, route: FeedRoute, batch: dict[str, PriceFeedSample]
    ) -> PriceTick | None:
        samples = []
        for feed_id in route.feed_ids:
            sample = batch.get(normalize_feed_id(feed_id))
            if sample is None:
                logger.warning(
                    f"Price event not found for feed {feed_id} ({route.strategy.pair})"
                )
                return None
            samples.append(sample)

        try:
            price = compute_market_price(samples)
        except ZeroDivisionError:
            logger.warning(f"Zero quote price for {route.strategy.pair}, skipping tick")
            return None
        if not math.isfinite(price) or price <= 0:
            logger.warning(f"Invalid market price {price} for {route.strategy.pair}")
            return None
        return PriceTick(price=price)

    async def dispatch(self, samples: Iterable[PriceFeedSample]) -> None:
        batch = {normalize_feed_id(sample.id): sample for sample in samples}

        resolved: list[tuple[TickHandler, PriceTick]] = []
        for route in self.routes:
            tick = self.resolve(route, batch)
            if tick is not None:
                resolved.append((route.strategy, tick))
        if not resolved:
            return

        results = await asyncio.gather(
            *(strategy.run(tick.price) for strategy, tick in resolved),
            return_exceptions=True,
        )
        # Strategies alert on their own failures; only log here
        for (strategy, tick), result in zip(resolved, results, strict=True):
            if isinstance(result, Exception):
                logger.error(
                    f"Strategy {strategy.pair} failed on tick {tick.price}: {result}"
                )
