from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Protocol


def normalize_feed_id(feed_id: str) -> str:
    """Hermes ids arrive without the ``0x`` prefix; symbols compare case-insensitively."""
    value = feed_id.strip().lower()
    return value[2:] if value.startswith("0x") else value


@dataclass(frozen=True)
class PriceFeedSample:
    id: str
    price: int | float
    exponent: int

    @property
    def value(self) -> float:
        return self.price / 10 ** (-self.exponent)


@dataclass(frozen=True)
class PriceTick:
    price: float
    observed_at: float = field(default_factory=time.time)


class TickHandler(Protocol):
    pair: str

    async def run(self, market_price: float) -> None: ...
