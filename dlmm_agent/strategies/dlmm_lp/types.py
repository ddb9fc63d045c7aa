from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum, auto
from typing import Any

from dlmm_agent.core.constants.base import BPS_DENOMINATOR

# ─────────────────────────────────────────────────────────────────────────────
# CONFIGURATION
# ─────────────────────────────────────────────────────────────────────────────


class StrategyShape(Enum):
    """Liquidity distribution across the bins of a position."""

    SPOT = "spot"
    CURVE = "curve"
    BID_ASK = "bidask"

    @classmethod
    def parse(cls, value: str | StrategyShape) -> StrategyShape:
        if isinstance(value, StrategyShape):
            return value
        normalized = str(value).strip().lower().replace("_", "").replace("-", "")
        for shape in cls:
            if shape.value == normalized:
                return shape
        raise ValueError(f"Invalid strategy: {value}")


@dataclass(frozen=True)
class StrategyConfig:
    price_range_delta_bps: int  # half-width of the position around the price
    inventory_skew_threshold_bps: int  # max tolerated base/quote value imbalance
    rebalance_threshold_bps: int  # fraction of the half range the price may drift
    max_rebalance_slippage_bps: int  # max slippage accepted on inventory swaps
    shape: StrategyShape = StrategyShape.SPOT

    def __post_init__(self) -> None:
        for name in (
            "price_range_delta_bps",
            "inventory_skew_threshold_bps",
            "rebalance_threshold_bps",
            "max_rebalance_slippage_bps",
        ):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer number of bps, got {value!r}")
            if value < 0:
                raise ValueError(f"{name} must be >= 0, got {value}")
        if self.price_range_delta_bps == 0:
            raise ValueError("price_range_delta_bps must be > 0")
        if self.price_range_delta_bps >= BPS_DENOMINATOR:
            raise ValueError(
                f"price_range_delta_bps must be < {BPS_DENOMINATOR}, "
                f"got {self.price_range_delta_bps}"
            )

    @property
    def price_range_delta(self) -> float:
        return self.price_range_delta_bps / BPS_DENOMINATOR

    @property
    def inventory_skew_threshold(self) -> Decimal:
        return Decimal(self.inventory_skew_threshold_bps) / BPS_DENOMINATOR

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StrategyConfig:
        def _bps(key: str, default: int | None = None) -> int:
            raw = data.get(key, default)
            if raw is None:
                raise ValueError(f"{key} is required")
            if isinstance(raw, str):
                raw = raw.strip()
            try:
                return int(raw)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"{key} must be an integer, got {raw!r}") from exc

        return cls(
            price_range_delta_bps=_bps("price_range_delta"),
            inventory_skew_threshold_bps=_bps("inventory_skew_threshold"),
            rebalance_threshold_bps=_bps("rebalance_threshold"),
            max_rebalance_slippage_bps=_bps("max_rebalance_slippage", 50),
            shape=StrategyShape.parse(data.get("strategy", StrategyShape.SPOT)),
        )


# ─────────────────────────────────────────────────────────────────────────────
# POSITION / INVENTORY (World Model)
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Position:
    address: str
    lower_bin_id: int
    upper_bin_id: int
    base_amount: int  # raw units
    quote_amount: int  # raw units
    fee_base_amount: int = 0
    fee_quote_amount: int = 0

    def __post_init__(self) -> None:
        if self.lower_bin_id >= self.upper_bin_id:
            raise ValueError(
                f"Position {self.address} has an empty bin range "
                f"[{self.lower_bin_id}, {self.upper_bin_id}]"
            )

    @property
    def accrued_fees(self) -> int:
        return self.fee_base_amount + self.fee_quote_amount

    @property
    def half_range(self) -> int:
        return (self.upper_bin_id - self.lower_bin_id) // 2

    @property
    def mid_bin_id(self) -> int:
        return self.lower_bin_id + self.half_range


@dataclass(frozen=True)
class Inventory:
    base_balance: int  # raw units, native reserve already removed
    quote_balance: int
    base_value: float  # in quote units
    quote_value: float

    @property
    def skew(self) -> float:
        if self.quote_value == 0:
            return math.inf if self.base_value > 0 else 0.0
        return abs(1 - self.base_value / self.quote_value)


@dataclass(frozen=True)
class CreatePositionResult:
    position: Position
    transaction_id: str


@dataclass(frozen=True)
class RebalanceResult:
    closed: Position
    withdrawal_transaction_ids: list[str]
    created: CreatePositionResult


# ─────────────────────────────────────────────────────────────────────────────
# RUNTIME STATE
# ─────────────────────────────────────────────────────────────────────────────


class StrategyPhase(Enum):
    UNINITIALIZED = auto()
    NO_POSITION = auto()
    CREATING = auto()
    ACTIVE = auto()
    CLOSING = auto()


@dataclass
class StrategyRuntimeState:
    position: Position | None = None
    position_fetched: bool = False
    busy: bool = False
    phase: StrategyPhase = StrategyPhase.UNINITIALIZED
    last_error: str | None = field(default=None, compare=False)
