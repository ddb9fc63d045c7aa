import math
from decimal import Decimal

import pytest

from dlmm_agent.strategies.dlmm_lp.types import (
    Inventory,
    Position,
    StrategyConfig,
    StrategyShape,
)


def test_config_from_dict():
    config = StrategyConfig.from_dict(
        {
            "price_range_delta": "300",
            "inventory_skew_threshold": 500,
            "rebalance_threshold": 5000,
            "strategy": "bidask",
        }
    )
    assert config.price_range_delta_bps == 300
    assert config.max_rebalance_slippage_bps == 50
    assert config.shape is StrategyShape.BID_ASK
    assert config.price_range_delta == 0.03
    assert config.inventory_skew_threshold == Decimal("0.05")


@pytest.mark.parametrize(
    "data",
    [
        {"inventory_skew_threshold": 1, "rebalance_threshold": 1},
        {"price_range_delta": "wide", "inventory_skew_threshold": 1, "rebalance_threshold": 1},
        {"price_range_delta": -1, "inventory_skew_threshold": 1, "rebalance_threshold": 1},
        {"price_range_delta": 0, "inventory_skew_threshold": 1, "rebalance_threshold": 1},
        {"price_range_delta": 10_000, "inventory_skew_threshold": 1, "rebalance_threshold": 1},
        {
            "price_range_delta": 100,
            "inventory_skew_threshold": 1,
            "rebalance_threshold": 1,
            "strategy": "grid",
        },
    ],
)
def test_config_rejects_invalid(data):
    with pytest.raises(ValueError):
        StrategyConfig.from_dict(data)


def test_config_rejects_float_bps():
    with pytest.raises(ValueError):
        StrategyConfig(
            price_range_delta_bps=1.5,
            inventory_skew_threshold_bps=1,
            rebalance_threshold_bps=1,
            max_rebalance_slippage_bps=1,
        )


@pytest.mark.parametrize("raw", ["spot", "SPOT", "Bid_Ask", "bid-ask", "curve"])
def test_shape_parse(raw):
    assert StrategyShape.parse(raw) in set(StrategyShape)


def test_position_requires_non_empty_range():
    with pytest.raises(ValueError):
        Position("P", lower_bin_id=5, upper_bin_id=5, base_amount=0, quote_amount=0)


def test_position_geometry():
    position = Position("P", -30, 31, 0, 0, fee_base_amount=2, fee_quote_amount=3)
    assert position.half_range == 30
    assert position.mid_bin_id == 0
    assert position.accrued_fees == 5


def test_inventory_skew():
    assert Inventory(0, 0, base_value=150.0, quote_value=100.0).skew == pytest.approx(0.5)
    assert Inventory(0, 0, base_value=50.0, quote_value=100.0).skew == pytest.approx(0.5)
    assert math.isinf(Inventory(0, 0, base_value=1.0, quote_value=0.0).skew)
    assert Inventory(0, 0, base_value=0.0, quote_value=0.0).skew == 0.0
