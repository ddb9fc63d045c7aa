import math
from unittest.mock import AsyncMock, MagicMock

import pytest

from dlmm_agent.core.constants.pools import JUP_USD_FEED, MET_USD_FEED, SOL_USD_FEED
from dlmm_agent.feeds.dispatcher import (
    FeedRoute,
    PriceFeedDispatcher,
    compute_market_price,
)
from dlmm_agent.feeds.types import PriceFeedSample, normalize_feed_id


def _strategy(pair: str, side_effect=None):
    strategy = MagicMock()
    strategy.pair = pair
    strategy.run = AsyncMock(side_effect=side_effect)
    return strategy


def _sample(feed_id: str, price: int, expo: int = -8) -> PriceFeedSample:
    # Hermes sends ids without the 0x prefix
    return PriceFeedSample(id=normalize_feed_id(feed_id), price=price, exponent=expo)


def test_single_feed_price():
    assert compute_market_price([PriceFeedSample("a", 123_450_000, -8)]) == pytest.approx(1.2345)


def test_ratio_price_is_base_over_quote():
    price = compute_market_price(
        [PriceFeedSample("jup", 50_000_000, -8), PriceFeedSample("sol", 20_000_000_000, -8)]
    )
    assert price == pytest.approx(0.5 / 200.0)


def test_mixed_exponents():
    price = compute_market_price(
        [PriceFeedSample("a", 5, -1), PriceFeedSample("b", 25, -2)]
    )
    assert price == pytest.approx(2.0)


def test_route_requires_one_or_two_feeds():
    with pytest.raises(ValueError):
        FeedRoute(strategy=_strategy("x"), feed_ids=())
    with pytest.raises(ValueError):
        FeedRoute(strategy=_strategy("x"), feed_ids=("a", "b", "c"))


def test_feed_ids_are_deduplicated():
    dispatcher = PriceFeedDispatcher(
        [
            FeedRoute(_strategy("jup/sol"), (JUP_USD_FEED, SOL_USD_FEED)),
            FeedRoute(_strategy("fluid/sol"), ("fluid", SOL_USD_FEED)),
        ]
    )
    assert dispatcher.feed_ids == [JUP_USD_FEED, SOL_USD_FEED, "fluid"]


@pytest.mark.asyncio
class TestDispatch:
    async def test_missing_entry_skips_only_that_strategy(self):
        two_feed = _strategy("jup/sol")
        one_feed = _strategy("met/usdc")
        dispatcher = PriceFeedDispatcher(
            [
                FeedRoute(two_feed, (JUP_USD_FEED, SOL_USD_FEED)),
                FeedRoute(one_feed, (MET_USD_FEED,)),
            ]
        )

        # SOL entry missing from the batch
        await dispatcher.dispatch(
            [_sample(JUP_USD_FEED, 50_000_000), _sample(MET_USD_FEED, 80_000_000)]
        )

        two_feed.run.assert_not_awaited()
        one_feed.run.assert_awaited_once()
        assert one_feed.run.await_args.args[0] == pytest.approx(0.8)

    async def test_ids_match_with_or_without_prefix(self):
        strategy = _strategy("met/usdc")
        dispatcher = PriceFeedDispatcher([FeedRoute(strategy, (MET_USD_FEED,))])
        await dispatcher.dispatch(
            [PriceFeedSample(id=MET_USD_FEED.upper().replace("0X", "0x"), price=1, exponent=0)]
        )
        strategy.run.assert_awaited_once_with(1.0)

    async def test_one_failure_does_not_block_others(self):
        failing = _strategy("jup/sol", side_effect=RuntimeError("boom"))
        healthy = _strategy("met/usdc")
        dispatcher = PriceFeedDispatcher(
            [
                FeedRoute(failing, (MET_USD_FEED,)),
                FeedRoute(healthy, (MET_USD_FEED,)),
            ]
        )

        await dispatcher.dispatch([_sample(MET_USD_FEED, 100_000_000)])

        failing.run.assert_awaited_once()
        healthy.run.assert_awaited_once_with(1.0)

    async def test_invalid_prices_are_skipped(self):
        zero_quote = _strategy("jup/sol")
        negative = _strategy("met/usdc")
        dispatcher = PriceFeedDispatcher(
            [
                FeedRoute(zero_quote, (JUP_USD_FEED, SOL_USD_FEED)),
                FeedRoute(negative, (MET_USD_FEED,)),
            ]
        )
        await dispatcher.dispatch(
            [
                _sample(JUP_USD_FEED, 50_000_000),
                _sample(SOL_USD_FEED, 0),
                _sample(MET_USD_FEED, -5),
            ]
        )
        zero_quote.run.assert_not_awaited()
        negative.run.assert_not_awaited()

    async def test_resolve_returns_tick(self):
        strategy = _strategy("met/usdc")
        dispatcher = PriceFeedDispatcher([FeedRoute(strategy, (MET_USD_FEED,))])
        tick = dispatcher.resolve(
            dispatcher.routes[0], {normalize_feed_id(MET_USD_FEED): _sample(MET_USD_FEED, 7, 0)}
        )
        assert tick.price == 7.0
        assert math.isfinite(tick.observed_at)
