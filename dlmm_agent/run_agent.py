#!/usr/bin/env python3

# Allow running as a script: `python dlmm_agent/run_agent.py ...`
if __name__ == "__main__" and __package__ is None:
    import sys
    from pathlib import Path

    sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import argparse
import asyncio
import importlib
import inspect
import sys
from collections.abc import Callable
from typing import Any

from loguru import logger

from dlmm_agent.adapters.dlmm_adapter.adapter import DlmmAdapter
from dlmm_agent.core.alerts import AlertLogger, SlackAlertLogger
from dlmm_agent.core.clients.JupiterUltraClient import JupiterUltraClient
from dlmm_agent.core.clients.protocols import AlertSink, DlmmPoolProtocol
from dlmm_agent.core.clients.SlackClient import SlackClient
from dlmm_agent.core.clients.SolanaRpcClient import SolanaRpcClient
from dlmm_agent.core.clients.TinybirdClient import TinybirdClient
from dlmm_agent.core.config import (
    get_pool_configs,
    get_pool_sdk_factory,
    get_rpc_urls,
    get_slack_settings,
    get_tinybird_settings,
    load_config,
    load_keypair,
)
from dlmm_agent.core.constants.pools import get_pool_definition
from dlmm_agent.core.errors import FeedDisconnectedError
from dlmm_agent.core.telemetry import EventRecorder
from dlmm_agent.feeds.base import PriceStream
from dlmm_agent.feeds.dispatcher import FeedRoute, PriceFeedDispatcher
from dlmm_agent.feeds.hermes import HermesPriceStream
from dlmm_agent.feeds.kraken import KrakenTickerStream
from dlmm_agent.strategies.dlmm_lp.strategy import DlmmLpStrategy
from dlmm_agent.strategies.dlmm_lp.types import StrategyConfig

FEEDS = ("hermes", "kraken")


def load_pool_factory(target: str) -> Callable[..., Any]:
    """Resolve ``package.module:factory`` to the callable that builds pool SDK objects."""
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Invalid pool SDK factory {target!r}, expected 'module:factory'")
    factory = getattr(importlib.import_module(module_name), attr, None)
    if not callable(factory):
        raise ValueError(f"{target} is not callable")
    return factory


async def create_pool(
    factory: Callable[..., Any], rpc_url: str, pool_address: str
) -> DlmmPoolProtocol:
    pool = factory(rpc_url, pool_address)
    if inspect.isawaitable(pool):
        pool = await pool
    return pool


def select_pool_configs(pairs: list[str] | None) -> list[dict[str, Any]]:
    configs = {str(c.get("pair", "")).strip().lower(): c for c in get_pool_configs()}
    if not configs:
        raise ValueError("No pools configured (add a 'pools' list to config.json)")
    if not pairs:
        return list(configs.values())

    selected = []
    for pair in pairs:
        key = pair.strip().lower()
        if key not in configs:
            available = ", ".join(sorted(configs))
            raise ValueError(f"Pool {pair} not configured. Configured pools are: {available}")
        selected.append(configs[key])
    return selected


def build_alert_sink() -> AlertSink:
    token, channel = get_slack_settings()
    if token and channel:
        return SlackAlertLogger(SlackClient(token, channel), service="dlmm-agent")
    logger.info("Slack not configured, alerts go to the log only")
    return AlertLogger(service="dlmm-agent")


def build_event_recorder() -> EventRecorder:
    url, token = get_tinybird_settings()
    if not token:
        logger.info("Tinybird token not configured, telemetry disabled")
        return EventRecorder()
    return EventRecorder(TinybirdClient(url, token))


async def run_agent(pairs: list[str] | None = None, feed: str = "hermes") -> None:
    if feed not in FEEDS:
        raise ValueError(f"Unknown feed {feed!r}, expected one of {', '.join(FEEDS)}")

    rpc_urls = get_rpc_urls()
    owner = load_keypair()
    ledger = SolanaRpcClient(
        read_url=rpc_urls["read"], write_url=rpc_urls["write"], ws_url=rpc_urls["ws"]
    )
    swap_client = JupiterUltraClient()
    alerts = build_alert_sink()
    recorder = build_event_recorder()
    factory = load_pool_factory(get_pool_sdk_factory())

    routes: list[FeedRoute] = []
    adapters: list[DlmmAdapter] = []
    for pool_config in select_pool_configs(pairs):
        definition = get_pool_definition(str(pool_config["pair"]))
        feed_ids = definition.symbol_feeds if feed == "kraken" else definition.price_feeds
        if not feed_ids:
            raise ValueError(f"Pool {definition.pair} has no {feed} price feeds")

        pool = await create_pool(factory, rpc_urls["read"], definition.pool_address)
        adapter = DlmmAdapter(pool)
        adapters.append(adapter)
        strategy = DlmmLpStrategy(
            pair=definition.pair,
            adapter=adapter,
            ledger=ledger,
            swap_client=swap_client,
            owner=owner,
            config=StrategyConfig.from_dict(pool_config),
            alerts=alerts,
            recorder=recorder,
        )
        routes.append(FeedRoute(strategy=strategy, feed_ids=tuple(feed_ids)))
        logger.info(
            f"Strategy {definition.pair} ready on pool {definition.pool_address} "
            f"({feed} feeds: {', '.join(feed_ids)})"
        )

    dispatcher = PriceFeedDispatcher(routes)
    stream: PriceStream = (
        KrakenTickerStream(dispatcher) if feed == "kraken" else HermesPriceStream(dispatcher)
    )

    try:
        await stream.run()
    except FeedDisconnectedError as exc:
        try:
            await alerts.error("Price feed disconnected", exc, feed=feed)
        except Exception as alert_exc:
            logger.warning(f"Failed to deliver feed alert: {alert_exc}")
        raise
    finally:
        await recorder.drain()
        if isinstance(stream, HermesPriceStream):
            await stream.close()
        for adapter in adapters:
            await adapter.close()
        await ledger.close()
        await swap_client.close()


def main():
    p = argparse.ArgumentParser(description="DLMM liquidity provisioning agent")
    p.add_argument(
        "--config",
        default=None,
        help="Path to config JSON (default: config.json in CWD)",
    )
    p.add_argument(
        "--pool",
        dest="pools",
        action="append",
        default=[],
        help="Pair to run (repeatable, e.g. --pool jup/usdc). Default: every configured pool",
    )
    p.add_argument("--feed", default="hermes", choices=list(FEEDS))
    p.add_argument("--debug", action="store_true")
    args = p.parse_args()

    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if args.debug else "INFO")

    config_path = args.config or "config.json"
    try:
        load_config(config_path, require_exists=bool(args.config))
    except FileNotFoundError as exc:
        raise SystemExit(str(exc)) from exc

    try:
        asyncio.run(run_agent(args.pools or None, args.feed))
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc
    except FeedDisconnectedError as exc:
        raise SystemExit(str(exc)) from exc
    except KeyboardInterrupt:
        logger.info("Stopped")


if __name__ == "__main__":
    main()
