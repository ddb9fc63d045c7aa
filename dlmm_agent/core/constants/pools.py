from __future__ import annotations

from dataclasses import dataclass

# ─────────────────────────────────────────────────────────────────────────────
# PYTH PRICE FEEDS (Hermes ids)
# ─────────────────────────────────────────────────────────────────────────────

JUP_USD_FEED = "0x0a0408d619e9380abad35060f9192039ed5042fa6f82301d0e48bb52be830996"
SOL_USD_FEED = "0xef0d8b6fda2ceba41da15d4095d1da392a0d2f8ed0c6c7bc0f4cfac8c280b56d"
USDC_USD_FEED = "0xeaa020c61cc479712813461ce153894a96a6c00b21ed0cfc2798d1f9a9e9c94a"
MET_USD_FEED = "0x0292e0f405bcd4a496d34e48307f6787349ad2bcd8505c3d3a9f77d81a67a682"
FLUID_USD_FEED = "0x47d462d8bac4c29b6ae1792029b9b92c8adea12ed22155bfc22f481287f1e349"


@dataclass(frozen=True)
class PoolDefinition:
    pair: str
    pool_address: str
    # (base,) for USD-quoted pairs, (base, quote) for ratio pairs
    price_feeds: tuple[str, ...]
    # Kraken v2 symbols, when the pair trades there directly
    symbol_feeds: tuple[str, ...] = ()


# Pool addresses: https://dlmm-api.meteora.ag/pair/all
POOL_CATALOGUE: dict[str, PoolDefinition] = {
    "jup/sol": PoolDefinition(
        pair="jup/sol",
        pool_address="FpjYwNjCStVE2Rvk9yVZsV46YwgNTFjp7ktJUDcZdyyk",
        price_feeds=(JUP_USD_FEED, SOL_USD_FEED),
    ),
    "jup/usdc": PoolDefinition(
        pair="jup/usdc",
        pool_address="BhQEFZCRnWKQ21LEt4DUby7fKynfmLVJcNjfHNqjEF61",
        price_feeds=(JUP_USD_FEED, USDC_USD_FEED),
        symbol_feeds=("JUP/USD",),
    ),
    "met/usdc": PoolDefinition(
        pair="met/usdc",
        pool_address="5hbf9JP8k5zdrZp9pokPypFQoBse5mGCmW6nqodurGcd",
        price_feeds=(MET_USD_FEED,),
    ),
    "fluid/sol": PoolDefinition(
        pair="fluid/sol",
        pool_address="4mPKhtkMtRXyQcgSjzog14nnonHowvLhB4fyVkMfSECA",
        price_feeds=(FLUID_USD_FEED, SOL_USD_FEED),
    ),
}


def get_pool_definition(pair: str) -> PoolDefinition:
    key = pair.strip().lower()
    if key not in POOL_CATALOGUE:
        available = ", ".join(sorted(POOL_CATALOGUE))
        raise ValueError(f"Pool {pair} not found. Available pools are: {available}")
    return POOL_CATALOGUE[key]
