from __future__ import annotations

import inspect
from typing import Any

from dlmm_agent.adapters.dlmm_adapter.bin_math import (
    bin_id_from_price,
    price_from_bin_id,
    price_from_lamport,
    price_per_lamport,
)
from dlmm_agent.core.adapters.BaseAdapter import BaseAdapter
from dlmm_agent.core.clients.protocols import (
    DlmmPoolProtocol,
    PositionData,
    SignableTransaction,
)
from dlmm_agent.core.constants.base import ADD_LIQUIDITY_SLIPPAGE_PCT, BPS_DENOMINATOR
from dlmm_agent.core.errors import PositionNotFoundError
from dlmm_agent.strategies.dlmm_lp.types import Position, StrategyShape


def _raw(value: Any) -> int:
    if value is None:
        return 0
    return int(str(value))


def to_position(data: PositionData) -> Position:
    """Normalize an SDK position record into a ``Position``."""
    return Position(
        address=str(data["public_key"]),
        lower_bin_id=int(data["lower_bin_id"]),
        upper_bin_id=int(data["upper_bin_id"]),
        base_amount=_raw(data.get("total_x_amount")),
        quote_amount=_raw(data.get("total_y_amount")),
        fee_base_amount=_raw(data.get("fee_x_exclude_transfer_fee")),
        fee_quote_amount=_raw(data.get("fee_y_exclude_transfer_fee")),
    )


class DlmmAdapter(BaseAdapter):
    """Price/bin mapping and transaction builders for a single DLMM pool.

    Prices on this surface are UI prices (quote per base); the lamport
    conversion happens here so callers never deal with raw-unit prices.
    """

    adapter_type = "DLMM"

    def __init__(self, pool: DlmmPoolProtocol):
        super().__init__("dlmm_adapter")
        self.pool = pool

    @property
    def address(self) -> str:
        return self.pool.address

    @property
    def bin_step(self) -> int:
        return int(self.pool.bin_step)

    @property
    def base_mint(self) -> str:
        return self.pool.base_mint

    @property
    def base_decimals(self) -> int:
        return int(self.pool.base_decimals)

    @property
    def quote_mint(self) -> str:
        return self.pool.quote_mint

    @property
    def quote_decimals(self) -> int:
        return int(self.pool.quote_decimals)

    # ── price <-> bin ──

    def bin_id_from_price(self, price: float) -> int:
        lamport_price = price_per_lamport(price, self.base_decimals, self.quote_decimals)
        return bin_id_from_price(lamport_price, self.bin_step)

    def price_from_bin_id(self, bin_id: int) -> float:
        return price_from_lamport(
            price_from_bin_id(bin_id, self.bin_step),
            self.base_decimals,
            self.quote_decimals,
        )

    def bin_range_for_price(self, price: float, price_range_delta_bps: int) -> tuple[int, int]:
        """Bin ids of ``price * (1 - delta)`` and ``price * (1 + delta)``."""
        delta = price_range_delta_bps / BPS_DENOMINATOR
        return (
            self.bin_id_from_price(price * (1 - delta)),
            self.bin_id_from_price(price * (1 + delta)),
        )

    # ── reads ──

    async def refetch_states(self) -> None:
        await self.pool.refetch_states()

    async def get_positions_by_user(self, owner: str) -> list[Position]:
        positions = []
        for record in await self.pool.get_positions_by_user(owner):
            lower, upper = int(record["lower_bin_id"]), int(record["upper_bin_id"])
            if lower >= upper:
                self.logger.warning(
                    f"Ignoring position {record['public_key']} with single-bin range "
                    f"[{lower}, {upper}]"
                )
                continue
            positions.append(to_position(record))
        return positions

    async def find_position(self, owner: str, address: str) -> Position:
        for position in await self.get_positions_by_user(owner):
            if position.address == address:
                return position
        raise PositionNotFoundError(f"Position {address} not found for {owner}")

    async def get_position(self, address: str) -> Position:
        return to_position(await self.pool.get_position(address))

    async def close(self) -> None:
        close = getattr(self.pool, "close", None)
        if close is None:
            return
        result = close()
        if inspect.isawaitable(result):
            await result

    # ── transaction builders ──

    async def build_remove_liquidity(
        self, owner: str, position: Position
    ) -> list[SignableTransaction]:
        """Full withdrawal plus claim-and-close, split however the program requires."""
        txs = await self.pool.remove_liquidity(
            user=owner,
            position=position.address,
            from_bin_id=position.lower_bin_id,
            to_bin_id=position.upper_bin_id,
            bps=BPS_DENOMINATOR,
            should_claim_and_close=True,
        )
        self.logger.debug(
            f"Built {len(txs)} remove-liquidity transaction(s) for {position.address}"
        )
        return list(txs)

    async def build_open_position(
        self,
        *,
        owner: str,
        position_address: str,
        min_bin_id: int,
        max_bin_id: int,
        shape: StrategyShape,
        base_amount: int,
        quote_amount: int,
    ) -> SignableTransaction:
        return await self.pool.initialize_position_and_add_liquidity_by_strategy(
            position=position_address,
            user=owner,
            min_bin_id=min_bin_id,
            max_bin_id=max_bin_id,
            strategy_type=shape.value,
            total_x_amount=int(base_amount),
            total_y_amount=int(quote_amount),
            slippage_pct=ADD_LIQUIDITY_SLIPPAGE_PCT,
        )
