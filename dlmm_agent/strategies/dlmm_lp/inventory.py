from __future__ import annotations

import asyncio
from decimal import Decimal

from loguru import logger
from solders.keypair import Keypair

from dlmm_agent.adapters.dlmm_adapter.adapter import DlmmAdapter
from dlmm_agent.core.adapters.models import SwapEvent
from dlmm_agent.core.clients.protocols import LedgerClientProtocol, SwapClientProtocol
from dlmm_agent.core.constants.base import (
    MIN_NATIVE_GAS_RESERVE,
    QUOTE_INITIAL_DELAY_S,
    QUOTE_MAX_DELAY_S,
    QUOTE_MAX_RETRIES,
)
from dlmm_agent.core.constants.solana import NATIVE_MINTS
from dlmm_agent.core.errors import SwapExecutionError, is_policy_violation
from dlmm_agent.core.telemetry import EventRecorder
from dlmm_agent.core.utils.retry import retry_async
from dlmm_agent.strategies.dlmm_lp.types import Inventory, StrategyConfig


def skew_exceeds(inventory: Inventory, threshold: Decimal) -> bool:
    """``|1 - base_value / quote_value| > threshold`` evaluated in Decimal."""
    if inventory.quote_value == 0:
        return inventory.base_value > 0
    ratio = Decimal(repr(inventory.base_value)) / Decimal(repr(inventory.quote_value))
    return abs(1 - ratio) > threshold


class InventoryRebalancer:
    """Keeps the wallet's base/quote value split close to 50/50 before a position is sized."""

    def __init__(
        self,
        *,
        pair: str,
        adapter: DlmmAdapter,
        ledger: LedgerClientProtocol,
        swap_client: SwapClientProtocol,
        owner: Keypair,
        config: StrategyConfig,
        recorder: EventRecorder,
        native_reserve: int = MIN_NATIVE_GAS_RESERVE,
    ):
        self.pair = pair
        self.adapter = adapter
        self.ledger = ledger
        self.swap_client = swap_client
        self.owner = owner
        self.config = config
        self.recorder = recorder
        self.native_reserve = native_reserve
        self.logger = logger.bind(strategy=pair)

    @property
    def owner_address(self) -> str:
        return str(self.owner.pubkey())

    def _spendable(self, mint: str, raw_balance: int) -> int:
        if mint in NATIVE_MINTS:
            return max(0, raw_balance - self.native_reserve)
        return raw_balance

    async def get_inventory(
        self, price: float, min_context_slot: int | None = None
    ) -> Inventory:
        """Balance snapshot priced at ``price`` (quote per base)."""
        base_raw, quote_raw = await asyncio.gather(
            self.ledger.get_token_balance(
                self.owner_address, self.adapter.base_mint, min_context_slot
            ),
            self.ledger.get_token_balance(
                self.owner_address, self.adapter.quote_mint, min_context_slot
            ),
        )
        base_balance = self._spendable(self.adapter.base_mint, int(base_raw))
        quote_balance = self._spendable(self.adapter.quote_mint, int(quote_raw))

        return Inventory(
            base_balance=base_balance,
            quote_balance=quote_balance,
            base_value=base_balance / 10**self.adapter.base_decimals * price,
            quote_value=quote_balance / 10**self.adapter.quote_decimals,
        )

    async def rebalance_inventory(
        self, price: float, min_context_slot: int | None = None
    ) -> Inventory:
        inventory = await self.get_inventory(price, min_context_slot)
        if not skew_exceeds(inventory, self.config.inventory_skew_threshold):
            self.logger.debug(
                f"Inventory skew {inventory.skew:.4f} within threshold, no swap needed"
            )
            return inventory

        if inventory.base_value > inventory.quote_value:
            input_mint, output_mint = self.adapter.base_mint, self.adapter.quote_mint
            input_decimals = self.adapter.base_decimals
        else:
            input_mint, output_mint = self.adapter.quote_mint, self.adapter.base_mint
            input_decimals = self.adapter.quote_decimals

        # Half the value gap, in quote units; base input is converted at market price
        swap_value = abs(inventory.base_value - inventory.quote_value) / 2
        input_amount = swap_value / price if input_mint == self.adapter.base_mint else swap_value
        raw_amount = int(input_amount * 10**input_decimals)
        if raw_amount <= 0:
            self.logger.warning(
                f"Inventory skew {inventory.skew:.4f} over threshold but swap amount rounds to zero"
            )
            return inventory

        self.logger.info(
            f"Rebalancing inventory: skew={inventory.skew:.4f}, "
            f"swapping {raw_amount} raw {input_mint} -> {output_mint}"
        )

        def _log_quote_retry(attempt: int, exc: Exception, delay: float) -> None:
            self.logger.warning(
                f"Swap quote attempt {attempt} failed: {exc}; retrying in {delay:.1f}s"
            )

        order = await retry_async(
            lambda: self.swap_client.get_order(
                input_mint=input_mint,
                output_mint=output_mint,
                amount=raw_amount,
                taker=self.owner_address,
                max_slippage_bps=self.config.max_rebalance_slippage_bps,
            ),
            max_retries=QUOTE_MAX_RETRIES,
            initial_delay_s=QUOTE_INITIAL_DELAY_S,
            max_delay_s=QUOTE_MAX_DELAY_S,
            should_retry=lambda exc: not is_policy_violation(exc),
            on_retry=_log_quote_retry,
        )

        execution = await self.swap_client.execute_order(
            order["transaction"], order["requestId"], self.owner
        )
        if execution.get("status") != "Success":
            raise SwapExecutionError(
                order["requestId"], execution.get("status"), execution.get("signature")
            )

        updated = await self.get_inventory(price, int(execution["slot"]))
        self.recorder.record(
            SwapEvent(
                pair=self.pair,
                initial_base_raw_amount=inventory.base_balance,
                initial_quote_raw_amount=inventory.quote_balance,
                final_base_raw_amount=updated.base_balance,
                final_quote_raw_amount=updated.quote_balance,
                transaction_id=str(execution["signature"]),
            )
        )
        return updated
