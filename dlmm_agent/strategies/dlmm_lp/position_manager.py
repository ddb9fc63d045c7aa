from __future__ import annotations

from collections.abc import Callable

from loguru import logger
from solders.keypair import Keypair

from dlmm_agent.adapters.dlmm_adapter.adapter import DlmmAdapter
from dlmm_agent.core.adapters.models import WithdrawEvent
from dlmm_agent.core.clients.protocols import LedgerClientProtocol
from dlmm_agent.core.constants.base import (
    DEFAULT_BIN_PER_POSITION,
    POSITION_POLL_INITIAL_DELAY_S,
    POSITION_POLL_MAX_DELAY_S,
    POSITION_POLL_MAX_RETRIES,
)
from dlmm_agent.core.errors import (
    BinLimitExceededError,
    EmptyBinRangeError,
    PositionCreateError,
    TransactionConfirmationError,
)
from dlmm_agent.core.telemetry import EventRecorder
from dlmm_agent.core.utils.retry import retry_async
from dlmm_agent.strategies.dlmm_lp.inventory import InventoryRebalancer
from dlmm_agent.strategies.dlmm_lp.types import (
    CreatePositionResult,
    Position,
    RebalanceResult,
    StrategyConfig,
)


class PositionManager:
    """Opens, closes and re-centers the single liquidity position of one pool."""

    def __init__(
        self,
        *,
        pair: str,
        adapter: DlmmAdapter,
        ledger: LedgerClientProtocol,
        owner: Keypair,
        config: StrategyConfig,
        inventory: InventoryRebalancer,
        recorder: EventRecorder,
        max_bins: int = DEFAULT_BIN_PER_POSITION,
        position_keypair_factory: Callable[[], Keypair] = Keypair,
    ):
        self.pair = pair
        self.adapter = adapter
        self.ledger = ledger
        self.owner = owner
        self.config = config
        self.inventory = inventory
        self.recorder = recorder
        self.max_bins = max_bins
        self.position_keypair_factory = position_keypair_factory
        self.logger = logger.bind(strategy=pair)

    @property
    def owner_address(self) -> str:
        return str(self.owner.pubkey())

    def target_bin_range(self, price: float) -> tuple[int, int]:
        """Bin range ``[min, max]`` for a position centered on ``price``.

        Raises EmptyBinRangeError when the range collapses to one bin and
        BinLimitExceededError when it cannot fit in one position.
        """
        min_bin_id, max_bin_id = self.adapter.bin_range_for_price(
            price, self.config.price_range_delta_bps
        )
        if max_bin_id <= min_bin_id:
            raise EmptyBinRangeError(min_bin_id, max_bin_id)
        bin_count = max_bin_id - min_bin_id + 1
        if bin_count > self.max_bins:
            raise BinLimitExceededError(bin_count, self.max_bins)
        return min_bin_id, max_bin_id

    async def create_position(
        self, price: float, min_context_slot: int | None = None
    ) -> CreatePositionResult | None:
        """Correct inventory skew, then open a position around ``price``.

        Returns None when the configured range cannot be opened as one
        position (a single bin or over the bin limit); every other failure
        raises.
        """
        inventory = await self.inventory.rebalance_inventory(price, min_context_slot)

        try:
            min_bin_id, max_bin_id = self.target_bin_range(price)
        except (BinLimitExceededError, EmptyBinRangeError) as exc:
            self.logger.error(str(exc))
            return None

        position_keypair = self.position_keypair_factory()
        position_address = str(position_keypair.pubkey())

        await self.adapter.refetch_states()
        tx = await self.adapter.build_open_position(
            owner=self.owner_address,
            position_address=position_address,
            min_bin_id=min_bin_id,
            max_bin_id=max_bin_id,
            shape=self.config.shape,
            base_amount=inventory.base_balance,
            quote_amount=inventory.quote_balance,
        )
        tx.partial_sign(self.owner, position_keypair)

        signature = await self.ledger.send_transaction(tx.serialize_base64())
        await self.ledger.confirm_transactions([signature])
        self.logger.info(
            f"Opened position {position_address} over bins [{min_bin_id}, {max_bin_id}] "
            f"with base={inventory.base_balance} quote={inventory.quote_balance}"
        )

        position = await retry_async(
            lambda: self.adapter.find_position(self.owner_address, position_address),
            max_retries=POSITION_POLL_MAX_RETRIES,
            initial_delay_s=POSITION_POLL_INITIAL_DELAY_S,
            max_delay_s=POSITION_POLL_MAX_DELAY_S,
        )
        return CreatePositionResult(position=position, transaction_id=signature)

    async def close_position(self, position: Position) -> tuple[Position, list[str], int]:
        """Withdraw 100% of ``position`` and close it.

        Returns the position as last read on-chain, the withdrawal signatures
        and the highest confirmed slot. Raises TransactionConfirmationError when
        nothing confirmed.
        """
        try:
            current = await self.adapter.get_position(position.address)
        except Exception as exc:
            self.logger.warning(
                f"Could not refresh position {position.address} before close: {exc}"
            )
            current = position

        txs = await self.adapter.build_remove_liquidity(self.owner_address, position)

        signatures: list[str] = []
        for tx in txs:
            tx.partial_sign(self.owner)
            signatures.append(await self.ledger.send_transaction(tx.serialize_base64()))

        confirmed = await self.ledger.confirm_transactions(signatures)
        max_slot = max((int(c["slot"]) for c in confirmed), default=0)
        if not max_slot:
            raise TransactionConfirmationError(
                f"Failed to confirm withdrawal of position {position.address}", signatures
            )

        self.logger.info(
            f"Closed position {position.address} in {len(signatures)} transaction(s), "
            f"confirmed at slot {max_slot}"
        )
        return current, signatures, max_slot

    async def rebalance_position(
        self,
        price: float,
        position: Position,
        on_closed: Callable[[Position], None] | None = None,
    ) -> RebalanceResult:
        """Close ``position`` and reopen around ``price``.

        ``on_closed`` runs once the withdrawal is confirmed, before the new
        position is created. A create failure after that point raises
        PositionCreateError and leaves no position open.
        """
        closed, signatures, max_slot = await self.close_position(position)
        if on_closed is not None:
            on_closed(closed)

        self.recorder.record(
            WithdrawEvent(
                pair=self.pair,
                position_address=closed.address,
                fees_claimed=closed.accrued_fees,
                base_raw_amount=closed.base_amount,
                quote_raw_amount=closed.quote_amount,
                transaction_ids=signatures,
            )
        )

        try:
            created = await self.create_position(price, min_context_slot=max_slot)
        except Exception as exc:
            raise PositionCreateError(
                f"Failed to create position after rebalance: {exc}"
            ) from exc
        if created is None:
            raise PositionCreateError(
                "Failed to create new position after closing old position"
            )

        return RebalanceResult(
            closed=closed, withdrawal_transaction_ids=signatures, created=created
        )
