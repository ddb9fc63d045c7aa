"""DLMM concentrated liquidity strategy.

Keeps one liquidity position per pool centered on the market price. Each
price tick either opens a position, holds, or re-centers it when the price bin
drifts past ``rebalance_threshold`` of the position's half range. All work for
a tick runs behind a non-blocking busy flag: ticks arriving mid-operation are
dropped, never queued.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from loguru import logger
from solders.keypair import Keypair

from dlmm_agent.adapters.dlmm_adapter.adapter import DlmmAdapter
from dlmm_agent.core.adapters.models import PositionEvent
from dlmm_agent.core.clients.protocols import (
    AlertSink,
    LedgerClientProtocol,
    SwapClientProtocol,
)
from dlmm_agent.core.constants.base import BPS_DENOMINATOR
from dlmm_agent.core.telemetry import EventRecorder
from dlmm_agent.strategies.dlmm_lp.inventory import InventoryRebalancer
from dlmm_agent.strategies.dlmm_lp.position_manager import PositionManager
from dlmm_agent.strategies.dlmm_lp.types import (
    CreatePositionResult,
    Position,
    StrategyConfig,
    StrategyPhase,
    StrategyRuntimeState,
)

T = TypeVar("T")


class DlmmLpStrategy:
    def __init__(
        self,
        *,
        pair: str,
        adapter: DlmmAdapter,
        ledger: LedgerClientProtocol,
        swap_client: SwapClientProtocol,
        owner: Keypair,
        config: StrategyConfig,
        alerts: AlertSink,
        recorder: EventRecorder | None = None,
        position_manager: PositionManager | None = None,
    ):
        self.pair = pair
        self.adapter = adapter
        self.owner = owner
        self.config = config
        self.alerts = alerts
        self.recorder = recorder or EventRecorder()
        self.state = StrategyRuntimeState()
        self.logger = logger.bind(strategy=pair)

        if position_manager is None:
            inventory = InventoryRebalancer(
                pair=pair,
                adapter=adapter,
                ledger=ledger,
                swap_client=swap_client,
                owner=owner,
                config=config,
                recorder=self.recorder,
            )
            position_manager = PositionManager(
                pair=pair,
                adapter=adapter,
                ledger=ledger,
                owner=owner,
                config=config,
                inventory=inventory,
                recorder=self.recorder,
            )
        self.positions = position_manager

    @property
    def owner_address(self) -> str:
        return str(self.owner.pubkey())

    @property
    def position(self) -> Position | None:
        return self.state.position

    @property
    def phase(self) -> StrategyPhase:
        return self.state.phase

    # ── tick handling ──

    async def run(self, market_price: float) -> None:
        """Handle one price tick. Dropped without side effects while busy."""
        if self.state.busy:
            self.logger.debug(f"Busy, dropping tick at {market_price}")
            return
        await self.safe_execute(lambda: self._tick(market_price))

    async def safe_execute(self, fn: Callable[[], Awaitable[T]]) -> T | None:
        """Run ``fn`` under the busy flag; errors are alerted and re-raised."""
        # Check-and-set with no await in between
        if self.state.busy:
            return None
        self.state.busy = True
        try:
            result = await fn()
            self.state.last_error = None
            return result
        except Exception as exc:
            self.state.last_error = str(exc)
            await self._alert_error("Error during strategy execution", exc)
            raise
        finally:
            self._settle_phase()
            self.state.busy = False

    async def _tick(self, market_price: float) -> None:
        if not self.state.position_fetched:
            await self._fetch_existing_position()

        if self.state.position is None:
            await self._create(market_price)
            return

        if self.should_rebalance(market_price):
            await self._rebalance(market_price)

    def should_rebalance(self, market_price: float) -> bool:
        position = self.state.position
        if position is None:
            return False
        market_bin_id = self.adapter.bin_id_from_price(market_price)
        threshold_bins = (
            position.half_range * self.config.rebalance_threshold_bps // BPS_DENOMINATOR
        )
        lower = position.mid_bin_id - threshold_bins
        upper = position.mid_bin_id + threshold_bins
        return market_bin_id < lower or market_bin_id > upper

    # ── lifecycle ──

    async def _fetch_existing_position(self) -> None:
        positions = await self.adapter.get_positions_by_user(self.owner_address)
        if positions:
            self.state.position = positions[0]
            self.logger.info(
                f"Found existing position {positions[0].address} "
                f"[{positions[0].lower_bin_id}, {positions[0].upper_bin_id}]"
            )
            if len(positions) > 1:
                self.logger.warning(
                    f"{len(positions)} positions open for {self.owner_address}, "
                    f"managing {positions[0].address}"
                )
        self.state.position_fetched = True
        self._settle_phase()

    async def _create(self, market_price: float) -> None:
        self.state.phase = StrategyPhase.CREATING
        result = await self.positions.create_position(market_price)
        if result is None:
            await self._alert_error("Failed to create position")
            return
        self._activate(result, market_price)

    async def _rebalance(self, market_price: float) -> None:
        position = self.state.position
        if position is None:
            self.logger.error("Cannot rebalance: no position exists")
            return

        self.logger.info(
            f"Price {market_price} drifted out of band for {position.address}, rebalancing"
        )
        self.state.phase = StrategyPhase.CLOSING
        result = await self.positions.rebalance_position(
            market_price, position, on_closed=self._on_position_closed
        )
        self._activate(result.created, market_price)

    def _on_position_closed(self, closed: Position) -> None:
        self.state.position = None
        self.state.phase = StrategyPhase.CREATING
        self.logger.info(f"Position {closed.address} withdrawn")

    def _activate(self, result: CreatePositionResult, market_price: float) -> None:
        position = result.position
        self.state.position = position
        self.state.phase = StrategyPhase.ACTIVE
        self.recorder.record(
            PositionEvent(
                pair=self.pair,
                position_address=position.address,
                lower_bin_id=position.lower_bin_id,
                upper_bin_id=position.upper_bin_id,
                base_raw_amount=position.base_amount,
                quote_raw_amount=position.quote_amount,
                transaction_id=result.transaction_id,
                oracle_price=market_price,
            )
        )

    def _settle_phase(self) -> None:
        if not self.state.position_fetched:
            return
        self.state.phase = (
            StrategyPhase.ACTIVE
            if self.state.position is not None
            else StrategyPhase.NO_POSITION
        )

    async def _alert_error(
        self, message: str, error: BaseException | None = None, **fields: Any
    ) -> None:
        try:
            await self.alerts.error(message, error, pair=self.pair, **fields)
        except Exception as exc:
            self.logger.warning(f"Failed to deliver alert '{message}': {exc}")

    def status(self) -> dict[str, Any]:
        position = self.state.position
        return {
            "pair": self.pair,
            "phase": self.state.phase.name,
            "busy": self.state.busy,
            "position": position.address if position else None,
            "bin_range": (
                [position.lower_bin_id, position.upper_bin_id] if position else None
            ),
            "last_error": self.state.last_error,
        }
