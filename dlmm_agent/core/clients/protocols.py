from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, Required, TypedDict

if TYPE_CHECKING:
    from solders.keypair import Keypair

    from dlmm_agent.core.adapters.models import TelemetryEvent


class ConfirmedSignature(TypedDict):
    signature: Required[str]
    slot: Required[int]


class SwapOrder(TypedDict, total=False):
    transaction: Required[str]  # base64, unsigned
    requestId: Required[str]
    slippageBps: Required[int]
    outAmount: str
    inAmount: str
    errorMessage: str


class SwapExecution(TypedDict, total=False):
    status: Required[str]
    signature: Required[str]
    slot: Required[str | int]
    error: str


class PositionData(TypedDict, total=False):
    public_key: Required[str]
    lower_bin_id: Required[int]
    upper_bin_id: Required[int]
    total_x_amount: int | str
    total_y_amount: int | str
    fee_x_exclude_transfer_fee: int | str
    fee_y_exclude_transfer_fee: int | str


class SignableTransaction(Protocol):
    def partial_sign(self, *signers: Keypair) -> None: ...

    def serialize_base64(self) -> str: ...


class LedgerClientProtocol(Protocol):
    async def send_transaction(self, transaction_b64: str) -> str: ...

    async def confirm_transactions(
        self, signatures: list[str]
    ) -> list[ConfirmedSignature]: ...

    async def get_token_balance(
        self, owner: str, mint: str, min_context_slot: int | None = None
    ) -> int: ...


class DlmmPoolProtocol(Protocol):
    address: str
    bin_step: int
    base_mint: str
    base_decimals: int
    quote_mint: str
    quote_decimals: int

    async def refetch_states(self) -> None: ...

    async def get_positions_by_user(self, owner: str) -> list[PositionData]: ...

    async def get_position(self, position: str) -> PositionData: ...

    async def remove_liquidity(
        self,
        *,
        user: str,
        position: str,
        from_bin_id: int,
        to_bin_id: int,
        bps: int,
        should_claim_and_close: bool,
    ) -> list[SignableTransaction]: ...

    async def initialize_position_and_add_liquidity_by_strategy(
        self,
        *,
        position: str,
        user: str,
        min_bin_id: int,
        max_bin_id: int,
        strategy_type: str,
        total_x_amount: int,
        total_y_amount: int,
        slippage_pct: float,
    ) -> SignableTransaction: ...


class SwapClientProtocol(Protocol):
    async def get_order(
        self,
        *,
        input_mint: str,
        output_mint: str,
        amount: int,
        taker: str,
        max_slippage_bps: int,
    ) -> SwapOrder: ...

    async def execute_order(
        self, transaction_b64: str, request_id: str, signer: Keypair
    ) -> SwapExecution: ...


class TelemetryClientProtocol(Protocol):
    async def log_event(self, event: TelemetryEvent) -> Any: ...


class AlertSink(Protocol):
    def info(self, message: str, **fields: Any) -> None: ...

    def warning(self, message: str, **fields: Any) -> None: ...

    async def error(
        self, message: str, error: BaseException | None = None, **fields: Any
    ) -> None: ...
