"""In-memory collaborators for exercising strategies without a cluster.

``FakePool`` keeps positions in a dict, ``FakeLedger`` keeps balances per mint
and hands out increasing slots, ``FakeSwapClient`` moves balances on the
ledger when an order executes.
"""

from __future__ import annotations

from typing import Any

from solders.keypair import Keypair

from dlmm_agent.core.clients.protocols import (
    ConfirmedSignature,
    PositionData,
    SwapExecution,
    SwapOrder,
)
from dlmm_agent.core.constants.solana import JUP_MINT, USDC_MINT


class FakeTransaction:
    def __init__(self, label: str):
        self.label = label
        self.signers: list[str] = []

    def partial_sign(self, *signers: Keypair) -> None:
        self.signers.extend(str(s.pubkey()) for s in signers)

    def serialize_base64(self) -> str:
        return f"{self.label}:{','.join(self.signers)}"


class FakePool:
    def __init__(
        self,
        *,
        address: str = "FakePool1111111111111111111111111111111111",
        bin_step: int = 10,
        base_mint: str = JUP_MINT,
        base_decimals: int = 6,
        quote_mint: str = USDC_MINT,
        quote_decimals: int = 6,
        remove_tx_count: int = 1,
    ):
        self.address = address
        self.bin_step = bin_step
        self.base_mint = base_mint
        self.base_decimals = base_decimals
        self.quote_mint = quote_mint
        self.quote_decimals = quote_decimals
        self.remove_tx_count = remove_tx_count

        self.positions: dict[str, PositionData] = {}
        # Position lookups that still miss a freshly opened position
        self.hidden_polls = 0
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.closed = False

    def add_position(
        self,
        address: str,
        lower_bin_id: int,
        upper_bin_id: int,
        *,
        base: int = 0,
        quote: int = 0,
        fee_x: int = 0,
        fee_y: int = 0,
    ) -> PositionData:
        data: PositionData = {
            "public_key": address,
            "lower_bin_id": lower_bin_id,
            "upper_bin_id": upper_bin_id,
            "total_x_amount": str(base),
            "total_y_amount": str(quote),
            "fee_x_exclude_transfer_fee": str(fee_x),
            "fee_y_exclude_transfer_fee": str(fee_y),
        }
        self.positions[address] = data
        return data

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    async def close(self) -> None:
        self.closed = True

    async def refetch_states(self) -> None:
        self.calls.append(("refetch_states", {}))

    async def get_positions_by_user(self, owner: str) -> list[PositionData]:
        self.calls.append(("get_positions_by_user", {"owner": owner}))
        if self.hidden_polls > 0:
            self.hidden_polls -= 1
            return []
        return list(self.positions.values())

    async def get_position(self, position: str) -> PositionData:
        self.calls.append(("get_position", {"position": position}))
        if position not in self.positions:
            raise KeyError(position)
        return self.positions[position]

    async def remove_liquidity(self, **kwargs: Any) -> list[FakeTransaction]:
        self.calls.append(("remove_liquidity", kwargs))
        self.positions.pop(kwargs["position"], None)
        return [FakeTransaction(f"remove-{i}") for i in range(self.remove_tx_count)]

    async def initialize_position_and_add_liquidity_by_strategy(
        self, **kwargs: Any
    ) -> FakeTransaction:
        self.calls.append(("initialize_position", kwargs))
        self.add_position(
            kwargs["position"],
            kwargs["min_bin_id"],
            kwargs["max_bin_id"],
            base=kwargs["total_x_amount"],
            quote=kwargs["total_y_amount"],
        )
        return FakeTransaction("open")


class FakeLedger:
    def __init__(self, balances: dict[str, int] | None = None, start_slot: int = 100):
        self.balances: dict[str, int] = dict(balances or {})
        self.slot = start_slot
        self.sent: list[str] = []
        self.confirm_calls: list[list[str]] = []
        self.balance_reads: list[tuple[str, int | None]] = []
        # Overrides the slots reported by confirm_transactions when set
        self.confirmed_slot: int | None = None

    def next_slot(self) -> int:
        self.slot += 1
        return self.slot

    async def send_transaction(self, transaction_b64: str) -> str:
        self.sent.append(transaction_b64)
        return f"sig{len(self.sent)}"

    async def confirm_transactions(
        self, signatures: list[str]
    ) -> list[ConfirmedSignature]:
        self.confirm_calls.append(list(signatures))
        return [
            {
                "signature": sig,
                "slot": self.confirmed_slot if self.confirmed_slot is not None else self.next_slot(),
            }
            for sig in signatures
        ]

    async def get_token_balance(
        self, owner: str, mint: str, min_context_slot: int | None = None
    ) -> int:
        self.balance_reads.append((mint, min_context_slot))
        return self.balances.get(mint, 0)


class FakeSwapClient:
    def __init__(
        self,
        ledger: FakeLedger,
        *,
        price: float = 1.0,
        base_mint: str = JUP_MINT,
        slippage_bps: int = 10,
    ):
        self.ledger = ledger
        # Quote per base; both sides are assumed to share decimals
        self.price = price
        self.base_mint = base_mint
        self.slippage_bps = slippage_bps
        self.orders: list[dict[str, Any]] = []
        self.executions: list[str] = []
        self.status = "Success"

    def _out_amount(self, input_mint: str, amount: int) -> int:
        if input_mint == self.base_mint:
            return int(amount * self.price)
        return int(amount / self.price)

    async def get_order(
        self,
        *,
        input_mint: str,
        output_mint: str,
        amount: int,
        taker: str,
        max_slippage_bps: int,
    ) -> SwapOrder:
        self.orders.append(
            {
                "input_mint": input_mint,
                "output_mint": output_mint,
                "amount": amount,
                "taker": taker,
                "max_slippage_bps": max_slippage_bps,
            }
        )
        return {
            "transaction": f"swap-{len(self.orders)}",
            "requestId": f"req-{len(self.orders)}",
            "slippageBps": self.slippage_bps,
            "inAmount": str(amount),
            "outAmount": str(self._out_amount(input_mint, amount)),
        }

    async def execute_order(
        self, transaction_b64: str, request_id: str, signer: Keypair
    ) -> SwapExecution:
        self.executions.append(request_id)
        order = self.orders[-1]
        if self.status == "Success":
            self.ledger.balances[order["input_mint"]] = (
                self.ledger.balances.get(order["input_mint"], 0) - order["amount"]
            )
            self.ledger.balances[order["output_mint"]] = self.ledger.balances.get(
                order["output_mint"], 0
            ) + self._out_amount(order["input_mint"], order["amount"])
        return {
            "status": self.status,
            "signature": f"swapsig-{len(self.executions)}",
            "slot": str(self.ledger.next_slot()),
        }


class RecordingTelemetry:
    def __init__(self):
        self.events: list[Any] = []

    async def log_event(self, event: Any) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list[Any]:
        return [e for e in self.events if e.type == event_type]
