from __future__ import annotations

from typing import Any


class AgentError(RuntimeError):
    pass


class RpcError(AgentError):
    def __init__(self, method: str, message: str, response: Any | None = None):
        self.method = method
        self.response = response
        super().__init__(f"{method} failed: {message}")


class TransactionConfirmationError(AgentError):
    def __init__(self, message: str, signatures: list[str] | None = None):
        self.signatures = list(signatures or [])
        super().__init__(message)


class SwapQuoteError(AgentError):
    pass


class SlippageExceededError(SwapQuoteError):
    def __init__(self, slippage_bps: int, max_slippage_bps: int):
        self.slippage_bps = slippage_bps
        self.max_slippage_bps = max_slippage_bps
        super().__init__(
            f"Slippage {slippage_bps} is greater than max slippage {max_slippage_bps}"
        )


class SwapExecutionError(AgentError):
    def __init__(self, request_id: str, status: str | None, signature: str | None):
        self.request_id = request_id
        self.status = status
        self.signature = signature
        super().__init__(
            f"Swap {request_id} finished with status={status} signature={signature}"
        )


class BinLimitExceededError(AgentError):
    def __init__(self, bin_count: int, max_bins: int):
        self.bin_count = bin_count
        self.max_bins = max_bins
        super().__init__(f"Max bins per position exceeded: {bin_count} > {max_bins}")


class EmptyBinRangeError(AgentError):
    def __init__(self, min_bin_id: int, max_bin_id: int):
        self.min_bin_id = min_bin_id
        self.max_bin_id = max_bin_id
        super().__init__(
            f"Price range maps to a single bin [{min_bin_id}, {max_bin_id}], "
            "widen price_range_delta for this bin step"
        )


class PositionNotFoundError(AgentError):
    pass


class PositionCreateError(AgentError):
    pass


class FeedDisconnectedError(AgentError):
    pass


class AlertDeliveryError(AgentError):
    pass


def is_policy_violation(exc: BaseException) -> bool:
    return isinstance(exc, (SlippageExceededError, BinLimitExceededError, EmptyBinRangeError))

