from __future__ import annotations

import httpx
from loguru import logger
from solders.keypair import Keypair

from dlmm_agent.core.clients.HttpClient import HttpClient
from dlmm_agent.core.clients.protocols import SwapExecution, SwapOrder
from dlmm_agent.core.config import get_jupiter_api_url
from dlmm_agent.core.constants.base import (
    SWAP_EXECUTE_INITIAL_DELAY_S,
    SWAP_EXECUTE_MAX_DELAY_S,
    SWAP_EXECUTE_MAX_RETRIES,
)
from dlmm_agent.core.errors import SlippageExceededError, SwapQuoteError
from dlmm_agent.core.utils.retry import retry_async
from dlmm_agent.core.utils.transaction import sign_versioned_transaction


class JupiterUltraClient(HttpClient):
    def __init__(self, api_url: str | None = None):
        super().__init__()
        self.api_url = (api_url or get_jupiter_api_url()).rstrip("/")

    async def get_order(
        self,
        *,
        input_mint: str,
        output_mint: str,
        amount: int,
        taker: str,
        max_slippage_bps: int,
    ) -> SwapOrder:
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(int(amount)),
            "taker": taker,
        }
        try:
            resp = await self._request("GET", f"{self.api_url}/order", params=params)
        except httpx.HTTPError as exc:
            raise SwapQuoteError(
                f"Error getting ultra order for {input_mint} of {amount} tokens: {exc}"
            ) from exc

        order: SwapOrder = resp.json()
        if order.get("errorMessage"):
            raise SwapQuoteError(
                f"Error getting ultra order for {input_mint} of {amount} tokens. "
                f"Error {order['errorMessage']}"
            )
        if not order.get("transaction") or not order.get("requestId"):
            raise SwapQuoteError(f"Ultra order for {input_mint} returned no transaction")

        slippage_bps = int(order.get("slippageBps", 0))
        if slippage_bps > max_slippage_bps:
            raise SlippageExceededError(slippage_bps, max_slippage_bps)

        return order

    async def execute_order(
        self, transaction_b64: str, request_id: str, signer: Keypair
    ) -> SwapExecution:
        signed_transaction = sign_versioned_transaction(transaction_b64, signer)

        async def _execute() -> SwapExecution:
            resp = await self._request(
                "POST",
                f"{self.api_url}/execute",
                json={"signedTransaction": signed_transaction, "requestId": request_id},
            )
            result: SwapExecution = resp.json()
            outcome = "successful" if result.get("status") == "Success" else "failed"
            logger.info(f"Swap {outcome}: https://solscan.io/tx/{result.get('signature')}")
            return result

        return await retry_async(
            _execute,
            max_retries=SWAP_EXECUTE_MAX_RETRIES,
            initial_delay_s=SWAP_EXECUTE_INITIAL_DELAY_S,
            max_delay_s=SWAP_EXECUTE_MAX_DELAY_S,
        )
