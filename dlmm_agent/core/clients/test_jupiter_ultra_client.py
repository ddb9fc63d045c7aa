import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from solders.keypair import Keypair

from dlmm_agent.core.clients.JupiterUltraClient import JupiterUltraClient
from dlmm_agent.core.constants.solana import JUP_MINT, USDC_MINT
from dlmm_agent.core.errors import SlippageExceededError, SwapQuoteError, is_policy_violation


def _client(handler) -> tuple[JupiterUltraClient, list[httpx.Request]]:
    requests: list[httpx.Request] = []

    def recording(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    client = JupiterUltraClient("https://jup.example/ultra/v1/")
    client.client = httpx.AsyncClient(transport=httpx.MockTransport(recording))
    return client, requests


def _order_args(**overrides):
    args = {
        "input_mint": JUP_MINT,
        "output_mint": USDC_MINT,
        "amount": 1_000_000,
        "taker": "Taker11111111111111111111111111111111111111",
        "max_slippage_bps": 50,
    }
    args.update(overrides)
    return args


@pytest.mark.asyncio
class TestGetOrder:
    async def test_returns_order(self):
        order = {"transaction": "dHg=", "requestId": "req-1", "slippageBps": 12, "outAmount": "610000"}
        client, requests = _client(lambda r: httpx.Response(200, json=order))

        result = await client.get_order(**_order_args())

        assert result["requestId"] == "req-1"
        [request] = requests
        assert request.url.path == "/ultra/v1/order"
        assert request.url.params["inputMint"] == JUP_MINT
        assert request.url.params["outputMint"] == USDC_MINT
        assert request.url.params["amount"] == "1000000"

    async def test_error_message_raises_quote_error(self):
        client, _ = _client(
            lambda r: httpx.Response(200, json={"errorMessage": "Insufficient funds"})
        )
        with pytest.raises(SwapQuoteError, match="Insufficient funds") as exc_info:
            await client.get_order(**_order_args())
        assert not is_policy_violation(exc_info.value)

    async def test_slippage_above_limit_is_policy_violation(self):
        order = {"transaction": "dHg=", "requestId": "req-1", "slippageBps": 51}
        client, _ = _client(lambda r: httpx.Response(200, json=order))

        with pytest.raises(SlippageExceededError) as exc_info:
            await client.get_order(**_order_args())
        assert exc_info.value.slippage_bps == 51
        assert is_policy_violation(exc_info.value)

    async def test_slippage_at_limit_is_accepted(self):
        order = {"transaction": "dHg=", "requestId": "req-1", "slippageBps": 50}
        client, _ = _client(lambda r: httpx.Response(200, json=order))
        assert (await client.get_order(**_order_args()))["slippageBps"] == 50

    async def test_http_failure_raises_quote_error(self):
        client, _ = _client(lambda r: httpx.Response(503, json={}))
        with pytest.raises(SwapQuoteError):
            await client.get_order(**_order_args())


@pytest.mark.asyncio
class TestExecuteOrder:
    async def test_posts_signed_transaction(self):
        client, requests = _client(
            lambda r: httpx.Response(200, json={"status": "Success", "signature": "s1", "slot": "77"})
        )
        with patch(
            "dlmm_agent.core.clients.JupiterUltraClient.sign_versioned_transaction",
            return_value="signed-b64",
        ) as mock_sign:
            result = await client.execute_order("unsigned-b64", "req-1", Keypair())

        assert result["slot"] == "77"
        mock_sign.assert_called_once()
        [request] = requests
        assert request.url.path == "/ultra/v1/execute"
        assert json.loads(request.content) == {
            "signedTransaction": "signed-b64",
            "requestId": "req-1",
        }

    async def test_retries_transient_http_errors(self):
        responses = iter(
            [
                httpx.Response(502, json={}),
                httpx.Response(200, json={"status": "Success", "signature": "s1", "slot": 5}),
            ]
        )
        client, requests = _client(lambda r: next(responses))

        with (
            patch(
                "dlmm_agent.core.clients.JupiterUltraClient.sign_versioned_transaction",
                return_value="signed-b64",
            ),
            patch("dlmm_agent.core.utils.retry.asyncio.sleep", new_callable=AsyncMock),
        ):
            result = await client.execute_order("unsigned-b64", "req-1", Keypair())

        assert result["signature"] == "s1"
        assert len(requests) == 2

    async def test_failed_status_is_returned(self):
        client, _ = _client(
            lambda r: httpx.Response(200, json={"status": "Failed", "signature": "s1", "slot": 5})
        )
        with patch(
            "dlmm_agent.core.clients.JupiterUltraClient.sign_versioned_transaction",
            return_value="signed-b64",
        ):
            result = await client.execute_order("unsigned-b64", "req-1", Keypair())
        assert result["status"] == "Failed"
