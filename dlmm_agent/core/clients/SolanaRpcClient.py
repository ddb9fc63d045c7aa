from __future__ import annotations

import asyncio
import itertools
import json
from collections.abc import Callable
from typing import Any

import websockets
from loguru import logger

from dlmm_agent.core.clients.HttpClient import HttpClient
from dlmm_agent.core.clients.protocols import ConfirmedSignature
from dlmm_agent.core.constants.base import CONFIRMATION_TIMEOUT_S, DEFAULT_COMMITMENT
from dlmm_agent.core.constants.solana import NATIVE_MINTS
from dlmm_agent.core.errors import RpcError, TransactionConfirmationError


class SolanaRpcClient(HttpClient):
    """JSON-RPC ledger client with separate read / write / websocket endpoints."""

    def __init__(
        self,
        *,
        read_url: str,
        write_url: str | None = None,
        ws_url: str | None = None,
        commitment: str = DEFAULT_COMMITMENT,
        confirmation_timeout_s: float = CONFIRMATION_TIMEOUT_S,
        connect: Callable[..., Any] | None = None,
    ):
        super().__init__()
        self.read_url = read_url
        self.write_url = write_url or read_url
        self.ws_url = ws_url or read_url.replace("https://", "wss://").replace(
            "http://", "ws://"
        )
        self.commitment = commitment
        self.confirmation_timeout_s = confirmation_timeout_s
        self._connect = connect or websockets.connect
        self._ids = itertools.count(1)

    async def _rpc(self, url: str, method: str, params: list[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        resp = await self._request("POST", url, json=payload)
        data = resp.json()
        if data.get("result") is None:
            error = data.get("error") or {}
            raise RpcError(method, error.get("message", "Unknown error"), data)
        return data["result"]

    async def send_transaction(self, transaction_b64: str) -> str:
        signature = await self._rpc(
            self.write_url,
            "sendTransaction",
            [
                transaction_b64,
                {
                    "encoding": "base64",
                    "skipPreflight": False,
                    "preflightCommitment": self.commitment,
                },
            ],
        )
        logger.info(f"Transaction sent: {signature}")
        return str(signature)

    async def confirm_transactions(
        self, signatures: list[str]
    ) -> list[ConfirmedSignature]:
        """Confirm every signature or raise; results keep the input order."""
        if not signatures:
            return []
        try:
            return list(
                await asyncio.gather(
                    *[self._wait_for_confirmation(sig) for sig in signatures]
                )
            )
        except TransactionConfirmationError:
            raise
        except Exception as exc:
            raise TransactionConfirmationError(
                f"Error confirming transaction: {exc}", signatures
            ) from exc

    async def _wait_for_confirmation(self, signature: str) -> ConfirmedSignature:
        request_id = next(self._ids)
        async with self._connect(self.ws_url) as ws:
            subscription_id: int | None = None
            try:
                async with asyncio.timeout(self.confirmation_timeout_s):
                    await ws.send(
                        json.dumps(
                            {
                                "jsonrpc": "2.0",
                                "id": request_id,
                                "method": "signatureSubscribe",
                                "params": [signature, {"commitment": self.commitment}],
                            }
                        )
                    )
                    async for raw in ws:
                        message = json.loads(raw)
                        if message.get("id") == request_id:
                            if message.get("error") is not None:
                                raise TransactionConfirmationError(
                                    f"signatureSubscribe rejected for {signature}: "
                                    f"{message['error']}",
                                    [signature],
                                )
                            subscription_id = message.get("result")
                            continue

                        if message.get("method") != "signatureNotification":
                            continue
                        params = message.get("params") or {}
                        if (
                            subscription_id is not None
                            and params.get("subscription") != subscription_id
                        ):
                            continue

                        result = params.get("result") or {}
                        err = (result.get("value") or {}).get("err")
                        if err is not None:
                            raise TransactionConfirmationError(
                                f"Error checking signature {signature} - {err}",
                                [signature],
                            )
                        slot = int((result.get("context") or {}).get("slot") or 0)
                        logger.debug(f"Signature {signature} confirmed at slot {slot}")
                        return {"signature": signature, "slot": slot}
            except TimeoutError as exc:
                raise TransactionConfirmationError(
                    f"Timeout waiting for confirmation for signature: {signature}",
                    [signature],
                ) from exc
            finally:
                if subscription_id is not None:
                    await self._unsubscribe(ws, subscription_id)

        raise TransactionConfirmationError(
            f"Subscription closed before confirmation of {signature}", [signature]
        )

    async def _unsubscribe(self, ws: Any, subscription_id: int) -> None:
        try:
            await ws.send(
                json.dumps(
                    {
                        "jsonrpc": "2.0",
                        "id": next(self._ids),
                        "method": "signatureUnsubscribe",
                        "params": [subscription_id],
                    }
                )
            )
        except websockets.exceptions.ConnectionClosed:
            # The socket is torn down by the context manager either way
            logger.debug(f"Socket already closed for subscription {subscription_id}")

    async def get_token_balance(
        self, owner: str, mint: str, min_context_slot: int | None = None
    ) -> int:
        """Raw balance of ``mint`` held by ``owner``; for wrapped SOL this includes native lamports."""
        options: dict[str, Any] = {
            "commitment": self.commitment,
            "encoding": "jsonParsed",
        }
        if min_context_slot is not None:
            options["minContextSlot"] = int(min_context_slot)

        result = await self._rpc(
            self.read_url,
            "getTokenAccountsByOwner",
            [owner, {"mint": mint}, options],
        )
        balance = sum(
            int(account["account"]["data"]["parsed"]["info"]["tokenAmount"]["amount"])
            for account in result.get("value", [])
        )

        if mint in NATIVE_MINTS:
            native_options = {k: v for k, v in options.items() if k != "encoding"}
            native = await self._rpc(self.read_url, "getBalance", [owner, native_options])
            balance += int(native.get("value", 0))

        return balance
