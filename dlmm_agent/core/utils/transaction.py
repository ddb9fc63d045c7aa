from __future__ import annotations

import base64

from solders.keypair import Keypair
from solders.transaction import Transaction, VersionedTransaction


class LegacyTransaction:
    """``SignableTransaction`` backed by a legacy solders ``Transaction``.

    Pool SDK implementations hand these back from their transaction builders so
    the strategy can add its own signatures before broadcasting.
    """

    def __init__(self, transaction: Transaction):
        self.transaction = transaction

    @classmethod
    def from_base64(cls, data: str) -> LegacyTransaction:
        return cls(Transaction.from_bytes(base64.b64decode(data)))

    def partial_sign(self, *signers: Keypair) -> None:
        self.transaction.partial_sign(
            list(signers), self.transaction.message.recent_blockhash
        )

    def serialize_base64(self) -> str:
        return base64.b64encode(bytes(self.transaction)).decode("ascii")


def sign_versioned_transaction(transaction_b64: str, signer: Keypair) -> str:
    """Sign an unsigned base64 ``VersionedTransaction`` and return it re-encoded."""
    raw = VersionedTransaction.from_bytes(base64.b64decode(transaction_b64))
    signed = VersionedTransaction(raw.message, [signer])
    return base64.b64encode(bytes(signed)).decode("ascii")
