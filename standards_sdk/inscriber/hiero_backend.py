"""
LedgerBackend implementation backed by hiero-sdk-python.
"""
import logging
from typing import Any, Optional

from ._deps import ensure_hiero_installed
from .ledger import (
    KEY_TYPE_ANY,
    KEY_TYPE_ECDSA,
    KEY_TYPE_ED25519,
    HbarTransfer,
    LedgerBackend,
    LedgerReceipt,
    NftTransfer,
    RebuildContext,
    TokenTransfer,
)

logger = logging.getLogger(__name__)


class HieroLedgerBackend(LedgerBackend):
    """
    Adapter over hiero_sdk_python.

    The SDK is imported when the backend is created, so importing this
    module does not require the [hedera] extra.
    """

    def __init__(self):
        ensure_hiero_installed()
        import hiero_sdk_python

        self._sdk = hiero_sdk_python

    def new_client(self, network: str) -> Any:
        return self._sdk.Client(self._sdk.Network(network))

    def set_operator(self, client: Any, account_id: Any, private_key: Any) -> None:
        client.set_operator(account_id, private_key)

    def parse_account_id(self, raw: str) -> Any:
        try:
            return self._sdk.AccountId.from_string(raw.strip())
        except Exception as e:
            raise ValueError(f"invalid account ID {raw!r}: {e}") from e

    def parse_private_key(self, raw: str, key_type: str = KEY_TYPE_ANY) -> Any:
        private_key_cls = self._sdk.PrivateKey
        parsers = {
            KEY_TYPE_ED25519: private_key_cls.from_string_ed25519,
            KEY_TYPE_ECDSA: private_key_cls.from_string_ecdsa,
            KEY_TYPE_ANY: private_key_cls.from_string,
        }
        parser = parsers.get(key_type)
        if parser is None:
            raise ValueError(f"unsupported key type {key_type!r}")
        try:
            return parser(raw)
        except Exception as e:
            raise ValueError(str(e)) from e

    def decode_transaction(self, raw: bytes) -> Any:
        return self._sdk.Transaction.from_bytes(raw)

    def sign(self, transaction: Any, private_key: Any) -> Any:
        transaction.sign(private_key)
        return transaction

    def execute(self, transaction: Any, client: Any) -> Any:
        # execute() waits for the receipt; keep the transaction for its id
        receipt = transaction.execute(client)
        return transaction, receipt

    def get_receipt(self, response: Any, client: Any) -> LedgerReceipt:
        transaction, receipt = response
        status = self._status_name(receipt.status)
        transaction_id = getattr(receipt, "transaction_id", None) or transaction.transaction_id
        return LedgerReceipt(status=status, transaction_id=str(transaction_id))

    def transfer_context(self, transaction: Any) -> Optional[RebuildContext]:
        if not isinstance(transaction, self._sdk.TransferTransaction):
            return None

        transaction_id = transaction.transaction_id
        payer = getattr(transaction_id, "account_id", None)

        hbar_transfers = tuple(
            HbarTransfer(account_id=t.account_id, amount=t.amount)
            for t in (transaction.hbar_transfers or [])
        )
        token_transfers = tuple(
            TokenTransfer(
                token_id=token_id,
                account_id=t.account_id,
                amount=t.amount,
                is_approved=bool(getattr(t, "is_approved", False)),
            )
            for token_id, transfers in (transaction.token_transfers or {}).items()
            for t in transfers
        )
        nft_transfers = tuple(
            NftTransfer(
                token_id=token_id,
                sender_id=t.sender_id,
                receiver_id=t.receiver_id,
                serial_number=t.serial_number,
                is_approved=bool(getattr(t, "is_approved", False)),
            )
            for token_id, transfers in (transaction.nft_transfers or {}).items()
            for t in transfers
        )

        return RebuildContext(
            transaction_id=transaction_id,
            payer_account_id=str(payer) if payer is not None else "",
            node_account_ids=tuple(getattr(transaction, "node_account_ids", None) or ()),
            memo=getattr(transaction, "memo", "") or "",
            valid_duration=getattr(transaction, "transaction_valid_duration", None),
            max_fee=getattr(transaction, "transaction_fee", None),
            hbar_transfers=hbar_transfers,
            token_transfers=token_transfers,
            nft_transfers=nft_transfers,
        )

    def build_transfer(self, context: RebuildContext) -> Any:
        sdk = self._sdk
        transaction = sdk.TransferTransaction()
        transaction.set_transaction_id(context.transaction_id)
        if context.node_account_ids:
            transaction.node_account_ids = list(context.node_account_ids)
        transaction.set_transaction_memo(context.memo)
        if context.valid_duration is not None:
            transaction.transaction_valid_duration = context.valid_duration
        if context.max_fee is not None:
            transaction.transaction_fee = context.max_fee

        for hbar in context.hbar_transfers:
            transaction.add_hbar_transfer(hbar.account_id, hbar.amount)

        for token in context.token_transfers:
            if token.is_approved:
                transaction.add_approved_token_transfer(token.token_id, token.account_id, token.amount)
            else:
                transaction.add_token_transfer(token.token_id, token.account_id, token.amount)

        for nft in context.nft_transfers:
            nft_id = sdk.NftId(nft.token_id, nft.serial_number)
            if nft.is_approved:
                transaction.add_approved_nft_transfer(nft_id, nft.sender_id, nft.receiver_id)
            else:
                transaction.add_nft_transfer(nft_id, nft.sender_id, nft.receiver_id)

        return transaction

    def freeze(self, transaction: Any, client: Any) -> Any:
        return transaction.freeze_with(client)

    def _status_name(self, status: Any) -> str:
        name = getattr(status, "name", None)
        if isinstance(name, str):
            return name
        try:
            return self._sdk.ResponseCode(status).name
        except ValueError:
            return str(status)
