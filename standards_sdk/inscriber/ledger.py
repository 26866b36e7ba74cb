"""
Ledger backend interface used by the transaction executor.

The executor never talks to a ledger SDK directly; it goes through a
LedgerBackend so the strategy sequence and the transfer rebuild can be
exercised against an in-memory fake.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple

SUCCESS_STATUS = "SUCCESS"

KEY_TYPE_ED25519 = "ed25519"
KEY_TYPE_ECDSA = "ecdsa"
KEY_TYPE_ANY = ""


@dataclass(frozen=True)
class ExecutionAttempt:
    """One signing/execution strategy"""
    uses_operator_client: bool
    manual_sign: bool
    label: str


EXECUTION_ATTEMPTS: Tuple[ExecutionAttempt, ...] = (
    ExecutionAttempt(uses_operator_client=True, manual_sign=False, label="operator-auto-sign"),
    ExecutionAttempt(uses_operator_client=True, manual_sign=True, label="operator-manual-sign"),
    ExecutionAttempt(uses_operator_client=False, manual_sign=False, label="unsigned-pass-through"),
)


@dataclass(frozen=True)
class TransactionEnvelope:
    """Pre-built transaction plus the operator material needed to submit it"""
    network: str
    account_id: str
    private_key: str = field(repr=False)
    transaction_bytes: str = field(repr=False)


@dataclass(frozen=True)
class LedgerReceipt:
    status: str
    transaction_id: str


@dataclass(frozen=True)
class HbarTransfer:
    account_id: Any
    amount: int


@dataclass(frozen=True)
class TokenTransfer:
    token_id: Any
    account_id: Any
    amount: int
    is_approved: bool = False


@dataclass(frozen=True)
class NftTransfer:
    token_id: Any
    sender_id: Any
    receiver_id: Any
    serial_number: int
    is_approved: bool = False


@dataclass(frozen=True)
class RebuildContext:
    """
    Read-only view of a decoded transfer transaction.

    Identifier fields hold whatever objects the backend produced; only
    `payer_account_id` is compared, as a string.
    """
    transaction_id: Any
    payer_account_id: str
    node_account_ids: Tuple[Any, ...] = ()
    memo: str = ""
    valid_duration: Optional[int] = None
    max_fee: Optional[int] = None
    hbar_transfers: Tuple[HbarTransfer, ...] = ()
    token_transfers: Tuple[TokenTransfer, ...] = ()
    nft_transfers: Tuple[NftTransfer, ...] = ()


class LedgerBackend(ABC):
    """
    Thin adapter over a ledger SDK.

    Implementations must return a fresh client from every `new_client`
    call; attempts never share signing state.
    """

    @abstractmethod
    def new_client(self, network: str) -> Any:
        """Create a client for the given network with no operator set."""
        pass

    @abstractmethod
    def set_operator(self, client: Any, account_id: Any, private_key: Any) -> None:
        pass

    @abstractmethod
    def parse_account_id(self, raw: str) -> Any:
        """
        Parse an account identifier such as "0.0.1234".

        Raises:
            ValueError: If the identifier is malformed
        """
        pass

    @abstractmethod
    def parse_private_key(self, raw: str, key_type: str = KEY_TYPE_ANY) -> Any:
        """
        Parse a private key string.

        Args:
            raw: Key material (hex or DER)
            key_type: KEY_TYPE_ED25519, KEY_TYPE_ECDSA or KEY_TYPE_ANY

        Raises:
            ValueError: If the key cannot be parsed as the requested type
        """
        pass

    @abstractmethod
    def decode_transaction(self, raw: bytes) -> Any:
        pass

    @abstractmethod
    def sign(self, transaction: Any, private_key: Any) -> Any:
        pass

    @abstractmethod
    def execute(self, transaction: Any, client: Any) -> Any:
        """Submit a transaction and return the backend's response object."""
        pass

    @abstractmethod
    def get_receipt(self, response: Any, client: Any) -> LedgerReceipt:
        pass

    @abstractmethod
    def transfer_context(self, transaction: Any) -> Optional[RebuildContext]:
        """Return a RebuildContext, or None if the transaction is not a transfer."""
        pass

    @abstractmethod
    def build_transfer(self, context: RebuildContext) -> Any:
        """Build an unfrozen transfer transaction replaying every line of `context`."""
        pass

    @abstractmethod
    def freeze(self, transaction: Any, client: Any) -> Any:
        pass
