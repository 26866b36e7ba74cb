"""
TransactionExecutor - submits pre-built transactions through a fixed
sequence of signing strategies.
"""
import logging
from typing import Any, List, Optional, Sequence

from ..shared.network import normalize_network
from .classifier import ErrorClassifier, default_classifier
from .codec import decode_transaction_bytes
from .exceptions import (
    ExecutionStrategiesExhaustedError,
    RebuildError,
    TransactionExecutionError,
)
from .keys import KeyTypeResolver
from .ledger import (
    EXECUTION_ATTEMPTS,
    SUCCESS_STATUS,
    ExecutionAttempt,
    LedgerBackend,
    TransactionEnvelope,
)

logger = logging.getLogger(__name__)


class TransactionExecutor:
    """
    Executes inscription transactions returned by the inscription API.

    The API hands back transactions that may or may not already carry a
    signature. Each strategy is tried in order until one is accepted; only
    INVALID_SIGNATURE rejections move on to the next strategy. When every
    strategy is rejected that way, transfer transactions are rebuilt from
    their decoded line items and signed end-to-end by the operator.
    """

    def __init__(
        self,
        ledger: LedgerBackend,
        key_resolver: Optional[KeyTypeResolver] = None,
        classifier: Optional[ErrorClassifier] = None,
        attempts: Sequence[ExecutionAttempt] = EXECUTION_ATTEMPTS,
    ):
        """
        Initialize the executor.

        Args:
            ledger: Ledger backend used to build clients and submit transactions
            key_resolver: Resolver for the operator private key (default: mirror-backed)
            classifier: Error classifier for execution failures
            attempts: Strategy sequence (default: the three standard strategies)
        """
        self.ledger = ledger
        self.key_resolver = key_resolver or KeyTypeResolver(ledger)
        self.classifier = classifier or default_classifier
        self.attempts = tuple(attempts)

    def execute_envelope(self, envelope: TransactionEnvelope) -> str:
        return self.execute_transaction(
            envelope.network,
            envelope.account_id,
            envelope.private_key,
            envelope.transaction_bytes,
        )

    def execute_transaction(
        self,
        network: str,
        account_id: str,
        private_key: str,
        transaction_bytes_b64: str,
    ) -> str:
        """
        Execute a base64-encoded transaction.

        Args:
            network: "mainnet" or "testnet"
            account_id: Operator (payer) account
            private_key: Operator private key string
            transaction_bytes_b64: Transaction bytes from the inscription API

        Returns:
            Transaction ID of the accepted transaction

        Raises:
            KeyResolutionError: If the operator key cannot be resolved
            TransactionBytesError: If the bytes are not valid base64
            TransactionExecutionError: If a strategy fails with anything other
                than INVALID_SIGNATURE, or a receipt is not SUCCESS
            ExecutionStrategiesExhaustedError: If every strategy and the rebuild fail
        """
        try:
            network = normalize_network(network)
        except ValueError as e:
            raise TransactionExecutionError(str(e)) from e

        try:
            operator_account = self.ledger.parse_account_id((account_id or "").strip())
        except ValueError as e:
            raise TransactionExecutionError(f"invalid account ID: {e}") from e

        operator_account_str = str(operator_account)
        operator_key = self.key_resolver.parse_operator_private_key(
            network, operator_account_str, private_key
        )

        raw_bytes = decode_transaction_bytes(transaction_bytes_b64 or "")

        invalid_signature_errors: List[str] = []
        for attempt in self.attempts:
            transaction_id = self._run_attempt(
                attempt, network, operator_account, operator_key, raw_bytes, invalid_signature_errors
            )
            if transaction_id is not None:
                return transaction_id

        if invalid_signature_errors:
            logger.warning(
                f"All {len(invalid_signature_errors)} execution strategies failed with "
                f"INVALID_SIGNATURE; rebuilding transfer transaction"
            )
            try:
                return self._execute_rebuilt_transfer(raw_bytes, network, operator_account, operator_key)
            except RebuildError as e:
                invalid_signature_errors.append(f"rebuilt-transfer={e}")
                raise ExecutionStrategiesExhaustedError(
                    "all execution strategies failed with INVALID_SIGNATURE: "
                    + "; ".join(invalid_signature_errors),
                    failures=invalid_signature_errors,
                ) from e

        raise TransactionExecutionError("no execution strategy succeeded")

    def _run_attempt(
        self,
        attempt: ExecutionAttempt,
        network: str,
        operator_account: Any,
        operator_key: Any,
        raw_bytes: bytes,
        invalid_signature_errors: List[str],
    ) -> Optional[str]:
        """Run one strategy; None means INVALID_SIGNATURE was recorded."""
        client = self.ledger.new_client(network)
        if attempt.uses_operator_client:
            self.ledger.set_operator(client, operator_account, operator_key)

        try:
            transaction = self.ledger.decode_transaction(raw_bytes)
        except Exception as e:
            raise TransactionExecutionError(
                f"failed to decode transaction bytes: {e}", label=attempt.label
            ) from e

        if attempt.manual_sign:
            try:
                transaction = self.ledger.sign(transaction, operator_key)
            except Exception as e:
                raise TransactionExecutionError(
                    f"failed to sign transaction during {attempt.label}: {e}", label=attempt.label
                ) from e

        logger.debug(f"Executing transaction via {attempt.label}")
        try:
            response = self.ledger.execute(transaction, client)
        except Exception as e:
            if self.classifier.is_invalid_signature(e):
                logger.info(f"Strategy {attempt.label} rejected with INVALID_SIGNATURE")
                invalid_signature_errors.append(f"{attempt.label}={e}")
                return None
            raise TransactionExecutionError(
                f"failed to execute transaction via {attempt.label}: {e}", label=attempt.label
            ) from e

        try:
            receipt = self.ledger.get_receipt(response, client)
        except Exception as e:
            raise TransactionExecutionError(
                f"failed to get transaction receipt via {attempt.label}: {e}", label=attempt.label
            ) from e

        if receipt.status != SUCCESS_STATUS:
            raise TransactionExecutionError(
                f"transaction via {attempt.label} failed with status {receipt.status}",
                label=attempt.label,
                status=receipt.status,
            )

        logger.info(f"Transaction {receipt.transaction_id} executed via {attempt.label}")
        return receipt.transaction_id

    def _execute_rebuilt_transfer(
        self,
        raw_bytes: bytes,
        network: str,
        operator_account: Any,
        operator_key: Any,
    ) -> str:
        """
        Rebuild a transfer transaction from its line items and execute it.

        Raises:
            RebuildError: If the transaction is not a transfer, the payer is
                not the operator, or freeze/execute/receipt fails
        """
        try:
            decoded = self.ledger.decode_transaction(raw_bytes)
        except Exception as e:
            raise RebuildError(f"failed to decode transaction bytes for rebuild: {e}") from e

        context = self.ledger.transfer_context(decoded)
        if context is None:
            raise RebuildError(
                f"transaction bytes decoded to unsupported type {type(decoded).__name__}, "
                f"expected transfer transaction"
            )

        operator_account_str = str(operator_account)
        if not context.payer_account_id or context.payer_account_id != operator_account_str:
            raise RebuildError(
                f"cannot rebuild transfer transaction: payer account "
                f"{context.payer_account_id or '<none>'} does not match operator account {operator_account_str}"
            )

        client = self.ledger.new_client(network)
        self.ledger.set_operator(client, operator_account, operator_key)

        try:
            rebuilt = self.ledger.build_transfer(context)
            rebuilt = self.ledger.freeze(rebuilt, client)
        except Exception as e:
            raise RebuildError(f"failed to freeze rebuilt transfer transaction: {e}") from e

        try:
            rebuilt = self.ledger.sign(rebuilt, operator_key)
            response = self.ledger.execute(rebuilt, client)
        except Exception as e:
            raise RebuildError(f"failed to execute rebuilt transfer transaction: {e}") from e

        try:
            receipt = self.ledger.get_receipt(response, client)
        except Exception as e:
            raise RebuildError(f"failed to fetch rebuilt transfer receipt: {e}") from e

        if receipt.status != SUCCESS_STATUS:
            raise RebuildError(
                f"rebuilt transfer transaction failed with status {receipt.status}",
                status=receipt.status,
            )

        logger.info(f"Rebuilt transfer transaction {receipt.transaction_id} executed")
        return receipt.transaction_id
