"""
Quote and cost summary helpers.
"""
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Optional

from ..mirror import MirrorNodeClient, MirrorNodeError
from ..shared.network import normalize_network
from .codec import decode_transaction_bytes
from .ledger import LedgerBackend
from .models import InscriptionCostSummary, JobStatus, QuoteResult, QuoteTransfer
from .parser import normalize_transaction_id

logger = logging.getLogger(__name__)

TINYBAR_PER_HBAR = Decimal(100_000_000)
DEFAULT_QUOTE_HBAR = "0.001"
QUOTE_VALIDITY = timedelta(minutes=15)


def format_tinybar(tinybar: int) -> str:
    """Format a tinybar amount as an HBAR decimal string ("150000000" -> "1.5")."""
    value = (Decimal(tinybar) / TINYBAR_PER_HBAR).normalize()
    return format(value, "f")


def transfer_tinybar(raw: bytes, ledger: LedgerBackend) -> int:
    """
    Total HBAR debited by a transfer transaction, in tinybar.

    Falls back to the max transaction fee when no account is debited.
    Returns 0 for non-transfer transactions.
    """
    context = ledger.transfer_context(ledger.decode_transaction(raw))
    if context is None:
        return 0
    debited = sum(-t.amount for t in context.hbar_transfers if t.amount < 0)
    if debited > 0:
        return debited
    return context.max_fee or 0


def parse_job_quote(job: JobStatus, ledger: Optional[LedgerBackend] = None) -> QuoteResult:
    """
    Build a quote from a started (unexecuted) job.

    The job's totalCost wins; otherwise the debits in its transaction bytes
    are used when a ledger backend is available to decode them.
    """
    total_cost = DEFAULT_QUOTE_HBAR
    if job.total_cost > 0:
        total_cost = format_tinybar(job.total_cost)
    elif job.transaction_bytes.strip() and ledger is not None:
        try:
            tinybar = transfer_tinybar(decode_transaction_bytes(job.transaction_bytes), ledger)
        except Exception as e:
            logger.debug(f"Could not derive quote from transaction bytes: {e}")
            tinybar = 0
        if tinybar > 0:
            total_cost = format_tinybar(tinybar)

    valid_until = datetime.now(timezone.utc) + QUOTE_VALIDITY
    return QuoteResult(
        total_cost_hbar=total_cost,
        valid_until=valid_until.strftime("%Y-%m-%dT%H:%M:%SZ"),
        transfers=[QuoteTransfer(to="Inscription Service", amount=total_cost, description="Inscription fee")],
    )


def resolve_inscription_cost_summary(
    transaction_id: str,
    network: str,
    mirror_factory: Optional[Callable[[str], MirrorNodeClient]] = None,
) -> Optional[InscriptionCostSummary]:
    """
    Summarize what an executed inscription transaction cost.

    Uses the payer's debit if present, otherwise the sum of credits,
    otherwise the charged fee.

    Returns:
        The summary, or None if the mirror has no usable record yet

    Raises:
        MirrorNodeError: If the mirror lookup fails
    """
    normalized = normalize_transaction_id(transaction_id)
    if not normalized:
        return None

    network = normalize_network(network)
    mirror = mirror_factory(network) if mirror_factory else MirrorNodeClient(network=network)
    transaction = mirror.get_transaction(normalized)
    if transaction is None:
        return None

    payer = normalized.split("-")[0]
    total = 0
    for transfer in transaction.transfers:
        if transfer.account == payer and transfer.amount < 0:
            total = -transfer.amount
            break
    if total <= 0:
        total = sum(t.amount for t in transaction.transfers if t.amount > 0)
    if total <= 0:
        total = transaction.charged_tx_fee
    if total <= 0:
        return None

    total_hbar = format_tinybar(total)
    transfers = [
        QuoteTransfer(
            to=t.account,
            amount=format_tinybar(t.amount),
            description=f"HBAR transfer from {payer}",
        )
        for t in transaction.transfers
        if t.amount > 0
    ]
    if not transfers:
        transfers = [QuoteTransfer(
            to="Hedera network",
            amount=total_hbar,
            description=f"Transaction fee debited from {payer}",
        )]

    return InscriptionCostSummary(total_cost_hbar=total_hbar, transfers=transfers)


def safe_cost_summary(
    transaction_id: str,
    network: str,
    mirror_factory: Optional[Callable[[str], MirrorNodeClient]] = None,
) -> Optional[InscriptionCostSummary]:
    """Cost summary that logs and returns None instead of failing the inscription."""
    try:
        return resolve_inscription_cost_summary(transaction_id, network, mirror_factory)
    except (MirrorNodeError, ValueError) as e:
        logger.warning(f"Could not resolve cost summary for {transaction_id}: {e}")
        return None
