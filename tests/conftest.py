"""
Pytest fixtures for the standards SDK tests.

The ledger and the event stream are replaced by in-memory fakes so the
execution strategies and the wait loops can be driven deterministically.
"""
import re
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from standards_sdk.inscriber._rate_limited_log import reset_rate_limits
from standards_sdk.inscriber.executor import TransactionExecutor
from standards_sdk.inscriber.keys import KeyTypeResolver
from standards_sdk.inscriber.ledger import (
    HbarTransfer,
    LedgerBackend,
    LedgerReceipt,
    NftTransfer,
    RebuildContext,
    TokenTransfer,
)
from standards_sdk.inscriber.stream import EventSource
from standards_sdk.mirror import AccountInfo, MirrorNodeClient

OPERATOR_ACCOUNT = "0.0.100"
OPERATOR_KEY = "302e020100300506032b657004220420" + "11" * 32
TX_TIMESTAMP = "1700000000.000000001"


class FakeClient:
    """Stand-in for a ledger network client"""

    def __init__(self, network: str):
        self.network = network
        self.operator = None


class FakeTransaction:
    """Decoded transaction recording what was done to it"""

    def __init__(self, raw: bytes, is_transfer: bool = True, payer: str = OPERATOR_ACCOUNT):
        self.raw = raw
        self.is_transfer = is_transfer
        self.payer = payer
        self.transaction_id = f"{payer}@{TX_TIMESTAMP}"
        self.signatures: List[Any] = []
        self.frozen_with: Optional[FakeClient] = None
        self.rebuilt = False


class FakeLedgerBackend(LedgerBackend):
    """
    In-memory ledger.

    `execute_results` is consumed one entry per execute call: an exception
    instance is raised, a string is used as the receipt status, and an
    exhausted list means SUCCESS.
    """

    def __init__(
        self,
        execute_results: Optional[List[Any]] = None,
        payer: str = OPERATOR_ACCOUNT,
        is_transfer: bool = True,
        key_failures: Optional[Dict[str, str]] = None,
        decode_error: Optional[Exception] = None,
    ):
        self.execute_results = list(execute_results or [])
        self.payer = payer
        self.is_transfer = is_transfer
        self.key_failures = dict(key_failures or {})
        self.decode_error = decode_error
        self.clients: List[FakeClient] = []
        self.executed: List[Any] = []
        self.parsed_key_types: List[str] = []
        self.rebuild_contexts: List[RebuildContext] = []

    def new_client(self, network):
        client = FakeClient(network)
        self.clients.append(client)
        return client

    def set_operator(self, client, account_id, private_key):
        client.operator = (account_id, private_key)

    def parse_account_id(self, raw):
        if not re.match(r"^\d+\.\d+\.\d+$", raw):
            raise ValueError(f"malformed account id {raw!r}")
        return raw

    def parse_private_key(self, raw, key_type=""):
        self.parsed_key_types.append(key_type)
        if key_type in self.key_failures:
            raise ValueError(self.key_failures[key_type])
        return f"{key_type or 'generic'}:{raw}"

    def decode_transaction(self, raw):
        if self.decode_error is not None:
            raise self.decode_error
        return FakeTransaction(raw, is_transfer=self.is_transfer, payer=self.payer)

    def sign(self, transaction, private_key):
        transaction.signatures.append(private_key)
        return transaction

    def execute(self, transaction, client):
        self.executed.append((transaction, client))
        outcome = self.execute_results.pop(0) if self.execute_results else "SUCCESS"
        if isinstance(outcome, BaseException):
            raise outcome
        return transaction, outcome

    def get_receipt(self, response, client):
        transaction, status = response
        return LedgerReceipt(status=status, transaction_id=transaction.transaction_id)

    def transfer_context(self, transaction):
        if not transaction.is_transfer:
            return None
        return RebuildContext(
            transaction_id=transaction.transaction_id,
            payer_account_id=transaction.payer,
            node_account_ids=("0.0.3",),
            memo="inscription",
            valid_duration=120,
            max_fee=200_000_000,
            hbar_transfers=(HbarTransfer("0.0.100", -150_000_000), HbarTransfer("0.0.200", 150_000_000)),
            token_transfers=(TokenTransfer("0.0.500", "0.0.100", -1, is_approved=True),),
            nft_transfers=(NftTransfer("0.0.600", "0.0.100", "0.0.200", 7),),
        )

    def build_transfer(self, context):
        self.rebuild_contexts.append(context)
        rebuilt = FakeTransaction(b"rebuilt", payer=context.payer_account_id)
        rebuilt.rebuilt = True
        return rebuilt

    def freeze(self, transaction, client):
        transaction.frozen_with = client
        return transaction


class FakeEventSource(EventSource):
    """EventSource that replays scripted events as soon as it connects"""

    def __init__(self, events=(), connect_error: Optional[Exception] = None):
        self.events = list(events)
        self.connect_error = connect_error
        self.handlers: Dict[str, List[Any]] = {}
        self.connected_url: Optional[str] = None
        self.api_key: Optional[str] = None
        self.disconnected = False

    def on(self, event, handler):
        self.handlers.setdefault(event, []).append(handler)

    def connect(self, url, api_key):
        if self.connect_error is not None:
            raise self.connect_error
        self.connected_url = url
        self.api_key = api_key
        for name, payload in self.events:
            self.emit(name, payload)

    def emit(self, name, payload):
        for handler in self.handlers.get(name, []):
            handler(payload)

    def disconnect(self):
        self.disconnected = True


def make_mirror_factory(key_type: str = "ED25519", error: Optional[Exception] = None):
    """Mirror factory whose clients report `key_type` for every account."""
    mirror = MagicMock(spec=MirrorNodeClient)
    if error is not None:
        mirror.get_account.side_effect = error
    else:
        key = {"_type": key_type, "key": "ab" * 32} if key_type else {}
        mirror.get_account.return_value = AccountInfo(account=OPERATOR_ACCOUNT, key=key)
    factory = MagicMock(return_value=mirror)
    factory.mirror = mirror
    return factory


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    reset_rate_limits()
    yield
    reset_rate_limits()


@pytest.fixture
def fake_ledger():
    return FakeLedgerBackend()


@pytest.fixture
def mirror_factory():
    return make_mirror_factory("ED25519")


@pytest.fixture
def make_executor(mirror_factory):
    """Build a TransactionExecutor around a FakeLedgerBackend."""

    def _make(ledger: FakeLedgerBackend, factory=None) -> TransactionExecutor:
        resolver = KeyTypeResolver(ledger, mirror_factory=factory or mirror_factory)
        return TransactionExecutor(ledger, key_resolver=resolver)

    return _make


@pytest.fixture
def event_source_factory():
    """Returns (factory, sources); sources collects every FakeEventSource created."""

    def _make(events=(), connect_error=None):
        sources: List[FakeEventSource] = []

        def factory():
            source = FakeEventSource(events, connect_error=connect_error)
            sources.append(source)
            return source

        return factory, sources

    return _make


@pytest.fixture
def make_ledger():
    """The FakeLedgerBackend class, for tests that script execute outcomes."""
    return FakeLedgerBackend


@pytest.fixture
def mirror_factory_for():
    return make_mirror_factory
