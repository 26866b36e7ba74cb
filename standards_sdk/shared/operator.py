"""
Operator credentials used to pay for and sign ledger transactions.
"""
from dataclasses import dataclass, field


@dataclass(frozen=True)
class LedgerConfig:
    """
    Payer account, private key and network for executing transactions.

    Attributes:
        account_id: Operator account in shard.realm.num form
        private_key: Private key string (DER or raw hex)
        network: "mainnet" or "testnet"
    """
    account_id: str
    private_key: str = field(repr=False)
    network: str = "testnet"
