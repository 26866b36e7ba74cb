"""
Helpers shared by the standards SDK packages.
"""
from .network import NETWORK_MAINNET, NETWORK_TESTNET, normalize_network
from .operator import LedgerConfig

__all__ = ["NETWORK_MAINNET", "NETWORK_TESTNET", "normalize_network", "LedgerConfig"]
