"""
Network name handling.
"""
NETWORK_MAINNET = "mainnet"
NETWORK_TESTNET = "testnet"


def normalize_network(network: str) -> str:
    """
    Normalize a ledger network name.

    An empty name selects testnet.

    Args:
        network: Network name (case-insensitive)

    Returns:
        "mainnet" or "testnet"

    Raises:
        ValueError: If the network is not supported
    """
    normalized = (network or "").strip().lower()
    if not normalized:
        return NETWORK_TESTNET
    if normalized in (NETWORK_MAINNET, NETWORK_TESTNET):
        return normalized
    raise ValueError(f"unsupported network {network!r}")
