"""
Standards SDK - inscription execution and completion tracking.
"""
from .version import __version__
from .shared import LedgerConfig, normalize_network
from .mirror import MirrorNodeClient, MirrorNodeError

__all__ = [
    "LedgerConfig",
    "normalize_network",
    "MirrorNodeClient",
    "MirrorNodeError",
    "__version__",
]
