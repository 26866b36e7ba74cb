"""
Mirror node REST client.
"""
from .client import MirrorNodeClient, MirrorNodeError
from .models import AccountInfo, MirrorTransaction, MirrorTransfer

__all__ = ["MirrorNodeClient", "MirrorNodeError", "AccountInfo", "MirrorTransaction", "MirrorTransfer"]
