"""
Optional dependency checks for the inscriber module.

The ledger SDK and the socket.io client are heavy optional extras; they are
imported lazily by the modules that need them.
"""
import logging

logger = logging.getLogger(__name__)


def ensure_hiero_installed():
    """
    Check if the Hiero ledger SDK is installed.
    Raises ImportError with installation instructions if not found.
    """
    try:
        import hiero_sdk_python  # noqa: F401
        return True
    except ImportError:
        raise ImportError(
            "Ledger execution requires additional dependencies: hiero-sdk-python. "
            "Please install with: pip install standards-sdk[hedera]"
        )


def ensure_socketio_installed():
    """
    Check if the socket.io client is installed.
    Raises ImportError with installation instructions if not found.
    """
    try:
        import socketio  # noqa: F401
        return True
    except ImportError:
        raise ImportError(
            "Event stream tracking requires additional dependencies: python-socketio. "
            "Please install with: pip install standards-sdk[websocket]"
        )
