"""
MirrorNodeClient - read-only access to the ledger's REST index.
"""
import logging
import os
import urllib.parse
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..shared.network import NETWORK_MAINNET, normalize_network
from .models import AccountInfo, MirrorTransaction

logger = logging.getLogger(__name__)

MAINNET_MIRROR_URL = "https://mainnet-public.mirrornode.hedera.com"
TESTNET_MIRROR_URL = "https://testnet.mirrornode.hedera.com"


class MirrorNodeError(Exception):
    """Raised when a mirror node request fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class MirrorNodeClient:
    """
    Client for the mirror node REST API.

    Only the handful of reads the inscriber needs are implemented:
    account lookups (for key-type hints) and transaction lookups
    (for cost summaries).
    """

    def __init__(
        self,
        network: str = "testnet",
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[int] = None,
        retry_count: int = 3,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize the mirror node client.

        Args:
            network: "mainnet" or "testnet"; selects the default base URL
            base_url: Explicit mirror node URL (overrides network default)
            session: Optional pre-configured requests session
            timeout: Request timeout in seconds (default: MIRROR_NODE_TIMEOUT or 30)
            retry_count: Number of retries for 5xx responses and connection errors
            headers: Extra headers sent on every request

        Raises:
            ValueError: If the network or base URL is invalid
        """
        self.network = normalize_network(network)
        if base_url is None:
            base_url = MAINNET_MIRROR_URL if self.network == NETWORK_MAINNET else TESTNET_MIRROR_URL

        parsed = urllib.parse.urlparse(base_url.strip())
        if parsed.scheme not in ("http", "https"):
            raise ValueError("invalid mirror base URL: scheme must be http or https")
        if not parsed.netloc:
            raise ValueError("invalid mirror base URL: host is required")

        self.base_url = base_url.strip().rstrip("/")
        self.timeout = timeout or int(os.environ.get("MIRROR_NODE_TIMEOUT", "30"))
        self.headers = dict(headers or {})

        if session is None:
            session = requests.Session()
            retries = Retry(
                total=retry_count,
                backoff_factor=0.5,
                status_forcelist=[500, 502, 503, 504],
                allowed_methods=["GET"],
                raise_on_status=False,
            )
            session.mount("http://", HTTPAdapter(max_retries=retries))
            session.mount("https://", HTTPAdapter(max_retries=retries))
        self.session = session

    def get_account(self, account_id: str) -> AccountInfo:
        """
        Fetch an account record.

        Args:
            account_id: Account identifier (e.g. "0.0.1234")

        Returns:
            AccountInfo with the account's key structure

        Raises:
            ValueError: If account_id is empty
            MirrorNodeError: If the request fails
        """
        normalized = (account_id or "").strip()
        if not normalized:
            raise ValueError("account ID is required")
        data = self._get_json(f"/api/v1/accounts/{urllib.parse.quote(normalized)}")
        return AccountInfo.model_validate(data)

    def get_transaction(self, transaction_id: str) -> Optional[MirrorTransaction]:
        """
        Fetch the first record for a transaction ID.

        Args:
            transaction_id: Transaction ID in mirror form ("0.0.1-123-456")

        Returns:
            The transaction record, or None if the mirror has none yet

        Raises:
            MirrorNodeError: If the request fails
        """
        normalized = (transaction_id or "").strip()
        if not normalized:
            raise ValueError("transaction ID is required")
        data = self._get_json(f"/api/v1/transactions/{urllib.parse.quote(normalized)}")
        transactions = data.get("transactions") if isinstance(data, dict) else None
        if not transactions:
            return None
        return MirrorTransaction.model_validate(transactions[0])

    def _get_json(self, path: str) -> Any:
        url = f"{self.base_url}{path}"
        headers = {"Accept": "application/json", **self.headers}
        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Mirror node request failed: {e}")
            raise MirrorNodeError(f"mirror node GET {path} failed: {e}") from e

        if response.status_code < 200 or response.status_code >= 300:
            raise MirrorNodeError(
                f"mirror node GET {path} failed with status {response.status_code}: {response.text.strip()}",
                response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise MirrorNodeError(f"invalid JSON from mirror node: {e}") from e
