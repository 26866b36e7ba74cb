"""
Operator private key resolution.

The mirror node tells us whether an account holds an ED25519 or ECDSA key;
that hint decides how the raw key string is parsed.
"""
import logging
from typing import Any, Callable, Optional

from ..mirror import MirrorNodeClient, MirrorNodeError
from .exceptions import KeyResolutionError
from .ledger import KEY_TYPE_ANY, KEY_TYPE_ECDSA, KEY_TYPE_ED25519, LedgerBackend

logger = logging.getLogger(__name__)

MirrorClientFactory = Callable[[str], MirrorNodeClient]


def _default_mirror_factory(network: str) -> MirrorNodeClient:
    return MirrorNodeClient(network=network)


class KeyTypeResolver:
    """
    Resolves the operator's key type and parses its private key.

    Args:
        ledger: Backend used to parse key material
        mirror_factory: Builds a mirror client for a network name
    """

    def __init__(
        self,
        ledger: LedgerBackend,
        mirror_factory: Optional[MirrorClientFactory] = None,
    ):
        self.ledger = ledger
        self.mirror_factory = mirror_factory or _default_mirror_factory

    def resolve(self, network: str, account_id: str) -> str:
        """
        Look up the key type hint for an account.

        Returns:
            The mirror's key "_type" (e.g. "ED25519", "ECDSA_SECP256K1"), or ""
            if the account key carries none

        Raises:
            KeyResolutionError: If the mirror lookup fails
        """
        try:
            account = self.mirror_factory(network).get_account(account_id)
        except (MirrorNodeError, ValueError) as e:
            raise KeyResolutionError(
                f"failed to fetch account key metadata from mirror node: {e}"
            ) from e
        return account.key_type

    def parse_operator_private_key(self, network: str, account_id: str, raw_key: str) -> Any:
        """
        Parse the operator's private key using the mirror key type hint.

        A hint containing "ecdsa" or "ed25519" forces that parser with no
        fallback. Without a usable hint, ED25519, ECDSA and the generic
        parser are tried in that order.

        Args:
            network: Normalized network name
            account_id: Operator account
            raw_key: Private key string

        Returns:
            The backend's private key object

        Raises:
            KeyResolutionError: If the hint cannot be fetched or no parser accepts the key
        """
        hint = self.resolve(network, account_id)

        trimmed = (raw_key or "").strip()
        if not trimmed:
            raise KeyResolutionError("private key cannot be empty")

        lower_hint = hint.strip().lower()
        if KEY_TYPE_ECDSA in lower_hint:
            return self._parse_strict(trimmed, KEY_TYPE_ECDSA, "ECDSA", account_id)
        if KEY_TYPE_ED25519 in lower_hint:
            return self._parse_strict(trimmed, KEY_TYPE_ED25519, "ED25519", account_id)

        logger.debug(f"No key type hint for account {account_id}; trying all parsers")
        failures = []
        for key_type, name in (
            (KEY_TYPE_ED25519, "ED25519"),
            (KEY_TYPE_ECDSA, "ECDSA"),
            (KEY_TYPE_ANY, "generic"),
        ):
            try:
                return self.ledger.parse_private_key(trimmed, key_type)
            except ValueError as e:
                failures.append(f"{name}: {e}")

        raise KeyResolutionError(
            f"failed to parse private key for account {account_id} ({'; '.join(failures)})"
        )

    def _parse_strict(self, raw_key: str, key_type: str, name: str, account_id: str) -> Any:
        try:
            return self.ledger.parse_private_key(raw_key, key_type)
        except ValueError as e:
            raise KeyResolutionError(
                f"failed to parse private key as {name} for account {account_id}: {e}"
            ) from e
