"""
Data models for mirror node responses.
"""
from typing import Dict, Any, List
from pydantic import BaseModel, ConfigDict, Field, field_validator


class AccountInfo(BaseModel):
    """Account record as returned by /api/v1/accounts/{id}"""
    model_config = ConfigDict(extra="ignore")

    account: str = ""
    key: Dict[str, Any] = Field(default_factory=dict)
    memo: str = ""

    @field_validator("key", mode="before")
    @classmethod
    def _null_key(cls, value: Any) -> Dict[str, Any]:
        return value if isinstance(value, dict) else {}

    @property
    def key_type(self) -> str:
        """Key algorithm hint such as "ED25519" or "ECDSA_SECP256K1" (may be empty)"""
        value = self.key.get("_type") if self.key else None
        return value if isinstance(value, str) else ""


class MirrorTransfer(BaseModel):
    """Single HBAR transfer line in a mirror transaction"""
    model_config = ConfigDict(extra="ignore")

    account: str
    amount: int
    is_approval: bool = False


class MirrorTransaction(BaseModel):
    """Transaction record as returned by /api/v1/transactions/{id}"""
    model_config = ConfigDict(extra="ignore")

    transaction_id: str = ""
    result: str = ""
    charged_tx_fee: int = 0
    transfers: List[MirrorTransfer] = Field(default_factory=list)
