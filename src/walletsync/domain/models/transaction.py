"""Canonical transaction record shared by the filter, storage and API layers."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class TransactionRecord(BaseModel):
    """A transaction touching the watched address.

    Identity is (hash, contract_address). contract_address None marks a
    native-asset transfer; a token transfer triggered by the same
    transaction is stored as a separate record under the token's address.
    """

    model_config = {"frozen": True, "from_attributes": True}

    hash: str
    nonce: int
    input: str = "0x"
    from_address: str
    to_address: Optional[str] = None
    value: Decimal  # wei
    gas_limit: int
    gas_price: int
    timestamp: int  # Unix epoch seconds
    contract_address: Optional[str] = None
    block_hash: Optional[str] = None
    block_number: Optional[int] = None
    confirmations: Optional[int] = None
    gas_used: Optional[int] = None
    cumulative_gas_used: Optional[int] = None
    is_error: Optional[bool] = None  # None = not yet known
    transaction_index: Optional[int] = None
    receipt_status: Optional[bool] = None

    @property
    def is_token_transfer(self) -> bool:
        return self.contract_address is not None
