from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class TransactionResponse(BaseModel):
    hash: str
    nonce: int
    input: str
    from_address: str
    to_address: Optional[str] = None
    value: Decimal
    gas_limit: int
    gas_price: int
    timestamp: int
    contract_address: Optional[str] = None
    block_hash: Optional[str] = None
    block_number: Optional[int] = None
    confirmations: Optional[int] = None
    gas_used: Optional[int] = None
    cumulative_gas_used: Optional[int] = None
    is_error: Optional[bool] = None
    transaction_index: Optional[int] = None
    receipt_status: Optional[bool] = None

    model_config = {"from_attributes": True}


class TransactionList(BaseModel):
    transactions: list[TransactionResponse]
    count: int
    next_after_hash: Optional[str] = None


class LastBlockResponse(BaseModel):
    last_block_height: Optional[int] = None
