"""Block payload as returned by eth_getBlockByNumber. Never persisted."""

from typing import Any, Optional

from pydantic import BaseModel


class Block(BaseModel):
    number: int
    hash: Optional[str] = None
    timestamp: str  # hex seconds, decoded by TransactionFilter
    transactions: list[Any] = []  # tx objects, or bare hashes when fetched without them
