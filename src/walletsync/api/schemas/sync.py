from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from walletsync.domain.enums import SyncStatus


class SyncStateResponse(BaseModel):
    last_block_height: Optional[int] = None
    gas_price: Optional[Decimal] = None


class SyncOutcomeResponse(BaseModel):
    status: SyncStatus
    from_block: Optional[int] = None
    to_block: Optional[int] = None
    new_tx_count: int = 0
    error: Optional[str] = None


class GasPriceResponse(BaseModel):
    gas_price: Decimal
