from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from walletsync.api.deps import get_storage
from walletsync.api.schemas.transactions import LastBlockResponse, TransactionList, TransactionResponse
from walletsync.db.storage import AccountStorage

router = APIRouter(prefix="/api/transactions", tags=["transactions"])

StorageDep = Annotated[AccountStorage, Depends(get_storage)]


@router.get("", response_model=TransactionList)
async def list_transactions(
    storage: StorageDep,
    after_hash: Optional[str] = Query(None, description="Continue after this transaction hash"),
    contract_address: Optional[str] = Query(None, description="Token contract; omit for native transfers"),
    limit: int = Query(50, ge=1, le=500),
) -> TransactionList:
    records = await storage.transactions(after_hash=after_hash, limit=limit, contract_address=contract_address)
    return TransactionList(
        transactions=[TransactionResponse.model_validate(r.model_dump()) for r in records],
        count=len(records),
        next_after_hash=records[-1].hash if len(records) == limit else None,
    )


@router.get("/last-block", response_model=LastBlockResponse)
async def last_synced_block(
    storage: StorageDep,
    token: bool = Query(False, description="Token transfers instead of native transactions"),
) -> LastBlockResponse:
    return LastBlockResponse(last_block_height=await storage.last_synced_block_height(is_token=token))
