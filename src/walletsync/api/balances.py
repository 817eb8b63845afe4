from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from walletsync.api.deps import get_storage, get_sync_engine
from walletsync.api.schemas.balances import BalanceResponse, BalanceUpdate
from walletsync.db.storage import AccountStorage
from walletsync.exceptions import WalletSyncError
from walletsync.sync.engine import SyncEngine

router = APIRouter(prefix="/api/balances", tags=["balances"])

StorageDep = Annotated[AccountStorage, Depends(get_storage)]


@router.post("/refresh", response_model=BalanceResponse)
async def refresh_balance(engine: Annotated[SyncEngine, Depends(get_sync_engine)]) -> BalanceResponse:
    """Fetch the watched address's balance from the node and store it."""
    try:
        value = await engine.refresh_balance()
    except WalletSyncError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return BalanceResponse(address=engine.address, value=value)


@router.get("/{address}", response_model=BalanceResponse)
async def get_balance(address: str, storage: StorageDep) -> BalanceResponse:
    value = await storage.balance(address)
    if value is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Balance not found")
    return BalanceResponse(address=address.lower(), value=value)


@router.put("/{address}", response_model=BalanceResponse)
async def set_balance(address: str, body: BalanceUpdate, storage: StorageDep) -> BalanceResponse:
    await storage.set_balance(address, body.value)
    return BalanceResponse(address=address.lower(), value=body.value)
