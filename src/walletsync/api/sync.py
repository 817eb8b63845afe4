from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from walletsync.api.deps import get_storage, get_sync_engine
from walletsync.api.schemas.sync import GasPriceResponse, SyncOutcomeResponse, SyncStateResponse
from walletsync.db.storage import AccountStorage
from walletsync.exceptions import SyncInProgressError, WalletSyncError
from walletsync.sync.engine import SyncEngine

router = APIRouter(prefix="/api/sync", tags=["sync"])

StorageDep = Annotated[AccountStorage, Depends(get_storage)]
EngineDep = Annotated[SyncEngine, Depends(get_sync_engine)]


@router.get("/state", response_model=SyncStateResponse)
async def get_sync_state(storage: StorageDep) -> SyncStateResponse:
    return SyncStateResponse(
        last_block_height=await storage.last_block_height(),
        gas_price=await storage.gas_price(),
    )


@router.post("", response_model=SyncOutcomeResponse)
async def run_sync(engine: EngineDep) -> SyncOutcomeResponse:
    """Run one sync cycle to the current chain tip. A failed cycle is reported, not raised."""
    try:
        outcome = await engine.run_sync_cycle()
    except SyncInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return SyncOutcomeResponse(
        status=outcome.status,
        from_block=outcome.from_block,
        to_block=outcome.to_block,
        new_tx_count=outcome.new_tx_count,
        error=str(outcome.error) if outcome.error else None,
    )


@router.post("/gas-price", response_model=GasPriceResponse)
async def refresh_gas_price(engine: EngineDep) -> GasPriceResponse:
    try:
        gas_price = await engine.refresh_gas_price()
    except WalletSyncError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return GasPriceResponse(gas_price=gas_price)
