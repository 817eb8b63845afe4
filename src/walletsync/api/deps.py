from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from walletsync.container import Container
from walletsync.db.storage import AccountStorage
from walletsync.sync.engine import SyncEngine


@inject
async def get_storage(
    storage: AccountStorage = Depends(Provide[Container.storage]),
) -> AccountStorage:
    return storage


@inject
async def get_sync_engine(
    engine: SyncEngine = Depends(Provide[Container.sync_engine]),
) -> SyncEngine:
    return engine
