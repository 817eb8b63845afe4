from typing import Annotated

from fastapi import APIRouter, Depends, status

from walletsync.api.deps import get_storage
from walletsync.db.storage import AccountStorage

router = APIRouter(prefix="/api/account", tags=["account"])


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def reset_account(storage: Annotated[AccountStorage, Depends(get_storage)]) -> None:
    """Drop all stored transactions, balances and sync progress."""
    await storage.clear()
