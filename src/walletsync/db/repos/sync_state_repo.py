from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.ext.asyncio import AsyncSession

from walletsync.db.models.sync_state import SYNC_STATE_KEY, SyncState


class SyncStateRepo:
    """Watermark store: the single row recording where sync left off."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self) -> SyncState:
        """Return the stored state, or an unsaved empty one if none exists yet."""
        result = await self._session.execute(
            select(SyncState)
            .where(SyncState.key == SYNC_STATE_KEY)
            .execution_options(populate_existing=True)
        )
        state = result.scalar_one_or_none()
        if state is None:
            return SyncState(key=SYNC_STATE_KEY, last_block_height=None, gas_price=None)
        return state

    async def set_last_block_height(self, height: int) -> None:
        await self._replace_column("last_block_height", height)

    async def set_gas_price(self, gas_price: Decimal) -> None:
        await self._replace_column("gas_price", Decimal(gas_price))

    async def _replace_column(self, column: str, value) -> None:
        # Single statement, so concurrent writers of different columns never clobber each other
        stmt = insert(SyncState).values({"key": SYNC_STATE_KEY, column: value})
        stmt = stmt.on_conflict_do_update(
            index_elements=[SyncState.key],
            set_={column: stmt.excluded[column]},
        )
        await self._session.execute(stmt)

    async def delete_all(self) -> None:
        await self._session.execute(delete(SyncState))
