from decimal import Decimal
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.ext.asyncio import AsyncSession

from walletsync.db.models.balance import Balance


class BalanceRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, address: str) -> Optional[Decimal]:
        result = await self._session.execute(
            select(Balance.value).where(Balance.address == address.lower())
        )
        return result.scalar_one_or_none()

    async def set(self, address: str, value: Decimal) -> None:
        stmt = insert(Balance).values(address=address.lower(), value=value)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Balance.address],
            set_={"value": stmt.excluded.value},
        )
        await self._session.execute(stmt)

    async def delete_all(self) -> None:
        await self._session.execute(delete(Balance))
