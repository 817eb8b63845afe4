"""Public read/write API over the local store.

Every method opens its own session; writes run inside a single database
transaction so readers never observe a half-applied change. Write failures,
including values the driver cannot bind, surface as ``StorageError``.
"""

import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import AsyncIterator, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from walletsync.db.repos import BalanceRepo, SyncStateRepo, TransactionRepo
from walletsync.db.session import Base
from walletsync.domain.models.transaction import TransactionRecord
from walletsync.exceptions import StorageError

logger = logging.getLogger(__name__)

# The driver raises OverflowError for ints that do not fit an SQLite INTEGER
_WRITE_ERRORS = (SQLAlchemyError, OverflowError)


class AccountStorage:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _read(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as e:
            raise StorageError(f"Storage read failed: {e}") from e

    @asynccontextmanager
    async def _write(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except _WRITE_ERRORS as e:
            raise StorageError(f"Storage write failed: {e}") from e

    async def create_schema(self) -> None:
        async with self._write() as session:
            conn = await session.connection()
            await conn.run_sync(Base.metadata.create_all)

    # -- reads --

    async def last_block_height(self) -> Optional[int]:
        async with self._read() as session:
            return (await SyncStateRepo(session).get()).last_block_height

    async def gas_price(self) -> Optional[Decimal]:
        async with self._read() as session:
            return (await SyncStateRepo(session).get()).gas_price

    async def balance(self, address: str) -> Optional[Decimal]:
        async with self._read() as session:
            return await BalanceRepo(session).get(address)

    async def transactions(
        self,
        after_hash: Optional[str] = None,
        limit: Optional[int] = None,
        contract_address: Optional[str] = None,
    ) -> list[TransactionRecord]:
        async with self._read() as session:
            return await TransactionRepo(session).query(
                after_hash=after_hash, limit=limit, contract_address=contract_address,
            )

    async def last_synced_block_height(self, is_token: bool) -> Optional[int]:
        async with self._read() as session:
            return await TransactionRepo(session).last_synced_block_height(is_token)

    # -- writes --

    async def set_balance(self, address: str, value: Decimal) -> None:
        async with self._write() as session:
            await BalanceRepo(session).set(address, value)

    async def set_gas_price(self, gas_price: Decimal) -> None:
        async with self._write() as session:
            await SyncStateRepo(session).set_gas_price(gas_price)

    async def set_last_block_height(self, height: int) -> None:
        async with self._write() as session:
            await SyncStateRepo(session).set_last_block_height(height)

    async def save_transactions(self, records: Iterable[TransactionRecord]) -> int:
        async with self._write() as session:
            return await TransactionRepo(session).upsert(records)

    async def commit_sync(self, records: Iterable[TransactionRecord], height: int) -> int:
        """Upsert a fully fetched block range, then advance the watermark to ``height``.

        Both writes share one transaction: either the rows and the new
        watermark are visible together or neither is.
        """
        async with self._write() as session:
            count = await TransactionRepo(session).upsert(records)
            state_repo = SyncStateRepo(session)
            current = (await state_repo.get()).last_block_height
            # Watermark never moves backwards
            if current is not None and height < current:
                logger.warning("Refusing to move watermark back from %d to %d", current, height)
            else:
                await state_repo.set_last_block_height(height)
            return count

    async def clear(self) -> None:
        """Remove all transactions, balances and sync state in one transaction."""
        async with self._write() as session:
            await SyncStateRepo(session).delete_all()
            await BalanceRepo(session).delete_all()
            await TransactionRepo(session).delete_all()
        logger.info("Cleared account storage")
