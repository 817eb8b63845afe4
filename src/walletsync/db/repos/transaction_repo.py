from typing import Iterable, Optional

from sqlalchemy import BigInteger, Integer, delete, func, literal, select, tuple_
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.ext.asyncio import AsyncSession

from walletsync.db.models.transaction import NATIVE_CONTRACT, Transaction
from walletsync.domain.models.transaction import TransactionRecord

# SQLite caps bound parameters per statement; 18 columns * 500 rows stays well under it
UPSERT_CHUNK_SIZE = 500

# Unmined rows (no block yet) sort ahead of every mined block
_PENDING_BLOCK = 2**63 - 1


def _contract_key(contract_address: Optional[str]) -> str:
    return contract_address.lower() if contract_address else NATIVE_CONTRACT


def _to_row(record: TransactionRecord) -> dict:
    return {
        "tx_hash": record.hash,
        "contract_address": _contract_key(record.contract_address),
        "nonce": record.nonce,
        "input": record.input,
        "from_addr": record.from_address.lower(),
        "to_addr": record.to_address.lower() if record.to_address else None,
        "value": record.value,
        "gas_limit": record.gas_limit,
        "gas_price": record.gas_price,
        "timestamp": record.timestamp,
        "block_hash": record.block_hash,
        "block_number": record.block_number,
        "confirmations": record.confirmations,
        "gas_used": record.gas_used,
        "cumulative_gas_used": record.cumulative_gas_used,
        "is_error": record.is_error,
        "transaction_index": record.transaction_index,
        "receipt_status": record.receipt_status,
    }


def _to_record(tx: Transaction) -> TransactionRecord:
    return TransactionRecord(
        hash=tx.tx_hash,
        nonce=tx.nonce,
        input=tx.input,
        from_address=tx.from_addr,
        to_address=tx.to_addr,
        value=tx.value,
        gas_limit=tx.gas_limit,
        gas_price=tx.gas_price,
        timestamp=tx.timestamp,
        contract_address=tx.contract_address or None,
        block_hash=tx.block_hash,
        block_number=tx.block_number,
        confirmations=tx.confirmations,
        gas_used=tx.gas_used,
        cumulative_gas_used=tx.cumulative_gas_used,
        is_error=tx.is_error,
        transaction_index=tx.transaction_index,
        receipt_status=tx.receipt_status,
    )


def _sort_key():
    return (
        func.coalesce(Transaction.block_number, literal(_PENDING_BLOCK, BigInteger)),
        func.coalesce(Transaction.transaction_index, literal(-1, Integer)),
        Transaction.tx_hash,
    )


class TransactionRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def upsert(self, records: Iterable[TransactionRecord]) -> int:
        """Insert records, fully replacing any row with the same (hash, contract_address)."""
        rows = [_to_row(r) for r in records]
        for start in range(0, len(rows), UPSERT_CHUNK_SIZE):
            chunk = rows[start:start + UPSERT_CHUNK_SIZE]
            stmt = insert(Transaction).values(chunk)
            stmt = stmt.on_conflict_do_update(
                index_elements=[Transaction.tx_hash, Transaction.contract_address],
                set_={
                    col.name: stmt.excluded[col.name]
                    for col in Transaction.__table__.columns
                    if not col.primary_key
                },
            )
            await self._session.execute(stmt)
        return len(rows)

    async def get(self, tx_hash: str, contract_address: Optional[str] = None) -> Optional[TransactionRecord]:
        result = await self._session.execute(
            select(Transaction).where(
                Transaction.tx_hash == tx_hash,
                Transaction.contract_address == _contract_key(contract_address),
            ).execution_options(populate_existing=True)
        )
        tx = result.scalar_one_or_none()
        return _to_record(tx) if tx is not None else None

    async def query(
        self,
        after_hash: Optional[str] = None,
        limit: Optional[int] = None,
        contract_address: Optional[str] = None,
    ) -> list[TransactionRecord]:
        """Transactions of one contract partition, newest first.

        Order is descending by (block_number, transaction_index, hash) with
        unmined rows first. ``after_hash`` continues strictly after that row;
        an unknown hash yields an empty page.
        """
        if limit is not None and limit <= 0:
            return []

        key = _contract_key(contract_address)
        sort_key = _sort_key()
        stmt = select(Transaction).where(Transaction.contract_address == key)

        if after_hash is not None:
            anchor_result = await self._session.execute(
                select(*sort_key).where(
                    Transaction.tx_hash == after_hash,
                    Transaction.contract_address == key,
                )
            )
            anchor = anchor_result.one_or_none()
            if anchor is None:
                return []
            stmt = stmt.where(tuple_(*sort_key) < tuple_(*anchor))

        stmt = stmt.order_by(*(col.desc() for col in sort_key)).execution_options(populate_existing=True)
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self._session.execute(stmt)
        return [_to_record(tx) for tx in result.scalars().all()]

    async def last_synced_block_height(self, is_token: bool) -> Optional[int]:
        """Highest stored block among token (or native) transactions."""
        if is_token:
            predicate = Transaction.contract_address != NATIVE_CONTRACT
        else:
            predicate = Transaction.contract_address == NATIVE_CONTRACT
        result = await self._session.execute(
            select(func.max(Transaction.block_number)).where(predicate)
        )
        return result.scalar_one_or_none()

    async def count(self) -> int:
        result = await self._session.execute(select(func.count()).select_from(Transaction))
        return result.scalar_one()

    async def delete_all(self) -> None:
        await self._session.execute(delete(Transaction))
