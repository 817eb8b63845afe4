from decimal import Decimal
from typing import Optional

from sqlalchemy import BigInteger, Boolean, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from walletsync.db.session import Base
from walletsync.db.types import DecimalText

# Stored in place of NULL so (tx_hash, contract_address) can be a primary key
NATIVE_CONTRACT = ""


class Transaction(Base):
    """Transaction touching the watched address.

    One row per (tx_hash, contract_address): a native transfer and each token
    transfer it triggers are distinct rows.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_contract_block", "contract_address", "block_number"),
    )

    tx_hash: Mapped[str] = mapped_column(String(66), primary_key=True)
    contract_address: Mapped[str] = mapped_column(String(42), primary_key=True, default=NATIVE_CONTRACT)
    nonce: Mapped[int] = mapped_column(BigInteger)
    input: Mapped[str] = mapped_column(Text, default="0x")
    from_addr: Mapped[str] = mapped_column(String(42))
    to_addr: Mapped[Optional[str]] = mapped_column(String(42), default=None)
    value: Mapped[Decimal] = mapped_column(DecimalText)
    gas_limit: Mapped[int] = mapped_column(BigInteger)
    gas_price: Mapped[int] = mapped_column(BigInteger)
    timestamp: Mapped[int] = mapped_column(BigInteger)
    block_hash: Mapped[Optional[str]] = mapped_column(String(66), default=None)
    block_number: Mapped[Optional[int]] = mapped_column(BigInteger, default=None, index=True)
    confirmations: Mapped[Optional[int]] = mapped_column(BigInteger, default=None)
    gas_used: Mapped[Optional[int]] = mapped_column(BigInteger, default=None)
    cumulative_gas_used: Mapped[Optional[int]] = mapped_column(BigInteger, default=None)
    is_error: Mapped[Optional[bool]] = mapped_column(Boolean, default=None)
    transaction_index: Mapped[Optional[int]] = mapped_column(Integer, default=None)
    receipt_status: Mapped[Optional[bool]] = mapped_column(Boolean, default=None)
