from decimal import Decimal

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from walletsync.db.session import Base
from walletsync.db.types import DecimalText


class Balance(Base):
    """Latest known balance (wei) per address. Replaced wholesale, never adjusted."""

    __tablename__ = "balances"

    address: Mapped[str] = mapped_column(String(42), primary_key=True)
    value: Mapped[Decimal] = mapped_column(DecimalText)
