from decimal import Decimal
from typing import Optional

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from walletsync.db.session import Base
from walletsync.db.types import DecimalText

SYNC_STATE_KEY = "sync"


class SyncState(Base):
    """Singleton row holding the sync watermark and last seen gas price."""

    __tablename__ = "sync_state"

    key: Mapped[str] = mapped_column(String(20), primary_key=True, default=SYNC_STATE_KEY)
    last_block_height: Mapped[Optional[int]] = mapped_column(BigInteger, default=None)
    gas_price: Mapped[Optional[Decimal]] = mapped_column(DecimalText, default=None)
