from walletsync.db.models.balance import Balance
from walletsync.db.models.sync_state import SyncState
from walletsync.db.models.transaction import Transaction

__all__ = [
    "Balance",
    "SyncState",
    "Transaction",
]
