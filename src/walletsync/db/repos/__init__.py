from walletsync.db.repos.balance_repo import BalanceRepo
from walletsync.db.repos.sync_state_repo import SyncStateRepo
from walletsync.db.repos.transaction_repo import TransactionRepo

__all__ = [
    "BalanceRepo",
    "SyncStateRepo",
    "TransactionRepo",
]
