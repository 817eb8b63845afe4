from walletsync.domain.enums.status import SyncPhase, SyncStatus

__all__ = [
    "SyncPhase",
    "SyncStatus",
]
