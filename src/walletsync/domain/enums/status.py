from enum import Enum


class SyncPhase(str, Enum):
    """Sync engine state machine."""

    IDLE = "IDLE"
    FETCHING_TIP = "FETCHING_TIP"
    FETCHING_BLOCKS = "FETCHING_BLOCKS"
    COMMITTING = "COMMITTING"
    FAILED = "FAILED"


class SyncStatus(str, Enum):
    """Result of one sync cycle."""

    SYNCED = "SYNCED"
    UP_TO_DATE = "UP_TO_DATE"
    FAILED = "FAILED"
