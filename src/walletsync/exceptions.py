"""Error taxonomy shared by the RPC client, storage layer and sync engine."""


class WalletSyncError(Exception):
    """Base class for all walletsync errors."""


class TransportError(WalletSyncError):
    """Network-level failure talking to the node. Safe to retry."""


class RpcExecutionError(WalletSyncError):
    """The node answered with a JSON-RPC error envelope."""

    def __init__(self, code: int, message: str, data: object = None) -> None:
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message
        self.data = data


class DecodingError(WalletSyncError):
    """Response did not match the expected shape."""


class MalformedHex(DecodingError, ValueError):
    """A hex-encoded field could not be parsed."""


class StorageError(WalletSyncError):
    """A write to the local store failed."""


class SyncInProgressError(WalletSyncError):
    """A sync cycle is already running for this engine."""
