"""Abstract node access used by the sync engine."""

from abc import ABC, abstractmethod

from walletsync.domain.models.block import Block
from walletsync.infra.blockchain.evm.block_tag import BlockTag


class ChainClient(ABC):
    """Read-only view of a remote node."""

    @abstractmethod
    async def fetch_chain_tip(self) -> int:
        """Height of the newest block known to the node."""

    @abstractmethod
    async def fetch_block(self, height: int, include_transactions: bool = True) -> Block:
        """Block at ``height`` with full transaction objects."""

    @abstractmethod
    async def fetch_gas_price(self) -> int:
        """Current gas price in wei."""

    @abstractmethod
    async def fetch_balance(self, address: str, block: BlockTag = BlockTag.LATEST) -> int:
        """Native balance of ``address`` in wei."""

    # A plain node exposes no indexed history for these; indexer-backed clients may override.

    async def fetch_internal_transactions(self, start_block: int) -> list[dict]:
        return []

    async def fetch_token_transfers(self, start_block: int) -> list[dict]:
        return []

    async def fetch_nft_transfers(self, start_block: int) -> list[dict]:
        return []
