"""Incremental sync: fetch blocks past the watermark, keep relevant transactions, commit."""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential
from tenacity.wait import wait_base

from walletsync.db.storage import AccountStorage
from walletsync.domain.enums import SyncPhase, SyncStatus
from walletsync.domain.models.block import Block
from walletsync.domain.models.transaction import TransactionRecord
from walletsync.exceptions import SyncInProgressError, TransportError, WalletSyncError
from walletsync.infra.blockchain.base import ChainClient
from walletsync.infra.blockchain.evm.tx_filter import TransactionFilter

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class SyncOutcome:
    status: SyncStatus
    from_block: Optional[int] = None
    to_block: Optional[int] = None
    new_tx_count: int = 0
    error: Optional[WalletSyncError] = None

    @property
    def ok(self) -> bool:
        return self.status != SyncStatus.FAILED


class SyncEngine:
    """Drives one watched address from its watermark up to the chain tip.

    A cycle either commits every relevant transaction in
    [watermark + 1, tip] together with the new watermark, or changes nothing.
    Cycles are not re-entrant.
    """

    def __init__(
        self,
        chain_client: ChainClient,
        storage: AccountStorage,
        address: str,
        block_lookahead: int = 1,
        max_blocks_per_cycle: Optional[int] = None,
        initial_watermark: int = 0,
        refresh_attempts: int = 3,
        refresh_wait: Optional[wait_base] = None,
    ) -> None:
        if not address:
            raise ValueError("A watched address is required")
        if block_lookahead < 1:
            raise ValueError("block_lookahead must be >= 1")
        if max_blocks_per_cycle is not None and max_blocks_per_cycle < 1:
            raise ValueError("max_blocks_per_cycle must be >= 1")
        self._client = chain_client
        self._storage = storage
        self._filter = TransactionFilter(address)
        self._lookahead = block_lookahead
        self._max_blocks = max_blocks_per_cycle
        self._initial_watermark = initial_watermark
        self._refresh_attempts = refresh_attempts
        self._refresh_wait = refresh_wait or wait_exponential(multiplier=1, min=1, max=10)
        self._lock = asyncio.Lock()
        self.phase = SyncPhase.IDLE

    @property
    def address(self) -> str:
        return self._filter.address

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def run_sync_cycle(self) -> SyncOutcome:
        """Run one cycle. Raises SyncInProgressError if a cycle is already running."""
        if self._lock.locked():
            raise SyncInProgressError(f"Sync already running for {self.address}")

        async with self._lock:
            outcome = SyncOutcome(status=SyncStatus.FAILED)
            try:
                await self._run(outcome)
            except WalletSyncError as e:
                self.phase = SyncPhase.FAILED
                outcome.status = SyncStatus.FAILED
                outcome.new_tx_count = 0
                outcome.error = e
                logger.exception(
                    "Sync cycle failed for %s (blocks %s..%s); watermark unchanged",
                    self.address, outcome.from_block, outcome.to_block,
                )
            except Exception:
                self.phase = SyncPhase.FAILED
                raise
            return outcome

    async def _run(self, outcome: SyncOutcome) -> None:
        self.phase = SyncPhase.FETCHING_TIP
        watermark = await self._storage.last_block_height()
        if watermark is None:
            watermark = self._initial_watermark
        tip = await self._client.fetch_chain_tip()
        outcome.from_block = watermark + 1

        if tip <= watermark:
            if tip < watermark:
                logger.warning("Node tip %d is behind local watermark %d; skipping", tip, watermark)
            self.phase = SyncPhase.IDLE
            outcome.status = SyncStatus.UP_TO_DATE
            outcome.to_block = watermark
            return

        end = tip if self._max_blocks is None else min(tip, watermark + self._max_blocks)
        outcome.to_block = end

        self.phase = SyncPhase.FETCHING_BLOCKS
        records = await self._fetch_range(watermark + 1, end)

        self.phase = SyncPhase.COMMITTING
        outcome.new_tx_count = await self._storage.commit_sync(records, end)

        self.phase = SyncPhase.IDLE
        outcome.status = SyncStatus.SYNCED
        logger.info(
            "Synced blocks %d..%d for %s: %d relevant TXs (tip=%d)",
            watermark + 1, end, self.address, outcome.new_tx_count, tip,
        )

    async def _fetch_range(self, start: int, end: int) -> list[TransactionRecord]:
        """Fetch and filter [start, end]; at most ``block_lookahead`` fetches in flight.

        Results are filtered in height order regardless of completion order.
        """
        records: list[TransactionRecord] = []
        for window_start in range(start, end + 1, self._lookahead):
            heights = range(window_start, min(window_start + self._lookahead, end + 1))
            for block in await self._fetch_window(heights):
                records.extend(self._filter.filter_block(block))
        return records

    async def _fetch_window(self, heights: range) -> list[Block]:
        tasks = [asyncio.create_task(self._client.fetch_block(h)) for h in heights]
        try:
            return await asyncio.gather(*tasks)
        except Exception:
            # One failed fetch aborts the window; do not leave siblings running
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _with_retry(self, fn: Callable[..., Awaitable[T]], *args: Any) -> T:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(TransportError),
            stop=stop_after_attempt(self._refresh_attempts),
            wait=self._refresh_wait,
            reraise=True,
        )
        return await retrying(fn, *args)

    async def refresh_gas_price(self) -> Decimal:
        """Fetch the node's gas price and store it in the sync state."""
        gas_price = Decimal(await self._with_retry(self._client.fetch_gas_price))
        await self._storage.set_gas_price(gas_price)
        logger.debug("Gas price refreshed: %s wei", gas_price)
        return gas_price

    async def refresh_balance(self) -> Decimal:
        """Fetch the watched address's balance and replace the stored one."""
        balance = Decimal(await self._with_retry(self._client.fetch_balance, self.address))
        await self._storage.set_balance(self.address, balance)
        logger.debug("Balance refreshed for %s: %s wei", self.address, balance)
        return balance
