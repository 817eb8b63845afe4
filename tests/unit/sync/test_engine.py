"""Tests for SyncEngine: range selection, all-or-nothing commit, watermark rules."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError
from tenacity import wait_none

from walletsync.db.repos.sync_state_repo import SyncStateRepo
from walletsync.db.repos.transaction_repo import TransactionRepo
from walletsync.domain.enums import SyncPhase, SyncStatus
from walletsync.domain.models.block import Block
from walletsync.exceptions import (
    DecodingError,
    RpcExecutionError,
    StorageError,
    SyncInProgressError,
    TransportError,
)
from walletsync.infra.blockchain.base import ChainClient
from walletsync.sync.engine import SyncEngine

WATCHED = "0x1111111111111111111111111111111111111111"
OTHER = "0x2222222222222222222222222222222222222222"


def _raw_tx(tx_hash: str, from_addr: str = WATCHED, to_addr: str = OTHER, **overrides) -> dict:
    tx = {
        "hash": tx_hash,
        "nonce": "0x1",
        "input": "0x",
        "from": from_addr,
        "to": to_addr,
        "value": "0x1",
        "gas": "0x5208",
        "gasPrice": "0x1",
        "transactionIndex": "0x0",
    }
    tx.update(overrides)
    return tx


def _block(number: int, txs=None, timestamp: str = "0x6553f100") -> Block:
    if txs is None:
        txs = [_raw_tx(f"0xtx{number}")]
    return Block(number=number, hash=f"0xblock{number}", timestamp=timestamp, transactions=txs)


def _chain(tip: int, blocks: dict[int, Block] | None = None, failing: dict[int, Exception] | None = None) -> AsyncMock:
    """Chain client mock serving ``blocks`` (default: one relevant TX per block)."""
    client = AsyncMock(spec=ChainClient)
    client.fetch_chain_tip.return_value = tip
    blocks = blocks or {}
    failing = failing or {}

    async def fetch_block(height: int, include_transactions: bool = True) -> Block:
        if height in failing:
            raise failing[height]
        return blocks.get(height) or _block(height)

    client.fetch_block.side_effect = fetch_block
    return client


def _fetched_heights(client: AsyncMock) -> list[int]:
    return [c.args[0] for c in client.fetch_block.call_args_list]


class TestSyncCycle:
    async def test_syncs_range_and_advances_watermark(self, storage):
        await storage.set_last_block_height(100)
        client = _chain(tip=102)

        outcome = await SyncEngine(client, storage, WATCHED).run_sync_cycle()

        assert outcome.status == SyncStatus.SYNCED
        assert outcome.ok
        assert (outcome.from_block, outcome.to_block) == (101, 102)
        assert outcome.new_tx_count == 2
        assert _fetched_heights(client) == [101, 102]
        assert await storage.last_block_height() == 102
        assert [t.hash for t in await storage.transactions()] == ["0xtx102", "0xtx101"]

    async def test_failed_block_commits_nothing(self, storage):
        await storage.set_last_block_height(100)
        client = _chain(tip=102, failing={102: TransportError("connection reset")})
        engine = SyncEngine(client, storage, WATCHED)

        outcome = await engine.run_sync_cycle()

        assert outcome.status == SyncStatus.FAILED
        assert not outcome.ok
        assert isinstance(outcome.error, TransportError)
        assert outcome.new_tx_count == 0
        assert engine.phase == SyncPhase.FAILED
        assert await storage.transactions() == []
        assert await storage.last_block_height() == 100

    async def test_rpc_error_on_tip(self, storage):
        client = _chain(tip=0)
        client.fetch_chain_tip.side_effect = RpcExecutionError(-32000, "header not found")

        outcome = await SyncEngine(client, storage, WATCHED).run_sync_cycle()

        assert outcome.status == SyncStatus.FAILED
        assert isinstance(outcome.error, RpcExecutionError)
        client.fetch_block.assert_not_called()
        assert await storage.last_block_height() is None

    async def test_undecodable_block_fails_cycle(self, storage):
        await storage.set_last_block_height(10)
        client = _chain(tip=11, blocks={11: _block(11, timestamp="0xnope")})

        outcome = await SyncEngine(client, storage, WATCHED).run_sync_cycle()

        assert outcome.status == SyncStatus.FAILED
        assert isinstance(outcome.error, DecodingError)
        assert await storage.last_block_height() == 10

    async def test_malformed_transaction_skipped(self, storage):
        await storage.set_last_block_height(10)
        block = _block(11, [_raw_tx("0xbad", value="0xzz"), _raw_tx("0xgood")])
        client = _chain(tip=11, blocks={11: block})

        outcome = await SyncEngine(client, storage, WATCHED).run_sync_cycle()

        assert outcome.status == SyncStatus.SYNCED
        assert [t.hash for t in await storage.transactions()] == ["0xgood"]
        assert await storage.last_block_height() == 11

    async def test_oversized_integer_field_skipped(self, storage):
        await storage.set_last_block_height(10)
        block = _block(11, [_raw_tx("0xhuge", gasPrice=hex(2**64)), _raw_tx("0xgood")])
        client = _chain(tip=11, blocks={11: block})

        outcome = await SyncEngine(client, storage, WATCHED).run_sync_cycle()

        assert outcome.status == SyncStatus.SYNCED
        assert outcome.new_tx_count == 1
        assert [t.hash for t in await storage.transactions()] == ["0xgood"]
        assert await storage.last_block_height() == 11

    async def test_irrelevant_blocks_still_advance_watermark(self, storage):
        await storage.set_last_block_height(10)
        client = _chain(tip=12, blocks={
            11: _block(11, [_raw_tx("0xa", from_addr=OTHER, to_addr=OTHER)]),
            12: _block(12, []),
        })

        outcome = await SyncEngine(client, storage, WATCHED).run_sync_cycle()

        assert outcome.new_tx_count == 0
        assert await storage.last_block_height() == 12

    async def test_fresh_store_starts_at_genesis(self, storage):
        client = _chain(tip=3)

        outcome = await SyncEngine(client, storage, WATCHED).run_sync_cycle()

        assert _fetched_heights(client) == [1, 2, 3]
        assert outcome.from_block == 1
        assert await storage.last_block_height() == 3

    async def test_initial_watermark(self, storage):
        client = _chain(tip=1005)

        await SyncEngine(client, storage, WATCHED, initial_watermark=1000).run_sync_cycle()

        assert _fetched_heights(client) == [1001, 1002, 1003, 1004, 1005]

    async def test_phase_returns_to_idle(self, storage):
        engine = SyncEngine(_chain(tip=2), storage, WATCHED)

        await engine.run_sync_cycle()

        assert engine.phase == SyncPhase.IDLE


class TestWatermarkRules:
    async def test_tip_behind_watermark_is_noop(self, storage):
        await storage.set_last_block_height(100)
        client = _chain(tip=90)

        outcome = await SyncEngine(client, storage, WATCHED).run_sync_cycle()

        assert outcome.status == SyncStatus.UP_TO_DATE
        assert outcome.ok
        client.fetch_block.assert_not_called()
        assert await storage.last_block_height() == 100

    async def test_tip_equal_to_watermark(self, storage):
        await storage.set_last_block_height(100)
        client = _chain(tip=100)

        outcome = await SyncEngine(client, storage, WATCHED).run_sync_cycle()

        assert outcome.status == SyncStatus.UP_TO_DATE
        client.fetch_block.assert_not_called()

    async def test_monotonic_across_cycles(self, storage):
        client = _chain(tip=5)
        engine = SyncEngine(client, storage, WATCHED)
        seen = []

        for tip in (5, 5, 8, 3, 9):
            client.fetch_chain_tip.return_value = tip
            await engine.run_sync_cycle()
            seen.append(await storage.last_block_height())

        assert seen == [5, 5, 8, 8, 9]

    async def test_rerun_of_same_range_is_idempotent(self, storage):
        await storage.set_last_block_height(100)
        client = _chain(tip=102)
        engine = SyncEngine(client, storage, WATCHED)

        await engine.run_sync_cycle()
        first = await storage.transactions()

        # Simulate a crash after upsert but before the watermark advanced
        await storage.clear()
        await storage.save_transactions(first)
        await storage.set_last_block_height(100)
        await engine.run_sync_cycle()

        assert await storage.transactions() == first
        assert await storage.last_block_height() == 102

    async def test_max_blocks_per_cycle(self, storage):
        client = _chain(tip=10)
        engine = SyncEngine(client, storage, WATCHED, max_blocks_per_cycle=4)

        outcome = await engine.run_sync_cycle()
        assert outcome.to_block == 4
        assert await storage.last_block_height() == 4

        await engine.run_sync_cycle()
        await engine.run_sync_cycle()
        assert await storage.last_block_height() == 10
        assert _fetched_heights(client) == list(range(1, 11))

    async def test_storage_failure_leaves_watermark(self, storage, monkeypatch):
        await storage.set_last_block_height(100)

        async def failing_write(self, height):
            raise OperationalError("INSERT INTO sync_state", {}, Exception("disk full"))

        monkeypatch.setattr(SyncStateRepo, "set_last_block_height", failing_write)

        outcome = await SyncEngine(_chain(tip=102), storage, WATCHED).run_sync_cycle()

        assert outcome.status == SyncStatus.FAILED
        assert isinstance(outcome.error, StorageError)
        assert await storage.transactions() == []
        monkeypatch.undo()
        assert await storage.last_block_height() == 100

    async def test_driver_error_becomes_failed_outcome(self, storage, monkeypatch):
        await storage.set_last_block_height(100)

        async def overflowing_upsert(self, records):
            raise OverflowError("Python int too large to convert to SQLite INTEGER")

        monkeypatch.setattr(TransactionRepo, "upsert", overflowing_upsert)

        outcome = await SyncEngine(_chain(tip=102), storage, WATCHED).run_sync_cycle()

        assert outcome.status == SyncStatus.FAILED
        assert isinstance(outcome.error, StorageError)
        monkeypatch.undo()
        assert await storage.last_block_height() == 100


class TestLookahead:
    async def test_out_of_order_completion_commits_in_height_order(self, storage, monkeypatch):
        client = AsyncMock(spec=ChainClient)
        client.fetch_chain_tip.return_value = 6

        async def fetch_block(height: int, include_transactions: bool = True) -> Block:
            # Later heights finish first
            await asyncio.sleep(0.001 * (10 - height))
            return _block(height)

        client.fetch_block.side_effect = fetch_block

        committed = []
        original = storage.commit_sync

        async def spy(records, height):
            committed.extend(r.block_number for r in records)
            return await original(records, height)

        monkeypatch.setattr(storage, "commit_sync", spy)

        outcome = await SyncEngine(client, storage, WATCHED, block_lookahead=4).run_sync_cycle()

        assert outcome.new_tx_count == 6
        assert committed == [1, 2, 3, 4, 5, 6]
        assert sorted(_fetched_heights(client)) == [1, 2, 3, 4, 5, 6]

    async def test_failure_in_window_commits_nothing(self, storage):
        client = _chain(tip=6, failing={5: TransportError("timeout")})

        outcome = await SyncEngine(client, storage, WATCHED, block_lookahead=3).run_sync_cycle()

        assert outcome.status == SyncStatus.FAILED
        assert await storage.transactions() == []
        assert await storage.last_block_height() is None

    async def test_failure_in_window_cancels_siblings(self, storage):
        never = asyncio.Event()
        cancelled = []
        client = AsyncMock(spec=ChainClient)
        client.fetch_chain_tip.return_value = 6

        async def fetch_block(height: int, include_transactions: bool = True) -> Block:
            if height == 5:
                raise TransportError("timeout")
            if height < 4:
                return _block(height)
            try:
                await never.wait()
            except asyncio.CancelledError:
                cancelled.append(height)
                raise

        client.fetch_block.side_effect = fetch_block

        outcome = await SyncEngine(client, storage, WATCHED, block_lookahead=3).run_sync_cycle()

        assert outcome.status == SyncStatus.FAILED
        assert sorted(cancelled) == [4, 6]

    async def test_invalid_lookahead(self, storage):
        with pytest.raises(ValueError):
            SyncEngine(_chain(tip=1), storage, WATCHED, block_lookahead=0)


class TestReentrancy:
    async def test_concurrent_cycle_rejected(self, storage):
        release = asyncio.Event()
        client = AsyncMock(spec=ChainClient)
        client.fetch_chain_tip.return_value = 1

        async def fetch_block(height: int, include_transactions: bool = True) -> Block:
            await release.wait()
            return _block(height)

        client.fetch_block.side_effect = fetch_block
        engine = SyncEngine(client, storage, WATCHED)

        task = asyncio.create_task(engine.run_sync_cycle())
        while engine.phase != SyncPhase.FETCHING_BLOCKS:
            await asyncio.sleep(0)

        assert engine.is_running
        with pytest.raises(SyncInProgressError):
            await engine.run_sync_cycle()

        release.set()
        outcome = await task
        assert outcome.status == SyncStatus.SYNCED
        assert not engine.is_running

    async def test_requires_address(self, storage):
        with pytest.raises(ValueError):
            SyncEngine(_chain(tip=1), storage, "")


class TestRefresh:
    async def test_refresh_gas_price(self, storage):
        client = _chain(tip=1)
        client.fetch_gas_price.return_value = 25_000_000_000

        gas_price = await SyncEngine(client, storage, WATCHED).refresh_gas_price()

        assert gas_price == 25_000_000_000
        assert await storage.gas_price() == 25_000_000_000

    async def test_refresh_gas_price_retries_transport_errors(self, storage):
        client = _chain(tip=1)
        client.fetch_gas_price.side_effect = [TransportError("reset"), TransportError("reset"), 7]
        engine = SyncEngine(client, storage, WATCHED, refresh_wait=wait_none())

        assert await engine.refresh_gas_price() == 7
        assert client.fetch_gas_price.call_count == 3

    async def test_refresh_does_not_retry_rpc_errors(self, storage):
        client = _chain(tip=1)
        client.fetch_gas_price.side_effect = RpcExecutionError(-32601, "Method not found")
        engine = SyncEngine(client, storage, WATCHED, refresh_wait=wait_none())

        with pytest.raises(RpcExecutionError):
            await engine.refresh_gas_price()
        assert client.fetch_gas_price.call_count == 1
        assert await storage.gas_price() is None

    async def test_refresh_gives_up_after_attempts(self, storage):
        client = _chain(tip=1)
        client.fetch_balance.side_effect = TransportError("down")
        engine = SyncEngine(client, storage, WATCHED, refresh_attempts=2, refresh_wait=wait_none())

        with pytest.raises(TransportError):
            await engine.refresh_balance()
        assert client.fetch_balance.call_count == 2

    async def test_refresh_balance_replaces_row(self, storage):
        client = _chain(tip=1)
        client.fetch_balance.return_value = 2**70
        await storage.set_balance(WATCHED, 1)

        balance = await SyncEngine(client, storage, WATCHED.upper().replace("0X", "0x")).refresh_balance()

        assert balance == 2**70
        assert await storage.balance(WATCHED) == 2**70
        client.fetch_balance.assert_awaited_once_with(WATCHED)

    async def test_refresh_balance_retries_real_client_method(self, storage):
        class FlakyChain(ChainClient):
            def __init__(self):
                self.balance_calls = []

            async def fetch_chain_tip(self):
                return 1

            async def fetch_block(self, height, include_transactions=True):
                return _block(height)

            async def fetch_gas_price(self):
                return 1

            async def fetch_balance(self, address, block=None):
                self.balance_calls.append(address)
                if len(self.balance_calls) == 1:
                    raise TransportError("reset")
                return 10**18

        chain = FlakyChain()
        engine = SyncEngine(chain, storage, WATCHED, refresh_wait=wait_none())

        assert await engine.refresh_balance() == 10**18
        assert chain.balance_calls == [WATCHED, WATCHED]
        assert await storage.balance(WATCHED) == 10**18
