"""Poll the node and sync the watched address until interrupted.

Usage:
    RPC_URL=http://localhost:8545 WATCHED_ADDRESS=0x... PYTHONPATH=src python scripts/run_sync.py [interval_seconds]

Each iteration runs one sync cycle and refreshes gas price and balance.
A failed cycle is logged and retried on the next tick.
"""

import asyncio
import logging
import sys

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)-5s %(name)s - %(message)s")
logger = logging.getLogger("run_sync")

# Suppress noisy loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

DEFAULT_INTERVAL = 15.0


async def main(interval: float) -> None:
    from walletsync.container import Container
    from walletsync.exceptions import WalletSyncError

    container = Container()
    storage = container.storage()
    await storage.create_schema()
    engine = container.sync_engine()

    logger.info("Watching %s via %s", engine.address, container.settings().rpc_url)
    try:
        while True:
            outcome = await engine.run_sync_cycle()
            if outcome.ok:
                try:
                    await engine.refresh_gas_price()
                    await engine.refresh_balance()
                except WalletSyncError as e:
                    logger.warning("Refresh failed: %s", e)
            logger.info(
                "Cycle %s: blocks %s..%s, %d TXs, watermark=%s",
                outcome.status.value, outcome.from_block, outcome.to_block,
                outcome.new_tx_count, await storage.last_block_height(),
            )
            await asyncio.sleep(interval)
    finally:
        await container.http_client().close()
        await container.engine().dispose()


if __name__ == "__main__":
    interval = float(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_INTERVAL
    try:
        asyncio.run(main(interval))
    except KeyboardInterrupt:
        pass
