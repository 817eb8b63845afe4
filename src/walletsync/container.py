from dependency_injector import containers, providers

from walletsync.config import Settings
from walletsync.db.session import build_engine, build_session_factory
from walletsync.db.storage import AccountStorage
from walletsync.infra.blockchain.evm.rpc_client import JsonRpcChainClient
from walletsync.infra.http.rate_limited_client import RateLimitedClient
from walletsync.sync.engine import SyncEngine


class Container(containers.DeclarativeContainer):
    wiring_config = containers.WiringConfiguration(modules=["walletsync.api.deps"])

    settings = providers.Singleton(Settings)

    engine = providers.Singleton(
        build_engine,
        database_url=settings.provided.database_url,
        echo=settings.provided.debug,
    )

    session_factory = providers.Singleton(
        build_session_factory,
        engine=engine,
    )

    storage = providers.Singleton(
        AccountStorage,
        session_factory=session_factory,
    )

    http_client = providers.Singleton(
        RateLimitedClient,
        rate_per_second=settings.provided.rpc_rate_per_second,
        timeout=settings.provided.rpc_timeout,
        max_connections=settings.provided.block_lookahead,
    )

    chain_client = providers.Singleton(
        JsonRpcChainClient,
        rpc_url=settings.provided.rpc_url,
        http_client=http_client,
    )

    sync_engine = providers.Singleton(
        SyncEngine,
        chain_client=chain_client,
        storage=storage,
        address=settings.provided.watched_address,
        block_lookahead=settings.provided.block_lookahead,
        max_blocks_per_cycle=settings.provided.max_blocks_per_cycle,
        initial_watermark=settings.provided.initial_watermark,
    )
