import asyncio

import structlog
import uvicorn

from bank_service.app import create_app
from bank_service.config import Settings, settings
from bank_service.infrastructure.database import Database
from bank_service.infrastructure.login_throttle import LoginThrottle
from bank_service.infrastructure.redis_client import RedisClient
from bank_service.infrastructure.sessions import SessionStore
from bank_service.infrastructure.store import InMemoryAccountStore, SqlAccountStore
from bank_service.infrastructure.store.base import AccountStore
from bank_service.logging import configure_logging


logger = structlog.get_logger()


def build_store(config: Settings) -> AccountStore:
    if config.store_backend == "memory":
        return InMemoryAccountStore(lock_timeout_seconds=config.lock_timeout_seconds)
    return SqlAccountStore(
        Database(
            config.database_url,
            pool_size=config.database_pool_size,
            max_overflow=config.database_max_overflow,
        ),
        lock_timeout_seconds=config.lock_timeout_seconds,
    )


async def main() -> None:
    configure_logging(
        level=settings.log_level,
        log_format=settings.log_format,
    )

    logger.info(
        "starting_bank_service",
        http_port=settings.http_port,
        store_backend=settings.store_backend,
        log_level=settings.log_level,
        metrics_enabled=settings.metrics_enabled,
    )

    store = build_store(settings)

    redis_client = RedisClient(settings.redis_url, socket_timeout_seconds=settings.redis_socket_timeout_seconds)
    await redis_client.connect()

    app = create_app(
        store=store,
        session_store=SessionStore(
            redis_client.client,
            ttl_seconds=settings.session_ttl_seconds,
            idle_extension_seconds=settings.session_idle_extension_seconds,
        ),
        login_throttle=LoginThrottle(
            redis_client.client,
            max_failures=settings.login_max_failures,
            lockout_seconds=settings.login_lockout_seconds,
        ),
        settings=settings,
        redis_client=redis_client,
    )

    # uvicorn installs its own SIGINT/SIGTERM handlers and runs the lifespan shutdown
    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=settings.http_host,
            port=settings.http_port,
            log_level="warning",
            access_log=False,
        )
    )
    await server.serve()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
