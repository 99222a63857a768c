from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import redis.asyncio as redis
import structlog
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response

from bank_service.api.dependencies import NotAuthenticatedError
from bank_service.api.handlers import router as handlers_router
from bank_service.api.health import health_router, metrics_router
from bank_service.api.middleware import RequestContextMiddleware
from bank_service.api.xml_codec import XmlFormError, element_response, text_element
from bank_service.application.coordinator import BalanceTransactionCoordinator
from bank_service.application.services import BankingService
from bank_service.config import Settings
from bank_service.domain.exceptions import StoreError
from bank_service.infrastructure.login_throttle import LoginThrottle
from bank_service.infrastructure.redis_client import RedisClient
from bank_service.infrastructure.sessions import SessionStore
from bank_service.infrastructure.store.base import AccountStore


logger = structlog.get_logger()


def create_app(
    *,
    store: AccountStore,
    session_store: SessionStore,
    login_throttle: LoginThrottle,
    settings: Settings,
    redis_client: RedisClient | None = None,
) -> FastAPI:
    """Wire the store, Redis-backed components and routes into a FastAPI app.

    The app owns the store and Redis client: both are closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("bank_service_ready")
        try:
            yield
        finally:
            await store.close()
            if redis_client:
                await redis_client.close()
            logger.info("bank_service_stopped")

    app = FastAPI(
        title="Bank Service",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.session_store = session_store
    app.state.banking_service = BankingService(
        store,
        login_throttle,
        bcrypt_rounds=settings.bcrypt_rounds,
    )
    app.state.coordinator = BalanceTransactionCoordinator(store)

    app.add_middleware(RequestContextMiddleware)
    app.include_router(handlers_router)
    app.include_router(health_router)
    if settings.metrics_enabled:
        app.include_router(metrics_router)

    @app.exception_handler(XmlFormError)
    async def invalid_xml(_request: Request, exc: XmlFormError) -> Response:
        logger.info("invalid_xml_body", error=str(exc))
        return PlainTextResponse("Invalid", status_code=400)

    @app.exception_handler(NotAuthenticatedError)
    async def unauthorized(_request: Request, _exc: NotAuthenticatedError) -> Response:
        logger.info("unauthorized_request")
        return element_response(text_element("error", "Unauthorized"), status_code=401)

    @app.exception_handler(StoreError)
    async def store_unavailable(_request: Request, exc: StoreError) -> Response:
        logger.error("store_unavailable", operation=exc.operation, error=str(exc.cause))
        return element_response(text_element("error", "Unknown error, please try again"), status_code=503)

    @app.exception_handler(redis.RedisError)
    async def redis_unavailable(_request: Request, exc: redis.RedisError) -> Response:
        logger.error("redis_unavailable", error=str(exc))
        return element_response(text_element("error", "Unknown error, please try again"), status_code=503)

    return app
