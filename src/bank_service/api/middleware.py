import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

from bank_service.infrastructure.metrics import HTTP_REQUEST_DURATION, HTTP_REQUESTS_TOTAL
from bank_service.logging import bind_request_context


logger = structlog.get_logger()


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id for logs and records Prometheus metrics."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("x-request-id") or str(ULID())
        bind_request_context(request_id=request_id, method=request.method, path=request.url.path)

        start_time = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception:
            logger.exception("request_failed")
            raise
        finally:
            duration = time.perf_counter() - start_time
            # route templates keep label cardinality bounded
            route = request.scope.get("route")
            path = getattr(route, "path", "unmatched")
            HTTP_REQUEST_DURATION.labels(method=request.method, path=path, status_code=status_code).observe(duration)
            HTTP_REQUESTS_TOTAL.labels(method=request.method, path=path, status_code=status_code).inc()

        logger.info("request_completed", status_code=status_code, duration_ms=round(duration * 1000, 2))
        response.headers["X-Request-ID"] = request_id
        return response
