"""
Logging setup and request observability.

Every module logs through a child of the `modmarket` logger; the middleware
tags each request with a correlation id and logs its outcome.
"""

import time
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from modmarket.app.core.config import settings

logger = logging.getLogger("modmarket")

CORRELATION_HEADER = "X-Correlation-ID"


def configure_logging(level: str = None) -> None:
    """Attach one stream handler to the application logger."""
    logger.setLevel((level or settings.log_level).upper())
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        started = time.perf_counter()
        
        response = await call_next(request)
        
        duration_ms = (time.perf_counter() - started) * 1000
        response.headers[CORRELATION_HEADER] = correlation_id
        response.headers["X-Process-Time"] = f"{duration_ms:.2f}"
        
        context = {
            "correlation_id": correlation_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(duration_ms, 2),
            "ip": request.client.host if request.client else "unknown"
        }
        if response.status_code >= 500:
            logger.error("Request failed", extra=context)
        elif response.status_code >= 400:
            logger.warning("Request rejected", extra=context)
        else:
            logger.info("Request served", extra=context)
        
        return response
