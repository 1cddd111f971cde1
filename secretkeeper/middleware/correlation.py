"""Request correlation IDs and access logging."""

import logging
import time
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware


logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Tag every request with a correlation ID and log one line when it completes.

    An incoming X-Correlation-ID header is reused, otherwise a UUID is
    generated. The ID is echoed in the response and stored on
    ``request.state`` where the audit trail picks it up.
    """

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid4())
        request.state.correlation_id = correlation_id

        start = time.time()
        response = await call_next(request)
        elapsed_ms = (time.time() - start) * 1000

        response.headers[CORRELATION_HEADER] = correlation_id
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"({elapsed_ms:.1f}ms) [{correlation_id}]"
        )
        return response


def get_correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", "unknown")
