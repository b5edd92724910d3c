"""Request correlation and access logging."""

import time
import uuid

from fastapi import Request

from expense_ledger.logging_config import LogContext, get_logger

logger = get_logger("api.request")

REQUEST_ID_HEADER = "X-Request-ID"


async def request_context(request: Request, call_next):
    """Bind a correlation id for the request and log its outcome."""
    correlation_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
    started = time.perf_counter()
    with LogContext.bind(correlation_id=correlation_id):
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = correlation_id
        logger.info(
            "request_completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
    return response
