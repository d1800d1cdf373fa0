"""
Logging setup and per-request correlation logging
"""

import json
import logging
import time
import uuid
from datetime import datetime, timezone

from fastapi import Request

from app.core.config import settings

logger = logging.getLogger("app.request")

CORRELATION_HEADER = "X-Correlation-Id"


def setup_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _log_line(**fields) -> str:
    fields["timestamp"] = datetime.now(timezone.utc).isoformat()
    return json.dumps(fields, default=str)


async def correlation_middleware(request: Request, call_next):
    """Tag every request with a correlation id and log request, response and failures."""
    correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
    request.state.correlation_id = correlation_id
    started = time.perf_counter()

    logger.info(_log_line(
        type="request",
        correlation_id=correlation_id,
        method=request.method,
        path=request.url.path,
        user_agent=request.headers.get("User-Agent", "unknown"),
    ))

    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(_log_line(
            type="error",
            correlation_id=correlation_id,
            method=request.method,
            path=request.url.path,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
            error=f"{type(e).__name__}: {e}",
        ))
        raise

    response.headers[CORRELATION_HEADER] = correlation_id
    logger.info(_log_line(
        type="response",
        correlation_id=correlation_id,
        method=request.method,
        path=request.url.path,
        status=response.status_code,
        duration_ms=round((time.perf_counter() - started) * 1000, 1),
    ))
    return response
