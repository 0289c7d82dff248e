import time
import uuid

import structlog
import structlog.contextvars
from fastapi import Request

logger = structlog.get_logger(__name__)

QUIET_ENDPOINTS = {"/health", "/metrics"}


async def structured_logging_middleware(request: Request, call_next):
    """
    Binds a correlation id and request details to the structlog context,
    then logs one line per completed request.
    """
    structlog.contextvars.clear_contextvars()
    start_time = time.perf_counter()

    correlation_id = request.headers.get("x-correlation-id") or str(uuid.uuid4())
    structlog.contextvars.bind_contextvars(
        correlation_id=correlation_id,
        remote_addr=request.client.host if request.client else None,
        request_path=request.url.path,
        request_method=request.method,
        is_xhr=request.headers.get("x-requested-with", "").lower() == "xmlhttprequest",
    )

    try:
        response = await call_next(request)
        process_time = time.perf_counter() - start_time

        if request.url.path not in QUIET_ENDPOINTS:
            status_code = response.status_code
            log_event = logger.info if status_code < 400 else logger.warning
            log_event(
                "Request completed",
                status_code=status_code,
                processing_time_ms=round(process_time * 1000, 2),
            )

        response.headers["X-Correlation-ID"] = correlation_id
        response.headers["X-Process-Time"] = f"{process_time:.4f}s"
        return response

    except Exception:
        logger.exception(
            "Request failed with unhandled exception",
            processing_time_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        raise
    finally:
        structlog.contextvars.clear_contextvars()
