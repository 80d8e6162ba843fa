"""
Request correlation and access logging.

Every request gets an X-Request-ID (the client's, when it sent a sane one).
The id is put on request.state, echoed in the response and stored in the
logging context var, so each log line of the request carries it.
"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from homi.logging_config import get_logger, request_id_var

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
SLOW_REQUEST_MS = 1000
# Longer incoming values are replaced; they end up in every log line
MAX_REQUEST_ID_LENGTH = 128


def _pick_request_id(incoming: str | None) -> str:
    if incoming and len(incoming) <= MAX_REQUEST_ID_LENGTH and incoming.isprintable():
        return incoming
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Assign a request ID and write one access-log line per request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = _pick_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        context_token = request_id_var.set(request_id)
        start = time.perf_counter()

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id

            duration_ms = round((time.perf_counter() - start) * 1000, 1)
            fields = {
                "method": request.method,
                # Path only: the verify-email token travels in the query string
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": duration_ms,
            }
            if duration_ms > SLOW_REQUEST_MS:
                logger.warning("Slow request", extra=fields)
            else:
                logger.info("%s %s -> %s", request.method, request.url.path, response.status_code, extra=fields)
            return response
        finally:
            request_id_var.reset(context_token)
