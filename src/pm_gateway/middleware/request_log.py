"""Request logging middleware.

Every request gets a request id: the caller's X-Request-Id when it looks sane,
otherwise a fresh `req_<12 hex>`. The id is stored on request.state (so
success_response can embed it), echoed in the X-Request-Id response header
and written to the access log together with the X-User-Id requester, if any.

Log format:
    INFO [POST] /api/v1/positions -> 201 (23ms) req_a1b2c3d4e5f6 user=0xabc
"""

import logging
import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("pm.request")

# Polled endpoints stay at DEBUG so they don't drown the access log
_QUIET_PATHS = frozenset({"/health", "/api/v1/events"})
_INBOUND_ID = re.compile(r"^[A-Za-z0-9_\-]{8,64}$")


def _request_id(request: Request) -> str:
    inbound = request.headers.get("X-Request-Id", "")
    if _INBOUND_ID.match(inbound):
        return inbound
    return f"req_{uuid.uuid4().hex[:12]}"


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = _request_id(request)
        request.state.request_id = request_id

        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-Id"] = request_id

        log = logger.debug if request.url.path in _QUIET_PATHS else logger.info
        log(
            "[%s] %s -> %d (%.0fms) %s user=%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request_id,
            request.headers.get("X-User-Id", "-"),
        )
        return response
