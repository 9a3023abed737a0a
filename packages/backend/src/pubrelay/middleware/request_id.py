"""Request correlation for relay API calls.

Learn: Every request is tagged with an ID, taken from the incoming
X-Request-ID header when it looks sane, generated otherwise. The ID, the
HTTP method and path, and the relay channel are bound to structlog's
contextvars, so a relay.published line written inside POST /publish can
be matched to the request that caused it. One relay.request access line
is written per request with status and duration.

Incoming IDs end up verbatim in log lines and a response header, so
anything long or containing characters outside [A-Za-z0-9._:-] is
replaced with a fresh UUID.
"""

import re
import time
import uuid
from typing import Optional

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from pubrelay.config import RelayRoute

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:\-]+$")


def resolve_request_id(incoming: Optional[str]) -> str:
    """Return incoming if it is a usable ID, otherwise a new UUID4."""
    if (
        incoming
        and len(incoming) <= MAX_REQUEST_ID_LENGTH
        and _VALID_REQUEST_ID.match(incoming)
    ):
        return incoming
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag each request and its log lines with an ID and the relay channel."""

    def __init__(self, app: ASGIApp, route: Optional[RelayRoute] = None):
        super().__init__(app)
        self.route = route

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        if self.route is not None:
            structlog.contextvars.bind_contextvars(channel=self.route.channel)

        started = time.perf_counter()
        response: Response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id

        logger.info(
            "relay.request",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return response
