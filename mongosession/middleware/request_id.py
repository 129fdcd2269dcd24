"""
Request ID middleware for log correlation.

Every request gets an ID, taken from the X-Request-ID header when the
caller sent a usable one, and generated otherwise. The ID is exposed on
request.state, in a context variable read by the JSON log formatter, and
on the response.
"""

import re
import uuid
from contextvars import ContextVar
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

REQUEST_ID_HEADER = "X-Request-ID"

# Incoming IDs end up in log lines, so only short printable tokens are trusted
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def is_valid_request_id(value: str) -> bool:
    return bool(_VALID_REQUEST_ID.match(value))


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that generates or propagates a request ID.

    Args:
        app: The ASGI application to wrap
        header_name: Header read from the request and echoed on the response
    """

    def __init__(self, app: ASGIApp, header_name: str = REQUEST_ID_HEADER):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        request_id = request.headers.get(self.header_name, "")
        if not is_valid_request_id(request_id):
            request_id = str(uuid.uuid4())

        request.state.request_id = request_id
        token = request_id_var.set(request_id)

        try:
            response = await call_next(request)
            response.headers[self.header_name] = request_id
            return response
        finally:
            # Avoid leaking the ID into the next request on this context
            request_id_var.reset(token)


def get_request_id() -> str:
    """
    Return the current request ID, or an empty string outside a request.
    """
    return request_id_var.get()
