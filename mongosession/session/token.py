"""
Token transport for session identities.

A TokenTransport reads the opaque token for a session name from an
inbound request and writes it to an outbound response. The lifecycle
orchestrator only depends on this contract, so the cookie transport can
be swapped for a header-based one without touching session logic.
"""

from abc import ABC, abstractmethod
from typing import Optional

from starlette.requests import Request
from starlette.responses import Response

from mongosession.session.models import Options


class TokenTransport(ABC):
    """
    Abstract contract for getting and setting a session token.

    Setting an empty value with a negative max_age clears the client-side
    artifact.
    """

    @abstractmethod
    def get_token(self, request: Request, name: str) -> Optional[str]:
        """
        Return the token for name, or None if the request carries none.
        """
        pass

    @abstractmethod
    def set_token(self, response: Response, name: str, value: str, options: Options) -> None:
        """
        Write the token for name to the response using options.
        """
        pass


class CookieToken(TokenTransport):
    """Carries the token in a cookie named after the session."""

    def get_token(self, request: Request, name: str) -> Optional[str]:
        return request.cookies.get(name) or None

    def set_token(self, response: Response, name: str, value: str, options: Options) -> None:
        if options.max_age < 0:
            response.delete_cookie(
                name,
                path=options.path,
                domain=options.domain,
                secure=options.secure,
                httponly=options.http_only,
                samesite=options.same_site,
            )
            return

        response.set_cookie(
            name,
            value,
            # Zero max_age means a browser-session cookie
            max_age=options.max_age or None,
            path=options.path,
            domain=options.domain,
            secure=options.secure,
            httponly=options.http_only,
            samesite=options.same_site,
        )


class HeaderToken(TokenTransport):
    """
    Carries the token in a header, for API clients without a cookie jar.

    The header name is the prefix followed by the session name, for
    example ``X-Session-session-key``. A cleared token is sent as an
    empty header value.
    """

    def __init__(self, prefix: str = "X-Session-"):
        self.prefix = prefix

    def header_name(self, name: str) -> str:
        return f"{self.prefix}{name}"

    def get_token(self, request: Request, name: str) -> Optional[str]:
        return request.headers.get(self.header_name(name)) or None

    def set_token(self, response: Response, name: str, value: str, options: Options) -> None:
        response.headers[self.header_name(name)] = "" if options.max_age < 0 else value
