"""
Per-request session registry.

Keeps the sessions loaded during one request so that repeated ``get``
calls for the same name return the same object, and saves all of them at
the end of the request.
"""

import logging

from starlette.requests import Request
from starlette.responses import Response

from mongosession.session.models import Session
from mongosession.session.store import SessionStore

logger = logging.getLogger(__name__)

_STATE_ATTR = "session_registry"


class SessionRegistry:
    """Sessions registered for one request, keyed by name."""

    def __init__(self, request: Request):
        self.request = request
        self._sessions: dict[str, Session] = {}

    async def get(self, store: SessionStore, name: str) -> Session:
        """
        Return the registered session for name, loading it from store on
        first use. Errors raised by the store are not cached.
        """
        session = self._sessions.get(name)
        if session is None:
            session = await store.new(self.request, name)
            self._sessions[name] = session
        return session

    async def save(self, response: Response) -> None:
        """
        Save every registered session.

        All sessions are attempted; the first failure is re-raised after
        the others have been saved.
        """
        first_error = None
        for name, session in self._sessions.items():
            try:
                await session.save(self.request, response)
            except Exception as e:
                logger.error(
                    "Failed to save session",
                    extra={"extra_data": {"name": name, "error": str(e)}}
                )
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error


def get_registry(request: Request) -> SessionRegistry:
    """Return the registry attached to request, creating it on first use."""
    registry = getattr(request.state, _STATE_ATTR, None)
    if registry is None:
        registry = SessionRegistry(request)
        setattr(request.state, _STATE_ATTR, registry)
    return registry


async def save_sessions(request: Request, response: Response) -> None:
    """Save all sessions registered for the current request."""
    await get_registry(request).save(response)
