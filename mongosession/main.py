"""
FastAPI application for mongosession.

The lifespan owns the process-wide Motor client: it is created at startup,
handed to the session store, and closed at shutdown. The store itself
never creates or closes the client.

Run with:
    uvicorn mongosession.main:create_app --factory
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Callable, Optional

from fastapi import Body, Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorClient

from mongosession.config.settings import Settings, get_settings, validate_startup
from mongosession.errors.handlers import register_exception_handlers
from mongosession.health.service import HealthCheckService
from mongosession.middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware
from mongosession.resilience.connection import ClusterConnection
from mongosession.session.models import Session
from mongosession.session.mongo_store import MongoStore
from mongosession.session.registry import save_sessions
from mongosession.telemetry.service import initialize_telemetry

logger = logging.getLogger(__name__)

SERVICE_NAME = "mongosession"
SERVICE_VERSION = "1.0.0"

ClientFactory = Callable[[Settings], Any]


def create_client(settings: Settings) -> AsyncIOMotorClient:
    """Create the process-wide Motor client from settings."""
    return AsyncIOMotorClient(
        settings.mongo_uri,
        serverSelectionTimeoutMS=settings.mongo_server_selection_timeout_ms,
        tz_aware=True,
    )


def get_session_store(request: Request) -> MongoStore:
    """FastAPI dependency returning the application's session store."""
    return request.app.state.session_store


async def get_session(request: Request, store: MongoStore = Depends(get_session_store)) -> Session:
    """FastAPI dependency returning the request's application session."""
    return await store.get(request, request.app.state.settings.session_name)


def create_app(
    settings: Optional[Settings] = None,
    client_factory: ClientFactory = create_client,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings. Loaded from the environment and
            validated for startup when omitted.
        client_factory: Builds the Motor client from settings

    Returns:
        The configured application
    """
    if settings is None:
        settings = get_settings()
        validate_startup()

    initialize_telemetry(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting session service", extra={"extra_data": {
            "collection": settings.session_collection,
            "track_access_time": settings.session_track_access_time,
            "ensure_ttl": settings.session_ensure_ttl,
        }})
        client = client_factory(settings)
        try:
            app.state.session_store = await MongoStore.create(
                ClusterConnection(client, settings.mongo_database),
                settings.session_collection,
                settings.session_options(),
                settings.session_ensure_ttl,
                settings.session_track_access_time,
                *settings.key_pairs(),
            )
            app.state.health_check_service = HealthCheckService(
                session_store=app.state.session_store,
                check_timeout=5.0,
            )
            yield
        finally:
            client.close()
            logger.info("Session service stopped")

    app = FastAPI(title="Session Service", version=SERVICE_VERSION, lifespan=lifespan)
    app.state.settings = settings

    register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Accept", "Content-Type", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER],
        max_age=600,
    )
    app.add_middleware(RequestIDMiddleware)

    @app.get("/api/session")
    async def read_session(session: Session = Depends(get_session)):
        """Return the current session's values without writing a cookie."""
        return {"is_new": session.is_new, "values": session.values}

    @app.put("/api/session")
    async def update_session(
        request: Request,
        response: Response,
        values: dict[str, Any] = Body(...),
        session: Session = Depends(get_session),
    ):
        """Merge values into the current session and save it."""
        session.values.update(values)
        await save_sessions(request, response)
        return {"is_new": session.is_new, "values": session.values}

    @app.delete("/api/session")
    async def delete_session(
        request: Request,
        response: Response,
        session: Session = Depends(get_session),
    ):
        """Delete the current session and expire its cookie."""
        session.options.max_age = -1
        await save_sessions(request, response)
        return {"deleted": True}

    @app.get("/health")
    async def health_basic(request: Request):
        """Basic health check; does not touch MongoDB."""
        result = await request.app.state.health_check_service.check_health()
        return {
            "status": result["status"],
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "timestamp": result["timestamp"],
        }

    @app.get("/health/ready")
    async def health_ready(request: Request):
        """
        Readiness check. Returns 503 with failure reasons when MongoDB
        cannot be reached.
        """
        health_status = await request.app.state.health_check_service.check_readiness()
        response_data = {
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            **health_status.to_dict(),
        }

        if health_status.status == "unhealthy":
            response_data["failure_reasons"] = [
                {"dependency": dep.name, "error": dep.error}
                for dep in health_status.dependencies
                if not dep.healthy
            ]
            return JSONResponse(status_code=503, content=response_data)

        return response_data

    @app.get("/health/live")
    async def health_live(request: Request):
        """Liveness check; 200 whenever the process is running."""
        result = await request.app.state.health_check_service.check_liveness()
        return {
            "status": result["status"],
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "timestamp": result["timestamp"],
        }

    return app


if __name__ == "__main__":
    import os
    import uvicorn
    port = int(os.environ.get("PORT", 8080))
    uvicorn.run("mongosession.main:create_app", factory=True, host="0.0.0.0", port=port)
