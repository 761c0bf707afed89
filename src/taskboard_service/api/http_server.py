"""FastAPI application: REST API, real-time channel, health checks and metrics."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from taskboard_service import __version__
from taskboard_service.api.routes import auth_router, notifications_router, tasks_router, users_router
from taskboard_service.api.websocket import router as websocket_router
from taskboard_service.auth.authenticator import Authenticator
from taskboard_service.auth.tokens import TokenService
from taskboard_service.config import Settings
from taskboard_service.core.notification_dispatcher import NotificationDispatcher
from taskboard_service.core.task_manager import TaskManager
from taskboard_service.core.user_manager import UserManager
from taskboard_service.errors import PersistenceError, TaskboardError
from taskboard_service.realtime.channels import ChannelHub
from taskboard_service.realtime.presence import PresenceRegistry
from taskboard_service.storage.document_store import DocumentStore
from taskboard_service.utils.logging import get_logger, request_id_var

logger = get_logger(__name__)


def create_http_server(
    store: DocumentStore,
    settings: Settings,
    presence: PresenceRegistry | None = None,
    hub: ChannelHub | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        store: Document store (opened on startup, closed on shutdown)
        settings: Application settings
        presence: Presence registry (a new one if None)
        hub: Channel hub (a new one if None)

    Returns:
        FastAPI application
    """
    presence = presence if presence is not None else PresenceRegistry()
    hub = hub if hub is not None else ChannelHub()
    tokens = TokenService(settings.token_secret, ttl_minutes=settings.token_ttl_minutes)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await store.initialize()
        logger.info("taskboard_started", version=__version__, database=store.db_path)
        try:
            yield
        finally:
            await store.close()
            logger.info("taskboard_stopped")

    app = FastAPI(
        title="Taskboard Service",
        description="Task management with checklist progress and real-time notifications",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.presence = presence
    app.state.hub = hub
    app.state.authenticator = Authenticator(tokens, store)
    app.state.user_manager = UserManager(
        store,
        tokens,
        admin_invite_token=settings.admin_invite_token,
        bcrypt_rounds=settings.bcrypt_rounds,
    )
    app.state.task_manager = TaskManager(store)
    app.state.dispatcher = NotificationDispatcher(
        store,
        presence,
        hub,
        enforce_reader_identity=settings.enforce_reader_identity,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def bind_request_id(request: Request, call_next: Any) -> Response:
        request_id = request.headers.get("x-request-id") or uuid4().hex
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(TaskboardError)
    async def handle_taskboard_error(request: Request, exc: TaskboardError) -> JSONResponse:
        if isinstance(exc, PersistenceError):
            logger.error("request_failed", path=request.url.path, error=exc.message, context=exc.context)
        else:
            logger.info("request_rejected", path=request.url.path, status=exc.status_code, error=exc.message)
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [{"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]} for e in exc.errors()]
        logger.info("request_invalid", path=request.url.path, errors=len(errors))
        return JSONResponse(status_code=400, content={"message": "Invalid request", "errors": errors})

    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(tasks_router)
    app.include_router(notifications_router)
    app.include_router(websocket_router)

    @app.get("/health")
    async def health() -> JSONResponse:
        """Liveness check endpoint.

        Returns 200 if the service is running.
        """
        return JSONResponse(
            content={"status": "ok", "service": "taskboard"},
            status_code=200,
        )

    @app.get("/health/ready")
    async def readiness() -> JSONResponse:
        """Readiness check endpoint.

        Verifies the document store answers queries.
        """
        checks: dict[str, Any] = {"store": False}

        try:
            checks["store"] = await store.health_check()
        except Exception as e:
            logger.error("store_health_failed", error=str(e))

        all_healthy = all(checks.values())

        return JSONResponse(
            content={
                "status": "ready" if all_healthy else "not_ready",
                "checks": checks,
                "onlineUsers": await presence.online_count(),
                "channels": len(hub),
            },
            status_code=200 if all_healthy else 503,
        )

    if settings.metrics_enabled:

        @app.get("/metrics")
        async def metrics() -> Response:
            """Prometheus metrics endpoint.

            Returns metrics in Prometheus exposition format.
            """
            return Response(
                content=generate_latest(),
                media_type=CONTENT_TYPE_LATEST,
            )

    return app
