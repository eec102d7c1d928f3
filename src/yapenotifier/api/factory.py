"""FastAPI application factory."""

from fastapi import FastAPI, Request, Response

from yapenotifier.observability.correlation import (
    CORRELATION_ID_HEADER,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)

from .routers import public
from .routes import app_instances, device_health, notifications, outbox


def create_app() -> FastAPI:
    """Create the backend app with every route mounted.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(
        title="Yape Notifier",
        docs_url=None,
        redoc_url=None,
    )

    # Correlation ID middleware
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    app.include_router(public.router)
    app.include_router(notifications.router)
    app.include_router(app_instances.router)
    app.include_router(device_health.router)
    app.include_router(outbox.router)

    return app
