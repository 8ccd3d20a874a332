"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from profile_uplift.api.gateway import router as gateway_router
from profile_uplift.api.profile import router as profile_router
from profile_uplift.app_logging import configure_logging, log_operation_failure
from profile_uplift.containers import AppContainer
from profile_uplift.domain.errors import UpliftError


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configured = sorted(app.state.container.gateway.clients)
        logger.info(
            "Starting: providers=%s default=%s cdn_signing=%s",
            configured or "none",
            app.state.container.settings.default_provider,
            app.state.container.signer.configured,
        )
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(UpliftError)
    async def handle_uplift_error(request: Request, exc: UpliftError) -> JSONResponse:
        log_operation_failure(logger, f"{request.method} {request.url.path}", exc)
        return JSONResponse(exc.to_dict(), status_code=exc.http_status)

    app.include_router(gateway_router)
    app.include_router(profile_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
