"""FastAPI application exposing the merge endpoint."""

import math
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from alchemist.api.schemas import (
    ErrorResponse,
    HealthResponse,
    MergeRequest,
    MergeResponse,
)
from alchemist.services.errors import (
    CallerRateLimitedError,
    ExhaustionError,
    InputError,
    MergeError,
)
from alchemist.services.merge_service import MergeService
from alchemist.settings import Settings, global_settings

SERVICE_NAME = "alchemist-merge"

ERROR_STATUS: dict[type[MergeError], int] = {
    InputError: status.HTTP_400_BAD_REQUEST,
    CallerRateLimitedError: status.HTTP_429_TOO_MANY_REQUESTS,
    ExhaustionError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def error_response(error: MergeError) -> JSONResponse:
    """Render a service error as ``{"error", "details"}`` with its status."""
    status_code = ERROR_STATUS.get(type(error), status.HTTP_500_INTERNAL_SERVER_ERROR)
    headers = None
    if isinstance(error, CallerRateLimitedError):
        headers = {"Retry-After": str(max(1, math.ceil(error.retry_after)))}
    return JSONResponse(
        status_code=status_code,
        content={"error": error.message, "details": error.details},
        headers=headers,
    )


def caller_id(request: Request, trust_proxy_headers: bool) -> str:
    """Identify the caller for throttling."""
    if trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    if request.client and request.client.host:
        return request.client.host
    return "anonymous"


class MergeServer:
    """HTTP server wrapping a MergeService."""

    def __init__(self, settings: Settings, service: MergeService | None = None):
        self.settings = settings
        self._injected_service = service
        self.service: MergeService | None = None
        self.app = FastAPI(title="Alchemist Merge API", lifespan=self.lifespan)

        self.app.add_exception_handler(MergeError, self.handle_merge_error)
        self.app.add_exception_handler(RequestValidationError, self.handle_validation_error)

        # Register routes
        self.app.post(
            "/merge",
            response_model=MergeResponse,
            responses={code: {"model": ErrorResponse} for code in (400, 429, 503)},
        )(self.merge)
        self.app.get("/health", response_model=HealthResponse)(self.health_check)

    @asynccontextmanager
    async def lifespan(self, app: FastAPI) -> AsyncIterator[None]:
        self.service = self._injected_service
        if self.service is None:
            self.service = MergeService.from_settings(self.settings)
        app.state.merge_service = self.service
        logger.info(f"{SERVICE_NAME} ready")
        try:
            yield
        finally:
            await self.service.close()
            logger.info(f"{SERVICE_NAME} stopped")

    async def merge(self, body: MergeRequest, request: Request) -> MergeResponse:
        """Merge two elements into a new one (``result`` is null if none exists)."""
        service: MergeService = request.app.state.merge_service
        outcome = await service.merge(
            caller_id(request, self.settings.trust_proxy_headers),
            body.element1,
            body.element2,
        )
        return MergeResponse(result=outcome.text)

    async def health_check(self, request: Request) -> HealthResponse:
        """Health check endpoint."""
        service: MergeService = request.app.state.merge_service
        return HealthResponse(status="ok", service=SERVICE_NAME, stats=service.status())

    async def handle_merge_error(self, request: Request, exc: MergeError) -> JSONResponse:
        return error_response(exc)

    async def handle_validation_error(
        self, request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
            for err in exc.errors()
        )
        return error_response(InputError("element1 and element2 are required", details))


def create_app(
    settings: Settings | None = None, service: MergeService | None = None
) -> FastAPI:
    """Create the FastAPI app.

    Args:
        settings: Configuration (defaults to the process environment)
        service: Pre-built MergeService, e.g. with stub adapters

    Returns:
        FastAPI app
    """
    server = MergeServer(settings or global_settings, service)
    return server.app
