"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from diet_practice.api.admin import router as admin_router
from diet_practice.api.meal_plans import router as meal_plans_router
from diet_practice.app_logging import configure_logging
from diet_practice.containers import AppContainer
from diet_practice.services.freeze import (
    FreezeError,
    FreezeValidationError,
    MealPlanNotFoundError,
    StaleMealPlanError,
)

_FREEZE_ERROR_STATUS = {
    MealPlanNotFoundError: status.HTTP_404_NOT_FOUND,
    FreezeValidationError: status.HTTP_400_BAD_REQUEST,
    StaleMealPlanError: status.HTTP_409_CONFLICT,
}


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "Starting diet practice API",
            extra={"environment": app.state.container.settings.environment},
        )
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(meal_plans_router)
    app.include_router(admin_router)

    @app.exception_handler(FreezeError)
    async def freeze_error_handler(request: Request, exc: FreezeError) -> JSONResponse:
        status_code = _FREEZE_ERROR_STATUS.get(
            type(exc), status.HTTP_400_BAD_REQUEST
        )
        body: dict[str, object] = {"error": str(exc)}
        if isinstance(exc, FreezeValidationError):
            body.update(exc.details)
        if status_code == status.HTTP_409_CONFLICT:
            logger.warning(
                "Concurrent meal plan update", extra={"path": request.url.path}
            )
        return JSONResponse(body, status_code=status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            {"error": exc.detail},
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            {"error": "Invalid request body"},
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
