"""FastAPI app factory for the Reentry Map verification API."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from reentry_map.api.admin import router as admin_router
from reentry_map.api.dependencies import close_services
from reentry_map.api.suggestions import router as suggestions_router
from reentry_map.errors import (
    CollaboratorUnavailable,
    PersistenceConflict,
    ResourceNotFound,
    SuggestionNotFound,
    ValidationError,
)

LOGGER = logging.getLogger(__name__)

# Domain errors -> (status code, error slug)
_ERROR_RESPONSES = (
    (ValidationError, 400, "validation_error"),
    (SuggestionNotFound, 404, "not_found"),
    (ResourceNotFound, 404, "not_found"),
    (PersistenceConflict, 409, "conflict"),
    (CollaboratorUnavailable, 503, "collaborator_unavailable"),
)


def _register_error_handlers(app: FastAPI) -> None:
    for error_cls, status_code, slug in _ERROR_RESPONSES:

        def _handler(request: Request, exc: Exception, status_code=status_code, slug=slug):
            LOGGER.info("%s %s -> %s: %s", request.method, request.url.path, status_code, exc)
            return JSONResponse(
                status_code=status_code,
                content={"error": slug, "error_type": type(exc).__name__, "detail": str(exc)},
            )

        app.add_exception_handler(error_cls, _handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    LOGGER.info("Shutting down verification API")
    close_services()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI instance.
    """
    app = FastAPI(title="Reentry Map Verification API", version="0.1", lifespan=lifespan)
    app.include_router(suggestions_router)
    app.include_router(admin_router)
    _register_error_handlers(app)

    @app.get("/health", tags=["health"])
    def health():
        return {"status": "ok"}

    return app


# For uvicorn, expose `app` at module level
app = create_app()

__all__ = ["app", "create_app", "lifespan"]
