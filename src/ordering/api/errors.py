"""Exception handlers for the checkout API.

Protean's handlers cover ``ValidationError`` (400) and
``ObjectNotFoundError`` (404). The handlers here are registered for
subclasses and collaborator failures, which Starlette resolves before the
base-class handlers.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from ordering.errors import DependencyUnavailable, InvalidStateTransition, NotOwned

logger = structlog.get_logger(__name__)


async def not_owned_handler(request: Request, exc: NotOwned) -> JSONResponse:
    return JSONResponse(status_code=403, content={"error": exc.messages})


async def invalid_transition_handler(request: Request, exc: InvalidStateTransition) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": exc.messages, "currentStatus": exc.current_status},
    )


async def dependency_unavailable_handler(request: Request, exc: DependencyUnavailable) -> JSONResponse:
    logger.warning("Dependency unavailable", path=request.url.path, service=exc.service, detail=exc.detail)
    return JSONResponse(
        status_code=503,
        content={"error": {exc.service: [str(exc)]}},
    )


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.add_exception_handler(NotOwned, not_owned_handler)
    app.add_exception_handler(InvalidStateTransition, invalid_transition_handler)
    app.add_exception_handler(DependencyUnavailable, dependency_unavailable_handler)
