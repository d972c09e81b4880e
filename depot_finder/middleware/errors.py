"""Exception handlers collapsing every failure into the location envelope."""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.status import HTTP_200_OK, HTTP_500_INTERNAL_SERVER_ERROR

from depot_finder.core.errors import DepotLookupError
from depot_finder.core.logging import get_logger
from depot_finder.models.response import LocationEnvelope

logger = get_logger(__name__)


def failure_response(
    request: Request, status_code: int = HTTP_200_OK
) -> JSONResponse:
    """Build the ``{ok: false}`` envelope response."""
    response = JSONResponse(
        status_code=status_code,
        content=LocationEnvelope.failure().model_dump(by_alias=True),
    )
    correlation_id = getattr(request.state, "correlation_id", None)
    if correlation_id:
        response.headers["X-Request-ID"] = correlation_id
    return response


async def handle_lookup_error(request: Request, exc: Exception) -> JSONResponse:
    """Log the error kind and answer with an empty envelope."""
    kind = getattr(exc, "kind", "error")
    logger.info(
        "lookup_failed",
        kind=kind,
        error_message=str(exc),
        path=request.url.path,
        context=getattr(exc, "context", {}),
    )
    return failure_response(request)


async def handle_validation_error(request: Request, exc: Exception) -> JSONResponse:
    """Missing or empty query parameters answer with an empty envelope."""
    errors = exc.errors() if isinstance(exc, RequestValidationError) else []
    logger.info(
        "request_invalid",
        path=request.url.path,
        fields=[".".join(str(p) for p in error.get("loc", ())) for error in errors],
    )
    return failure_response(request)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    """Unexpected exceptions still answer with the envelope, as HTTP 500."""
    logger.error(
        "request_error",
        error_type=exc.__class__.__name__,
        error_message=str(exc),
        path=request.url.path,
        method=request.method,
        exc_info=exc,
    )
    return failure_response(request, HTTP_500_INTERNAL_SERVER_ERROR)


def register_error_handlers(app: FastAPI) -> None:
    """Register the envelope exception handlers on ``app``."""
    app.add_exception_handler(DepotLookupError, handle_lookup_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
