import logging

from litestar import Request, Response
from litestar.exceptions import HTTPException, ValidationException
from litestar.status_codes import HTTP_422_UNPROCESSABLE_ENTITY, HTTP_500_INTERNAL_SERVER_ERROR

from hookwatch.lib.observability import exception as report_exception

logger = logging.getLogger(__name__)


def http_exception_handler(request: Request, exc: HTTPException) -> Response:
    """Render HTTP exceptions as JSON."""
    status_code = exc.status_code
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    content = {"status_code": status_code, "detail": detail}

    extra = getattr(exc, "extra", None)
    if extra:
        content["extra"] = extra

    return Response(
        content=content,
        status_code=status_code,
        media_type="application/json",
        headers=getattr(exc, "headers", None),
    )


def validation_exception_handler(request: Request, exc: ValidationException) -> Response:
    """Report request body and parameter validation failures as 422."""
    content = {"status_code": HTTP_422_UNPROCESSABLE_ENTITY, "detail": exc.detail}
    if exc.extra:
        content["extra"] = exc.extra
    return Response(
        content=content,
        status_code=HTTP_422_UNPROCESSABLE_ENTITY,
        media_type="application/json",
    )


def internal_server_error_handler(request: Request, exc: Exception) -> Response:
    """Log unexpected exceptions and return a generic JSON 500."""
    status_code = HTTP_500_INTERNAL_SERVER_ERROR

    if not report_exception("Unhandled error on {method} {path}", method=request.method, path=request.url.path):
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)

    return Response(
        content={"status_code": status_code, "detail": "Internal Server Error"},
        status_code=status_code,
        media_type="application/json",
    )


EXCEPTION_HANDLERS = {
    ValidationException: validation_exception_handler,
    HTTPException: http_exception_handler,
    Exception: internal_server_error_handler,
}
