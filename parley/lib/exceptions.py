"""JSON exception handling for the HTTP layer.

Gateway failures come back as :class:`~parley.lib.results.Result` values;
controllers turn them into :class:`ServiceException` so every error response
has the same ``{"status_code", "detail", "kind"}`` shape.
"""

import logging

from litestar import Request, Response
from litestar.exceptions import HTTPException
from litestar.status_codes import (
    HTTP_400_BAD_REQUEST,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from parley.lib import observability
from parley.lib.results import ErrorKind, Result

logger = logging.getLogger(__name__)

KIND_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: HTTP_400_BAD_REQUEST,
    ErrorKind.SELF_REFERENCE: HTTP_400_BAD_REQUEST,
    ErrorKind.PERMISSION: HTTP_403_FORBIDDEN,
    ErrorKind.AUTHORIZATION: HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: HTTP_404_NOT_FOUND,
}


class ServiceException(HTTPException):
    """HTTP error raised from a failed gateway result."""

    def __init__(self, kind: ErrorKind, detail: str) -> None:
        super().__init__(detail=detail, status_code=KIND_STATUS_CODES[kind])
        self.kind = kind


def raise_for_result(result: Result) -> None:
    """Raise :class:`ServiceException` if ``result`` holds an error."""
    if not result.ok:
        raise ServiceException(result.kind, result.reason)


def http_exception_handler(request: Request, exc: HTTPException) -> Response:
    status_code = exc.status_code
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    content: dict[str, object] = {"status_code": status_code, "detail": detail}
    kind = getattr(exc, "kind", None)
    if kind is not None:
        content["kind"] = kind.value

    return Response(content=content, status_code=status_code, media_type="application/json")


def internal_server_error_handler(request: Request, exc: Exception) -> Response:
    """Answer unexpected exceptions without leaking their details."""
    if not observability.exception(
        "Unhandled exception on {method} {path}",
        method=request.method,
        path=request.url.path,
    ):
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return Response(
        content={"status_code": HTTP_500_INTERNAL_SERVER_ERROR, "detail": "Internal Server Error"},
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        media_type="application/json",
    )
