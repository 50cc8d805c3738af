"""Tests for the JSON exception handlers."""

from unittest.mock import MagicMock, patch

import pytest
from litestar import Litestar, get
from litestar.exceptions import NotFoundException
from litestar.testing import TestClient

from parley.app_factory import EXCEPTION_HANDLERS
from parley.config import LogfireConfig, Settings
from parley.lib import observability
from parley.lib.exceptions import (
    KIND_STATUS_CODES,
    ServiceException,
    http_exception_handler,
    internal_server_error_handler,
    raise_for_result,
)
from parley.lib.results import ErrorKind, Result


@pytest.fixture
def fake_request():
    """Create a minimal mock request for the error handler."""
    request = MagicMock()
    request.method = "GET"
    request.url.path = "/test"
    return request


class TestObservability:
    def test_returns_true_when_available(self):
        with patch.object(observability, "_logfire", MagicMock()) as mock_lf:
            assert observability.exception("test error") is True
            mock_lf.exception.assert_called_once_with("test error")

    def test_returns_false_when_unavailable(self):
        with patch.object(observability, "_logfire", None):
            assert observability.exception("test error") is False

    def test_span_is_a_no_op_when_unavailable(self):
        with patch.object(observability, "_logfire", None):
            with observability.span("messaging.test", user_id=1) as current:
                assert current is None

    def test_span_forwards_attributes(self):
        with patch.object(observability, "_logfire", MagicMock()) as mock_lf:
            with observability.span("messaging.test", user_id=1):
                pass

        mock_lf.span.assert_called_once_with("messaging.test", user_id=1)

    def test_configure_disabled_leaves_tracing_off(self):
        settings = Settings(logfire=LogfireConfig(enabled=False))

        with patch.object(observability, "_logfire", None):
            assert observability.configure(settings) is False
            assert observability.is_available() is False
            app = object()
            assert observability.instrument_app(app) is app


class TestInternalServerErrorHandler:
    def test_calls_observability_when_available(self, fake_request):
        with patch.object(observability, "exception", return_value=True) as mock_exc, \
             patch("parley.lib.exceptions.logger") as mock_logger:
            response = internal_server_error_handler(fake_request, RuntimeError("boom"))

        mock_exc.assert_called_once_with(
            "Unhandled exception on {method} {path}",
            method="GET",
            path="/test",
        )
        mock_logger.exception.assert_not_called()
        assert response.status_code == 500

    def test_falls_back_to_stdlib_when_unavailable(self, fake_request):
        with patch.object(observability, "exception", return_value=False), \
             patch("parley.lib.exceptions.logger") as mock_logger:
            response = internal_server_error_handler(fake_request, RuntimeError("boom"))

        mock_logger.exception.assert_called_once_with("Unhandled exception on %s %s", "GET", "/test")
        assert response.content == {"status_code": 500, "detail": "Internal Server Error"}


class TestServiceException:
    @pytest.mark.parametrize(
        "kind, status_code",
        [
            (ErrorKind.VALIDATION, 400),
            (ErrorKind.SELF_REFERENCE, 400),
            (ErrorKind.PERMISSION, 403),
            (ErrorKind.AUTHORIZATION, 403),
            (ErrorKind.NOT_FOUND, 404),
        ],
    )
    def test_status_codes(self, kind, status_code):
        assert KIND_STATUS_CODES[kind] == status_code
        assert ServiceException(kind, "detail").status_code == status_code

    def test_raise_for_result(self):
        raise_for_result(Result.success())

        with pytest.raises(ServiceException) as exc_info:
            raise_for_result(Result.failure(ErrorKind.NOT_FOUND, "Message not found."))

        assert exc_info.value.kind is ErrorKind.NOT_FOUND
        assert exc_info.value.detail == "Message not found."

    def test_handler_includes_kind(self, fake_request):
        response = http_exception_handler(fake_request, ServiceException(ErrorKind.PERMISSION, "nope"))

        assert response.status_code == 403
        assert response.content == {"status_code": 403, "detail": "nope", "kind": "permission"}

    def test_handler_without_kind(self, fake_request):
        response = http_exception_handler(fake_request, NotFoundException(detail="missing"))

        assert response.content == {"status_code": 404, "detail": "missing"}


class TestHandlersInApp:
    def test_unhandled_exception_returns_generic_500(self):
        @get("/explode")
        async def explode() -> None:
            raise RuntimeError("secret internals")

        app = Litestar(route_handlers=[explode], exception_handlers=EXCEPTION_HANDLERS)
        with TestClient(app) as client:
            response = client.get("/explode")

        assert response.status_code == 500
        assert response.json() == {"status_code": 500, "detail": "Internal Server Error"}
