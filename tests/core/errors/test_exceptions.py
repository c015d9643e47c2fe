"""Tests for the container exception hierarchy and status classification."""

import pytest

from core.errors.exceptions import (
    ConfigurationError,
    ContainerError,
    ErrorCategory,
    PermanentError,
    TransientError,
    classify_http_status,
    is_client_error,
)
from core.http.exceptions import TransportError


class TestContainerError:

    def test_basic_error(self):
        error = ContainerError("token store unavailable")

        assert error.message == "token store unavailable"
        assert error.cause is None
        assert error.context == {}
        assert error.category is ErrorCategory.UNKNOWN
        assert str(error) == "token store unavailable"

    def test_error_with_cause(self):
        cause = OSError("disk full")
        error = ContainerError("write failed", cause=cause)

        assert error.cause is cause
        assert str(error) == "write failed | Caused by: disk full"

    def test_error_with_context(self):
        error = ContainerError("bad", context={"service_name": "photos"})
        assert error.context == {"service_name": "photos"}


class TestCategories:

    @pytest.mark.parametrize(
        "error_class, category",
        [
            (TransientError, ErrorCategory.TRANSIENT),
            (PermanentError, ErrorCategory.PERMANENT),
            (ConfigurationError, ErrorCategory.PERMANENT),
            (TransportError, ErrorCategory.TRANSIENT),
        ],
    )
    def test_category(self, error_class, category):
        error = error_class("x")
        assert error.category is category
        assert isinstance(error, ContainerError)


class TestClassifyHttpStatus:

    def test_success_is_not_an_error(self):
        assert classify_http_status(200) is ErrorCategory.UNKNOWN

    def test_unauthorized(self):
        assert classify_http_status(401) is ErrorCategory.AUTH

    def test_rate_limited(self):
        assert classify_http_status(429) is ErrorCategory.TRANSIENT

    @pytest.mark.parametrize("status", [400, 403, 404])
    def test_permanent_4xx(self, status):
        assert classify_http_status(status) is ErrorCategory.PERMANENT

    @pytest.mark.parametrize("status", [500, 502, 503])
    def test_transient_5xx(self, status):
        assert classify_http_status(status) is ErrorCategory.TRANSIENT


class TestIsClientError:

    def test_4xx(self):
        assert is_client_error(400)
        assert is_client_error(401)
        assert is_client_error(499)

    def test_not_4xx(self):
        """Should never treat server errors as token rejections."""
        assert not is_client_error(200)
        assert not is_client_error(302)
        assert not is_client_error(500)
