"""
Tests for the shared error hierarchy.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.errors import (
    AuthenticationError,
    CacheError,
    ConfigurationError,
    NotFoundError,
    StoreError,
    UpstreamError,
    ValidationError,
)


class TestErrorResponses:
    """Test status codes and the {"error": message} body."""

    @pytest.mark.parametrize("error, status_code, message", [
        (AuthenticationError(), 401, "Unauthorized"),
        (NotFoundError(), 404, "Not Found"),
        (ValidationError("bad id"), 400, "bad id"),
        (StoreError("connection refused"), 500, "connection refused"),
        (CacheError(), 503, "Decision cache error"),
        (ConfigurationError(), 500, "Invalid configuration"),
        (UpstreamError("doh", "timeout"), 502, "doh: timeout"),
    ])
    def test_status_and_body(self, error, status_code, message):
        assert error.status_code == status_code
        assert error.to_response().model_dump() == {"error": message}
