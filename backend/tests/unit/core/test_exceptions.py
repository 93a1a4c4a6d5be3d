"""
Unit Tests for the exception hierarchy and config parsing
"""
import pytest

from digilib.core.config import parse_csv_list
from digilib.core.database import get_database_url
from digilib.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    BackendUnavailableError,
    DigiLibError,
    InvalidFileError,
    InvalidStateError,
    MaterialNotFoundError,
    StorageError,
    ValidationError,
    error_response,
)


class TestErrorKinds:
    """Each error kind maps to one HTTP status and code"""

    @pytest.mark.parametrize("error,status,code", [
        (ValidationError("bad", field="title"), 400, "VALIDATION_ERROR"),
        (InvalidFileError("not a pdf"), 415, "INVALID_FILE"),
        (AuthenticationError(), 401, "AUTH_FAILED"),
        (AuthorizationError(), 403, "NOT_AUTHORIZED"),
        (MaterialNotFoundError("m-1"), 404, "MATERIAL_NOT_FOUND"),
        (InvalidStateError("m-1", "published", "reject"), 409, "INVALID_STATE"),
        (BackendUnavailableError("down"), 503, "BACKEND_UNAVAILABLE"),
    ])
    def test_status_and_code(self, error, status, code):
        assert isinstance(error, DigiLibError)
        assert error.http_status == status
        assert error.code == code

    def test_backend_errors_are_retryable(self):
        """Test that backend failures tell callers they may retry"""
        error = StorageError("bucket unreachable", path="materials/a.pdf")

        assert isinstance(error, BackendUnavailableError)
        assert error.details["retryable"] is True
        assert error.details["backend"] == "object_store"
        assert error.details["path"] == "materials/a.pdf"

    def test_validation_error_names_field(self):
        assert ValidationError("Title is required", field="title").details == {"field": "title"}

    def test_error_response_shape(self):
        """Test the API error body"""
        body = error_response(MaterialNotFoundError("m-1"))

        assert body["success"] is False
        assert body["error"]["code"] == "MATERIAL_NOT_FOUND"
        assert body["error"]["details"]["resource_id"] == "m-1"


class TestConfigHelpers:
    """Test settings parsing helpers"""

    def test_parse_csv_list(self):
        assert parse_csv_list("a, b,,c") == ["a", "b", "c"]

    def test_parse_json_list(self):
        assert parse_csv_list('["application/pdf", "application/epub+zip"]') == [
            "application/pdf", "application/epub+zip"
        ]

    def test_database_url_rewritten_for_async_drivers(self):
        assert get_database_url("postgresql://u:p@db/lib") == "postgresql+asyncpg://u:p@db/lib"
        assert get_database_url("sqlite:///./lib.db") == "sqlite+aiosqlite:///./lib.db"
        assert get_database_url("sqlite+aiosqlite:///./lib.db") == "sqlite+aiosqlite:///./lib.db"
