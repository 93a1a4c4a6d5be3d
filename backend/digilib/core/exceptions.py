"""
Custom Exceptions for DigiLib
============================

Every failure a library action can produce has its own exception type so the
API layer can render a structured error and callers can react per kind.

Usage:
    from digilib.core.exceptions import MaterialNotFoundError

    if material is None:
        raise MaterialNotFoundError(material_id)

    try:
        await lifecycle.reject(material_id, actor)
    except MaterialNotFoundError:
        pass  # already removed by an earlier attempt
"""

from typing import Optional, Any, Dict, List


class DigiLibError(Exception):
    """Base exception for all DigiLib errors"""

    http_status: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(DigiLibError):
    """No valid identity for this request"""

    http_status = 401

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="AUTH_FAILED")


class AuthorizationError(DigiLibError):
    """Identity lacks the role required for this action"""

    http_status = 403

    def __init__(self, message: str = "Not authorized", required_role: Optional[str] = None):
        super().__init__(message, code="NOT_AUTHORIZED")
        if required_role:
            self.details["required_role"] = required_role


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(DigiLibError):
    """Base class for not found errors"""

    http_status = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            code=f"{resource_type.upper()}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class MaterialNotFoundError(ResourceNotFoundError):
    """Material does not exist (never created, rejected or deleted)"""

    def __init__(self, material_id: str):
        super().__init__("Material", material_id)


class UserNotFoundError(ResourceNotFoundError):
    """User profile not found"""

    def __init__(self, user_id: str):
        super().__init__("User", user_id)


class StoredFileNotFoundError(ResourceNotFoundError):
    """Object store has nothing at this path"""

    def __init__(self, path: str):
        super().__init__("File", path)


# ============================================
# State Errors (409-type)
# ============================================

class InvalidStateError(DigiLibError):
    """Action is not allowed from the material's current state"""

    http_status = 409

    def __init__(self, material_id: str, state: str, action: str):
        super().__init__(
            f"Cannot {action} material '{material_id}' in state '{state}'",
            code="INVALID_STATE",
            details={"material_id": material_id, "state": state, "action": action}
        )


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(DigiLibError):
    """Input validation failed"""

    http_status = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class InvalidFileError(DigiLibError):
    """Uploaded file is not an accepted document"""

    http_status = 415

    def __init__(self, message: str, content_type: Optional[str] = None,
                 allowed_types: Optional[List[str]] = None):
        super().__init__(message, code="INVALID_FILE")
        if content_type is not None:
            self.details["content_type"] = content_type
        if allowed_types is not None:
            self.details["allowed_types"] = allowed_types


# ============================================
# Backend Errors (503-type)
# ============================================

class BackendUnavailableError(DigiLibError):
    """Repository or object store failed transiently; the caller may retry"""

    http_status = 503

    def __init__(self, message: str, backend: str = "repository"):
        super().__init__(message, code="BACKEND_UNAVAILABLE")
        self.details = {"backend": backend, "retryable": True}


class StorageError(BackendUnavailableError):
    """Object store operation failed"""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message, backend="object_store")
        if path:
            self.details["path"] = path


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: DigiLibError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "success": False,
        "error": error.to_dict()
    }
