"""
Custom Exception Classes for the Short Video API.

This module defines the exception hierarchy used by services and routes. Every
error a service can raise on purpose is a `VideoAPIException`, so the error
handling middleware can turn it into a consistent JSON response without the
service layer knowing anything about HTTP.

Key Components:
- `VideoAPIException`: The base class. It carries a human-readable message, a
  stable error code, an optional details dictionary and the HTTP status code the
  error maps to.
- Client errors: `ValidationError` (malformed input), `VideoTooLongError`
  (upload exceeds the duration limit), `AuthenticationError` (no or bad
  credentials), `PermissionDeniedError` (actor does not own the target),
  `ResourceNotFoundError` (entity absent) and `PayloadTooLargeError`.
- Server errors: `StorageError` and `MediaProcessingError`. These are logged
  and surfaced as generic server errors; nothing in this core retries them.

Architectural Design:
- Not-found and forbidden are distinct classes so callers can tell "absent"
  from "exists but not yours".
- Error codes are part of the public contract; the message is for humans.
"""

from typing import Optional, Dict, Any


class VideoAPIException(Exception):
    """Base exception class for the Short Video API"""

    status_code = 500

    def __init__(
        self,
        message: str,
        error_code: str = "VIDEO_API_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(VideoAPIException):
    """Raised when input validation fails"""

    status_code = 400

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            f"Validation failed for field '{field}': {reason}",
            "VALIDATION_ERROR",
            {"field": field, "value": str(value), "reason": reason},
        )


class VideoTooLongError(VideoAPIException):
    """Raised when an uploaded video exceeds the duration limit"""

    status_code = 400

    def __init__(self, duration: float, limit: int):
        super().__init__(
            f"Video must be {limit} seconds or less (got {duration:.1f}s)",
            "VIDEO_TOO_LONG",
            {"duration": duration, "limit": limit},
        )


class AuthenticationError(VideoAPIException):
    """Raised when authentication fails"""

    status_code = 401

    def __init__(self, reason: str):
        super().__init__(
            f"Authentication failed: {reason}",
            "AUTHENTICATION_ERROR",
            {"reason": reason},
        )


class PermissionDeniedError(VideoAPIException):
    """Raised when the actor does not own or control the target entity"""

    status_code = 403

    def __init__(self, action: str, reason: str):
        super().__init__(
            f"Not allowed to {action}: {reason}",
            "PERMISSION_DENIED",
            {"action": action, "reason": reason},
        )


class ResourceNotFoundError(VideoAPIException):
    """Raised when an entity does not exist"""

    status_code = 404

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            f"{resource.capitalize()} not found: {resource_id}",
            f"{resource.upper()}_NOT_FOUND",
            {"resource": resource, "id": str(resource_id)},
        )


class PayloadTooLargeError(VideoAPIException):
    """Raised when an upload exceeds the size limit"""

    status_code = 413

    def __init__(self, size: int, limit: int):
        super().__init__(
            f"Upload exceeds maximum size of {limit} bytes",
            "PAYLOAD_TOO_LARGE",
            {"size": size, "limit": limit},
        )


class StorageError(VideoAPIException):
    """Raised when storage operations fail"""

    def __init__(self, operation: str, reason: str):
        super().__init__(
            f"Storage operation '{operation}' failed: {reason}",
            "DATABASE_ERROR",
            {"operation": operation, "reason": reason},
        )


class MediaProcessingError(VideoAPIException):
    """Raised when a media file cannot be stored"""

    def __init__(self, filename: str, reason: str):
        super().__init__(
            f"Media processing failed for {filename}: {reason}",
            "MEDIA_PROCESSING_ERROR",
            {"filename": filename, "reason": reason},
        )

