"""
Classified errors raised by the story lifecycle.

Every error carries a machine-readable ``kind``, a stable ``code``, a
human-readable message, an HTTP-like ``status_code`` severity hint and an
optional ``details`` payload. The API layer turns these into JSON responses
via ``to_dict()``; use cases never surface raw internal exceptions for
business-rule failures.
"""

from typing import Any, Dict, List, Optional


class StoryError(Exception):
    """Base class for all classified story errors."""

    kind = "StoryError"
    default_code = "STORY_ERROR"
    default_status_code = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.status_code = status_code or self.default_status_code
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "code": self.code,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, "
            f"message={self.message!r})"
        )


class NotFound(StoryError):
    kind = "NotFound"
    default_code = "STORY_NOT_FOUND"
    default_status_code = 404


class InvalidArgument(StoryError):
    kind = "InvalidArgument"
    default_code = "INVALID_ARGUMENT"
    default_status_code = 400


class Gone(StoryError):
    kind = "Gone"
    default_code = "STORY_DELETED"
    default_status_code = 410


class AlreadyDeleted(Gone):
    kind = "AlreadyDeleted"
    default_code = "STORY_ALREADY_DELETED"


class VersionConflict(StoryError):
    """Raised when an optimistic-lock token does not match."""

    kind = "VersionConflict"
    default_code = "VERSION_CONFLICT"
    default_status_code = 409

    def __init__(
        self, current_version: Optional[int], expected_version: int
    ) -> None:
        super().__init__(
            "Story has been modified by another user. "
            "Please refresh and try again.",
            details={
                "current_version": current_version,
                "expected_version": expected_version,
            },
        )
        self.current_version = current_version
        self.expected_version = expected_version


class InvalidStatusTransition(StoryError):
    kind = "InvalidStatusTransition"
    default_code = "INVALID_STATUS_TRANSITION"
    default_status_code = 422

    def __init__(
        self, current_status: str, requested_status: str, allowed: List[str]
    ) -> None:
        super().__init__(
            f"Cannot change status from {current_status} to "
            f"{requested_status}",
            details={
                "current_status": current_status,
                "requested_status": requested_status,
                "allowed_statuses": allowed,
            },
        )
        self.current_status = current_status
        self.requested_status = requested_status
        self.allowed = allowed


class PermissionDenied(StoryError):
    kind = "PermissionDenied"
    default_code = "INSUFFICIENT_PERMISSIONS"
    default_status_code = 403


class RateLimitExceeded(StoryError):
    kind = "RateLimitExceeded"
    default_code = "RATE_LIMIT_EXCEEDED"
    default_status_code = 429


class DuplicateDetected(StoryError):
    kind = "DuplicateDetected"
    default_code = "DUPLICATE_STORY"
    default_status_code = 409

    def __init__(self, existing_story_id: int) -> None:
        super().__init__(
            "A story with the same title was recently created",
            details={"existing_story_id": existing_story_id},
        )
        self.existing_story_id = existing_story_id


class HasDependents(StoryError):
    kind = "HasDependents"
    default_code = "HAS_DEPENDENT_STORIES"
    default_status_code = 422


class BusinessValidationFailed(StoryError):
    kind = "BusinessValidationFailed"
    default_code = "BUSINESS_VALIDATION_FAILED"
    default_status_code = 422

    def __init__(
        self,
        errors: List[str],
        code: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        super().__init__(
            message or f"Business validation failed: {', '.join(errors)}",
            code=code,
            details=errors,
        )
        self.errors = errors
