"""
Submission Errors - Typed Exceptions for the Editorial Portal

Every business-rule violation is raised as a typed exception at the point
of detection. The HTTP layer maps each kind to a JSON response using
``status_code`` and ``to_dict()``; nothing in the core formats transport
responses itself.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence


class SubmissionError(Exception):
    """Base class for all portal errors."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for a JSON error body."""
        body: dict[str, Any] = {
            "success": False,
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            body["details"] = self.details
        return body


# =============================================================================
# Caller Errors (400)
# =============================================================================


class ValidationException(SubmissionError):
    """Caller-supplied input fails a declared constraint."""

    status_code = 400
    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Dados inválidos", validation_errors: Sequence[str] = ()):
        self.validation_errors = list(validation_errors)
        super().__init__(message, details={"validation_errors": self.validation_errors})


class InvalidStatusException(SubmissionError):
    """A state transition is not permitted from the current status."""

    status_code = 400
    error_code = "INVALID_STATUS"

    def __init__(
        self,
        message: str,
        current_status: Optional[str] = None,
        required_statuses: Sequence[str] = (),
    ):
        self.current_status = current_status
        self.required_statuses = list(required_statuses)
        super().__init__(
            message,
            details={
                "current_status": current_status,
                "required_statuses": self.required_statuses,
            },
        )


class IncompleteSubmissionException(SubmissionError):
    """Submit-for-review attempted while required content is missing."""

    status_code = 400
    error_code = "INCOMPLETE_SUBMISSION"

    def __init__(self, message: str = "Submissão incompleta", missing_fields: Sequence[str] = ()):
        self.missing_fields = list(missing_fields)
        super().__init__(message, details={"missing_fields": self.missing_fields})


class AttachmentException(SubmissionError):
    """Upload validation failure (type, size or count)."""

    status_code = 400
    error_code = "ATTACHMENT_ERROR"

    def __init__(self, message: str, validation_errors: Sequence[str] = ()):
        self.validation_errors = list(validation_errors)
        super().__init__(message, details={"validation_errors": self.validation_errors})


class AttachmentLimitException(AttachmentException):
    error_code = "ATTACHMENT_LIMIT_EXCEEDED"

    def __init__(self, max_attachments: int):
        self.max_attachments = max_attachments
        super().__init__(f"Máximo de {max_attachments} arquivos por submissão")
        self.details["max_attachments"] = max_attachments


class InvalidFileTypeException(AttachmentException):
    error_code = "INVALID_FILE_TYPE"

    def __init__(
        self,
        message: str,
        validation_errors: Sequence[str] = (),
        allowed_types: Sequence[str] = (),
    ):
        self.allowed_types = list(allowed_types)
        super().__init__(message, validation_errors)
        self.details["allowed_types"] = self.allowed_types


# =============================================================================
# Authorization Errors (401 / 403 / 410)
# =============================================================================


class UnauthorizedException(SubmissionError):
    status_code = 401
    error_code = "UNAUTHORIZED"

    def __init__(self, message: str = "Acesso não autorizado"):
        super().__init__(message)


class InvalidTokenException(SubmissionError):
    """Token format invalid, unknown, or author email mismatch."""

    status_code = 403
    error_code = "INVALID_TOKEN"

    def __init__(self, message: str = "Token inválido", reason: Optional[str] = None):
        self.reason = reason
        super().__init__(message, details={"reason": reason} if reason else None)


class TokenExpiredException(SubmissionError):
    """
    Token is well formed and known but past its expiry.

    Carries the stale submission snapshot so the caller can offer
    reactivation guidance.
    """

    status_code = 410
    error_code = "TOKEN_EXPIRED"

    def __init__(
        self,
        message: str = "Token expirado",
        can_recover: bool = True,
        submission: Optional[dict[str, Any]] = None,
    ):
        self.can_recover = can_recover
        self.submission = submission
        super().__init__(
            message,
            details={"can_recover": can_recover, "submission": submission},
        )


# =============================================================================
# Not Found (404)
# =============================================================================


class NotFoundException(SubmissionError):
    status_code = 404
    error_code = "NOT_FOUND"


class SubmissionNotFoundException(NotFoundException):
    error_code = "SUBMISSION_NOT_FOUND"

    def __init__(self, message: str = "Submissão não encontrada"):
        super().__init__(message)


class FileNotFoundException(NotFoundException):
    error_code = "FILE_NOT_FOUND"

    def __init__(self, message: str = "Arquivo não encontrado"):
        super().__init__(message)


class AdminNotFoundException(NotFoundException):
    error_code = "ADMIN_NOT_FOUND"

    def __init__(self, message: str = "Administrador não encontrado"):
        super().__init__(message)
