# backend/sparfinder/core/exceptions.py
"""
Domain-specific exceptions for the sparring chat backend.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer
and by the realtime gateway.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Convert to an HTTPException carrying the structured detail."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found (or hidden from the caller)."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class UnauthorizedException(DomainException):
    """Raised when user is not authenticated."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenException(DomainException):
    """Raised when user lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(
        self,
        message: str = "Not authorized",
        code: Optional[str] = "FORBIDDEN",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code=code, details=details)


class ServiceException(DomainException):
    """Raised when a service operation fails."""


# Specific messaging exceptions


class InvalidPayloadException(ValidationException):
    """Raised when a payload is malformed or misses a required field."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="INVALID_PAYLOAD", details=details)


class InvalidIdException(ValidationException):
    """Raised when an identifier is not numeric."""

    def __init__(self, message: str = "Invalid ID", *, code: str = "INVALID_ID"):
        super().__init__(message, code=code)


class AlreadyDeletedException(ValidationException):
    """Raised when a message side is deleted twice."""

    def __init__(self, message: str = "Message already deleted"):
        super().__init__(message, code="ALREADY_DELETED")


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
