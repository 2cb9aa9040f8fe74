"""
Error taxonomy shared by the platform client, the record store and the orchestrators.

Every error is an HTTPException so routes can let it propagate unchanged; the
detail is always a message that is safe to show to an operator.
"""

from fastapi import HTTPException, status
from typing import Optional


class ServiceError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(status_code=status_code or self.status_code, detail=detail)

    @property
    def message(self) -> str:
        return self.detail

    def __str__(self) -> str:
        return self.detail


class InputValidationError(ServiceError):
    """Malformed project name or domain; rejected before any remote call."""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(ServiceError):
    """Duplicate initialize or a deploy already in flight."""
    status_code = status.HTTP_409_CONFLICT


class PreconditionFailedError(ServiceError):
    """Operation needs a platform project that does not exist yet."""
    status_code = status.HTTP_400_BAD_REQUEST


class PlatformError(ServiceError):
    """A call to the hosting platform failed (API error, timeout or transport)."""
    status_code = status.HTTP_502_BAD_GATEWAY


class AlreadyExistsError(PlatformError):
    """The platform already holds the resource being created."""
    status_code = status.HTTP_409_CONFLICT


class PersistenceError(ServiceError):
    """A local write or read against the record store failed."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
