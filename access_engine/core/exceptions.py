"""Exception taxonomy for the authorization engine."""

from fastapi import HTTPException, status


class AccessEngineError(Exception):
    """Base exception for the access engine."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class ResourceNotFoundError(AccessEngineError):
    """Raised when an entity referenced by id does not exist."""
    status_code = status.HTTP_404_NOT_FOUND


class ResourceConflictError(AccessEngineError):
    """Raised on a duplicate role name or a delete blocked by assignments."""
    status_code = status.HTTP_409_CONFLICT


class ForbiddenError(AccessEngineError):
    """Raised when a system role is targeted by a mutation."""
    status_code = status.HTTP_403_FORBIDDEN


class ValidationError(AccessEngineError):
    """Raised when input validation fails, before any write."""
    status_code = 422


class StorageError(AccessEngineError):
    """Raised when the persistence layer fails."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


# HTTP exception shortcuts
def forbidden(detail: str = "Insufficient permissions") -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def unauthorized(detail: str = "Not authenticated") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )
