"""
Domain error types for the cold case revival backend.

Every service raises one of these instead of HTTPException so that the same
code paths serve the command API, the event handlers and the batch pass.
The API layer converts them with to_http_exception().

- ValidationError: rejected synchronously, never partially applied (400)
- ConflictError: second open review, concurrent score mutation (409)
- NotFoundError: unknown entity id (404)
- TransientDependencyError: a collaborator (database, lab, dispatcher)
  failed; batch items log and retry next pass (503)
"""

from typing import Optional

from fastapi import HTTPException


class ColdCaseError(Exception):
    """Base class for all cold case domain errors."""

    status_code: int = 500
    code: str = "cold_case_error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(ColdCaseError):
    status_code = 400
    code = "validation_error"


class ConflictError(ColdCaseError):
    status_code = 409
    code = "conflict"


class NotFoundError(ColdCaseError):
    status_code = 404
    code = "not_found"


class TransientDependencyError(ColdCaseError):
    status_code = 503
    code = "dependency_unavailable"


def to_http_exception(error: ColdCaseError) -> HTTPException:
    """
    Convert a domain error into the HTTPException returned by the API.

    The detail keeps the same {message, code} shape for every error type.
    """
    return HTTPException(
        status_code=error.status_code,
        detail={"message": error.message, "code": error.code},
    )
