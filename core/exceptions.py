"""
Custom exception classes and error handling.

APIException subclasses carry an HTTP status and are surfaced to clients
as-is. The plain Exception subclasses at the bottom are raised on worker
paths (work queue jobs, workflow runs) where there is no request.
"""
import math
from fastapi import HTTPException, status
from typing import Optional, Dict, Any


class APIException(HTTPException):
    """Base API exception with consistent structure."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class NotFoundError(APIException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found: {identifier}",
            error_code="NOT_FOUND"
        )


class ValidationError(APIException):
    """Validation error."""

    def __init__(self, detail: str, field: Optional[str] = None):
        error_code = f"VALIDATION_ERROR_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            error_code=error_code
        )


class UnauthorizedError(APIException):
    """Authentication required."""

    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="UNAUTHORIZED",
            headers={"WWW-Authenticate": "Bearer"}
        )


class ForbiddenError(APIException):
    """Access denied."""

    def __init__(self, detail: str = "Not authorized"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code="FORBIDDEN"
        )


class RateLimitExceededError(APIException):
    """
    A rate or quota gate denied the request.

    retry_after is in seconds and is always shown to the end user.
    """

    def __init__(self, detail: str, retry_after: Optional[float] = None, error_code: str = "RATE_LIMITED"):
        self.retry_after = int(math.ceil(retry_after)) if retry_after else None
        headers = {"Retry-After": str(self.retry_after)} if self.retry_after else None
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=detail,
            error_code=error_code,
            headers=headers,
        )


class PlanPreconditionError(APIException):
    """Profile or assessment missing: the user has not finished onboarding."""

    def __init__(self, detail: str = "Cannot generate plan yet: profile or assessment not found"):
        super().__init__(
            status_code=status.HTTP_412_PRECONDITION_FAILED,
            detail=detail,
            error_code="PLAN_PRECONDITION"
        )


# ---------------------------------------------------------------------------
# Worker-side errors
# ---------------------------------------------------------------------------

class AIProviderError(Exception):
    """Text generation failed after the client's bounded retries."""


class PlanGenerationError(Exception):
    """A workflow finished its generation jobs without two usable plans."""


class WorkflowTimeoutError(Exception):
    """A workflow gave up waiting on a work-queue job."""

    def __init__(self, job_id: str, waited_s: float):
        super().__init__(f"Generation job {job_id} did not finish within {int(waited_s)}s")
        self.job_id = job_id
        self.waited_s = waited_s
