"""
Fireside Backend — Custom Exception Hierarchy
===============================================

What:  Every failure the highlight service reports, local or remote.
How:   Each class holds a `message` (shown to the reader) and a `context`
       dict (logged only). fireside.main maps the classes onto HTTP
       statuses; nothing else in the code base builds error responses.
Who:   Raised by services and the Supabase transport; caught by global handlers.

Exception Hierarchy:
    FiresideError (base)
    ├── ValidationError           → 400 Bad Request (client can fix)
    ├── NotFoundError             → 404 Not Found
    ├── UnauthorizedError         → 401/403 (backend refused the caller)
    ├── RemoteRejectedError       → 422 Unprocessable (backend refused the payload)
    └── RemoteUnavailableError    → 503 Service Unavailable (retry later)
        └── CircuitBreakerOpenError → 503 Service Unavailable (circuit open)

A highlight whose stored range no longer fits its text is NOT an error: the
renderer drops it from the output and reports its id.
"""

from typing import Any, Dict, Optional


class FiresideError(Exception):
    """
    Base exception for all Fireside application errors.

    Attributes:
        message:  Text for the reader; returned in the error envelope
        context:  Request ids, status codes, PostgREST codes; server logs only
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(FiresideError):
    """
    Raised when client input fails a business rule.

    When:    Selection is empty or outside the text, sentence index out of range,
             more than one range source supplied in a create request.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(FiresideError):
    """
    Raised when a requested resource does not exist.

    When:    Entry id unknown to the backend, highlight id missing from the
             caller's store.
    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class UnauthorizedError(FiresideError):
    """
    Raised when the backend refuses the caller.

    What:    Missing/expired access token, or a row-level policy rejected the
             operation (e.g. deleting someone else's highlight).
    HTTP:    401 when no valid session, 403 when the session lacks permission.

    The backend's message is surfaced verbatim. Hiding the delete button for
    non-owners is a UX affordance only; this error is the actual boundary.
    """

    def __init__(
        self,
        message: str = "You are not allowed to perform this action",
        status_code: int = 403,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["status_code"] = status_code
        super().__init__(message=message, context=ctx)
        self.status_code = status_code


class RemoteRejectedError(FiresideError):
    """
    Raised when the backend answers with a 4xx other than an auth failure.

    What:    Constraint violation, bad RPC argument, check constraint on color.
    HTTP:    422 Unprocessable Entity
    """

    def __init__(
        self,
        message: str = "The request was rejected by the backend",
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if code:
            ctx["code"] = code
        super().__init__(message=message, context=ctx)
        self.code = code


class RemoteUnavailableError(FiresideError):
    """
    Raised when a call to the backend could not complete.

    What:    Network error, timeout, or 5xx from Supabase.
    When:    After any transport-level retries are exhausted (reads only).
    HTTP:    503 Service Unavailable

    The mutation gateway rolls back its optimistic change before re-raising.
    """

    def __init__(
        self,
        message: str = "The backend is temporarily unavailable",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class CircuitBreakerOpenError(RemoteUnavailableError):
    """
    Raised when the circuit breaker is in OPEN state.

    What:    Too many consecutive transport failures tripped the breaker.
    HTTP:    503 Service Unavailable

    How circuit breaker works:
        CLOSED (normal) → failures increment counter
        → After N failures → OPEN (reject all calls for the recovery window)
        → After the window → HALF-OPEN (allow one test call)
        → If test succeeds → CLOSED
        → If test fails → OPEN again
    """

    def __init__(
        self,
        recovery_time: int = 30,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            "The backend is temporarily unavailable due to repeated failures. "
            f"Try again in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, retry_after=recovery_time, context=ctx)
        self.recovery_time = recovery_time
