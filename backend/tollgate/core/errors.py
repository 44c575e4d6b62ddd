"""API error classes.

Every failure the ledger, the access policy or an entry point can surface is
an APIError carrying a machine-readable code, a message and an HTTP status.
A single exception handler in main.py turns them into the error envelope.

Authorization denials are split per cause (pending, rejected, blocked,
insufficient credits, admin required) so clients can render the matching
explanation instead of a generic "forbidden".
"""


class APIError(Exception):
    """Base class for API errors.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Field validation failed (400).

    Use for bad amounts, invalid status values, missing required fields.
    Never retried automatically.
    """

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class UnauthorizedError(APIError):
    """Authentication required (401).

    Use when no valid session is present or credentials are wrong.
    """

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class NotFoundError(APIError):
    """Resource not found (404)."""

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(
            code="NOT_FOUND",
            message=message,
            status_code=404,
        )


class ConflictError(APIError):
    """Duplicate or conflicting resource (409).

    Accepts custom code for specific conflict types.
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details,
        )


class StoreError(APIError):
    """Ledger store unavailable or transaction failed (503).

    Raised with no partial write applied. The daily deduction batch
    captures it per user instead of propagating.
    """

    def __init__(self, message: str = "The ledger store is unavailable") -> None:
        super().__init__(
            code="STORE_ERROR",
            message=message,
            status_code=503,
        )


class AuthorizationError(APIError):
    """Caller lacks the required role, status or credit standing (403).

    Subclasses carry a distinct code and the redirect path the UI uses
    for that denial.
    """

    def __init__(self, code: str, message: str, redirect_path: str) -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=403,
            details=[{"redirect": redirect_path}],
        )
        self.redirect_path = redirect_path


class AccountPendingError(AuthorizationError):
    """Account is waiting for admin approval."""

    def __init__(self) -> None:
        super().__init__(
            code="ACCOUNT_PENDING",
            message="Account is pending approval",
            redirect_path="/pending",
        )


class AccountRejectedError(AuthorizationError):
    """Account was rejected by an administrator."""

    def __init__(self) -> None:
        super().__init__(
            code="ACCOUNT_REJECTED",
            message="Account has been rejected",
            redirect_path="/rejected",
        )


class AccountBlockedError(AuthorizationError):
    """Account is blocked (status BLOCKED or no credits left)."""

    def __init__(self) -> None:
        super().__init__(
            code="ACCOUNT_BLOCKED",
            message="Account has been blocked due to insufficient credits",
            redirect_path="/blocked",
        )


class InsufficientCreditsError(AuthorizationError):
    """Credit-metered capability requested with no credits remaining."""

    def __init__(self) -> None:
        super().__init__(
            code="INSUFFICIENT_CREDITS",
            message="Access denied: No credits remaining",
            redirect_path="/blocked",
        )


class AdminRequiredError(AuthorizationError):
    """Admin access required."""

    def __init__(self) -> None:
        super().__init__(
            code="ADMIN_REQUIRED",
            message="Admin access required",
            redirect_path="/unauthorized",
        )


class InternalError(APIError):
    """Unexpected server error (500).

    Use for unhandled exceptions. Never expose stack traces to clients.
    """

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__(
            code="INTERNAL_ERROR",
            message=message,
            status_code=500,
        )
