"""
Custom exceptions for the session/profile core.

Every adapter (identity provider, profile repository, persistence)
raises these exceptions so the store can apply one error policy
regardless of which backend produced the failure.
"""

EMAIL_NOT_CONFIRMED_MESSAGE = (
    "Please confirm your email address by clicking the link in the email we sent you."
)
REGISTRATION_PENDING_MESSAGE = (
    "Please check your email and click the confirmation link to complete your registration."
)


class SessionStoreError(Exception):
    """Base exception for all session store errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class CredentialError(SessionStoreError):
    """Raised when the provider rejects the supplied credentials."""

    def __init__(self, message: str = "Invalid login credentials", code: str | None = None):
        details = {}
        if code:
            details["code"] = code
        super().__init__(message, details)
        self.code = code


class EmailNotConfirmedError(CredentialError):
    """Raised when signing in before the email address was confirmed."""

    def __init__(self, message: str = EMAIL_NOT_CONFIRMED_MESSAGE):
        super().__init__(message, code="email_not_confirmed")


class RegistrationError(SessionStoreError):
    """Raised when the provider refuses a registration."""

    def __init__(self, message: str = "Signup failed", code: str | None = None):
        details = {}
        if code:
            details["code"] = code
        super().__init__(message, details)
        self.code = code


class RegistrationPendingError(SessionStoreError):
    """Registration accepted but waiting for email confirmation.

    Not a failure: the store records the message as an informational
    error and does not raise it.
    """

    def __init__(self, email: str, message: str = REGISTRATION_PENDING_MESSAGE):
        super().__init__(message, {"email": email})
        self.email = email


class TransportError(SessionStoreError):
    """Raised when a remote call fails (network, timeout, 5xx).

    Note: status is the HTTP status when the remote answered at all.
    """

    def __init__(
        self,
        endpoint: str,
        cause: Exception | None = None,
        status: int | None = None,
        retry_after: float | None = None,
    ):
        details: dict = {"endpoint": endpoint}
        if cause:
            details["cause"] = str(cause)
        if status is not None:
            details["status"] = status
        message = f"Request failed to {endpoint}"
        if status is not None:
            message += f" (HTTP {status})"
        super().__init__(message, details)
        self.endpoint = endpoint
        self.cause = cause
        self.status = status
        self.retry_after = retry_after


class ProfileNotFoundError(SessionStoreError):
    """Raised when no profile exists for an identity."""

    def __init__(self, profile_id: str, code: str | None = None):
        details = {"profile_id": profile_id}
        if code:
            details["code"] = code
        super().__init__(f"Profile not found: {profile_id}", details)
        self.profile_id = profile_id
        self.code = code


class ProfileExistsError(SessionStoreError):
    """Raised when trying to create a profile that already exists."""

    def __init__(self, profile_id: str):
        super().__init__(f"Profile already exists: {profile_id}", {"profile_id": profile_id})
        self.profile_id = profile_id


class RepositoryError(SessionStoreError):
    """Raised for profile repository failures other than not-found/exists."""

    def __init__(self, operation: str, reason: str, code: str | None = None):
        details = {"operation": operation, "reason": reason}
        if code:
            details["code"] = code
        super().__init__(f"Profile {operation} failed: {reason}", details)
        self.operation = operation
        self.reason = reason
        self.code = code


class ValidationError(SessionStoreError):
    """Raised when input or configuration validation fails."""

    def __init__(self, field: str, reason: str, value: str | None = None):
        details = {"field": field, "reason": reason}
        if value is not None:
            details["value"] = value
        super().__init__(f"Validation failed for {field}: {reason}", details)
        self.field = field
        self.reason = reason
        self.value = value


class PersistenceIOError(SessionStoreError):
    """Raised when a persistence read or write fails."""

    def __init__(self, operation: str, path: str | None = None, cause: Exception | None = None):
        details = {"operation": operation}
        if path:
            details["path"] = path
        if cause:
            details["cause"] = str(cause)
        message = f"Persistence I/O error during {operation}"
        if path:
            message += f": {path}"
        super().__init__(message, details)
        self.operation = operation
        self.path = path
        self.cause = cause
