"""
Error taxonomy shared by the session and relation services.

Terminal errors (the caller must re-authenticate or fix the request):
NotFound, InvalidCredential, TokenMalformed, TokenExpired, SessionRevoked, Conflict.
Retryable errors: StoreUnavailable (and SessionManagerUnavailable), DeadlineExceeded.

The services never retry on their own; every operation is idempotent or guarded by
a compare-and-swap, so retrying is left to the caller.
"""
from __future__ import annotations


class ServiceError(Exception):
    status = 500
    error = "INTERNAL_ERROR"
    retryable = False
    default_message = "An unexpected error occurred"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class NotFound(ServiceError):
    status = 404
    error = "NOT_FOUND"
    default_message = "User not found"


class InvalidCredential(ServiceError):
    status = 401
    error = "INVALID_CREDENTIAL"
    default_message = "Invalid credential"


class TokenMalformed(ServiceError):
    status = 401
    error = "TOKEN_MALFORMED"
    default_message = "Invalid token"


class TokenExpired(ServiceError):
    status = 401
    error = "TOKEN_EXPIRED"
    default_message = "Token expired"


class SessionRevoked(ServiceError):
    status = 401
    error = "SESSION_REVOKED"
    default_message = "Refresh token is no longer valid, please log in again"


class Conflict(ServiceError):
    status = 409
    error = "CONFLICT"
    default_message = "Conflict"


class DeadlineExceeded(ServiceError):
    status = 504
    error = "DEADLINE_EXCEEDED"
    retryable = True
    default_message = "Deadline exceeded before the store responded"


class StoreUnavailable(ServiceError):
    status = 503
    error = "STORE_UNAVAILABLE"
    retryable = True
    default_message = "Storage is temporarily unavailable"


class SessionManagerUnavailable(StoreUnavailable):
    error = "SESSION_MANAGER_UNAVAILABLE"
    default_message = "Session service is temporarily unavailable"
