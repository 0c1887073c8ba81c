"""Error taxonomy for account registration, sign-in and token handling.

Every variant carries the HTTP status it maps to and the message that is
safe to show to a caller. Anything that escapes without one of these types
is reported as a generic server error by the API layer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .account import Account


class IdentityError(Exception):
    """Base class for failures surfaced to API callers."""

    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message


class ValidationFailed(IdentityError):
    """Caller supplied malformed or missing input."""

    status_code = 422
    message = "Invalid input"


class InvalidInput(ValidationFailed):
    """Raised by the password hasher for empty or oversized secrets."""


class AccountAlreadyExists(IdentityError):
    status_code = 409
    message = "User already exists"


class InvalidCredentials(IdentityError):
    """Unknown email or wrong password; the two cases are indistinguishable."""

    status_code = 401
    message = "Invalid credentials"


class TokenExpired(IdentityError):
    status_code = 401
    message = "Token expired"


class TokenInvalid(IdentityError):
    status_code = 401
    message = "Invalid token"


class InfrastructureError(IdentityError):
    """Server-side failure not attributable to caller input."""

    status_code = 500
    message = "Internal server error"


class TransactionTimeout(InfrastructureError):
    status_code = 503
    message = "Transaction timed out"


class StoreUnavailable(InfrastructureError):
    status_code = 503
    message = "Account store unavailable"


class SigningKeyMissing(InfrastructureError):
    message = "Token signing is not configured"


class CorruptHash(InfrastructureError):
    message = "Stored credential is unreadable"


class RegistrationIncomplete(InfrastructureError):
    """The account was committed but no token could be issued for it."""

    message = "User created but token could not be issued"

    def __init__(self, account: "Account", message: str | None = None) -> None:
        super().__init__(message)
        self.account = account


class DuplicateKey(Exception):
    """Raised by account stores when the unique email index rejects an insert."""

    def __init__(self, email: str) -> None:
        super().__init__("duplicate account email")
        self.email = email
