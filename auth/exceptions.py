"""Typed exceptions for auth failures.

Every expected failure of registration, activation and login is one of
these. The HTTP layer maps them to status codes; nothing else should.
"""


class AuthError(Exception):
    """Base class for authentication/authorization errors."""


class InvalidInputError(AuthError):
    """Request fields are missing or malformed. Safe to show the user."""


class DuplicateUserError(AuthError):
    """Email or username already belongs to an account."""


class InvalidCredentialsError(AuthError):
    """
    Email/password pair did not authenticate.

    Raised identically for an unknown email and a wrong password.
    """


class UserNotActivatedError(AuthError):
    """Password was correct but the account is still pending activation."""


class InvalidTokenError(AuthError):
    """
    Token is invalid, expired, or already used.

    Used for both activation tokens and identity tokens. Callers facing
    the outside world should catch this base class and not reveal which
    subclass occurred.
    """


class TokenNotFoundError(InvalidTokenError):
    """No activation token with this value exists."""


class TokenExpiredError(InvalidTokenError):
    """Activation token is past its expiry. It was not consumed."""


class TokenAlreadyConsumedError(InvalidTokenError):
    """Activation token was already used (possibly by a concurrent request)."""


class MalformedTokenError(InvalidTokenError):
    """Identity token is structurally invalid: bad encoding or missing claims."""


class BadSignatureError(InvalidTokenError):
    """Identity token signature does not verify."""


class IdentityTokenExpiredError(InvalidTokenError):
    """Identity token signature is valid but the token has expired."""


class UserNotFoundError(AuthError):
    """
    User record is missing.

    During activation this means a valid token points at a deleted user,
    which is a data inconsistency and is logged as such.
    """


class InternalAuthError(AuthError):
    """Storage, crypto or notification failure. Details stay server-side."""


class HashError(InternalAuthError):
    """Password hashing failed: input too long, bcrypt error, or timeout."""
