"""
Error taxonomy for the HTTP boundary.

The engine and store never raise these; they are produced while parsing
input, when an administrative lookup misses, or when an attempt decision
has to be reported as a failure status.
"""

from __future__ import annotations


class LockoutError(Exception):
    """Base error carrying the HTTP status and the caller-facing messages."""

    status_code: int = 500

    def __init__(self, user_message: str, developer_message: str | None = None) -> None:
        super().__init__(user_message)
        self.user_message = user_message
        self.developer_message = developer_message


class ValidationError(LockoutError):
    """Empty, missing or unparseable input."""

    status_code = 400


class RejectedError(LockoutError):
    """Failed attempt below the lockout threshold."""

    status_code = 401

    def __init__(self, attempt: int, threshold: int, developer_message: str | None = None) -> None:
        super().__init__(
            "Invalid username or password",
            developer_message or f"Failed login attempt {attempt} of {threshold}",
        )
        self.attempt = attempt
        self.threshold = threshold


class NotFoundError(LockoutError):
    """No lockout record exists for the username."""

    status_code = 404

    def __init__(self, username: str) -> None:
        super().__init__(f"No account information found for user: {username}")
        self.username = username


class LockedError(LockoutError):
    """Account is locked; retry after the remaining seconds."""

    status_code = 429

    def __init__(
        self,
        remaining_seconds: int,
        user_message: str | None = None,
        developer_message: str | None = None,
    ) -> None:
        super().__init__(
            user_message
            or f"Your account is locked. Please try again in {remaining_seconds} seconds",
            developer_message,
        )
        self.remaining_seconds = remaining_seconds


class InternalFault(LockoutError):
    """Unexpected failure. Details stay in the server log."""

    status_code = 500

    def __init__(self) -> None:
        super().__init__("An error occurred while processing your request")
