"""
Error types raised by the progress engine

Only primary Record Store failures are raised to callers. Side effects
(analytics events, milestone checks, session recompute, offline cache) log
and swallow their own failures.
"""
from typing import Optional


class DatabaseError(Exception):
    """A primary read or write against the Record Store failed"""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        cause: Optional[BaseException] = None
    ):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.cause = cause

    def __str__(self) -> str:
        parts = [self.message]
        if self.operation:
            parts.append(f"operation={self.operation}")
        if self.cause is not None:
            parts.append(f"cause={self.cause!r}")
        return " | ".join(parts)


class SessionNotFoundError(DatabaseError):
    """The onboarding session referenced by an aggregate computation does not exist"""

    def __init__(self, session_id: str, operation: Optional[str] = None):
        super().__init__(f"Onboarding session not found: {session_id}", operation=operation)
        self.session_id = session_id
