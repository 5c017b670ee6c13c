"""
Domain Exceptions

Every error the domain raises on purpose carries an HTTP status and a
machine-readable code; the API layer turns them into JSON responses.
"""

from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base class for expected, user-facing domain failures"""

    status_code = 400
    default_code = "domain_error"
    default_message = "The request could not be completed."

    def __init__(self, message: Optional[str] = None, *, code: Optional[str] = None, **extra: Any):
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        data = {"detail": self.message, "code": self.code}
        data.update(self.extra)
        return data


class PersistenceError(DomainError):
    """
    The store could not complete an operation (timeout, lost connection,
    pool exhaustion). Shown to users as a generic retry-later message.
    """

    status_code = 503
    default_code = "persistence_error"
    default_message = "The booking store is temporarily unavailable. Please try again later."
