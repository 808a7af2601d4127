# Error kinds raised by the core, translated to responses in app.py


class SharecalError(Exception):
    """Base class for every error the core raises on purpose."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailure(SharecalError):
    """Malformed input, e.g. an event ending before it starts."""


class NotFoundOrDenied(SharecalError):
    """The target is missing or the caller may not see it. Deliberately merged."""


class Conflict(SharecalError):
    """Duplicate registration or share, or deleting a default calendar."""


class PermissionDenied(SharecalError):
    """The caller can see the target but lacks the role for this action."""


class Internal(SharecalError):
    """Store or transaction failure."""
