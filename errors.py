# errors.py
from dataclasses import dataclass, field
from typing import Optional


class GiftError(Exception):
    """Base class for every error raised by the app."""


class AuthError(GiftError):
    pass


class ValidationError(GiftError):
    def __init__(self, message, missing_fields=None):
        super().__init__(message)
        self.missing_fields = list(missing_fields or [])


class TransitionError(GiftError):
    pass


class UnknownRoleError(GiftError):
    def __init__(self, role):
        super().__init__(f"Unknown role: {role!r}")
        self.role = role


class StorageError(GiftError):
    pass


class NotFoundError(GiftError):
    pass


@dataclass
class Result:
    """Outcome of a call that must not raise past its boundary.

    Callers check `success` explicitly; `kind` tells what failed
    ("network", "server", "provider", "declined", ...).
    """

    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    kind: Optional[str] = None
    data: dict = field(default_factory=dict)

    @classmethod
    def ok(cls, message=None, **data):
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, error, kind="error", **data):
        return cls(success=False, error=error, kind=kind, data=data)
