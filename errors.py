from typing import Optional


class DTRError(Exception):
    """Base class for errors the API renders as user-visible messages."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DTRError):
    """Missing or malformed input. Carries the offending field when known."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ShiftStateError(ValidationError):
    """Time-in while already timed in, time-out before time-in, and so on."""


class ConflictError(DTRError):
    """Username or email already registered."""


class AuthError(DTRError):
    """Bad credentials or an invalid session.

    The message never says which check failed.
    """

    status_code = 401

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class IndexOutOfRange(DTRError):
    status_code = 404

    def __init__(self, index: int, length: int):
        super().__init__(f"No entry at position {index} (have {length})")
        self.index = index
        self.length = length


class CaptureError(DTRError):
    """Camera unavailable, denied, busy, not ready, or an unusable frame."""

    PERMISSION_DENIED = "permission_denied"
    NO_DEVICE = "no_device"
    DEVICE_BUSY = "device_busy"
    NOT_READY = "not_ready"
    INVALID_FRAME = "invalid_frame"

    def __init__(self, kind: str, message: str):
        super().__init__(message)
        self.kind = kind


class StorageError(DTRError):
    """Persistence failure. Logged in full, rendered as a generic 500."""

    status_code = 500
