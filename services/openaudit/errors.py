class SyncError(Exception):
    """Base class for failures raised by the Open-AudIT sync."""


class AuthError(SyncError):
    """Login rejected or no usable session cookie returned."""


class UpstreamError(SyncError):
    """Open-AudIT answered with a non-2xx status or an unexpected body."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class MappingError(SyncError):
    """A device row does not have the shape the mapper expects."""


class ConstraintViolation(SyncError):
    """The asset store rejected a write on a uniqueness constraint."""
