from services.openaudit.client import DevicePage, OpenAuditClient
from services.openaudit.errors import (
    AuthError,
    ConstraintViolation,
    MappingError,
    SyncError,
    UpstreamError,
)

__all__ = [
    "DevicePage",
    "OpenAuditClient",
    "AuthError",
    "ConstraintViolation",
    "MappingError",
    "SyncError",
    "UpstreamError",
]
