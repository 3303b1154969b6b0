# sessions/__init__.py
# Remote session manager: sessions, registry and the relogin policy.

from .errors import (
    AuthError,
    CreationError,
    LocalSessionError,
    LoggedOutError,
    NotFound,
    PortalError,
    RemoteError,
    StoreError,
    UnknownPortalType,
    UnsupportedOperation,
)

__all__ = [
    "AuthError",
    "CreationError",
    "LocalSessionError",
    "LoggedOutError",
    "NotFound",
    "PortalError",
    "RemoteError",
    "StoreError",
    "UnknownPortalType",
    "UnsupportedOperation",
]
