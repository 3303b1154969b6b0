# sessions/errors.py
"""Error kinds shared by the portal adapters, the session core and the API layer.

Every error carries the HTTP status it maps onto and a ``log_outcome`` tag for
the request log, so handlers can turn any of them into a response the same way.
The ``message`` is what the client sees; details from the portal go into
``log_message`` only.
"""


class PortalError(Exception):
    """Base class for errors surfaced by the session core."""

    status_code = 502
    log_outcome = "portal_error"
    public_message = "School portal is unavailable"

    def __init__(self, message=None, status_code=None, log_outcome=None, log_message=None):
        super().__init__(message or self.public_message)
        if status_code is not None:
            self.status_code = status_code
        if log_outcome is not None:
            self.log_outcome = log_outcome
        self.log_message = log_message or str(self)


class AuthError(PortalError):
    """The portal rejected the credentials."""

    status_code = 401
    log_outcome = "remote_auth_error"
    public_message = "Invalid credentials"


class LoggedOutError(PortalError):
    """The portal no longer accepts the session token held for this user."""

    status_code = 502
    log_outcome = "remote_logged_out"
    public_message = "School portal session expired"


class RemoteError(PortalError):
    """Any other failure talking to the portal (network, timeout, odd page)."""

    status_code = 502
    log_outcome = "remote_error"


class UnknownPortalType(RemoteError):
    log_outcome = "unknown_portal_type"


class UnsupportedOperation(RemoteError):
    log_outcome = "unsupported_operation"


class CreationError(PortalError):
    """A remote session could not be established at all."""

    status_code = 502
    log_outcome = "remote_session_creation_error"

    def __init__(self, message=None, cause=None, **kwargs):
        # Rejected or unknown credentials are the user's problem, not the portal's.
        if cause is not None and "status_code" not in kwargs:
            if isinstance(cause, (AuthError, NotFound)):
                kwargs["status_code"] = 401
        if cause is not None and "log_message" not in kwargs:
            kwargs["log_message"] = f"{message or self.public_message}: {cause}"
        if isinstance(cause, AuthError):
            message = message or AuthError.public_message
        super().__init__(message, **kwargs)
        self.cause = cause


class NotFound(Exception):
    """A record is missing from the user/school store."""


class StoreError(PortalError):
    """The user/school store is unavailable or returned corrupt data."""

    status_code = 500
    log_outcome = "store_error"
    public_message = "An internal server error occurred"


class LocalSessionError(PortalError):
    """The request carries no usable local session cookie."""

    status_code = 401
    log_outcome = "local_session_missing"
    public_message = "Not signed in"
