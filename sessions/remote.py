# sessions/remote.py
import logging
import threading
import time

from scraping.base import get_portal
from .errors import LoggedOutError, PortalError, RemoteError, UnsupportedOperation

logger = logging.getLogger(__name__)


class RemoteSession:
    """
    One authenticated scraping session against a school's portal.

    Wraps a portal adapter bound to one user's credentials. Every public call
    holds the session's own lock for its whole duration, network I/O included,
    so concurrent requests for the same user queue up instead of racing on the
    adapter's tokens. Locks are never shared between sessions.
    """

    def __init__(self, school, credentials, adapter_factory=get_portal):
        self.school = school
        self.credentials = credentials
        adapter_cls = adapter_factory(school.type)
        self.adapter = adapter_cls(school, credentials)
        self.lock = threading.Lock()
        self.created_at = time.time()
        self.last_activity = self.created_at
        self.logged_in = False
        self.children_map = None
        self.is_parent = False

    @property
    def username(self) -> str:
        return self.credentials.username

    def _touch(self) -> None:
        self.last_activity = time.time()

    def login(self) -> None:
        """Runs the portal handshake. Raises AuthError or RemoteError."""
        with self.lock:
            self._touch()
            self.logged_in = False
            try:
                self.adapter.login()
            except PortalError:
                raise
            except Exception as e:
                logger.error(
                    f"Unexpected login failure for {self.username}@{self.school.id}: {e}",
                    exc_info=True,
                )
                raise RemoteError(log_message=f"Login failed: {e}") from e
            self.logged_in = True
            logger.info(f"Remote session logged in for {self.username}@{self.school.id}")

    def fetch(self, operation: str, **params):
        """
        Runs one named adapter operation under the session lock.

        Raises LoggedOutError when the portal dropped the session and
        RemoteError for anything else that went wrong. A failed fetch leaves
        the session usable for later calls.
        """
        if operation not in self.adapter.OPERATIONS:
            raise UnsupportedOperation(
                log_message=f"Portal type '{self.school.type}' has no operation '{operation}'"
            )
        method = getattr(self.adapter, operation)
        with self.lock:
            self._touch()
            try:
                return method(**params)
            except LoggedOutError:
                self.logged_in = False
                raise
            except PortalError:
                raise
            except Exception as e:
                logger.error(
                    f"'{operation}' failed for {self.username}@{self.school.id}: {e}",
                    exc_info=True,
                )
                raise RemoteError(log_message=f"{operation} failed: {e}") from e

    def logout(self) -> None:
        """Best effort; a portal failure is logged and re-raised as RemoteError."""
        with self.lock:
            self._touch()
            try:
                self.adapter.logout()
            except PortalError as e:
                logger.warning(f"Remote logout failed for {self.username}: {e.log_message}")
                raise RemoteError(log_message=e.log_message) from e
            except Exception as e:
                logger.warning(f"Remote logout failed for {self.username}: {e}")
                raise RemoteError(log_message=f"Logout failed: {e}") from e
            finally:
                self.logged_in = False

    def describe(self) -> dict:
        return {
            "school_id": self.school.id,
            "school_type": self.school.type,
            "username": self.username,
            "is_parent": self.is_parent,
            "logged_in": self.logged_in,
            "created_at": self.created_at,
            "last_activity": self.last_activity,
        }

    def __repr__(self):
        return f"<RemoteSession {self.username}@{self.school.id} logged_in={self.logged_in}>"
