# sessions/registry.py
import logging
import threading

from .errors import CreationError, NotFound, PortalError
from .remote import RemoteSession

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    Process-wide map from a local session id to its RemoteSession.

    The registry lock guards the map only. Logins happen outside it, so a slow
    portal never blocks lookups for other users. Two creators racing on the
    same key both log in and the later insert wins.
    """

    def __init__(self, session_factory=RemoteSession):
        self._session_factory = session_factory
        self._sessions: dict[str, RemoteSession] = {}
        self._lock = threading.Lock()

    def create(self, school, credentials) -> RemoteSession:
        """Builds a session that is not logged in and not registered yet."""
        return self._session_factory(school, credentials)

    def get(self, key: str) -> RemoteSession | None:
        with self._lock:
            return self._sessions.get(key)

    def get_or_create(self, key: str, auth_data_resolver) -> RemoteSession:
        """
        Returns the session for ``key``, logging in a new one if it is absent.

        ``auth_data_resolver`` is called only on absence and must return
        ``(School, Credentials)``. Every failure on the way is raised as
        CreationError with the original error as ``cause``; nothing is inserted.
        """
        session = self.get(key)
        if session is not None:
            return session

        try:
            school, credentials = auth_data_resolver()
            session = self.create(school, credentials)
            session.login()
        except (PortalError, NotFound) as e:
            logger.warning(f"Could not create remote session for key {key[:8]}...: {e!r}")
            raise CreationError(cause=e) from e
        except Exception as e:
            logger.error(f"Unexpected error creating remote session: {e}", exc_info=True)
            raise CreationError(cause=e) from e

        self.insert(key, session)
        return session

    def insert(self, key: str, session: RemoteSession) -> None:
        with self._lock:
            if key in self._sessions:
                logger.info(f"Replacing remote session for key {key[:8]}...")
            self._sessions[key] = session

    def invalidate(self, key: str) -> None:
        """Drops the entry if present. Does not log the portal session out."""
        with self._lock:
            self._sessions.pop(key, None)

    def pop(self, key: str) -> RemoteSession | None:
        with self._lock:
            return self._sessions.pop(key, None)

    def snapshot(self) -> dict[str, RemoteSession]:
        with self._lock:
            return dict(self._sessions)

    def __len__(self):
        with self._lock:
            return len(self._sessions)

    def __contains__(self, key):
        with self._lock:
            return key in self._sessions
