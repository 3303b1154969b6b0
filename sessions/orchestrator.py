# sessions/orchestrator.py
import logging

from .errors import LoggedOutError

logger = logging.getLogger(__name__)


class ReloginOrchestrator:
    """
    Wraps every data fetch with the relogin policy.

    The first fetch runs on whatever session the registry holds (logging one
    in if needed). If the portal says the session is gone, the entry is
    dropped, a fresh session is logged in and the fetch runs exactly once
    more. Whatever that second attempt produces is final. RemoteError is never
    retried.
    """

    def __init__(self, registry):
        self.registry = registry

    def fetch(self, key: str, auth_data_resolver, operation: str, **params):
        session = self.registry.get_or_create(key, auth_data_resolver)
        try:
            return session.fetch(operation, **params)
        except LoggedOutError:
            logger.info(f"Portal dropped session for {session.username}; logging in again for '{operation}'")

        self.registry.invalidate(key)
        session = self.registry.get_or_create(key, auth_data_resolver)
        return session.fetch(operation, **params)
