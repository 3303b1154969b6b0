# scraping/base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Dict, Type

from bs4 import BeautifulSoup

from sessions.errors import UnknownPortalType
from .models import Credentials, School

_REGISTRY: Dict[str, Type["PortalAdapter"]] = {}


def register_portal(type_tag: str) -> Callable[[Type["PortalAdapter"]], Type["PortalAdapter"]]:
    """Class decorator registering an adapter for a school portal type tag."""

    def decorator(cls: Type[PortalAdapter]) -> Type[PortalAdapter]:
        _REGISTRY[str(type_tag).lower()] = cls
        cls.type_tag = str(type_tag)
        return cls

    return decorator


def get_portal(type_tag: str) -> Type["PortalAdapter"]:
    try:
        return _REGISTRY[str(type_tag).lower()]
    except KeyError:
        raise UnknownPortalType(
            log_message=f"No portal adapter registered for type '{type_tag}'"
        ) from None


def registered_types() -> list[str]:
    return sorted(_REGISTRY)


class PortalAdapter(ABC):
    """Interface every portal dialect implements.

    An adapter instance belongs to exactly one RemoteSession and holds that
    session's authentication state. It is never called concurrently: the
    owning RemoteSession serialises all calls.

    Operations raise ``LoggedOutError`` when the portal no longer accepts the
    held session and ``RemoteError`` for any other portal-side failure.
    """

    type_tag: str = ""
    # Names of the data operations RemoteSession.fetch may dispatch to.
    OPERATIONS: frozenset = frozenset()

    def __init__(self, school: School, credentials: Credentials) -> None:
        self.school = school
        self.credentials = credentials

    @abstractmethod
    def login(self) -> None:
        """Authenticates against the portal. Raises AuthError or RemoteError."""

    @abstractmethod
    def logout(self) -> None:
        """Best-effort invalidation of the portal session."""

    def reset(self) -> None:
        """Drops any authentication state so login() can start from scratch."""

    @staticmethod
    def soup(html: str) -> BeautifulSoup:
        return BeautifulSoup(html or "", "lxml")
