# scraping/__init__.py
# Portal adapters; importing a dialect module registers it with the adapter registry.

from .base import PortalAdapter, get_portal, register_portal, registered_types
from . import netschool  # noqa: F401  (registers type "01")

__all__ = [
    "PortalAdapter",
    "get_portal",
    "register_portal",
    "registered_types",
]
