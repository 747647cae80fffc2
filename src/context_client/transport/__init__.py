"""Provider transports: remote HTTP and in-process modules."""

from .base import ProviderTransport
from .cached import CachedTransport
from .factory import create_transport
from .http import HttpTransport
from .module import ImportFromSource, ImportFromUri, ModuleTransport

__all__ = [
    "CachedTransport",
    "HttpTransport",
    "ImportFromSource",
    "ImportFromUri",
    "ModuleTransport",
    "ProviderTransport",
    "create_transport",
]
