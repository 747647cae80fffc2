from __future__ import annotations

from typing import Optional
from urllib.parse import urlsplit

from ..config import ClientSettings
from ..errors import UnsupportedProviderError
from ..models import AuthInfo
from .base import ProviderTransport
from .cached import CachedTransport
from .http import HttpTransport
from .module import ImportFromSource, ImportFromUri, ModuleTransport

_MODULE_SCHEMES = ("file", "python")
_HTTP_SCHEMES = ("http", "https")


def create_transport(
    provider_uri: str,
    *,
    auth_info: Optional[AuthInfo] = None,
    import_from_uri: Optional[ImportFromUri] = None,
    import_from_source: Optional[ImportFromSource] = None,
    settings: Optional[ClientSettings] = None,
    cache: bool = True,
) -> ProviderTransport:
    """Pick a transport from the URI scheme.

    ``http(s)`` URIs are remote JSON endpoints unless the path ends in
    ``.py``, in which case the source is fetched and run in-process.
    """

    settings = settings or ClientSettings()
    parts = urlsplit(provider_uri)

    transport: ProviderTransport
    if parts.scheme in _HTTP_SCHEMES and not parts.path.endswith(".py"):
        transport = HttpTransport(
            provider_uri,
            auth_info=auth_info,
            timeout_seconds=settings.http_timeout_seconds,
        )
    elif parts.scheme in _HTTP_SCHEMES or parts.scheme in _MODULE_SCHEMES:
        transport = ModuleTransport(
            provider_uri,
            auth_info=auth_info,
            import_from_uri=import_from_uri,
            import_from_source=import_from_source,
            timeout_seconds=settings.http_timeout_seconds,
        )
    else:
        raise UnsupportedProviderError(provider_uri)

    if cache and settings.capabilities_cache_ttl_seconds > 0:
        transport = CachedTransport(transport, ttl_seconds=settings.capabilities_cache_ttl_seconds)
    return transport
