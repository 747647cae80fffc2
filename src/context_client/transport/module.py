"""In-process provider transport.

A provider module exposes ``capabilities``, ``items`` and ``annotations``
functions taking ``(params, settings)``, either at module level or on a
``provider`` attribute. Any of them may be omitted and any may be async.

Source fetched from an ``http(s)`` URI is only ever run by the host's
``import_from_source`` hook.
"""

from __future__ import annotations

import asyncio
import hashlib
import importlib
import importlib.util
import inspect
import logging
import types
from typing import Any, Awaitable, Callable, Dict, Optional
from urllib.parse import urlsplit
from urllib.request import url2pathname

import httpx

from ..errors import (
    INTERNAL_ERROR,
    NETWORK_ERROR,
    UNSUPPORTED_PROVIDER,
    ProviderError,
    UnsupportedProviderError,
)
from ..models import AuthInfo, ProviderSettings
from .base import ProviderTransport

logger = logging.getLogger(__name__)

ImportFromUri = Callable[[str], Awaitable[Any]]
ImportFromSource = Callable[[str, str], Awaitable[Any]]


def _module_name(uri: str) -> str:
    return "context_provider_" + hashlib.sha1(uri.encode("utf-8")).hexdigest()[:12]


def load_module_from_file(path: str) -> types.ModuleType:
    spec = importlib.util.spec_from_file_location(_module_name(path), path)
    if spec is None or spec.loader is None:
        raise ImportError(f"cannot load provider module from {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class ModuleTransport(ProviderTransport):
    """Loads a provider once and calls its functions directly."""

    def __init__(
        self,
        provider_uri: str,
        *,
        auth_info: Optional[AuthInfo] = None,
        import_from_uri: Optional[ImportFromUri] = None,
        import_from_source: Optional[ImportFromSource] = None,
        timeout_seconds: Optional[float] = 30.0,
    ) -> None:
        self.provider_uri = provider_uri
        self.auth_info = auth_info
        self.timeout_seconds = timeout_seconds
        self._import_from_uri = import_from_uri
        self._import_from_source = import_from_source
        self._provider: Any = None
        self._loading: Optional[asyncio.Future[Any]] = None

    async def call(self, method: str, params: Dict[str, Any], settings: ProviderSettings) -> Any:
        provider = await self._get_provider()
        fn = getattr(provider, method, None)
        if fn is None:
            return None
        try:
            result = fn(params, settings)
            if inspect.isawaitable(result):
                result = await result
        except ProviderError:
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            raise ProviderError(
                str(exc) or exc.__class__.__name__,
                code=INTERNAL_ERROR,
                provider_uri=self.provider_uri,
            ) from exc
        return result

    async def _get_provider(self) -> Any:
        if self._provider is not None:
            return self._provider
        if self._loading is None:
            self._loading = asyncio.ensure_future(self._load())
        loading = self._loading
        try:
            # Shielded so one cancelled caller does not abort a shared load
            provider = await asyncio.shield(loading)
        except ProviderError:
            if self._loading is loading:
                self._loading = None
            raise
        self._provider = provider
        return provider

    async def _load(self) -> Any:
        try:
            module = await self._import()
        except ProviderError:
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            raise ProviderError(
                f"failed to load provider module: {exc}",
                code=INTERNAL_ERROR,
                provider_uri=self.provider_uri,
            ) from exc
        logger.debug("Loaded provider module %s", self.provider_uri)
        return getattr(module, "provider", module)

    async def _import(self) -> Any:
        uri = self.provider_uri
        if self._import_from_uri is not None:
            return await self._import_from_uri(uri)

        parts = urlsplit(uri)
        if parts.scheme == "python":
            return importlib.import_module(uri.split(":", 1)[1])
        if parts.scheme == "file":
            return load_module_from_file(url2pathname(parts.path))
        if parts.scheme in ("http", "https"):
            # Remote source only runs through a host-supplied loader
            if self._import_from_source is None:
                raise ProviderError(
                    "no import_from_source hook to load remote provider source",
                    code=UNSUPPORTED_PROVIDER,
                    provider_uri=uri,
                )
            source = await self._fetch_source()
            return await self._import_from_source(uri, source)
        raise UnsupportedProviderError(uri)

    async def _fetch_source(self) -> str:
        headers = dict(self.auth_info.headers) if self.auth_info and self.auth_info.headers else {}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                resp = await client.get(self.provider_uri, headers=headers)
        except httpx.HTTPError as exc:
            raise ProviderError(
                f"failed to fetch provider source: {exc}",
                code=NETWORK_ERROR,
                provider_uri=self.provider_uri,
            ) from exc
        if not 200 <= resp.status_code < 300:
            raise ProviderError(
                f"failed to fetch provider source: HTTP {resp.status_code}",
                code=NETWORK_ERROR,
                data={"status": resp.status_code},
                provider_uri=self.provider_uri,
            )
        return resp.text
