"""Short-lived caching of capability discovery."""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

from ..models import (
    Annotation,
    AnnotationsParams,
    CapabilitiesParams,
    CapabilitiesResult,
    Item,
    ItemsParams,
    ProviderSettings,
)
from .base import ProviderTransport


@dataclass
class _CachedCapabilities:
    value: CapabilitiesResult
    expires_at: float


@dataclass
class _InFlight:
    future: "asyncio.Future[CapabilitiesResult]"
    waiters: int = 0


def _settings_fingerprint(settings: ProviderSettings) -> str:
    return json.dumps(settings, sort_keys=True, separators=(",", ":"), default=str)


class CachedTransport(ProviderTransport):
    """Wraps a transport and reuses capability results for ``ttl_seconds``.

    Capabilities do not depend on the resource, so one cached value (per
    settings) serves every resource. Failures are never cached, and
    concurrent lookups share a single in-flight request, which is
    cancelled once every caller waiting on it has been cancelled.
    """

    def __init__(
        self,
        transport: ProviderTransport,
        *,
        ttl_seconds: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.transport = transport
        self.provider_uri = transport.provider_uri
        self._ttl = ttl_seconds
        self._clock = clock
        self._cache: Dict[str, _CachedCapabilities] = {}
        self._inflight: Dict[str, _InFlight] = {}

    async def call(self, method: str, params: Dict[str, Any], settings: ProviderSettings) -> Any:
        return await self.transport.call(method, params, settings)

    async def items(self, params: ItemsParams, settings: ProviderSettings) -> List[Item]:
        return await self.transport.items(params, settings)

    async def annotations(
        self, params: AnnotationsParams, settings: ProviderSettings
    ) -> List[Annotation]:
        return await self.transport.annotations(params, settings)

    async def capabilities(
        self, params: CapabilitiesParams, settings: ProviderSettings
    ) -> CapabilitiesResult:
        key = _settings_fingerprint(settings)
        entry = self._cache.get(key)
        if entry is not None:
            if entry.expires_at > self._clock():
                return entry.value
            self._cache.pop(key, None)

        inflight = self._inflight.get(key)
        if inflight is None:
            future = asyncio.ensure_future(self.transport.capabilities(params, settings))
            inflight = _InFlight(future)
            self._inflight[key] = inflight
            future.add_done_callback(lambda fut, key=key: self._store(key, fut))

        inflight.waiters += 1
        try:
            return await asyncio.shield(inflight.future)
        finally:
            inflight.waiters -= 1
            # The last caller to give up cancels the shared lookup
            if inflight.waiters == 0 and not inflight.future.done():
                if self._inflight.get(key) is inflight:
                    del self._inflight[key]
                inflight.future.cancel()

    def _store(self, key: str, fut: "asyncio.Future[CapabilitiesResult]") -> None:
        inflight = self._inflight.get(key)
        if inflight is not None and inflight.future is fut:
            del self._inflight[key]
        if fut.cancelled() or fut.exception() is not None:
            return
        self._cache[key] = _CachedCapabilities(fut.result(), self._clock() + self._ttl)
