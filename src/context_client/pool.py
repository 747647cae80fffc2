"""Time-bounded cache of provider clients.

Entries expire a fixed time after they were stored, regardless of how often
they are read. Expired entries are purged on a periodic tick while an event
loop is running, and by a throttled sweep on every lookup otherwise.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .config import ClientSettings
from .logger import Logger
from .metrics import ProviderMetricsCollector
from .models import ProviderIdentity
from .provider_client import (
    ProviderClient,
    ProviderClientOptions,
    create_provider_client,
)
from .transport import ImportFromSource, ImportFromUri

logger = logging.getLogger(__name__)

ProviderClientFactory = Callable[[str, ProviderClientOptions], ProviderClient]

DEFAULT_TTL_SECONDS = 5 * 60


@dataclass
class ProviderConstructionEnv:
    """Host hooks handed to newly constructed clients."""

    logger: Optional[Logger] = None
    import_from_uri: Optional[ImportFromUri] = None
    import_from_source: Optional[ImportFromSource] = None


@dataclass
class _PoolEntry:
    client: ProviderClient
    expires_at: float


class ProviderPool:
    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        ttl_resolution_seconds: float = 1.0,
        *,
        settings: Optional[ClientSettings] = None,
        factory: ProviderClientFactory = create_provider_client,
        clock: Callable[[], float] = time.monotonic,
        metrics: Optional[ProviderMetricsCollector] = None,
    ) -> None:
        self._ttl = ttl_seconds
        self._resolution = ttl_resolution_seconds
        self._settings = settings
        self._factory = factory
        self._clock = clock
        self._metrics = metrics
        self._entries: Dict[str, _PoolEntry] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()
        self._purge_handle: Optional[asyncio.TimerHandle] = None
        self._purge_loop: Optional[asyncio.AbstractEventLoop] = None

    @classmethod
    def from_settings(cls, settings: ClientSettings, **kwargs) -> "ProviderPool":
        return cls(
            ttl_seconds=settings.pool_ttl_seconds,
            ttl_resolution_seconds=settings.pool_ttl_resolution_seconds,
            settings=settings,
            **kwargs,
        )

    def __len__(self) -> int:
        return len(self._entries)

    def get_or_create(
        self,
        identity: ProviderIdentity,
        env: Optional[ProviderConstructionEnv] = None,
    ) -> ProviderClient:
        """Return the live client for ``identity``, constructing one if needed."""

        key = identity.cache_key()
        with self._lock:
            now = self._clock()
            self._sweep_if_due(now)
            entry = self._entries.get(key)
            if entry is not None and entry.expires_at > now:
                return entry.client

            env = env or ProviderConstructionEnv()
            client = self._factory(
                identity.provider_uri,
                ProviderClientOptions(
                    auth_info=identity.auth_info,
                    logger=env.logger,
                    import_from_uri=env.import_from_uri,
                    import_from_source=env.import_from_source,
                    settings=self._settings,
                ),
            )
            self._entries[key] = _PoolEntry(client=client, expires_at=now + self._ttl)
            size = len(self._entries)

        logger.debug("Created provider client for %s", identity.provider_uri)
        if self._metrics is not None:
            self._metrics.record_pool_size(size)
        self._schedule_purge()
        return client

    def purge_expired(self) -> int:
        """Drop expired entries and return how many were removed."""

        with self._lock:
            removed = self._purge_locked(self._clock())
            size = len(self._entries)
        if removed:
            logger.debug("Purged %d expired provider client(s)", removed)
            if self._metrics is not None:
                self._metrics.record_pool_size(size)
        return removed

    def _purge_locked(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        self._last_sweep = now
        return len(expired)

    def _sweep_if_due(self, now: float) -> None:
        if now - self._last_sweep >= self._resolution:
            self._purge_locked(now)

    def _schedule_purge(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        if self._purge_handle is not None and self._purge_loop is loop:
            return
        self._purge_loop = loop
        self._purge_handle = loop.call_later(self._resolution, self._on_purge_tick)

    def _on_purge_tick(self) -> None:
        self._purge_handle = None
        self.purge_expired()
        if self._entries:
            self._schedule_purge()

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def close(self) -> None:
        """Stop the purge tick and drop every entry."""

        if self._purge_handle is not None:
            self._purge_handle.cancel()
            self._purge_handle = None
            self._purge_loop = None
        self.clear()
