"""Fan-out of requests across providers and merging of their results.

For every provider list the upstream stream produces, each provider is called
once, concurrently, in list order. A provider failure is logged and counts as
an empty contribution; it never affects the other providers or the stream.

The combined value is the concatenation of every settled contribution in
provider order. With ``emit_partial`` a snapshot is emitted as soon as any
provider settles and again as later ones arrive. Without it nothing is
emitted until every provider in the current list has settled.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from .logger import Logger
from .metrics import (
    OUTCOME_EMPTY,
    OUTCOME_FAILURE,
    OUTCOME_NOT_APPLICABLE,
    OUTCOME_SUCCESS,
    ProviderMetricsCollector,
)
from .models import Annotation, AnnotationsParams, Item, ItemsParams, ProviderSettings
from .provider_client import ProviderClient
from .scope import TaskScope
from .streams import Stream, distinct_until_changed, switch_map


@dataclass(frozen=True)
class ProviderClientWithSettings:
    provider_client: ProviderClient
    settings: ProviderSettings


ProviderCall = Callable[[ProviderClientWithSettings], Awaitable[Optional[Sequence[Any]]]]

_PENDING: Any = object()


class ResultAggregator:
    """Merges per-provider results into one continuously updated list."""

    def __init__(
        self,
        logger: Optional[Logger] = None,
        metrics: Optional[ProviderMetricsCollector] = None,
    ) -> None:
        self.logger = logger
        self.metrics = metrics

    def observe_items(
        self,
        provider_clients: Stream[List[ProviderClientWithSettings]],
        params: ItemsParams,
        *,
        emit_partial: bool = True,
    ) -> Stream[List[Item]]:
        async def call(entry: ProviderClientWithSettings) -> Optional[Sequence[Item]]:
            return await entry.provider_client.items(params, entry.settings)

        return self._observe(provider_clients, "items", call, emit_partial)

    def observe_annotations(
        self,
        provider_clients: Stream[List[ProviderClientWithSettings]],
        params: AnnotationsParams,
        *,
        emit_partial: bool = True,
    ) -> Stream[List[Annotation]]:
        async def call(entry: ProviderClientWithSettings) -> Optional[Sequence[Annotation]]:
            return await entry.provider_client.annotations(params, entry.settings)

        return self._observe(provider_clients, "annotations", call, emit_partial)

    def _observe(
        self,
        provider_clients: Stream[List[ProviderClientWithSettings]],
        method: str,
        call: ProviderCall,
        emit_partial: bool,
    ) -> Stream[List[Any]]:
        return distinct_until_changed(
            switch_map(
                provider_clients,
                lambda entries: self._combine(entries, method, call, emit_partial),
            )
        )

    def _combine(
        self,
        entries: Sequence[ProviderClientWithSettings],
        method: str,
        call: ProviderCall,
        emit_partial: bool,
    ) -> Stream[List[Any]]:
        entries = list(entries)

        async def produce(emit: Callable[[List[Any]], None]) -> None:
            if not entries:
                emit([])
                return

            contributions: List[Any] = [_PENDING] * len(entries)

            def publish() -> None:
                settled = [c for c in contributions if c is not _PENDING]
                if not settled:
                    return
                if not emit_partial and len(settled) < len(entries):
                    return
                emit([value for contribution in settled for value in contribution])

            async def run_one(index: int, entry: ProviderClientWithSettings) -> None:
                contributions[index] = await self._contribution(entry, method, call)
                publish()

            async with TaskScope(f"aggregate.{method}") as scope:
                tasks = [
                    scope.spawn(run_one(i, entry), name=f"{method}[{i}]")
                    for i, entry in enumerate(entries)
                ]
                await asyncio.gather(*tasks)

        return Stream(produce, name=f"aggregate.{method}")

    async def _contribution(
        self, entry: ProviderClientWithSettings, method: str, call: ProviderCall
    ) -> List[Any]:
        provider_uri = entry.provider_client.provider_uri
        start = time.perf_counter()
        try:
            result = await call(entry)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            self._log(f"Error getting {method} from provider {provider_uri}: {exc}")
            self._record(provider_uri, method, OUTCOME_FAILURE, start)
            return []

        if result is None:
            self._log(f"Provider {provider_uri} does not apply to this resource; no {method}")
            self._record(provider_uri, method, OUTCOME_NOT_APPLICABLE, start)
            return []

        contribution = list(result)
        self._record(
            provider_uri, method, OUTCOME_SUCCESS if contribution else OUTCOME_EMPTY, start
        )
        return contribution

    def _log(self, message: str) -> None:
        if self.logger is not None:
            self.logger(message)

    def _record(self, provider_uri: str, method: str, outcome: str, start: float) -> None:
        if self.metrics is not None:
            duration_ms = (time.perf_counter() - start) * 1000
            self.metrics.record_provider_call(str(provider_uri), method, outcome, duration_ms)


def observe_items(
    provider_clients: Stream[List[ProviderClientWithSettings]],
    params: ItemsParams,
    *,
    logger: Optional[Logger] = None,
    emit_partial: bool = True,
) -> Stream[List[Item]]:
    return ResultAggregator(logger=logger).observe_items(
        provider_clients, params, emit_partial=emit_partial
    )


def observe_annotations(
    provider_clients: Stream[List[ProviderClientWithSettings]],
    params: AnnotationsParams,
    *,
    logger: Optional[Logger] = None,
    emit_partial: bool = True,
) -> Stream[List[Annotation]]:
    return ResultAggregator(logger=logger).observe_annotations(
        provider_clients, params, emit_partial=emit_partial
    )
