"""Public client used by host applications (editors, code browsers, ...)."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, TypeVar, Union

from .aggregator import ProviderClientWithSettings, ResultAggregator
from .config import ClientSettings
from .configuration import (
    Configuration,
    ProviderEntry,
    RawConfiguration,
    configuration_from_user_input,
)
from .logger import Logger, default_logger, gated_logger
from .metrics import ProviderMetricsCollector
from .models import Annotation, AnnotationsParams, AuthInfo, Item, ItemsParams, ProviderIdentity
from .pool import ProviderConstructionEnv, ProviderPool
from .scope import TaskScope
from .streams import (
    AsyncSource,
    Stream,
    Subscription,
    catch_error,
    combine_latest,
    distinct_until_changed,
    from_source,
    just,
    map_stream,
    switch_map,
)
from .transport import ImportFromSource, ImportFromUri

logger = logging.getLogger(__name__)

T = TypeVar("T")

ConfigurationHook = Callable[[Optional[str]], AsyncSource[RawConfiguration]]
AuthInfoHook = Callable[[str], AsyncSource[Union[AuthInfo, Mapping[str, Any], None]]]


@dataclass
class ClientEnv:
    """Hooks through which the client reaches its host.

    ``configuration`` is called with the URI of the resource a request is
    about (or ``None`` for global settings) and may return a value, an
    awaitable, or an async iterable that yields every configuration change.
    ``auth_info`` works the same way per provider URI.
    """

    configuration: ConfigurationHook
    auth_info: Optional[AuthInfoHook] = None
    logger: Optional[Logger] = None
    import_from_uri: Optional[ImportFromUri] = None
    import_from_source: Optional[ImportFromSource] = None
    settings: Optional[ClientSettings] = None
    pool: Optional[ProviderPool] = None


def _coerce_auth_info(value: Union[AuthInfo, Mapping[str, Any], None]) -> Optional[AuthInfo]:
    if value is None or isinstance(value, AuthInfo):
        return value
    return AuthInfo.model_validate(dict(value))


def _resolve_configuration(raw: RawConfiguration) -> Configuration:
    configuration = configuration_from_user_input(raw)
    if not configuration.enable:
        return configuration.model_copy(update={"providers": []})
    return configuration


class Client:
    """Queries the configured providers and merges their results.

    Every stream the client hands out, and the background watch on the
    ``debug`` flag, is cancelled by :meth:`dispose`. Diagnostics logged
    before the first ``debug`` value arrives are held back, then written
    or dropped depending on that value.
    """

    def __init__(self, env: ClientEnv) -> None:
        self.env = env
        self.settings = env.settings or ClientSettings()
        self.metrics = ProviderMetricsCollector(enabled=self.settings.metrics_enabled)
        self._owns_pool = env.pool is None
        self.pool = (
            env.pool
            if env.pool is not None
            else ProviderPool.from_settings(self.settings, metrics=self.metrics)
        )

        self._disposed = False
        self._debug: Optional[bool] = None
        self._pending_logs: List[str] = []
        self._debug_subscription: Optional[Subscription] = None
        self._scope = TaskScope("client")

        self._sink = env.logger or default_logger
        self._aggregator = ResultAggregator(
            logger=gated_logger(self._sink, lambda: not self._disposed),
            metrics=self.metrics,
        )
        self._construction_env = ProviderConstructionEnv(
            logger=self.logger,
            import_from_uri=env.import_from_uri,
            import_from_source=env.import_from_source,
        )

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def debug(self) -> bool:
        return bool(self._debug)

    def logger(self, message: str) -> None:
        """Diagnostics sink, written only while the configuration enables debug."""

        if self._disposed:
            return
        if self._debug is None:
            self._pending_logs.append(message)
        elif self._debug:
            self._sink(message)

    def _watch_debug(self) -> None:
        if self._debug_subscription is not None or self._disposed:
            return
        debug = distinct_until_changed(
            map_stream(
                from_source(lambda: self.env.configuration(None), name="configuration"),
                lambda raw: configuration_from_user_input(raw).debug,
            )
        )
        self._debug_subscription = debug.subscribe(
            self._set_debug,
            on_error=self._on_debug_error,
            on_complete=lambda: self._set_debug(bool(self._debug)),
        )

    def _on_debug_error(self, exc: BaseException) -> None:
        logger.warning("Failed to read debug flag: %s", exc)
        self._set_debug(bool(self._debug))

    def _set_debug(self, value: bool) -> None:
        first = self._debug is None
        self._debug = value
        if not first:
            return
        pending, self._pending_logs = self._pending_logs, []
        if value and not self._disposed:
            for message in pending:
                self._sink(message)

    def _own(self, stream: Stream[T]) -> Stream[T]:
        """Tie each run of ``stream`` to the client's lifetime.

        The run happens in a task owned by the client, so :meth:`dispose`
        cancels the run without cancelling the caller's task.
        """

        async def produce(emit: Callable[[T], None]) -> None:
            if self._disposed:
                return
            self._watch_debug()
            task = self._scope.spawn(stream.run(emit), name=stream.name)
            try:
                await task
            except asyncio.CancelledError:
                # Cancelled by dispose: the run simply ends
                if self._disposed and task.cancelled():
                    return
                raise

        return Stream(produce, name=stream.name)

    def _provider_clients(
        self, resource_uri: Optional[str]
    ) -> Stream[List[ProviderClientWithSettings]]:
        configuration = map_stream(
            from_source(lambda: self.env.configuration(resource_uri), name="configuration"),
            _resolve_configuration,
        )
        return switch_map(configuration, self._resolve_providers)

    def _resolve_providers(
        self, configuration: Configuration
    ) -> Stream[List[ProviderClientWithSettings]]:
        clients = combine_latest([self._provider_client(e) for e in configuration.providers])
        return map_stream(clients, lambda entries: [e for e in entries if e is not None])

    def _provider_client(
        self, entry: ProviderEntry
    ) -> Stream[Optional[ProviderClientWithSettings]]:
        provider_uri = entry.provider_uri
        auth_hook = self.env.auth_info
        if auth_hook is not None:
            auth = from_source(lambda: auth_hook(provider_uri), name="auth_info")
        else:
            auth = just(None)

        def to_client(auth_info: Any) -> ProviderClientWithSettings:
            identity = ProviderIdentity(provider_uri, _coerce_auth_info(auth_info))
            client = self.pool.get_or_create(identity, self._construction_env)
            return ProviderClientWithSettings(provider_client=client, settings=entry.settings)

        def on_error(exc: Exception) -> None:
            self.logger(f"Error creating provider client for {provider_uri}: {exc}")
            return None

        return catch_error(map_stream(auth, to_client), on_error)

    def items_changes(
        self, params: Union[ItemsParams, Mapping[str, Any]], *, emit_partial: bool = True
    ) -> Stream[List[Item]]:
        """Observe combined items; the stream keeps updating until closed.

        With ``emit_partial=False`` nothing is emitted until every provider
        has answered, which is what a caller wanting one value needs.
        """

        params = params if isinstance(params, ItemsParams) else ItemsParams.model_validate(params)
        return self._own(
            self._aggregator.observe_items(
                self._provider_clients(params.uri), params, emit_partial=emit_partial
            )
        )

    async def items(self, params: Union[ItemsParams, Mapping[str, Any]]) -> List[Item]:
        """The first settled combined items, or ``[]`` if none arrive."""

        return await self.items_changes(params, emit_partial=False).first(default=[])

    def annotations_changes(
        self, params: Union[AnnotationsParams, Mapping[str, Any]], *, emit_partial: bool = True
    ) -> Stream[List[Annotation]]:
        params = (
            params
            if isinstance(params, AnnotationsParams)
            else AnnotationsParams.model_validate(params)
        )
        return self._own(
            self._aggregator.observe_annotations(
                self._provider_clients(params.uri), params, emit_partial=emit_partial
            )
        )

    async def annotations(
        self, params: Union[AnnotationsParams, Mapping[str, Any]]
    ) -> List[Annotation]:
        return await self.annotations_changes(params, emit_partial=False).first(default=[])

    def dispose(self) -> None:
        """Cancel all background work; no callbacks or logs follow."""

        if self._disposed:
            return
        self._disposed = True
        if self._debug_subscription is not None:
            self._debug_subscription.unsubscribe()
            self._debug_subscription = None
        self._pending_logs.clear()
        self._scope.cancel()
        if self._owns_pool:
            self.pool.close()

    async def __aenter__(self) -> "Client":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        self.dispose()
        return False


def create_client(env: ClientEnv) -> Client:
    return Client(env)
