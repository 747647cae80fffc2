"""Stateless per-provider client."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import List, Optional

from .config import ClientSettings
from .logger import Logger, scoped_logger
from .models import (
    Annotation,
    AnnotationsParams,
    AuthInfo,
    CapabilitiesParams,
    Item,
    ItemsParams,
    ProviderSettings,
)
from .selector import match_selectors
from .transport import ImportFromSource, ImportFromUri, ProviderTransport, create_transport


@dataclass
class ProviderClientOptions:
    """Everything needed to construct a client besides its URI."""

    auth_info: Optional[AuthInfo] = None
    logger: Optional[Logger] = None
    import_from_uri: Optional[ImportFromUri] = None
    import_from_source: Optional[ImportFromSource] = None
    settings: Optional[ClientSettings] = None


class ProviderClient:
    """Talks to a single provider through a :class:`ProviderTransport`.

    Holds no per-request state, so one instance serves any number of
    concurrent calls.
    """

    __slots__ = ("_provider_uri", "_transport", "_logger")

    def __init__(
        self,
        provider_uri: str,
        transport: ProviderTransport,
        logger: Optional[Logger] = None,
    ) -> None:
        self._provider_uri = provider_uri
        self._transport = transport
        self._logger = scoped_logger(logger, f"providerClient({provider_uri})")

    @property
    def provider_uri(self) -> str:
        return self._provider_uri

    @property
    def transport(self) -> ProviderTransport:
        return self._transport

    def _log(self, message: str) -> None:
        if self._logger is not None:
            self._logger(message)

    async def items(self, params: ItemsParams, settings: ProviderSettings) -> List[Item]:
        """Get items from the provider. Selectors are not consulted."""

        try:
            return await self._transport.items(params, settings)
        except Exception as exc:
            self._log(f"failed to get items: {exc}")
            raise

    async def annotations(
        self, params: AnnotationsParams, settings: ProviderSettings
    ) -> Optional[List[Annotation]]:
        """Get annotations, respecting the provider's capability selectors.

        Returns ``None`` when the resource does not match the selectors, which
        is different from the provider answering with no annotations. A
        failed capability lookup is raised, not treated as a mismatch.
        """

        try:
            self._log("checking provider capabilities")
            capabilities = await self._transport.capabilities(CapabilitiesParams(), settings)
            self._log(
                "received capabilities = "
                + json.dumps(capabilities.model_dump(by_alias=True, exclude_none=True))
            )
        except Exception as exc:
            self._log(f"failed to get provider capabilities: {exc}")
            raise

        if not match_selectors(capabilities.selector)(params):
            self._log(
                f"skipping annotations for {json.dumps(params.uri)} because it did "
                "not match the provider's selector"
            )
            return None

        try:
            return await self._transport.annotations(params, settings)
        except Exception as exc:
            self._log(f"failed to get annotations: {exc}")
            raise


def create_provider_client(
    provider_uri: str, options: Optional[ProviderClientOptions] = None
) -> ProviderClient:
    """Build a client; no network I/O happens until the first call."""

    options = options or ProviderClientOptions()
    transport = create_transport(
        provider_uri,
        auth_info=options.auth_info,
        import_from_uri=options.import_from_uri,
        import_from_source=options.import_from_source,
        settings=options.settings,
        cache=True,
    )
    return ProviderClient(provider_uri, transport, logger=options.logger)
