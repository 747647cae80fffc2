"""Common interface for delivering calls to a provider."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from pydantic import TypeAdapter, ValidationError

from ..errors import INVALID_RESULT, ProviderError
from ..models import (
    Annotation,
    AnnotationsParams,
    CapabilitiesParams,
    CapabilitiesResult,
    Item,
    ItemsParams,
    ProviderSettings,
    to_wire,
)

_ITEMS = TypeAdapter(List[Item])
_ANNOTATIONS = TypeAdapter(List[Annotation])
_CAPABILITIES = TypeAdapter(CapabilitiesResult)


class ProviderTransport(ABC):
    """Calls ``capabilities``/``items``/``annotations`` on one provider.

    Subclasses implement :meth:`call`; a provider that does not implement a
    method answers ``None``, which parses as an empty result.
    """

    provider_uri: str

    @abstractmethod
    async def call(self, method: str, params: Dict[str, Any], settings: ProviderSettings) -> Any:
        """Invoke ``method`` and return the raw result, or raise ``ProviderError``."""

    async def capabilities(
        self, params: CapabilitiesParams, settings: ProviderSettings
    ) -> CapabilitiesResult:
        raw = await self.call("capabilities", to_wire(params), settings)
        return self._parse(_CAPABILITIES, {} if raw is None else raw, "capabilities")

    async def items(self, params: ItemsParams, settings: ProviderSettings) -> List[Item]:
        raw = await self.call("items", to_wire(params), settings)
        return self._parse(_ITEMS, [] if raw is None else raw, "items")

    async def annotations(
        self, params: AnnotationsParams, settings: ProviderSettings
    ) -> List[Annotation]:
        raw = await self.call("annotations", to_wire(params), settings)
        return self._parse(_ANNOTATIONS, [] if raw is None else raw, "annotations")

    def _parse(self, adapter: TypeAdapter, raw: Any, method: str) -> Any:
        try:
            return adapter.validate_python(raw)
        except ValidationError as exc:
            raise ProviderError(
                f"invalid {method} result: {exc.error_count()} validation error(s)",
                code=INVALID_RESULT,
                data=exc.errors(include_url=False),
                provider_uri=self.provider_uri,
            ) from exc
