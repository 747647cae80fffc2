"""Data models shared by providers, transports and the client.

The wire format uses camelCase for ``contentContains``; everything else maps
one-to-one onto the Python field names.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

ProviderSettings = Dict[str, Any]


class Position(BaseModel):
    line: int
    character: int


class Range(BaseModel):
    start: Position
    end: Position


class Selector(BaseModel):
    """Condition on a resource; every present field must hold."""

    model_config = ConfigDict(populate_by_name=True)

    path: Optional[str] = None
    content_contains: Optional[str] = Field(default=None, alias="contentContains")


class CapabilitiesParams(BaseModel):
    """Capability discovery takes no resource-specific parameters."""


class CapabilitiesResult(BaseModel):
    """Provider capabilities.

    ``selector=None`` means the provider applies to every resource while
    ``selector=[]`` means it applies to none.
    """

    selector: Optional[List[Selector]] = None


class ResourceDescriptor(BaseModel):
    """The subject being searched or annotated."""

    uri: str
    content: Optional[str] = None


class ItemsParams(ResourceDescriptor):
    message: Optional[str] = None


class AnnotationsParams(ResourceDescriptor):
    content: str


class HoverContent(BaseModel):
    markdown: Optional[str] = None
    text: Optional[str] = None


class UserInterface(BaseModel):
    hover: Optional[HoverContent] = None


class AIContent(BaseModel):
    content: Optional[str] = None


class Item(BaseModel):
    """Host-facing result record."""

    title: str
    url: Optional[str] = None
    ui: Optional[UserInterface] = None
    ai: Optional[AIContent] = None


class Annotation(BaseModel):
    """An item attached to an optional range of a resource."""

    uri: str
    range: Optional[Range] = None
    item: Item


class AuthInfo(BaseModel):
    """Credentials for a provider; headers are sent with every remote call."""

    headers: Optional[Dict[str, str]] = None


@dataclass(frozen=True)
class ProviderIdentity:
    """Cache key for pooled provider clients."""

    provider_uri: str
    auth_info: Optional[AuthInfo] = None

    def cache_key(self) -> str:
        auth = self.auth_info.model_dump(exclude_none=True) if self.auth_info else None
        return json.dumps(
            {"providerUri": self.provider_uri, "authInfo": auth},
            sort_keys=True,
            separators=(",", ":"),
        )

    def __hash__(self) -> int:
        return hash(self.cache_key())


def to_wire(model: BaseModel) -> Dict[str, Any]:
    """Serialise a model the way providers expect to receive it."""

    return model.model_dump(by_alias=True, exclude_none=True)
