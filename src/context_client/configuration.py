"""Conversion of host-supplied configuration into its resolved form."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigurationError
from .models import ProviderSettings


class ConfigurationUserInput(BaseModel):
    """Raw configuration as the host application stores it.

    ``providers`` maps a provider URI to its settings; ``true`` enables the
    provider with empty settings and ``false`` disables it.
    """

    model_config = ConfigDict(extra="ignore")

    enable: Optional[bool] = None
    debug: Optional[bool] = None
    providers: Optional[Dict[str, Union[bool, None, Dict[str, Any]]]] = None


class ProviderEntry(BaseModel):
    provider_uri: str
    settings: ProviderSettings = Field(default_factory=dict)


class Configuration(BaseModel):
    """Resolved configuration. Provider order is the fan-out order."""

    enable: bool = True
    debug: bool = False
    providers: List[ProviderEntry] = Field(default_factory=list)


RawConfiguration = Union[ConfigurationUserInput, Mapping[str, Any], None]


def configuration_from_user_input(raw: RawConfiguration) -> Configuration:
    if raw is None:
        user_input = ConfigurationUserInput()
    elif isinstance(raw, ConfigurationUserInput):
        user_input = raw
    else:
        try:
            user_input = ConfigurationUserInput.model_validate(dict(raw))
        except (ValidationError, TypeError, ValueError) as exc:
            raise ConfigurationError(
                f"invalid configuration: {exc}", details={"input": repr(raw)}
            ) from exc

    providers: List[ProviderEntry] = []
    for provider_uri, settings in (user_input.providers or {}).items():
        if settings is None or settings is False:
            continue
        providers.append(
            ProviderEntry(
                provider_uri=provider_uri,
                settings={} if settings is True else dict(settings),
            )
        )

    return Configuration(
        enable=True if user_input.enable is None else user_input.enable,
        debug=bool(user_input.debug),
        providers=providers,
    )
