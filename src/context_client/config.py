"""Runtime settings for the context client.

Values come from keyword arguments, ``CONTEXT_CLIENT_*`` environment
variables, or an optional YAML file passed as ``_config_file``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Tunables for pooling, caching and transports."""

    model_config = SettingsConfigDict(env_prefix="CONTEXT_CLIENT_")

    pool_ttl_seconds: float = Field(default=300.0, gt=0)
    pool_ttl_resolution_seconds: float = Field(default=1.0, gt=0)
    capabilities_cache_ttl_seconds: float = Field(default=10.0, ge=0)
    # Transport-level timeout; None leaves slow providers unbounded
    http_timeout_seconds: Optional[float] = 30.0
    metrics_enabled: bool = True
    log_level: str = "INFO"

    def __init__(self, _config_file: Optional[str] = None, **values: Any) -> None:
        file_values: Dict[str, Any] = {}
        if _config_file:
            cfg_path = Path(_config_file)
            if cfg_path.exists():
                loaded = yaml.safe_load(cfg_path.read_text(encoding="utf-8")) or {}
                if isinstance(loaded, dict):
                    file_values = loaded
        merged = {**file_values, **values}
        super().__init__(**merged)
