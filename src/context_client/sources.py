"""File-backed configuration source for hosts without their own settings store."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional, Union

import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class FileConfigurationSource:
    """Reads a YAML (or JSON) configuration file and watches it for changes.

    Calling the source returns an async iterator that yields the parsed file
    once, then again every time its modification time changes. Pass it as
    ``ClientEnv.configuration``. ``overrides`` are merged over every value.
    """

    def __init__(
        self,
        path: Union[str, Path],
        *,
        poll_interval_seconds: float = 2.0,
        watch: bool = True,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.path = Path(path)
        self.poll_interval_seconds = poll_interval_seconds
        self.watch = watch
        self.overrides = dict(overrides or {})

    def __call__(self, resource: Optional[str] = None) -> AsyncIterator[Dict[str, Any]]:
        # Configuration is the same for every resource
        return self._changes()

    def load(self) -> Dict[str, Any]:
        if not self.path.exists():
            logger.warning("Configuration file %s does not exist", self.path)
            return dict(self.overrides)
        try:
            loaded = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(
                f"cannot parse {self.path}: {exc}", details={"path": str(self.path)}
            ) from exc
        if not isinstance(loaded, dict):
            raise ConfigurationError(
                f"{self.path} must contain a mapping", details={"path": str(self.path)}
            )
        return {**loaded, **self.overrides}

    def _mtime(self) -> Optional[float]:
        try:
            return self.path.stat().st_mtime
        except FileNotFoundError:
            return None

    async def _changes(self) -> AsyncIterator[Dict[str, Any]]:
        last_mtime: Any = object()
        while True:
            mtime = self._mtime()
            if mtime != last_mtime:
                last_mtime = mtime
                yield self.load()
            if not self.watch:
                return
            await asyncio.sleep(self.poll_interval_seconds)
