"""Remote provider transport over HTTP POST."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..errors import HTTP_STATUS_ERROR, INTERNAL_ERROR, NETWORK_ERROR, PARSE_ERROR, ProviderError
from ..models import AuthInfo, ProviderSettings
from .base import ProviderTransport

logger = logging.getLogger(__name__)


class HttpTransport(ProviderTransport):
    """Sends ``{method, params, settings}`` and expects ``{result}`` or ``{error}``."""

    def __init__(
        self,
        provider_uri: str,
        *,
        auth_info: Optional[AuthInfo] = None,
        timeout_seconds: Optional[float] = 30.0,
    ) -> None:
        self.provider_uri = provider_uri
        self.auth_info = auth_info
        self.timeout_seconds = timeout_seconds

    def _headers(self) -> Dict[str, str]:
        if self.auth_info is None or not self.auth_info.headers:
            return {}
        return dict(self.auth_info.headers)

    async def call(self, method: str, params: Dict[str, Any], settings: ProviderSettings) -> Any:
        body: Dict[str, Any] = {"method": method, "params": params}
        if settings is not None:
            body["settings"] = settings

        logger.debug("POST %s method=%s", self.provider_uri, method)
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                resp = await client.post(self.provider_uri, json=body, headers=self._headers())
        except httpx.HTTPError as exc:
            raise ProviderError(
                f"{method} request failed: {exc}",
                code=NETWORK_ERROR,
                provider_uri=self.provider_uri,
            ) from exc

        payload = self._decode(resp)
        if isinstance(payload, dict) and payload.get("error") is not None:
            raise self._provider_error(payload["error"])
        if not 200 <= resp.status_code < 300:
            raise ProviderError(
                f"HTTP {resp.status_code}",
                code=HTTP_STATUS_ERROR,
                data={"status": resp.status_code},
                provider_uri=self.provider_uri,
            )
        if not isinstance(payload, dict):
            raise ProviderError(
                "response body is not a JSON object",
                code=PARSE_ERROR,
                provider_uri=self.provider_uri,
            )
        return payload.get("result")

    def _decode(self, resp: Any) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            if not 200 <= resp.status_code < 300:
                return None
            raise ProviderError(
                f"invalid JSON response: {exc}",
                code=PARSE_ERROR,
                provider_uri=self.provider_uri,
            ) from exc

    def _provider_error(self, error: Any) -> ProviderError:
        if not isinstance(error, dict):
            return ProviderError(str(error), provider_uri=self.provider_uri)
        try:
            code = int(error.get("code", INTERNAL_ERROR))
        except (TypeError, ValueError):
            code = INTERNAL_ERROR
        return ProviderError(
            str(error.get("message", "provider error")),
            code=code,
            data=error.get("data"),
            provider_uri=self.provider_uri,
        )
