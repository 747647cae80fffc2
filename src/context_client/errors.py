"""Exception types raised by the context client."""

from __future__ import annotations

from typing import Any, Dict, Optional

# Codes used when the failure did not come from the provider itself
NETWORK_ERROR = -32000
HTTP_STATUS_ERROR = -32001
UNSUPPORTED_PROVIDER = -32002
PARSE_ERROR = -32700
INVALID_RESULT = -32602
INTERNAL_ERROR = -32603


class ContextClientError(Exception):
    """Base exception for all context client errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__.upper()
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary format."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"{self.error_code}: {self.message}"


class ProviderError(ContextClientError):
    """A provider call failed.

    Both transports raise this shape, so callers cannot tell a remote
    ``{"error": ...}`` response from an exception raised in-process.
    """

    def __init__(
        self,
        message: str,
        code: int = INTERNAL_ERROR,
        data: Any = None,
        provider_uri: Optional[str] = None,
    ):
        details: Dict[str, Any] = {"code": code}
        if data is not None:
            details["data"] = data
        if provider_uri is not None:
            details["provider_uri"] = provider_uri
        super().__init__(message, "PROVIDER_ERROR", details)
        self.code = code
        self.data = data
        self.provider_uri = provider_uri

    def __str__(self) -> str:
        return f"provider error {self.code}: {self.message}"


class UnsupportedProviderError(ProviderError):
    """No transport can handle the provider URI."""

    def __init__(self, provider_uri: str):
        super().__init__(
            f"unsupported provider URI {provider_uri!r}",
            code=UNSUPPORTED_PROVIDER,
            provider_uri=provider_uri,
        )


class ConfigurationError(ContextClientError):
    """Host-supplied configuration could not be understood."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CONFIGURATION_ERROR", details)
