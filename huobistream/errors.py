"""
Custom exceptions for the Huobi stream client.

Exception hierarchy:
- StreamError (base)
  - StreamConnectionError: WebSocket connection issues
  - MessageParseError: Invalid/malformed frames or payloads
  - ConfigurationError: Invalid configuration
    - MissingCallbackError: Subscribe called before registering a callback
"""

from __future__ import annotations

from typing import Any, Optional


class StreamError(Exception):
    """Base exception for all stream client errors."""

    def __init__(
        self,
        message: str,
        *,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.component = component
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.component:
            parts.append(f"[component={self.component}]")
        if self.details:
            parts.append(f"[details={self.details}]")
        return " ".join(parts)


class StreamConnectionError(StreamError):
    """Raised when the WebSocket connection fails or is lost."""

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        reconnect_attempt: int = 0,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.url = url
        self.reconnect_attempt = reconnect_attempt
        details = details or {}
        if url:
            details["url"] = url
        details["reconnect_attempt"] = reconnect_attempt
        super().__init__(message, component=component, details=details)


class MessageParseError(StreamError):
    """Raised when a frame or its payload cannot be parsed."""

    def __init__(
        self,
        message: str,
        *,
        raw_data: Optional[str] = None,
        expected_type: Optional[str] = None,
        channel: Optional[str] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.raw_data = raw_data
        self.expected_type = expected_type
        self.channel = channel
        details = details or {}
        if expected_type:
            details["expected_type"] = expected_type
        if channel:
            details["channel"] = channel
        # raw_data stays out of details, frames can be large
        super().__init__(message, component=component, details=details)


class ConfigurationError(StreamError):
    """Raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.field = field
        self.value = value
        details = details or {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, component=component, details=details)


class MissingCallbackError(ConfigurationError):
    """Raised when subscribing to an event kind that has no registered callback."""

    def __init__(
        self,
        message: str,
        *,
        kind: Optional[str] = None,
        component: Optional[str] = None,
    ) -> None:
        self.kind = kind
        super().__init__(message, field="callback", value=kind, component=component)
