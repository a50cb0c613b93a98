"""
Configuration types for the Huobi stream client.

Provides immutable, validated configuration dataclasses and a TOML loader.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from huobistream.errors import ConfigurationError
from huobistream.types import DEFAULT_DEPTH_LEVELS


class Venue(str, Enum):
    """Supported endpoints."""

    HUOBI_SPOT = "huobi_spot"
    HUOBI_SPOT_AWS = "huobi_spot_aws"


HUOBI_WS_ENDPOINTS: dict[Venue, str] = {
    Venue.HUOBI_SPOT: "wss://api.huobi.pro/ws",
    Venue.HUOBI_SPOT_AWS: "wss://api-aws.huobi.pro/ws",
}

# mbp.refresh is only offered at these depths
REFRESH_DEPTH_LEVELS: tuple[int, ...] = (5, 10, 20)


@dataclass(frozen=True)
class ConnectionConfig:
    """Configuration for the WebSocket connection."""

    url: str = HUOBI_WS_ENDPOINTS[Venue.HUOBI_SPOT]

    # Connection behavior
    connect_timeout_s: float = 30.0
    receive_timeout_s: float = 30.0  # Server pings every 5s, silence means a dead socket
    max_reconnect_attempts: int = 10  # 0 retries forever
    base_reconnect_delay_s: float = 1.0
    max_reconnect_delay_s: float = 60.0
    reconnect_jitter: float = 0.3  # ±30% jitter

    def __post_init__(self) -> None:
        if not self.url.startswith(("ws://", "wss://")):
            raise ConfigurationError(
                "url must be a ws:// or wss:// URL",
                field="url",
                value=self.url,
            )
        if self.connect_timeout_s <= 0:
            raise ConfigurationError(
                "connect_timeout_s must be positive",
                field="connect_timeout_s",
                value=self.connect_timeout_s,
            )
        if self.receive_timeout_s <= 0:
            raise ConfigurationError(
                "receive_timeout_s must be positive",
                field="receive_timeout_s",
                value=self.receive_timeout_s,
            )
        if self.max_reconnect_attempts < 0:
            raise ConfigurationError(
                "max_reconnect_attempts must be non-negative",
                field="max_reconnect_attempts",
                value=self.max_reconnect_attempts,
            )
        if self.base_reconnect_delay_s > self.max_reconnect_delay_s:
            raise ConfigurationError(
                "base_reconnect_delay_s must not exceed max_reconnect_delay_s",
                field="base_reconnect_delay_s",
                value=self.base_reconnect_delay_s,
            )
        if not (0 <= self.reconnect_jitter <= 1):
            raise ConfigurationError(
                "reconnect_jitter must be between 0 and 1",
                field="reconnect_jitter",
                value=self.reconnect_jitter,
            )


@dataclass(frozen=True)
class StreamConfig:
    """
    Immutable top-level configuration for the stream client.

    Example:
        config = StreamConfig(
            venue=Venue.HUOBI_SPOT_AWS,
            depth_levels=5,
        )
    """

    venue: Venue = Venue.HUOBI_SPOT
    connection: Optional[ConnectionConfig] = None

    # Levels requested on mbp.refresh depth channels
    depth_levels: int = DEFAULT_DEPTH_LEVELS

    # Logging
    log_raw_messages: bool = False

    def __post_init__(self) -> None:
        if self.depth_levels not in REFRESH_DEPTH_LEVELS:
            raise ConfigurationError(
                f"depth_levels must be one of {REFRESH_DEPTH_LEVELS}",
                field="depth_levels",
                value=self.depth_levels,
            )

        # Fill the endpoint from the venue when no explicit connection is given
        if self.connection is None:
            # Need to use object.__setattr__ for frozen dataclass
            object.__setattr__(
                self,
                "connection",
                ConnectionConfig(url=HUOBI_WS_ENDPOINTS[self.venue]),
            )

    @property
    def ws_url(self) -> str:
        assert self.connection is not None
        return self.connection.url


def _pick(section: dict[str, Any], cls: type, section_name: str) -> dict[str, Any]:
    """Keep known keys of a TOML table; unknown keys are a configuration error."""
    allowed = {f.name for f in fields(cls)}
    unknown = sorted(set(section) - allowed)
    if unknown:
        raise ConfigurationError(
            f"Unknown keys in [{section_name}]: {', '.join(unknown)}",
            field=section_name,
            value=unknown,
        )
    return dict(section)


def load_config(path: str | Path) -> StreamConfig:
    """
    Load a StreamConfig from a TOML file.

    Expected layout:
        [stream]
        venue = "huobi_spot"
        depth_levels = 20

        [connection]
        receive_timeout_s = 30.0
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with path.open("rb") as f:
        data = tomllib.load(f)

    stream_data = _pick(data.get("stream", {}), StreamConfig, "stream")
    stream_data.pop("connection", None)

    try:
        venue = Venue(stream_data.pop("venue", Venue.HUOBI_SPOT.value))
    except ValueError as e:
        raise ConfigurationError(
            "Unknown venue",
            field="venue",
            value=e.args[0] if e.args else None,
        ) from e

    connection: Optional[ConnectionConfig] = None
    if "connection" in data:
        conn_data = _pick(data["connection"], ConnectionConfig, "connection")
        conn_data.setdefault("url", HUOBI_WS_ENDPOINTS[venue])
        connection = ConnectionConfig(**conn_data)

    return StreamConfig(venue=venue, connection=connection, **stream_data)
