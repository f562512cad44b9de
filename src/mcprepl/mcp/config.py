"""Client configuration and the automatic connection decision."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from dotenv import dotenv_values

from mcprepl.mcp.transport.types import TransportKind

logger = logging.getLogger(__name__)

# Environment keys
SERVER_URL_KEY = "MCP_SERVER_URL"
TRANSPORT_KEY = "MCP_TRANSPORT"
API_KEY_KEY = "MCP_API_KEY"
REQUEST_TIMEOUT_KEY = "MCP_REQUEST_TIMEOUT"

DEFAULT_ENV_FILE = ".env"
DEFAULT_REQUEST_TIMEOUT = 60.0


class ConfigError(Exception):
    """Configuration could not be loaded."""

    pass


@dataclass(frozen=True)
class ClientConfig:
    """Where to connect on startup, and how."""

    server_target: str | None = None
    transport: str | None = None
    api_key: str | None = None
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    @classmethod
    def from_env(cls, env: Mapping[str, str | None]) -> "ClientConfig":
        """
        Build from an environment-style mapping.

        Empty values count as unset.

        Raises:
            ConfigError: If the request timeout is not a positive number.
        """
        timeout_raw = _clean(env.get(REQUEST_TIMEOUT_KEY))
        request_timeout = DEFAULT_REQUEST_TIMEOUT
        if timeout_raw is not None:
            try:
                request_timeout = float(timeout_raw)
            except ValueError:
                raise ConfigError(
                    f"{REQUEST_TIMEOUT_KEY} must be a number, got {timeout_raw!r}"
                ) from None
            if request_timeout <= 0:
                raise ConfigError(f"{REQUEST_TIMEOUT_KEY} must be positive")

        return cls(
            server_target=_clean(env.get(SERVER_URL_KEY)),
            transport=_clean(env.get(TRANSPORT_KEY)),
            api_key=_clean(env.get(API_KEY_KEY)),
            request_timeout=request_timeout,
        )


@dataclass(frozen=True)
class ConnectParams:
    """Arguments for SessionManager.connect."""

    kind: TransportKind
    target: str
    api_key: str | None = None


def should_auto_connect(config: ClientConfig) -> ConnectParams | None:
    """
    Decide whether to connect on startup.

    Returns:
        Connection parameters, or None when the target or transport is unset.

    Raises:
        UnsupportedTransportError: The transport is set but not a known kind.
    """
    if not config.server_target or not config.transport:
        return None
    return ConnectParams(
        kind=TransportKind.parse(config.transport),
        target=config.server_target,
        api_key=config.api_key,
    )


def load_env_file(path: str | Path) -> dict[str, str]:
    """
    Parse a dotenv file without touching os.environ.

    Raises:
        ConfigError: If the file does not exist or cannot be read.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Environment file not found: {path}")
    try:
        values = dotenv_values(path)
    except OSError as e:
        raise ConfigError(f"Failed to read environment file {path}: {e}") from e
    logger.debug(f"Loaded {len(values)} values from {path}")
    # Keys without a value ("FOO" alone on a line) come back as None
    return {key: value for key, value in values.items() if value is not None}


def merge_env(base: Mapping[str, str], overrides: Mapping[str, str]) -> dict[str, str]:
    """Overlay file values on a base environment; the file wins."""
    merged = dict(base)
    merged.update(overrides)
    return merged


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None
