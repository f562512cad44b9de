"""Transport layer types and configuration."""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any

API_KEY_HEADER = "x-api-key"


class UnsupportedTransportError(ValueError):
    """Raised when a transport name is not one of the supported kinds."""

    def __init__(self, value: str):
        self.value = value
        supported = ", ".join(kind.value for kind in TransportKind.ordered())
        super().__init__(
            f"Unsupported transport type: {value}. Supported types: {supported}"
        )


class TransportKind(Enum):
    """The three ways of reaching an MCP server."""

    STDIO = "stdio"
    """Local process speaking JSON-RPC over stdin/stdout."""

    SSE = "sse"
    """Long-lived Server-Sent Events stream plus a POST side channel."""

    HTTP = "http"
    """Streamable HTTP: one POST per frame, optionally upgraded to SSE."""

    @classmethod
    def parse(cls, value: "str | TransportKind") -> "TransportKind":
        """
        Parse a transport name, ignoring case and surrounding whitespace.

        Raises:
            UnsupportedTransportError: If the name is not a known kind.
        """
        if isinstance(value, TransportKind):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnsupportedTransportError(str(value)) from None

    @classmethod
    def ordered(cls) -> list["TransportKind"]:
        """Kinds in the order they are listed to users."""
        return [cls.SSE, cls.HTTP, cls.STDIO]

    @property
    def is_network(self) -> bool:
        return self is not TransportKind.STDIO

    def __str__(self) -> str:
        return self.value


class TransportEventType(Enum):
    """Types of transport events for observability."""

    CONNECTING = auto()
    CONNECTED = auto()
    DISCONNECTING = auto()
    DISCONNECTED = auto()
    MESSAGE_SENT = auto()
    MESSAGE_RECEIVED = auto()
    ERROR = auto()
    SESSION_ESTABLISHED = auto()
    SSE_OPENED = auto()
    SSE_CLOSED = auto()
    PROCESS_STARTED = auto()
    PROCESS_EXITED = auto()


@dataclass
class TransportEvent:
    """Event emitted by transport for observability."""

    type: TransportEventType
    timestamp: float
    data: dict[str, Any] | None = None
    error: Exception | None = None

    def __str__(self) -> str:
        base = f"[{self.type.name}]"
        if self.data:
            base += f" {self.data}"
        if self.error:
            base += f" error={self.error}"
        return base


@dataclass
class TransportConfig:
    """Configuration shared by all transport kinds."""

    target: str
    """URL for network transports, executable path or command line for stdio."""

    api_key: str | None = None
    """Optional credential sent as the x-api-key header by network transports."""

    timeout: float = 30.0
    """Request timeout in seconds."""

    connect_timeout: float = 10.0
    """Connection establishment timeout in seconds."""

    headers: dict[str, str] = field(default_factory=dict)
    """Additional HTTP headers to include in requests."""

    verify_ssl: bool = True
    """Whether to verify SSL certificates."""

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not self.target or not self.target.strip():
            raise ValueError("target is required")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.connect_timeout <= 0:
            raise ValueError("connect_timeout must be positive")

    def request_headers(self) -> dict[str, str]:
        """Headers for every HTTP request, with the credential injected."""
        headers = dict(self.headers)
        if self.api_key:
            headers[API_KEY_HEADER] = self.api_key
        return headers
