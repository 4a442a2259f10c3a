"""
Check targets: network endpoints and local certificate files.
"""

from dataclasses import dataclass
from typing import Optional

DEFAULT_PORT = 443

NETWORK = "network"
FILE = "file"


@dataclass(frozen=True)
class Target:
    """One endpoint (``host``/``port``) or one certificate file (``path``)."""

    host: Optional[str] = None
    port: Optional[int] = None
    path: Optional[str] = None

    @property
    def kind(self) -> str:
        return FILE if self.path is not None else NETWORK

    @classmethod
    def parse_host(cls, value: str) -> "Target":
        """
        Parse ``host``, ``host:port``, ``[v6addr]`` or ``[v6addr]:port``.

        Raises:
            ValueError: empty host or port outside 1..65535
        """
        value = value.strip()
        host = value
        port_text: Optional[str] = None

        if value.startswith("["):
            end = value.find("]")
            if end == -1:
                raise ValueError(f"Invalid host '{value}': missing ']'")
            host = value[1:end]
            rest = value[end + 1 :]
            if rest:
                if not rest.startswith(":"):
                    raise ValueError(f"Invalid host '{value}'")
                port_text = rest[1:]
        elif value.count(":") == 1:
            host, port_text = value.split(":")

        if not host:
            raise ValueError(f"Invalid host '{value}': host can not be empty")

        port = DEFAULT_PORT
        if port_text is not None:
            try:
                port = int(port_text)
            except ValueError as e:
                raise ValueError(f"Invalid port in '{value}'") from e
            if port < 1 or port > 65535:
                raise ValueError(f"Invalid port in '{value}': must be between 1 and 65535")

        return cls(host=host, port=port)

    @classmethod
    def for_path(cls, path: str) -> "Target":
        return cls(path=path)

    def __str__(self) -> str:
        if self.kind == FILE:
            return str(self.path)
        if self.host and ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"
