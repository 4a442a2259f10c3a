"""
Event routers receiving emitted records.

A router exposes ``emit(tag, time, record)``; what happens downstream is up to
the implementation.
"""

import json
import sys
from datetime import datetime
from typing import IO, Any, Dict, List, Optional

from tls_cert_check.ssl_info import format_iso

Record = Dict[str, Any]


class Router:
    """Base router."""

    def emit(self, tag: str, time: datetime, record: Record) -> None:
        raise NotImplementedError

    def close(self) -> None:
        """Release resources held by the router."""


class StreamRouter(Router):
    """Write one JSON document per record to a stream or file."""

    def __init__(self, stream: Optional[IO[str]] = None, path: Optional[str] = None):
        self._owns_stream = stream is None and path is not None
        if self._owns_stream:
            self._stream: IO[str] = open(path, "a", encoding="utf-8")
        else:
            self._stream = stream or sys.stdout

    def emit(self, tag: str, time: datetime, record: Record) -> None:
        line = json.dumps({"tag": tag, "time": format_iso(time), "record": record})
        self._stream.write(line + "\n")
        self._stream.flush()

    def close(self) -> None:
        if self._owns_stream:
            self._stream.close()


class MultiRouter(Router):
    """Fan records out to several routers, in order."""

    def __init__(self, routers: List[Router]):
        self.routers = list(routers)

    def emit(self, tag: str, time: datetime, record: Record) -> None:
        for router in self.routers:
            router.emit(tag, time, record)

    def close(self) -> None:
        for router in self.routers:
            router.close()
