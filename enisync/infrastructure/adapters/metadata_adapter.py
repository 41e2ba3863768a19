"""
Instance Metadata Adapter

Architectural Intent:
- Implements MetadataPort over HTTP against the EC2 instance metadata
  service (169.254.169.254, base path /latest/meta-data/)
- Each logical operation runs inside a MetadataSession that owns one
  http.client connection; the connection is opened on demand, reused for
  every read in the session and closed when the session exits, even on
  error. No connection outlives its session.
- Successful reads are cached per path for the life of the client;
  cache=False forces a fresh read

Retry Policy:
- Host unreachable, connection refused/reset, timeouts, DNS failures,
  malformed HTTP and unexpected status codes are retried with a cooldown
  of 1.2 ** attempt seconds, up to `retries` retries after the first try
- Exhaustion raises MetadataConnectionFailed
- 404 raises MetadataNotFound unless the caller supplied not_found
"""

from __future__ import annotations
import errno
import http.client
import logging
import socket
import threading
import time
from typing import Any, Callable, Optional

from enisync.domain.errors import (
    MetadataBadResponse,
    MetadataConnectionFailed,
    MetadataNotFound,
)
from enisync.domain.ports.metadata_port import RAISE

logger = logging.getLogger(__name__)

HOST = "169.254.169.254"
PORT = 80
BASE = "/latest/meta-data/"

_UNREACHABLE_ERRNOS = {errno.EHOSTUNREACH, errno.EHOSTDOWN, errno.ENETUNREACH}


def _is_retryable(error: BaseException) -> bool:
    if isinstance(error, (MetadataBadResponse, http.client.HTTPException)):
        return True
    if isinstance(error, (ConnectionError, TimeoutError, socket.timeout, socket.gaierror)):
        return True
    return isinstance(error, OSError) and error.errno in _UNREACHABLE_ERRNOS


def interface_path(hwaddr: str, path: str = "") -> str:
    return f"network/interfaces/macs/{hwaddr}/{path}"


class MetadataSession:
    """Reads sharing one connection; use as a context manager."""

    def __init__(self, client: "InstanceMetadataClient"):
        self._client = client
        self._conn: Optional[http.client.HTTPConnection] = None

    def __enter__(self) -> "MetadataSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self._conn is not None:
            try:
                self._conn.close()
            finally:
                self._conn = None

    def get(self, path: str, not_found: Any = RAISE, cache: bool = True) -> Any:
        if cache:
            hit = self._client._cached(path)
            if hit is not None:
                return hit

        body = self._fetch(path)
        if body is None:
            if not_found is RAISE:
                raise MetadataNotFound(f"Meta-data not found: {path}")
            return not_found

        if cache:
            self._client._store(path, body)
        return body

    def instance(self, path: str, not_found: Any = RAISE, cache: bool = True) -> Any:
        return self.get(path, not_found=not_found, cache=cache)

    def interface(
        self, hwaddr: str, path: str, not_found: Any = RAISE, cache: bool = True
    ) -> Any:
        return self.get(interface_path(hwaddr, path), not_found=not_found, cache=cache)

    def _connection(self) -> http.client.HTTPConnection:
        if self._conn is None:
            self._conn = self._client._connect()
        return self._conn

    def _fetch(self, path: str) -> Optional[str]:
        retries = self._client.retries
        attempt = 0
        while True:
            try:
                conn = self._connection()
                conn.request("GET", BASE + path)
                response = conn.getresponse()
                body = response.read().decode("utf-8", errors="replace")
                if response.status == 200:
                    return body
                if response.status == 404:
                    return None
                raise MetadataBadResponse(
                    f"Unexpected HTTP {response.status} for {BASE}{path}"
                )
            except (OSError, http.client.HTTPException, MetadataBadResponse) as e:
                if not _is_retryable(e):
                    raise
                self.close()
                if attempt >= retries:
                    raise MetadataConnectionFailed(
                        f"Connection failed after {retries} retries."
                    ) from e
                cooldown = 1.2 ** attempt
                logger.debug(
                    "Metadata read of %s failed (%s), retrying in %.2fs", path, e, cooldown
                )
                self._client._sleep(cooldown)
                attempt += 1


class InstanceMetadataClient:
    """Cached, retried reads from the instance metadata service."""

    def __init__(
        self,
        host: str = HOST,
        port: int = PORT,
        open_timeout: float = 5.0,
        read_timeout: float = 5.0,
        retries: int = 5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.host = host
        self.port = port
        self.open_timeout = open_timeout
        self.read_timeout = read_timeout
        self.retries = retries
        self._sleep = sleep
        self._cache: dict[str, str] = {}
        self._cache_lock = threading.Lock()

    def _connect(self) -> http.client.HTTPConnection:
        conn = http.client.HTTPConnection(self.host, self.port, timeout=self.open_timeout)
        conn.connect()
        if conn.sock is not None:
            conn.sock.settimeout(self.read_timeout)
        return conn

    def _cached(self, path: str) -> Optional[str]:
        with self._cache_lock:
            return self._cache.get(path)

    def _store(self, path: str, body: str) -> None:
        with self._cache_lock:
            self._cache[path] = body

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._cache.clear()

    def session(self) -> MetadataSession:
        return MetadataSession(self)

    def get(self, path: str, not_found: Any = RAISE, cache: bool = True) -> Any:
        with self.session() as meta:
            return meta.get(path, not_found=not_found, cache=cache)

    def instance(self, path: str, not_found: Any = RAISE, cache: bool = True) -> Any:
        return self.get(path, not_found=not_found, cache=cache)

    def interface(
        self, hwaddr: str, path: str, not_found: Any = RAISE, cache: bool = True
    ) -> Any:
        return self.get(interface_path(hwaddr, path), not_found=not_found, cache=cache)
