"""
Blocking TCP/TLS connection with a per-connection deadline.

Each request hop opens one Connection, writes the request, reads the response
and closes it. There is no pooling or reuse.
"""

import ipaddress
import logging
import socket
import ssl
import time
from functools import lru_cache
from typing import Optional

import certifi

from easy_http.address import HttpUrl, is_local_address
from easy_http.errors import (
    ConnectError,
    LocalNotAllowedError,
    TimeOutError,
    TlsHandshakeError,
    WriteError,
)

logger = logging.getLogger(__name__)


@lru_cache(maxsize=None)
def default_ssl_context() -> ssl.SSLContext:
    return ssl.create_default_context(cafile=certifi.where())


class Connection:
    """One socket to one origin, closed when the context exits."""

    def __init__(
        self,
        url: HttpUrl,
        *,
        timeout: Optional[float] = None,
        allow_local: bool = True,
        ssl_context: Optional[ssl.SSLContext] = None,
    ) -> None:
        self.url = url
        self.allow_local = allow_local
        self._ssl_context = ssl_context
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._sock: Optional[socket.socket] = None
        self._reader = None

    def __enter__(self) -> "Connection":
        try:
            self.open()
        except BaseException:
            self.close()
            raise
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _remaining(self) -> Optional[float]:
        if self._deadline is None:
            return None
        remaining = self._deadline - time.monotonic()
        if remaining <= 0:
            raise TimeOutError()
        return remaining

    def _settimeout(self) -> None:
        if self._sock is not None:
            self._sock.settimeout(self._remaining())

    def open(self) -> None:
        host, port = self.url.host, self.url.port
        try:
            infos = socket.getaddrinfo(host, port, socket.AF_UNSPEC, socket.SOCK_STREAM)
        except socket.gaierror as exc:
            raise ConnectError(f"Cannot resolve host {host!r}: {exc}") from exc

        last_error: Optional[OSError] = None
        for family, socktype, proto, _canonname, sockaddr in infos:
            if not self.allow_local and is_local_address(ipaddress.ip_address(sockaddr[0])):
                raise LocalNotAllowedError()

            timeout = self._remaining()
            sock = socket.socket(family, socktype, proto)
            try:
                sock.settimeout(timeout)
                sock.connect(sockaddr)
            except socket.timeout as exc:
                sock.close()
                raise TimeOutError() from exc
            except OSError as exc:
                sock.close()
                logger.debug("Connect to %s failed: %s", sockaddr, exc)
                last_error = exc
                continue
            self._sock = sock
            break

        if self._sock is None:
            raise ConnectError(f"Cannot connect to {host}:{port}: {last_error}") from last_error

        logger.debug("Connected to %s:%s", host, port)

        if self.url.is_tls:
            self._handshake()

        self._reader = self._sock.makefile("rb")

    def _handshake(self) -> None:
        context = self._ssl_context or default_ssl_context()
        try:
            self._settimeout()
            self._sock = context.wrap_socket(self._sock, server_hostname=self.url.host)
        except socket.timeout as exc:
            self.close()
            raise TimeOutError() from exc
        except OSError as exc:
            self.close()
            raise TlsHandshakeError(f"TLS handshake with {self.url.host} failed: {exc}") from exc
        logger.debug("TLS established with %s (%s)", self.url.host, self._sock.version())

    def write(self, data: bytes) -> None:
        try:
            self._settimeout()
            self._sock.sendall(data)
        except socket.timeout as exc:
            raise TimeOutError() from exc
        except OSError as exc:
            raise WriteError(f"Failed to write request to {self.url.host}: {exc}") from exc

    def readline(self, limit: int = -1) -> bytes:
        try:
            self._settimeout()
            return self._reader.readline(limit)
        except socket.timeout as exc:
            raise TimeOutError() from exc
        except OSError as exc:
            raise ConnectError(f"Connection to {self.url.host} lost while reading: {exc}") from exc

    def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes; return b"" once the peer closed."""
        try:
            self._settimeout()
            return self._reader.read1(size)
        except socket.timeout as exc:
            raise TimeOutError() from exc
        except OSError as exc:
            raise ConnectError(f"Connection to {self.url.host} lost while reading: {exc}") from exc

    def close(self) -> None:
        if self._reader is not None:
            self._reader.close()
            self._reader = None
        if self._sock is not None:
            self._sock.close()
            self._sock = None
