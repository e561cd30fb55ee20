"""
HTTP/1.1 framing: serialize a request and read back status, headers and body.

Readers only need ``readline(limit)`` and ``read(size)``, so the functions
work on a transport Connection as well as on an in-memory ``io.BytesIO``.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from easy_http.address import HttpUrl
from easy_http.errors import InvalidHeaderError, ResponseParseError, TooLargeError

logger = logging.getLogger(__name__)

BUFFER_SIZE = 8192
MAX_LINE_LENGTH = 64 * 1024
MAX_HEADER_LINES = 100
NO_BODY_STATUSES = {204, 304}

_STATUS_LINE = re.compile(rb"^HTTP/(\d)\.(\d) (\d{3})(?: (.*))?$")
_TOKEN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_CHUNK_SIZE = re.compile(rb"^[0-9A-Fa-f]+$")
_BODY_HEADERS = {"content-type", "content-length", "transfer-encoding"}

Header = Tuple[str, str]


@dataclass(frozen=True)
class ResponseHead:
    status_code: int
    reason: str = ""
    headers: Dict[str, str] = field(default_factory=dict)


def validate_header(name: str, value: str) -> Header:
    """Return ``(name, value)`` as strings or raise InvalidHeaderError."""
    name, value = str(name), str(value)
    if not _TOKEN.match(name):
        raise InvalidHeaderError(f"Invalid header name {name!r}")
    if any(ch in value for ch in "\r\n\x00"):
        raise InvalidHeaderError(f"Header {name!r} contains a line break or NUL")
    try:
        value.encode("latin-1")
    except UnicodeEncodeError as exc:
        raise InvalidHeaderError(f"Header {name!r} is not latin-1 encodable") from exc
    return name, value.strip()


def request_headers(
    url: HttpUrl,
    headers: Optional[Mapping[str, str]],
    body: Optional[Tuple[str, bytes]],
    user_agent: str,
) -> List[Header]:
    """Assemble the header block for one hop.

    ``body`` is ``(content_type, payload)``. Body framing headers supplied by
    the caller are replaced by ones computed from the payload; ``Host`` and
    ``Connection`` are always set here.
    """
    result: List[Header] = [("Host", url.netloc)]
    has_user_agent = False

    for name, value in (headers or {}).items():
        name, value = validate_header(name, value)
        lowered = name.lower()
        if lowered in ("host", "connection"):
            continue
        if body is not None and lowered in _BODY_HEADERS:
            continue
        if lowered == "user-agent":
            has_user_agent = True
        result.append((name, value))

    if not has_user_agent:
        result.append(("User-Agent", user_agent))

    if body is not None:
        content_type, payload = body
        result.append(("Content-Type", content_type))
        result.append(("Content-Length", str(len(payload))))

    result.append(("Connection", "close"))
    return result


def encode_request(method: str, url: HttpUrl, headers: Iterable[Header], body: Optional[bytes] = None) -> bytes:
    lines = [f"{method} {url.request_target} HTTP/1.1"]
    lines.extend(f"{name}: {value}" for name, value in headers)
    head = ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")
    return head + (body or b"")


def _read_line(conn) -> bytes:
    line = conn.readline(MAX_LINE_LENGTH + 1)
    if len(line) > MAX_LINE_LENGTH:
        raise ResponseParseError(f"Response line exceeds {MAX_LINE_LENGTH} bytes.")
    return line


def _read_status_line(conn) -> Tuple[int, str]:
    line = _read_line(conn)
    if not line:
        raise ResponseParseError("Connection closed before the status line was received.")
    match = _STATUS_LINE.match(line.rstrip(b"\r\n"))
    if match is None:
        raise ResponseParseError(f"Malformed status line: {line[:80]!r}")
    reason = (match.group(4) or b"").decode("latin-1").strip()
    return int(match.group(3)), reason


def _read_headers(conn) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    last: Optional[str] = None
    count = 0

    while True:
        line = _read_line(conn)
        if not line:
            raise ResponseParseError("Connection closed inside the header block.")
        if line in (b"\r\n", b"\n"):
            return headers

        count += 1
        if count > MAX_HEADER_LINES:
            raise ResponseParseError(f"Response has more than {MAX_HEADER_LINES} header lines.")

        text = line.rstrip(b"\r\n").decode("latin-1")
        if not text:
            raise ResponseParseError(f"Malformed header line: {line!r}")
        # obsolete line folding
        if text[0] in " \t":
            if last is None:
                raise ResponseParseError("Header continuation line without a field.")
            headers[last] = f"{headers[last]} {text.strip()}".strip()
            continue

        name, sep, value = text.partition(":")
        if not sep or not _TOKEN.match(name):
            raise ResponseParseError(f"Malformed header line: {text[:80]!r}")

        key = name.lower()
        value = value.strip()
        headers[key] = f"{headers[key]}, {value}" if key in headers else value
        last = key


def read_response_head(conn) -> ResponseHead:
    """Read the status line and header block, skipping interim 1xx responses."""
    while True:
        status_code, reason = _read_status_line(conn)
        headers = _read_headers(conn)
        if 100 <= status_code < 200 and status_code != 101:
            logger.debug("Skipping interim %s response", status_code)
            continue
        return ResponseHead(status_code=status_code, reason=reason, headers=headers)


class _BodyCollector:
    def __init__(self, limit: int, truncate: bool) -> None:
        self._limit = limit
        self._truncate = truncate
        self._parts: List[bytes] = []
        self._size = 0

    def add(self, chunk: bytes) -> bool:
        """Store ``chunk``; return False once nothing more should be read."""
        room = self._limit - self._size
        if len(chunk) > room:
            if not self._truncate:
                raise TooLargeError()
            self._parts.append(chunk[:room])
            self._size += room
            logger.debug("Truncated response body at %d bytes", self._limit)
            return False
        self._parts.append(chunk)
        self._size += len(chunk)
        return True

    def getvalue(self) -> bytes:
        return b"".join(self._parts)


def _content_length(value: str) -> int:
    values = {item.strip() for item in value.split(",")}
    if len(values) != 1:
        raise ResponseParseError(f"Conflicting Content-Length values: {value!r}")
    (single,) = values
    if not (single.isascii() and single.isdigit()):
        raise ResponseParseError(f"Invalid Content-Length: {value!r}")
    return int(single)


def _read_exact(conn, length: int, collector: _BodyCollector) -> bool:
    remaining = length
    while remaining > 0:
        chunk = conn.read(min(BUFFER_SIZE, remaining))
        if not chunk:
            raise ResponseParseError(f"Connection closed with {remaining} body bytes outstanding.")
        remaining -= len(chunk)
        if not collector.add(chunk):
            return False
    return True


def _skip_trailers(conn) -> None:
    for _ in range(MAX_HEADER_LINES + 1):
        line = _read_line(conn)
        if line in (b"", b"\r\n", b"\n"):
            return
    raise ResponseParseError(f"Response has more than {MAX_HEADER_LINES} trailer lines.")


def _read_chunked(conn, collector: _BodyCollector) -> None:
    while True:
        line = _read_line(conn)
        if not line:
            raise ResponseParseError("Connection closed inside a chunked body.")
        size_text = line.split(b";", 1)[0].strip()
        if not _CHUNK_SIZE.match(size_text):
            raise ResponseParseError(f"Invalid chunk size line: {line[:80]!r}")

        size = int(size_text, 16)
        if size == 0:
            _skip_trailers(conn)
            return
        if not _read_exact(conn, size, collector):
            return
        if _read_line(conn) not in (b"\r\n", b"\n"):
            raise ResponseParseError("Missing line break after chunk data.")


def _read_until_close(conn, collector: _BodyCollector) -> None:
    while True:
        chunk = conn.read(BUFFER_SIZE)
        if not chunk or not collector.add(chunk):
            return


def read_response_body(
    conn,
    head: ResponseHead,
    method: str,
    max_size: int,
    truncate: bool = False,
) -> bytes:
    """Read the body framed by ``head``, bounded by ``max_size`` bytes."""
    status = head.status_code
    if method == "HEAD" or status in NO_BODY_STATUSES or 100 <= status < 200:
        return b""

    collector = _BodyCollector(max_size, truncate)
    transfer_encoding = head.headers.get("transfer-encoding")

    if transfer_encoding is not None:
        if transfer_encoding.split(",")[-1].strip().lower() == "chunked":
            _read_chunked(conn, collector)
        else:
            _read_until_close(conn, collector)
    elif "content-length" in head.headers:
        length = _content_length(head.headers["content-length"])
        if length > max_size and not truncate:
            raise TooLargeError()
        _read_exact(conn, length, collector)
    else:
        _read_until_close(conn, collector)

    return collector.getvalue()
