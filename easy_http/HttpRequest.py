from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from easy_http import settings
from easy_http.address import HttpUrl, append_query, is_local_host, parse_url, resolve_location
from easy_http.body import BinaryBody, FormURLEncodedBody, HttpRequestBody, TextBody
from easy_http.errors import (
    LocalNotAllowedError,
    RedirectError,
    UnsupportedMethodError,
    UrlParseError,
)
from easy_http.HttpResponse import HttpResponse
from easy_http.options import HttpRequestOptions
from easy_http.transport import Connection
from easy_http.wire import (
    encode_request,
    read_response_body,
    read_response_head,
    request_headers,
    validate_header,
)

logger = logging.getLogger(__name__)

REDIRECT_STATUSES = {301, 302, 303, 307, 308}


class HttpRequestMethod(Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    # Only get the headers of resources
    HEAD = "HEAD"

    def __str__(self) -> str:
        return self.value


def _coerce_body(body: Any) -> Optional[HttpRequestBody]:
    if body is None or isinstance(body, (BinaryBody, TextBody, FormURLEncodedBody)):
        return body
    if isinstance(body, (bytes, bytearray, memoryview)):
        return BinaryBody("application/octet-stream", bytes(body))
    if isinstance(body, str):
        return TextBody("text/plain; charset=utf-8", body)
    if isinstance(body, Mapping):
        return FormURLEncodedBody(dict(body))
    raise TypeError(f"Unsupported request body type: {type(body).__name__}")


def _freeze(mapping: Optional[Mapping[str, Any]]) -> Optional[Mapping[str, str]]:
    if mapping is None:
        return None
    return MappingProxyType({str(k): str(v) for k, v in mapping.items()})


@dataclass(frozen=True)
class HttpRequest:
    """An immutable description of one outbound HTTP/HTTPS call.

    ``url`` may be given as a string; it is parsed on construction so a
    malformed URL raises UrlParseError before anything touches the network.
    The ``with_*`` helpers return modified copies, leaving this request
    untouched, and ``send`` can be called any number of times.
    """

    method: HttpRequestMethod
    url: HttpUrl
    query: Optional[Mapping[str, str]] = None
    headers: Optional[Mapping[str, str]] = None
    body: Optional[HttpRequestBody] = None
    options: HttpRequestOptions = field(default_factory=HttpRequestOptions)

    def __post_init__(self) -> None:
        if isinstance(self.method, str):
            try:
                method = HttpRequestMethod(self.method.upper())
            except ValueError as exc:
                raise UnsupportedMethodError(f"Unsupported HTTP method {self.method!r}") from exc
            object.__setattr__(self, "method", method)
        if isinstance(self.url, str):
            object.__setattr__(self, "url", parse_url(self.url))
        object.__setattr__(self, "query", _freeze(self.query))
        object.__setattr__(self, "headers", _freeze(self.headers))
        object.__setattr__(self, "body", _coerce_body(self.body))
        for name, value in (self.headers or {}).items():
            validate_header(name, value)

    @classmethod
    def new(cls, method: Union[HttpRequestMethod, str], url: Union[HttpUrl, str]) -> "HttpRequest":
        return cls(method=method, url=url)

    @classmethod
    def get(cls, url: Union[HttpUrl, str]) -> "HttpRequest":
        return cls.new(HttpRequestMethod.GET, url)

    @classmethod
    def post(cls, url: Union[HttpUrl, str]) -> "HttpRequest":
        return cls.new(HttpRequestMethod.POST, url)

    @classmethod
    def put(cls, url: Union[HttpUrl, str]) -> "HttpRequest":
        return cls.new(HttpRequestMethod.PUT, url)

    @classmethod
    def delete(cls, url: Union[HttpUrl, str]) -> "HttpRequest":
        return cls.new(HttpRequestMethod.DELETE, url)

    @classmethod
    def head(cls, url: Union[HttpUrl, str]) -> "HttpRequest":
        return cls.new(HttpRequestMethod.HEAD, url)

    def with_query(self, query: Optional[Mapping[str, Any]]) -> "HttpRequest":
        return replace(self, query=query)

    def with_headers(self, headers: Optional[Mapping[str, Any]]) -> "HttpRequest":
        return replace(self, headers=headers)

    def with_header(self, name: str, value: str) -> "HttpRequest":
        merged = dict(self.headers or {})
        merged[name] = value
        return replace(self, headers=merged)

    def with_body(self, body: Any) -> "HttpRequest":
        return replace(self, body=body)

    def with_options(self, options: Optional[HttpRequestOptions] = None, **overrides: Any) -> "HttpRequest":
        """Return a copy using ``options``, with keyword fields overlaid."""
        base = options or self.options
        return replace(self, options=replace(base, **overrides) if overrides else base)

    def send(self) -> HttpResponse:
        """Perform the request, following redirects, and return the response."""
        url = append_query(self.url, self.query)
        method, body = self.method, self.body
        redirects_left = self.options.max_redirect_count

        while True:
            follow = redirects_left > 0
            response = self._exchange(method, url, body, follow)
            if not follow or response.status_code not in REDIRECT_STATUSES:
                return response

            location = response.headers.get("location")
            if not location:
                raise RedirectError("Cannot get the `location` field in headers.")
            try:
                url = resolve_location(url, location)
            except UrlParseError as exc:
                raise RedirectError(f"Cannot parse the `location` field in headers: {location!r}") from exc

            if response.status_code == 303:
                method, body = HttpRequestMethod.GET, None
            redirects_left -= 1
            logger.debug(
                "Following %s redirect to %s (%d redirects left)",
                response.status_code,
                url,
                redirects_left,
            )

    def _exchange(
        self,
        method: HttpRequestMethod,
        url: HttpUrl,
        body: Optional[HttpRequestBody],
        follow_redirects: bool,
    ) -> HttpResponse:
        options = self.options
        if not options.allow_local and is_local_host(url.host):
            raise LocalNotAllowedError()

        payload = (body.content_type, body.encode()) if body is not None else None
        headers = request_headers(url, self.headers, payload, settings.USER_AGENT)
        data = encode_request(method.value, url, headers, payload[1] if payload else None)

        with Connection(url, timeout=options.timeout_seconds, allow_local=options.allow_local) as conn:
            logger.debug("Sending %s %s", method.value, url)
            conn.write(data)
            head = read_response_head(conn)
            logger.debug("Received %s %s from %s", head.status_code, head.reason, url)

            if follow_redirects and head.status_code in REDIRECT_STATUSES:
                content = b""
            else:
                content = read_response_body(
                    conn,
                    head,
                    method.value,
                    options.max_response_body_size,
                    options.truncate_response_body,
                )

        return HttpResponse(
            status_code=head.status_code,
            headers=dict(head.headers),
            body=content,
            reason=head.reason,
            url=url.geturl(),
        )
