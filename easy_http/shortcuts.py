"""
One-call helpers in the spirit of the ``requests`` module-level functions.

Each helper builds an HttpRequest, sends it and returns the HttpResponse;
any failure surfaces as an HttpRequestError subclass.
"""

import json as _json
from typing import Any, Mapping, Optional

from easy_http.body import TextBody
from easy_http.HttpRequest import HttpRequest
from easy_http.HttpResponse import HttpResponse
from easy_http.options import HttpRequestOptions


def request(
    method: str,
    url: str,
    *,
    query: Optional[Mapping[str, Any]] = None,
    headers: Optional[Mapping[str, Any]] = None,
    body: Any = None,
    json: Optional[Any] = None,
    options: Optional[HttpRequestOptions] = None,
    **option_overrides: Any,
) -> HttpResponse:
    """Build and send one request; ``json`` takes precedence over ``body``."""
    if json is not None:
        body = TextBody("application/json", _json.dumps(json))

    req = HttpRequest(
        method=method,
        url=url,
        query=query,
        headers=headers,
        body=body,
        options=options or HttpRequestOptions(),
    )
    if option_overrides:
        req = req.with_options(**option_overrides)
    return req.send()


def get(url: str, **kwargs: Any) -> HttpResponse:
    """Perform a GET request and return the response."""
    return request("GET", url, **kwargs)


def post(url: str, **kwargs: Any) -> HttpResponse:
    """Perform a POST request with an optional body or JSON payload."""
    return request("POST", url, **kwargs)


def put(url: str, **kwargs: Any) -> HttpResponse:
    return request("PUT", url, **kwargs)


def delete(url: str, **kwargs: Any) -> HttpResponse:
    return request("DELETE", url, **kwargs)


def head(url: str, **kwargs: Any) -> HttpResponse:
    """Fetch only the status and headers of a resource."""
    return request("HEAD", url, **kwargs)
