"""
Error taxonomy for a single HTTP/HTTPS exchange.

Every failure raised by ``HttpRequest.send`` derives from HttpRequestError so
callers can catch one type; the subclasses say which stage went wrong.
"""


class HttpRequestError(Exception):
    """Base class for all request failures."""


class UrlParseError(HttpRequestError):
    """Raised when a URL is malformed or not an http/https URL."""


class InvalidHeaderError(HttpRequestError):
    """Raised when a header name or value cannot be written to the wire."""


class ConnectError(HttpRequestError):
    """Raised when DNS resolution or the TCP connect fails."""


class TlsHandshakeError(ConnectError):
    """Raised when the TLS handshake with the server fails."""


class WriteError(HttpRequestError):
    """Raised when the request could not be written to the connection."""


class ResponseParseError(HttpRequestError):
    """Raised when the status line, headers or body framing are malformed."""


class TooLargeError(HttpRequestError):
    def __init__(self, message: str = "Remote data is too large.") -> None:
        super().__init__(message)


class TimeOutError(HttpRequestError):
    def __init__(self, message: str = "The connection has timed out.") -> None:
        super().__init__(message)


class RedirectError(HttpRequestError):
    """Raised when a redirect response cannot be followed."""


class LocalNotAllowedError(HttpRequestError):
    def __init__(self, message: str = "Local addresses are not allowed.") -> None:
        super().__init__(message)


class UnsupportedMethodError(HttpRequestError):
    """Raised when the method is not one of GET, POST, PUT, DELETE or HEAD."""
