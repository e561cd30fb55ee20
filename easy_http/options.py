from dataclasses import dataclass, field
from typing import Optional

from easy_http import settings


@dataclass(frozen=True)
class HttpRequestOptions:
    """Per-request limits.

    Defaults come from ``easy_http.settings`` at construction time, so an
    environment override (or ``.env`` entry) changes every request that does
    not pass its own value.
    """

    # Size limit in bytes of the response body
    max_response_body_size: int = field(default_factory=lambda: settings.MAX_RESPONSE_BODY_SIZE)
    max_redirect_count: int = field(default_factory=lambda: settings.MAX_REDIRECT_COUNT)
    # Time limit in milliseconds of one connection; 0 means unlimited
    max_connection_time: int = field(default_factory=lambda: settings.MAX_CONNECTION_TIME)
    allow_local: bool = field(default_factory=lambda: settings.ALLOW_LOCAL)
    # Cut the body at the size limit instead of raising TooLargeError
    truncate_response_body: bool = False

    def __post_init__(self) -> None:
        for name in ("max_response_body_size", "max_redirect_count", "max_connection_time"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 0:
                raise ValueError(f"{name} must be a non-negative integer, got {value!r}")

    @property
    def timeout_seconds(self) -> Optional[float]:
        """Return the connection time limit in seconds, or None when unlimited."""
        if self.max_connection_time == 0:
            return None
        return self.max_connection_time / 1000.0
