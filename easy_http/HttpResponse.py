import json as _json
from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass(frozen=True)
class HttpResponse:
    """Status, headers and body collected from one exchange.

    Header names are lower-cased; repeated fields are joined with ``", "``.
    ``url`` is the address that produced this response, which differs from
    the requested one after redirects.
    """

    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    reason: str = ""
    url: str = ""

    @property
    def text(self) -> str:
        try:
            return self.body.decode(self.encoding, errors="replace")
        except LookupError:
            return self.body.decode("utf-8", errors="replace")

    @property
    def encoding(self) -> str:
        content_type = self.headers.get("content-type", "")
        for param in content_type.split(";")[1:]:
            name, _, value = param.partition("=")
            if name.strip().lower() == "charset" and value.strip():
                return value.strip().strip('"')
        return "utf-8"

    def json(self) -> Any:
        return _json.loads(self.text or "null")
