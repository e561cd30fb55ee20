from dataclasses import dataclass, field
from typing import Mapping, Union
from urllib.parse import urlencode

FORM_URLENCODED = "application/x-www-form-urlencoded"


@dataclass(frozen=True)
class BinaryBody:
    """Raw bytes sent as-is."""

    content_type: str
    body: bytes

    def encode(self) -> bytes:
        return bytes(self.body)


@dataclass(frozen=True)
class TextBody:
    """Text sent UTF-8 encoded."""

    content_type: str
    body: str

    def encode(self) -> bytes:
        return self.body.encode("utf-8")


@dataclass(frozen=True)
class FormURLEncodedBody:
    fields: Mapping[str, str] = field(default_factory=dict)

    @property
    def content_type(self) -> str:
        return FORM_URLENCODED

    def encode(self) -> bytes:
        pairs = [(str(k), str(v)) for k, v in self.fields.items()]
        return urlencode(pairs).encode("ascii")


HttpRequestBody = Union[BinaryBody, TextBody, FormURLEncodedBody]
