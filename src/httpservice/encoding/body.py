"""Request body variants.

Each body knows how to turn itself into an :class:`EncodedBody` -- the
``Content-Type`` header value plus the raw bytes to send. Encoding happens
before the request reaches the executor, so an encoding failure never
produces a network call.

* :class:`JSONBody` -- any value Pydantic can serialise, sent as JSON.
* :class:`FormURLEncodedBody` -- ``application/x-www-form-urlencoded`` via
  :class:`~httpservice.encoding.query.QueryEncoder`.
* :class:`MultipartBody` -- ``multipart/form-data`` via
  :class:`~httpservice.encoding.multipart.MultipartEncoder`, or a pre-built
  :class:`~httpservice.encoding.multipart.MultipartForm`.
* :class:`BinaryBody` -- raw bytes with a declared MIME type.
* :class:`EmptyBody` -- no bytes, ``Content-Type: text/plain``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import TypeAdapter
from pydantic_core import PydanticSerializationError

from httpservice.encoding.multipart import MultipartEncoder, MultipartForm
from httpservice.encoding.query import QueryEncoder
from httpservice.encoding.structural import ArrayEncoding
from httpservice.exceptions import EncodingError
from httpservice.mime import MimeType

_ANY_ADAPTER: TypeAdapter[Any] = TypeAdapter(Any)


@dataclass(frozen=True)
class EncodedBody:
    """Wire form of a request body."""

    content_type: str
    content: Optional[bytes]


class RequestBody(ABC):
    """Base class for request bodies."""

    @abstractmethod
    def encode(self, content_types: Optional[Mapping[str, str]] = None) -> EncodedBody:
        """Serialise the body.

        Args:
            content_types: Extension-to-MIME overrides from the service
                configuration. Only multipart bodies consult them.

        Raises:
            EncodingError: If the value cannot be serialised.
            OSError: If a file attachment cannot be read.
        """


class JSONBody(RequestBody):
    """A JSON body.

    Pydantic models, dataclasses, mappings, sequences and scalars are all
    accepted; model fields are written under their aliases.

    Example::

        JSONBody({"name": "widget"})
        JSONBody(item, mime_type="application/merge-patch+json")
    """

    def __init__(self, value: Any, mime_type: str = MimeType.JSON.value) -> None:
        self.value = value
        self.mime_type = mime_type

    def encode(self, content_types: Optional[Mapping[str, str]] = None) -> EncodedBody:
        try:
            content = _ANY_ADAPTER.dump_json(self.value, by_alias=True)
        except PydanticSerializationError as exc:
            raise EncodingError(f"Cannot encode JSON body: {exc}") from exc
        return EncodedBody(self.mime_type, content)


class FormURLEncodedBody(RequestBody):
    """An ``application/x-www-form-urlencoded`` body."""

    def __init__(self, value: Any, array_encoding: ArrayEncoding = ArrayEncoding.REPEAT_KEY) -> None:
        self.value = value
        self.array_encoding = array_encoding

    def encode(self, content_types: Optional[Mapping[str, str]] = None) -> EncodedBody:
        content = QueryEncoder(self.array_encoding).encode_bytes(self.value)
        return EncodedBody(MimeType.FORM_URLENCODED.value, content)


class MultipartBody(RequestBody):
    """A ``multipart/form-data`` body.

    *value* is either a :class:`~httpservice.encoding.multipart.MultipartForm`
    built by hand or any value the structural encoder can walk. Service-level
    ``content_types`` overrides are applied beneath a form's own table.
    """

    def __init__(self, value: Any, array_encoding: ArrayEncoding = ArrayEncoding.REPEAT_KEY) -> None:
        self.value = value
        self.array_encoding = array_encoding

    def encode(self, content_types: Optional[Mapping[str, str]] = None) -> EncodedBody:
        if isinstance(self.value, MultipartForm):
            form = self.value
        else:
            form = MultipartEncoder(self.array_encoding).build_form(self.value)
        content = form.encode(content_types)
        return EncodedBody(form.content_type, content)


class BinaryBody(RequestBody):
    """Raw bytes sent as-is."""

    def __init__(self, data: bytes, mime_type: str = MimeType.BINARY.value) -> None:
        self.data = bytes(data)
        self.mime_type = mime_type

    def encode(self, content_types: Optional[Mapping[str, str]] = None) -> EncodedBody:
        return EncodedBody(self.mime_type, self.data)


class EmptyBody(RequestBody):
    """No payload. Still declares ``Content-Type: text/plain``."""

    def encode(self, content_types: Optional[Mapping[str, str]] = None) -> EncodedBody:
        return EncodedBody(MimeType.TEXT.value, None)
