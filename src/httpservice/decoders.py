"""Response decoders.

A decoder registry maps a MIME type (parameters stripped, lower-case) to a
:class:`Decoder`. :func:`decode` and :func:`decode_optional` are the two
decode entry points; the caller picks one explicitly depending on whether
"no content" is an acceptable answer.

Example::

    registry = default_decoders()
    registry["text/plain"] = TextDecoder()
    user = decode(result, User, registry)
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional, Protocol, TypeVar, runtime_checkable

from pydantic import TypeAdapter

from httpservice.exceptions import DecodeError, GenericError, UnrecognizedEncodingError
from httpservice.mime import MimeType, parse_mime_type
from httpservice.models import Result

T = TypeVar("T")

DecoderRegistry = Mapping[str, "Decoder"]


@runtime_checkable
class Decoder(Protocol):
    """Turns a response body into an instance of *target*."""

    def decode(self, body: bytes, target: type[T]) -> T: ...


class JSONDecoder:
    """Validates JSON bodies into any type Pydantic understands.

    One :class:`pydantic.TypeAdapter` is built per target type and reused.
    """

    def __init__(self) -> None:
        self._adapters: dict[Any, TypeAdapter[Any]] = {}

    def decode(self, body: bytes, target: type[T]) -> T:
        adapter = self._adapters.get(target)
        if adapter is None:
            adapter = self._adapters[target] = TypeAdapter(target)
        return adapter.validate_json(body)


class TextDecoder:
    """Decodes bodies as text for ``str`` targets and returns raw bytes for ``bytes``."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    def decode(self, body: bytes, target: type[T]) -> T:
        if target is bytes:
            return body  # type: ignore[return-value]
        if target is not str:
            raise TypeError(f"TextDecoder cannot produce {target!r}")
        return body.decode(self.encoding)  # type: ignore[return-value]


def default_decoders() -> dict[str, Decoder]:
    """Return a fresh registry holding only the JSON decoder."""
    return {MimeType.JSON.value: JSONDecoder()}


def decode(result: Optional[Result], target: type[T], registry: DecoderRegistry) -> T:
    """Decode a required value.

    Raises:
        GenericError: If *result* is ``None`` (the response had no content).
        UnrecognizedEncodingError: If no decoder handles the result's MIME type.
        DecodeError: If the decoder fails.
    """
    if result is None:
        raise GenericError(f"Expected a {_type_name(target)} but the response had no content")

    mime_type = parse_mime_type(result.mime_type)
    decoder = registry.get(mime_type)
    if decoder is None:
        raise UnrecognizedEncodingError(mime_type)
    try:
        return decoder.decode(result.body, target)
    except Exception as exc:
        raise DecodeError(f"Failed to decode {mime_type} as {_type_name(target)}: {exc}") from exc


def decode_optional(
    result: Optional[Result], target: type[T], registry: DecoderRegistry
) -> Optional[T]:
    """Like :func:`decode`, but "no content" yields ``None`` instead of an error."""
    if result is None:
        return None
    return decode(result, target, registry)


def _type_name(target: Any) -> str:
    return getattr(target, "__name__", repr(target))
