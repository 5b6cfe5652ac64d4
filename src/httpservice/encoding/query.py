"""URL query encoding.

:class:`QueryEncoder` specialises :class:`~httpservice.encoding.structural.StructuralEncoder`
to produce ``(name, value)`` pairs usable as URL query parameters or as an
``application/x-www-form-urlencoded`` body. Its three entry points agree
field for field:

* :meth:`QueryEncoder.encode` -- list of query items.
* :meth:`QueryEncoder.encode_string` -- ``name=value`` pairs joined by ``&``
  with both sides percent-encoded (only ``A-Z a-z 0-9 - . _ ~`` left as-is).
* :meth:`QueryEncoder.encode_bytes` -- UTF-8 of the string form.

:class:`QueryParameters` is a hand-built alternative: an ordered,
multi-valued parameter bag for callers who already have strings.
"""

from __future__ import annotations

import base64
from collections.abc import Iterable, Iterator
from typing import Any, Optional
from urllib.parse import quote

from httpservice.encoding.structural import (
    ArrayEncoding,
    BinaryValue,
    FieldValue,
    FileReference,
    FormAttachment,
    StructuralEncoder,
)
from httpservice.exceptions import EncodingError

QueryItem = tuple[str, str]


def percent_encode(text: str) -> str:
    """Percent-encode *text*, leaving only the RFC 3986 unreserved set."""
    return quote(text, safe="")


def join_query_items(items: Iterable[QueryItem]) -> str:
    """Render query items as ``a=1&b=2`` with both sides percent-encoded."""
    return "&".join(f"{percent_encode(name)}={percent_encode(value)}" for name, value in items)


class QueryEncoder(StructuralEncoder):
    """Structural encoder for URL query strings and form-urlencoded bodies.

    Binary payloads are rendered as standard base64. A
    :class:`~httpservice.encoding.structural.FileReference` contributes its
    path, never its contents.

    Example::

        QueryEncoder().encode_string({"q": "a b", "tags": ["x", "y"]})
        # 'q=a%20b&tags=x&tags=y'
    """

    def format_binary(self, data: bytes) -> FieldValue:
        return base64.b64encode(data).decode("ascii")

    def format_attachment(self, value: FormAttachment) -> FieldValue:
        if isinstance(value, BinaryValue):
            return self.format_binary(value.data)
        if isinstance(value, FileReference):
            return str(value.path)
        raise EncodingError(f"{type(value).__name__} cannot be encoded as a query parameter")

    def encode(self, value: Any) -> list[QueryItem]:
        """Encode *value* as a list of ``(name, value)`` query items."""
        return [(f.path, "" if f.value is None else str(f.value)) for f in self.encode_fields(value)]

    def encode_string(self, value: Any) -> str:
        """Encode *value* as a percent-encoded query string."""
        return join_query_items(self.encode(value))

    def encode_bytes(self, value: Any) -> bytes:
        """Encode *value* as UTF-8 bytes of its percent-encoded query string."""
        return self.encode_string(value).encode("utf-8")


class QueryParameters:
    """Ordered, multi-valued query parameters.

    Values added under the same name are kept together in insertion order,
    and names appear in the order they were first added.

    Example::

        params = QueryParameters()
        params.add("page", "2")
        params.add_all("tag", ["a", "b"])
        params.items()  # [('page', '2'), ('tag', 'a'), ('tag', 'b')]
    """

    def __init__(self, pairs: Optional[Iterable[QueryItem]] = None) -> None:
        self._fields: dict[str, list[str]] = {}
        for name, value in pairs or ():
            self.add(name, value)

    def add(self, name: str, value: str) -> QueryParameters:
        self._fields.setdefault(name, []).append(value)
        return self

    def add_all(self, name: str, values: Iterable[str]) -> QueryParameters:
        self._fields.setdefault(name, []).extend(values)
        return self

    def items(self) -> list[QueryItem]:
        return [(name, value) for name, values in self._fields.items() for value in values]

    @property
    def is_empty(self) -> bool:
        return not self._fields

    def __iter__(self) -> Iterator[QueryItem]:
        return iter(self.items())

    def __len__(self) -> int:
        return sum(len(values) for values in self._fields.values())

    def __repr__(self) -> str:
        return f"QueryParameters({self.items()!r})"


def query_params(*pairs: QueryItem) -> QueryParameters:
    """Build :class:`QueryParameters` from ``(name, value)`` pairs."""
    return QueryParameters(pairs)


def query_params_multi(*pairs: tuple[str, Iterable[str]]) -> QueryParameters:
    """Build :class:`QueryParameters` from ``(name, [values])`` pairs."""
    params = QueryParameters()
    for name, values in pairs:
        params.add_all(name, values)
    return params


def to_query_items(
    query: Any,
    array_encoding: ArrayEncoding = ArrayEncoding.REPEAT_KEY,
) -> list[QueryItem]:
    """Normalise a caller-supplied query into query items.

    Accepts ``None``, :class:`QueryParameters`, or any value the
    :class:`QueryEncoder` can walk (mappings, dataclasses, Pydantic models).
    """
    if query is None:
        return []
    if isinstance(query, QueryParameters):
        return query.items()
    return QueryEncoder(array_encoding).encode(query)
