"""multipart/form-data encoding.

:class:`MultipartForm` collects named parts and serialises them with a
boundary that is verified not to occur in any serialised part.
:class:`MultipartEncoder` builds such a form from an arbitrary value via
:class:`~httpservice.encoding.structural.StructuralEncoder`.

Part layout::

    Content-Disposition: form-data; name="<path>"[; filename="<file>"]
    Content-Type: <mime>            (binary and file parts only)

    <data>

Binary and file parts always carry a ``filename``, empty when none is known.

Body framing::

    --B\\r\\n<part 1>\\r\\n--B\\r\\n<part 2>\\r\\n--B--\\r\\n

A :class:`MultipartMixed` value becomes a single outer part of type
``multipart/mixed`` whose payload is a nested body with its own boundary.
"""

from __future__ import annotations

import base64
import secrets
from collections.abc import Iterable, Mapping, Sequence
from pathlib import PurePath
from typing import Any, Optional, Protocol, runtime_checkable

from httpservice.encoding.structural import (
    ArrayEncoding,
    BinaryValue,
    EncodedField,
    FieldValue,
    FileReference,
    FormAttachment,
    StructuralEncoder,
)
from httpservice.mime import MimeType, content_type_for_extension

BOUNDARY_PREFIX = "httpservice.multipart.boundary."
MIXED_BOUNDARY_PREFIX = "httpservice.mixed.boundary."

_CRLF = b"\r\n"
_INITIAL_ENTROPY = 12
_ATTEMPTS_PER_ENTROPY = 4


def generate_boundary(
    parts: Sequence[bytes],
    prefix: str = BOUNDARY_PREFIX,
    entropy: int = _INITIAL_ENTROPY,
) -> str:
    """Return a random boundary that occurs in none of *parts*.

    The token is *prefix* followed by URL-safe base64 of *entropy* random
    bytes. Every :data:`_ATTEMPTS_PER_ENTROPY` collisions the entropy doubles;
    a token longer than the longest part cannot collide, so the loop always
    terminates.
    """
    attempts = 0
    while True:
        token = prefix + base64.urlsafe_b64encode(secrets.token_bytes(entropy)).decode("ascii")
        needle = token.encode("ascii")
        if not any(needle in part for part in parts):
            return token
        attempts += 1
        if attempts % _ATTEMPTS_PER_ENTROPY == 0:
            entropy *= 2


def frame_parts(parts: Sequence[bytes], boundary: str) -> bytes:
    """Join serialised parts into a multipart body delimited by *boundary*."""
    delimiter = b"--" + boundary.encode("ascii")
    body = bytearray(delimiter)
    for part in parts:
        body += _CRLF + part + _CRLF + delimiter
    body += b"--" + _CRLF
    return bytes(body)


def _quote(value: str) -> str:
    return value.replace('"', "%22").replace("\r", "%0D").replace("\n", "%0A")


def _disposition(name: str, filename: Optional[str] = None) -> str:
    header = f'Content-Disposition: form-data; name="{_quote(name)}"'
    if filename is not None:
        header += f'; filename="{_quote(filename)}"'
    return header


class MultipartMixed(FormAttachment):
    """A set of files sent together as one ``multipart/mixed`` form field.

    Example::

        mixed = MultipartMixed()
        mixed.add(b"...", "a.png", "image/png")
        mixed.add(b"...", "b.png", "image/png")
        form.add_mixed("photos", mixed)
    """

    def __init__(self) -> None:
        self._content: list[BinaryValue] = []

    def add(self, data: bytes, filename: str, mime_type: str) -> MultipartMixed:
        self._content.append(BinaryValue(data, filename, mime_type))
        return self

    def encode(self) -> tuple[bytes, str]:
        """Serialise the nested body.

        Returns:
            A ``(body, boundary)`` tuple.
        """
        parts = [
            (
                f'Content-Disposition: file; filename="{_quote(item.filename or "")}"\r\n'
                f"Content-Type: {item.mime_type or MimeType.BINARY.value}\r\n\r\n"
            ).encode("utf-8")
            + item.data
            for item in self._content
        ]
        boundary = generate_boundary(parts, prefix=MIXED_BOUNDARY_PREFIX)
        return frame_parts(parts, boundary), boundary

    def __len__(self) -> int:
        return len(self._content)


class MultipartForm:
    """An ordered multipart/form-data form.

    Parts are serialised lazily by :meth:`encode`; file parts are read at
    that point. A read failure raises :class:`OSError` and no body is
    produced.

    Args:
        content_types: Extension-to-MIME overrides used for file and named
            binary parts,
            consulted before the built-in table.
    """

    def __init__(self, content_types: Optional[Mapping[str, str]] = None) -> None:
        self.content_types: dict[str, str] = dict(content_types or {})
        self.boundary: Optional[str] = None
        self._fields: list[EncodedField] = []

    def add_text(self, name: str, value: Optional[str]) -> MultipartForm:
        self._fields.append(EncodedField(name, value))
        return self

    def add_data(
        self,
        name: str,
        data: bytes,
        filename: Optional[str] = None,
        mime_type: Optional[str] = None,
    ) -> MultipartForm:
        self._fields.append(EncodedField(name, BinaryValue(data, filename, mime_type)))
        return self

    def add_file(
        self,
        name: str,
        path: Any,
        filename: Optional[str] = None,
        mime_type: Optional[str] = None,
    ) -> MultipartForm:
        self._fields.append(EncodedField(name, FileReference(path, filename, mime_type)))
        return self

    def add_mixed(self, name: str, mixed: MultipartMixed) -> MultipartForm:
        self._fields.append(EncodedField(name, mixed))
        return self

    def add_field(self, field: EncodedField) -> MultipartForm:
        self._fields.append(field)
        return self

    @property
    def content_type(self) -> str:
        """``multipart/form-data; boundary=...`` -- only valid after :meth:`encode`."""
        if self.boundary is None:
            raise RuntimeError("Form has not been encoded yet")
        return f"{MimeType.MULTIPART_FORM.value}; boundary={self.boundary}"

    def encode(self, fallback_types: Optional[Mapping[str, str]] = None) -> bytes:
        """Serialise all parts, choose a non-colliding boundary and frame the body.

        *fallback_types* is consulted after the form's own ``content_types``
        and is not stored on the form.
        """
        table = {**(fallback_types or {}), **self.content_types}
        parts = [self._serialize(field, table) for field in self._fields]
        self.boundary = generate_boundary(parts)
        return frame_parts(parts, self.boundary)

    def __len__(self) -> int:
        return len(self._fields)

    def _serialize(self, field: EncodedField, content_types: Mapping[str, str]) -> bytes:
        value = field.value
        if value is None or isinstance(value, str):
            return f"{_disposition(field.path)}\r\n\r\n{value or ''}".encode("utf-8")

        if isinstance(value, BinaryValue):
            filename = value.filename or ""
            mime_type = value.mime_type or content_type_for_extension(
                PurePath(filename).suffix, content_types
            )
            return self._binary_part(field.path, value.data, filename, mime_type)

        if isinstance(value, FileReference):
            data = value.path.read_bytes()
            mime_type = value.mime_type or content_type_for_extension(
                value.path.suffix, content_types
            )
            return self._binary_part(field.path, data, value.filename or value.path.name, mime_type)

        if isinstance(value, MultipartMixed):
            nested, boundary = value.encode()
            return self._binary_part(
                field.path, nested, None, f"{MimeType.MULTIPART_MIXED.value}; boundary={boundary}"
            )

        raise TypeError(f"Unsupported multipart field value: {type(value).__name__}")

    @staticmethod
    def _binary_part(name: str, data: bytes, filename: Optional[str], mime_type: str) -> bytes:
        headers = f"{_disposition(name, filename)}\r\nContent-Type: {mime_type}\r\n\r\n"
        return headers.encode("utf-8") + data


@runtime_checkable
class MultipartFormDataEncodable(Protocol):
    """Values that supply their own parts instead of being walked structurally."""

    def multipart_parts(self) -> Iterable[tuple[str, BinaryValue]]: ...


class MultipartEncoder(StructuralEncoder):
    """Structural encoder producing multipart/form-data bodies.

    Scalars become text parts, raw bytes become ``application/octet-stream``
    attachments with an empty filename, and :class:`~httpservice.encoding.structural.BinaryValue`,
    :class:`~httpservice.encoding.structural.FileReference` and
    :class:`MultipartMixed` values become parts of their own.

    Args:
        array_encoding: Path suffix strategy for array elements.
        content_types: Extension-to-MIME overrides for file parts.

    Example::

        body, boundary = MultipartEncoder().encode(
            {"title": "report", "doc": FileReference("report.pdf")}
        )
    """

    def __init__(
        self,
        array_encoding: ArrayEncoding = ArrayEncoding.REPEAT_KEY,
        content_types: Optional[Mapping[str, str]] = None,
    ) -> None:
        super().__init__(array_encoding)
        self.content_types: dict[str, str] = dict(content_types or {})

    def format_binary(self, data: bytes) -> FieldValue:
        return BinaryValue(data, filename="")

    def build_form(self, value: Any) -> MultipartForm:
        """Build (but do not serialise) the form for *value*."""
        form = MultipartForm(self.content_types)
        if isinstance(value, MultipartFormDataEncodable):
            for name, part in value.multipart_parts():
                form.add_data(name, part.data, part.filename, part.mime_type)
            return form
        for field in self.encode_fields(value):
            form.add_field(field)
        return form

    def encode(self, value: Any) -> tuple[bytes, str]:
        """Encode *value* as a multipart body.

        Returns:
            A ``(body, boundary)`` tuple.

        Raises:
            EncodingError: If the value graph contains an unsupported type.
            OSError: If a referenced file cannot be read.
        """
        form = self.build_form(value)
        body = form.encode()
        assert form.boundary is not None
        return body, form.boundary
