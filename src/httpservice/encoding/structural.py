"""Structural encoding -- flattens a typed value into ``(path, value)`` fields.

:class:`StructuralEncoder` walks an object graph depth-first and emits one
:class:`EncodedField` per leaf:

* **Objects** -- mappings (insertion order), dataclass instances (field
  order) and Pydantic models (declaration order, alias preferred). Nested
  field names are joined with ``.``; the root has no prefix.
* **Arrays** -- lists and tuples. Every element shares one path whose suffix
  depends on :class:`ArrayEncoding`: ``p`` (repeated key), ``p[]`` or
  ``p[0]``, ``p[1]``, ...
* **Scalars** -- booleans become ``"true"``/``"false"``, numbers their
  canonical decimal string, enums their value, dates the fixed
  ``yyyy-MM-ddTHH:mm:ssZZZZZ`` layout (see :func:`format_date`).
* **None** -- an empty value at its path; fields are never omitted.

Binary payloads and :class:`FormAttachment` values are handed to the
:meth:`~StructuralEncoder.format_binary` and
:meth:`~StructuralEncoder.format_attachment` hooks so that the query and
multipart specialisations can render them differently.

The field list is owned by the top-level :meth:`~StructuralEncoder.encode_fields`
call and threaded through the recursion explicitly; encoders hold no
per-call state and can be reused.
"""

from __future__ import annotations

import dataclasses
import enum
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel

from httpservice.exceptions import EncodingError


class ArrayEncoding(str, enum.Enum):
    """Path suffix applied to array elements."""

    REPEAT_KEY = "repeat_key"
    BRACKETS = "brackets"
    BRACKETS_WITH_INDEX = "brackets_with_index"


class FormAttachment:
    """Marker base for values that form encoders render as their own part."""


@dataclass(frozen=True)
class BinaryValue(FormAttachment):
    """In-memory binary payload with optional filename and MIME override.

    Example::

        BinaryValue(b'{"x":1}', filename="a.json", mime_type="application/json")
    """

    data: bytes
    filename: Optional[str] = None
    mime_type: Optional[str] = None


@dataclass(frozen=True)
class FileReference(FormAttachment):
    """A file on disk whose contents are read when the form is encoded.

    The filename defaults to the file's basename and the MIME type is
    resolved from its extension unless ``mime_type`` is given.
    """

    path: Path
    filename: Optional[str] = None
    mime_type: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", Path(self.path))


FieldValue = Union[str, None, FormAttachment]


@dataclass(frozen=True)
class EncodedField:
    """One ``(path, value)`` unit produced by structural encoding."""

    path: str
    value: FieldValue


def format_date(value: Union[datetime, date]) -> str:
    """Format a date as ``yyyy-MM-ddTHH:mm:ssZZZZZ``.

    UTC is written as ``Z``, other offsets as ``+HH:MM``. Naive datetimes are
    taken to be UTC and plain dates are formatted as midnight UTC, so the
    output never depends on the host's locale or timezone.
    """
    if not isinstance(value, datetime):
        value = datetime.combine(value, time(0), tzinfo=timezone.utc)
    elif value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)

    offset = value.utcoffset()
    stamp = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if not offset:
        return f"{stamp}Z"
    minutes = int(offset.total_seconds()) // 60
    sign = "+" if minutes >= 0 else "-"
    hours, minutes = divmod(abs(minutes), 60)
    return f"{stamp}{sign}{hours:02d}:{minutes:02d}"


class StructuralEncoder:
    """Depth-first visitor producing an ordered list of :class:`EncodedField`.

    Args:
        array_encoding: Path suffix strategy for array elements.
    """

    def __init__(self, array_encoding: ArrayEncoding = ArrayEncoding.REPEAT_KEY) -> None:
        self.array_encoding = array_encoding

    def encode_fields(self, value: Any) -> list[EncodedField]:
        """Flatten *value* into its encoded fields.

        Raises:
            EncodingError: If the graph contains a value of an unsupported type.
        """
        fields: list[EncodedField] = []
        self._visit(value, "", fields)
        return fields

    # ------------------------------------------------------------------ #
    # Specialisation hooks
    # ------------------------------------------------------------------ #

    def format_binary(self, data: bytes) -> FieldValue:
        """Render raw bytes found in the value graph."""
        return BinaryValue(data)

    def format_attachment(self, value: FormAttachment) -> FieldValue:
        """Render a :class:`FormAttachment` found in the value graph."""
        return value

    # ------------------------------------------------------------------ #
    # Traversal
    # ------------------------------------------------------------------ #

    def _visit(self, value: Any, path: str, fields: list[EncodedField]) -> None:
        if isinstance(value, enum.Enum):
            value = value.value

        if value is None:
            fields.append(EncodedField(path, None))
        elif isinstance(value, bool):
            fields.append(EncodedField(path, "true" if value else "false"))
        elif isinstance(value, (int, float, Decimal)):
            fields.append(EncodedField(path, str(value)))
        elif isinstance(value, str):
            fields.append(EncodedField(path, value))
        elif isinstance(value, (datetime, date)):
            fields.append(EncodedField(path, format_date(value)))
        elif isinstance(value, (bytes, bytearray, memoryview)):
            fields.append(EncodedField(path, self.format_binary(bytes(value))))
        elif isinstance(value, FormAttachment):
            fields.append(EncodedField(path, self.format_attachment(value)))
        elif isinstance(value, BaseModel):
            for name, info in type(value).model_fields.items():
                self._visit(getattr(value, name), _join(path, info.alias or name), fields)
        elif dataclasses.is_dataclass(value) and not isinstance(value, type):
            for f in dataclasses.fields(value):
                self._visit(getattr(value, f.name), _join(path, f.name), fields)
        elif isinstance(value, Mapping):
            for key, item in value.items():
                self._visit(item, _join(path, str(key)), fields)
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                self._visit(item, path + self._array_suffix(index), fields)
        else:
            raise EncodingError(
                f"Cannot encode value of type {type(value).__name__} at '{path}'"
            )

    def _array_suffix(self, index: int) -> str:
        if self.array_encoding == ArrayEncoding.BRACKETS:
            return "[]"
        if self.array_encoding == ArrayEncoding.BRACKETS_WITH_INDEX:
            return f"[{index}]"
        return ""


def _join(prefix: str, name: str) -> str:
    return f"{prefix}.{name}" if prefix else name
