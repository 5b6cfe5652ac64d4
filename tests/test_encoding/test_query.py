"""Tests for query encoding and QueryParameters."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import parse_qsl

import pytest

from httpservice.encoding.multipart import MultipartMixed
from httpservice.encoding.query import (
    QueryEncoder,
    QueryParameters,
    percent_encode,
    query_params,
    query_params_multi,
    to_query_items,
)
from httpservice.encoding.structural import ArrayEncoding, BinaryValue, FileReference
from httpservice.exceptions import EncodingError


@dataclass
class Search:
    q: str
    page: int
    tags: list[str]


class TestQueryEncoder:
    def test_encode_items(self) -> None:
        items = QueryEncoder().encode(Search(q="shoes", page=2, tags=["red", "blue"]))
        assert items == [("q", "shoes"), ("page", "2"), ("tags", "red"), ("tags", "blue")]

    def test_encode_string(self) -> None:
        assert QueryEncoder().encode_string({"q": "a b", "tags": ["x", "y"]}) == "q=a%20b&tags=x&tags=y"

    def test_only_unreserved_characters_left_unescaped(self) -> None:
        encoded = QueryEncoder().encode_string({"k": "a&b=c/d?~-._"})
        assert encoded == "k=a%26b%3Dc%2Fd%3F~-._"

    def test_names_are_escaped_too(self) -> None:
        encoded = QueryEncoder(ArrayEncoding.BRACKETS).encode_string({"t": ["x"]})
        assert encoded == "t%5B%5D=x"

    def test_unicode_is_utf8_percent_encoded(self) -> None:
        assert QueryEncoder().encode_string({"city": "Zürich"}) == "city=Z%C3%BCrich"

    def test_none_renders_empty_value(self) -> None:
        assert QueryEncoder().encode_string({"a": None, "b": "1"}) == "a=&b=1"

    def test_encode_bytes_matches_string(self) -> None:
        value = {"q": "é", "n": [1, 2]}
        encoder = QueryEncoder()
        assert encoder.encode_bytes(value) == encoder.encode_string(value).encode("utf-8")

    def test_bytes_are_base64(self) -> None:
        assert QueryEncoder().encode({"b": b"\x00\x01"}) == [("b", "AAE=")]
        assert QueryEncoder().encode_string({"b": b"\x00\x01"}) == "b=AAE%3D"

    def test_binary_value_is_base64_of_data(self) -> None:
        assert QueryEncoder().encode({"b": BinaryValue(b"hi", "a.txt")}) == [("b", "aGk=")]

    def test_file_reference_contributes_its_path(self, tmp_path) -> None:
        ref = FileReference(tmp_path / "a.txt")
        assert QueryEncoder().encode({"f": ref}) == [("f", str(tmp_path / "a.txt"))]

    def test_mixed_attachment_is_rejected(self) -> None:
        with pytest.raises(EncodingError):
            QueryEncoder().encode({"m": MultipartMixed()})

    def test_string_parses_back_to_items(self) -> None:
        """Parsing the string gives back the item list; a None field is already "" there."""
        value = {"q": "a b&c", "tags": ["x", "y=z"], "n": None, "ok": True}
        encoder = QueryEncoder(ArrayEncoding.REPEAT_KEY)
        parsed = parse_qsl(encoder.encode_string(value), keep_blank_values=True)
        assert parsed == encoder.encode(value)
        assert ("n", "") in parsed


class TestQueryParameters:
    def test_values_grouped_by_first_insertion(self) -> None:
        params = QueryParameters()
        params.add("a", "1").add("b", "2").add("a", "3")
        assert params.items() == [("a", "1"), ("a", "3"), ("b", "2")]

    def test_add_all(self) -> None:
        params = QueryParameters().add_all("tag", ["x", "y"])
        assert list(params) == [("tag", "x"), ("tag", "y")]
        assert len(params) == 2

    def test_is_empty(self) -> None:
        assert QueryParameters().is_empty
        assert not query_params(("a", "1")).is_empty

    def test_helpers(self) -> None:
        assert query_params(("a", "1"), ("b", "2")).items() == [("a", "1"), ("b", "2")]
        assert query_params_multi(("a", ["1", "2"])).items() == [("a", "1"), ("a", "2")]


class TestToQueryItems:
    def test_none(self) -> None:
        assert to_query_items(None) == []

    def test_query_parameters_pass_through(self) -> None:
        assert to_query_items(query_params(("a", "b c"))) == [("a", "b c")]

    def test_mapping_is_encoded(self) -> None:
        items = to_query_items({"t": ["x", "y"]}, ArrayEncoding.BRACKETS_WITH_INDEX)
        assert items == [("t[0]", "x"), ("t[1]", "y")]

    def test_percent_encode(self) -> None:
        assert percent_encode("a b/c") == "a%20b%2Fc"
