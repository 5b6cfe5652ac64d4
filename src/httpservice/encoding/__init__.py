"""Query, form and multipart encoding of typed values."""

from httpservice.encoding.body import (
    BinaryBody,
    EmptyBody,
    EncodedBody,
    FormURLEncodedBody,
    JSONBody,
    MultipartBody,
    RequestBody,
)
from httpservice.encoding.multipart import (
    MultipartEncoder,
    MultipartForm,
    MultipartFormDataEncodable,
    MultipartMixed,
    generate_boundary,
)
from httpservice.encoding.query import (
    QueryEncoder,
    QueryParameters,
    query_params,
    query_params_multi,
    to_query_items,
)
from httpservice.encoding.structural import (
    ArrayEncoding,
    BinaryValue,
    EncodedField,
    FileReference,
    StructuralEncoder,
    format_date,
)

__all__ = [
    "ArrayEncoding",
    "BinaryBody",
    "BinaryValue",
    "EmptyBody",
    "EncodedBody",
    "EncodedField",
    "FileReference",
    "FormURLEncodedBody",
    "JSONBody",
    "MultipartBody",
    "MultipartEncoder",
    "MultipartForm",
    "MultipartFormDataEncodable",
    "MultipartMixed",
    "QueryEncoder",
    "QueryParameters",
    "RequestBody",
    "StructuralEncoder",
    "format_date",
    "generate_boundary",
    "query_params",
    "query_params_multi",
    "to_query_items",
]
