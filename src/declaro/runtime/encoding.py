from __future__ import annotations

import uuid
from typing import Any, Optional
from urllib.parse import quote, urlencode

import pydantic_core

from declaro.runtime.mime import infer_mime_type
from declaro.runtime.service import PayloadDescription, scalar_string

CRLF = b"\r\n"


def path_component(value: Any, default: Any = None) -> str:
    """
    String form of a path argument, URL-escaped. A None value falls back to
    the placeholder default; with no default it renders as ''.
    """
    if value is None:
        value = default
    if value is None:
        return ""
    return quote(scalar_string(value), safe="")


def encode_structured_body(value: Any) -> bytes:
    # pydantic models, dataclasses, dicts, lists, datetimes...
    return pydantic_core.to_json(value, by_alias=True)


def encode_url_form_body(value: Any) -> bytes:
    data = pydantic_core.to_jsonable_python(value, by_alias=True)
    if not isinstance(data, dict):
        raise TypeError(f"form body must encode to a mapping, got {type(data).__name__}")
    pairs = [(k, scalar_string(v)) for k, v in data.items() if v is not None]
    return urlencode(pairs).encode("utf-8")


def encode_raw_body(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8")
    return encode_structured_body(value)


def make_boundary() -> str:
    return f"Boundary-{uuid.uuid4().hex}"


def default_payload_description(payload: Any) -> PayloadDescription:
    return PayloadDescription(
        name="payload",
        file_name="payload",
        mime_type=infer_mime_type(encode_raw_body(payload)),
    )


def encode_multipart_body(
    payload: Any,
    description: Optional[PayloadDescription],
    boundary: str,
) -> bytes:
    """
    Single-part multipart/form-data body:

      --<boundary>
      Content-Disposition: form-data; name="<name>"; filename="<file_name>"
      Content-Type: <mime>

      <bytes>
      --<boundary>--
    """
    data = encode_raw_body(payload)
    if description is None:
        description = default_payload_description(data)

    delimiter = f"--{boundary}".encode("utf-8")
    disposition = (
        f'Content-Disposition: form-data; name="{description.name}"; '
        f'filename="{description.file_name}"'
    )
    out = bytearray()
    out += delimiter + CRLF
    out += disposition.encode("utf-8") + CRLF
    out += f"Content-Type: {description.mime_type}".encode("utf-8") + CRLF + CRLF
    out += data + CRLF
    out += delimiter + b"--" + CRLF
    return bytes(out)
