"""HTTP helpers for the WeChat APIs: GET, JSON, multipart and XML posts."""

from __future__ import annotations

import json
import tempfile
from collections.abc import Iterable, Mapping
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

import requests
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from .errors import PayError

JSON_CONTENT_TYPE = "application/json;charset=utf-8"
XML_CONTENT_TYPE = "application/xml;charset=utf-8"

_XML_ESCAPES = str.maketrans(
    {
        "&": "&amp;",
        "<": "&lt;",
        ">": "&gt;",
        '"': "&#34;",
        "'": "&#39;",
        "\t": "&#x9;",
        "\n": "&#xA;",
        "\r": "&#xD;",
    }
)

XMLFields = Union[Mapping[str, Any], Iterable[tuple[str, Any]]]


class HTTPError(PayError):
    """An HTTP request failed or answered with a status other than 200."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class MultipartFormField:
    """One part of a multipart form: a file read from ``filename`` or a plain value."""

    fieldname: str
    value: bytes = b""
    filename: str = ""
    is_file: bool = False


def marshal_xml(fields: XMLFields, root: str = "xml") -> bytes:
    """Render ``name -> value`` pairs as a flat XML document; ``None`` values are left out."""
    items = fields.items() if isinstance(fields, Mapping) else fields
    parts = [f"<{root}>"]
    for name, value in items:
        if value is None:
            continue
        parts.append(f"<{name}>{str(value).translate(_XML_ESCAPES)}</{name}>")
    parts.append(f"</{root}>")
    return "".join(parts).encode("utf-8")


def _send(method: str, uri: str, label: str, **kwargs: Any) -> requests.Response:
    try:
        response = requests.request(method, uri, **kwargs)
    except requests.RequestException as exc:
        raise HTTPError(f"http {label} error : uri={uri} , err={exc}") from exc
    if response.status_code != 200:
        raise HTTPError(
            f"http {label} error : uri={uri} , statusCode={response.status_code}",
            response.status_code,
        )
    return response


def _json_body(obj: Any) -> bytes:
    text = json.dumps(obj, ensure_ascii=False, separators=(",", ":")) + "\n"
    return text.encode("utf-8")


def _xml_body(obj: Any) -> bytes:
    if isinstance(obj, bytes):
        return obj
    if isinstance(obj, str):
        return obj.encode("utf-8")
    if isinstance(obj, Mapping):
        return marshal_xml(obj)
    raise TypeError(f"cannot send {type(obj).__name__} as XML")


def http_get(uri: str) -> bytes:
    """GET ``uri`` and return the body."""
    return _send("GET", uri, "get").content


def http_post(uri: str, data: bytes | str, headers: Mapping[str, str] | None = None) -> bytes:
    """POST ``data`` with optional extra headers and return the body."""
    body = data.encode("utf-8") if isinstance(data, str) else bytes(data)
    return _send("POST", uri, "post", data=body, headers=dict(headers or {})).content


def post_json(uri: str, obj: Any) -> bytes:
    """POST ``obj`` as JSON (HTML characters left unescaped) and return the body."""
    return post_json_with_resp_content_type(uri, obj)[0]


def post_json_with_resp_content_type(uri: str, obj: Any) -> tuple[bytes, str]:
    """POST ``obj`` as JSON; return the body and the answer's content type."""
    response = _send(
        "POST",
        uri,
        "post",
        data=_json_body(obj),
        headers={"Content-Type": JSON_CONTENT_TYPE},
    )
    return response.content, response.headers.get("Content-Type", "")


def post_file(field_name: str, filename: str, uri: str) -> bytes:
    """Upload the file ``filename`` as form field ``field_name``."""
    return post_multipart_form(
        [MultipartFormField(fieldname=field_name, filename=filename, is_file=True)], uri
    )


def post_multipart_form(fields: Iterable[MultipartFormField], uri: str) -> bytes:
    """POST files and plain fields as ``multipart/form-data`` and return the body."""
    with ExitStack() as stack:
        parts: list[tuple[str, tuple[Any, ...]]] = []
        for field in fields:
            if field.is_file:
                try:
                    handle = stack.enter_context(open(field.filename, "rb"))
                except OSError as exc:
                    raise HTTPError(f"error opening file , err={exc}") from exc
                parts.append(
                    (field.fieldname, (field.filename, handle, "application/octet-stream"))
                )
            else:
                parts.append((field.fieldname, (None, bytes(field.value))))
        return _send("POST", uri, "post", files=parts).content


def post_xml(uri: str, obj: Any) -> bytes:
    """POST an XML body (bytes, text, or a mapping rendered by :func:`marshal_xml`)."""
    return _send(
        "POST",
        uri,
        "code",
        data=_xml_body(obj),
        headers={"Content-Type": XML_CONTENT_TYPE},
    ).content


def _write_client_cert(ca: str, key: str, directory: Path) -> tuple[str, str]:
    try:
        p12_data = Path(ca).read_bytes()
    except OSError as exc:
        raise HTTPError(f"unable to find cert path={ca}, error={exc}") from exc
    try:
        private_key, certificate, chain = pkcs12.load_key_and_certificates(
            p12_data, key.encode("utf-8") if key else None
        )
    except (ValueError, TypeError) as exc:
        raise HTTPError(f"unable to load pkcs12 certificate path={ca}, error={exc}") from exc
    if private_key is None or certificate is None:
        raise HTTPError(f"pkcs12 certificate path={ca} holds no key and certificate")

    cert_path = directory / "client.crt"
    key_path = directory / "client.key"
    cert_path.write_bytes(
        b"".join(
            cert.public_bytes(serialization.Encoding.PEM) for cert in [certificate, *chain]
        )
    )
    key_path.write_bytes(
        private_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    return str(cert_path), str(key_path)


def post_xml_with_tls(uri: str, obj: Any, ca: str, key: str) -> bytes:
    """POST XML using the client certificate in the PKCS#12 file ``ca`` opened with ``key``."""
    body = _xml_body(obj)
    with tempfile.TemporaryDirectory() as directory:
        cert = _write_client_cert(ca, key, Path(directory))
        return _send(
            "POST",
            uri,
            "code",
            data=body,
            headers={"Content-Type": XML_CONTENT_TYPE, "Accept-Encoding": "identity"},
            cert=cert,
        ).content