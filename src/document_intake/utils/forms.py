"""Multipart form parsing for API Gateway proxy events.

API Gateway hands the Lambda the raw request body (base64 encoded when the
payload is binary). ``python-multipart`` does the actual parsing, the same
parser FastAPI and Starlette use for ``Form``/``UploadFile`` parameters.
"""

import base64
import io
import os
from dataclasses import dataclass, field
from typing import Any, Optional

from python_multipart import parse_form
from python_multipart.multipart import parse_options_header

from ..common.exceptions import RequestValidationError

MULTIPART_FORM_DATA = "multipart/form-data"


@dataclass
class UploadedFile:
    """A file part of a multipart form."""

    field_name: str
    file_name: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class FormData:
    """Decoded multipart form: text fields and file parts."""

    fields: dict[str, str] = field(default_factory=dict)
    files: dict[str, UploadedFile] = field(default_factory=dict)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        value = self.fields.get(name)
        return value if value not in (None, "") else default

    def get_file(self, name: str = "file") -> Optional[UploadedFile]:
        return self.files.get(name)


def get_header(headers: Optional[dict[str, Any]], name: str) -> Optional[str]:
    """Case-insensitive header lookup (API Gateway does not normalise case)."""
    if not headers:
        return None
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def decode_body(event: dict[str, Any]) -> bytes:
    """Return the raw request body bytes from an API Gateway proxy event."""
    body = event.get("body") or b""
    if isinstance(body, bytes):
        return body
    if event.get("isBase64Encoded"):
        return base64.b64decode(body)
    return body.encode("utf-8")


def is_multipart(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    media_type, _ = parse_options_header(content_type)
    return media_type.decode("latin-1").lower() == MULTIPART_FORM_DATA


def _decode(value: Optional[bytes]) -> str:
    if value is None:
        return ""
    return value.decode("utf-8", errors="replace")


def _read_part(part) -> UploadedFile:
    file_object = part.file_object
    file_object.seek(0)
    field_name = _decode(part.field_name) or "file"
    # Browsers may send a full client path; keep the base name only
    file_name = os.path.basename(_decode(part.file_name).replace("\\", "/"))
    return UploadedFile(field_name=field_name, file_name=file_name, content=file_object.read())


def parse_multipart_form(body: bytes, content_type: Optional[str]) -> FormData:
    """Parse a ``multipart/form-data`` body into a :class:`FormData`.

    Raises:
        RequestValidationError: If the content type is not multipart or the
            body cannot be parsed.
    """
    if not is_multipart(content_type):
        raise RequestValidationError(
            "Content type must be multipart/form-data", field_name="Content-Type"
        )

    form = FormData()
    parts = []

    def on_field(f) -> None:
        form.fields[_decode(f.field_name)] = _decode(f.value)

    def on_file(f) -> None:
        # The parser still finalizes the last part after this callback returns
        parts.append(f)

    headers = {"Content-Type": content_type, "Content-Length": str(len(body))}
    try:
        parse_form(headers, io.BytesIO(body), on_field, on_file)
        for part in parts:
            uploaded = _read_part(part)
            form.files[uploaded.field_name] = uploaded
    except (ValueError, TypeError) as e:
        # python-multipart's FormParserError and MultipartParseError are ValueErrors
        raise RequestValidationError(f"Malformed multipart body: {e}", cause=e) from e
    finally:
        for part in parts:
            part.close()

    return form


def parse_event_form(event: dict[str, Any]) -> FormData:
    """Decode and parse the multipart form carried by an API Gateway event."""
    content_type = get_header(event.get("headers"), "Content-Type")
    return parse_multipart_form(decode_body(event), content_type)
