"""Helpers for building multipart/form-data requests."""

import base64

BOUNDARY = "----DocumentIntakeTestBoundary7MA4YWxkTrZu0gW"
CONTENT_TYPE = f"multipart/form-data; boundary={BOUNDARY}"

FILE_LAST = "file-last"
FILE_FIRST = "file-first"
PART_ORDERS = (FILE_LAST, FILE_FIRST)


def _field_part(name, value):
    return (
        f"--{BOUNDARY}\r\n"
        f'Content-Disposition: form-data; name="{name}"\r\n\r\n'
        f"{value}\r\n"
    ).encode()


def _file_part(name, file_name, content):
    head = (
        f"--{BOUNDARY}\r\n"
        f'Content-Disposition: form-data; name="{name}"; filename="{file_name}"\r\n'
        "Content-Type: application/octet-stream\r\n\r\n"
    ).encode()
    return head + content + b"\r\n"


def multipart_body(fields=None, files=None, order=FILE_LAST):
    """Encode text fields and (name, file name, bytes) file parts.

    Browsers send parts in form order, so file parts may come before or
    after the text fields.
    """
    field_parts = [_field_part(name, value) for name, value in (fields or {}).items()]
    file_parts = [_file_part(*f) for f in files or []]
    parts = file_parts + field_parts if order == FILE_FIRST else field_parts + file_parts
    return b"".join(parts) + f"--{BOUNDARY}--\r\n".encode()


def api_event(body, method="POST", path="/api/textract", content_type=CONTENT_TYPE):
    """API Gateway proxy event carrying a base64-encoded body."""
    return {
        "httpMethod": method,
        "path": path,
        "headers": {"content-type": content_type},
        "body": base64.b64encode(body).decode("ascii") if body is not None else None,
        "isBase64Encoded": True,
    }
