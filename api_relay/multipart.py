"""Multipart/form-data body encoding.

Parts are framed in input order; servers that parse multipart sequentially
rely on that order.
"""

from __future__ import annotations

import uuid
from typing import Iterable

from api_relay.models import MultipartPart

CRLF = b"\r\n"


def make_boundary() -> str:
    """Generate a fresh boundary string."""
    return f"Boundary-{uuid.uuid4().hex}"


def content_type_for(boundary: str) -> str:
    return f"multipart/form-data; boundary={boundary}"


def encode_multipart(parts: Iterable[MultipartPart], boundary: str) -> bytes:
    """Serialize parts into a boundary-delimited body.

    The filename continuation and the part Content-Type line are only written
    when the part has both file_name and mime_type.

    Args:
        parts: Parts in the order they must appear on the wire.
        boundary: Delimiter, without the leading dashes.

    Returns:
        The complete body including the closing delimiter.
    """
    delimiter = f"--{boundary}".encode("utf-8")
    body = bytearray()

    for part in parts:
        body += delimiter + CRLF
        body += f'Content-Disposition: form-data; name="{part.name}"'.encode("utf-8")

        if part.file_name is not None and part.mime_type is not None:
            body += f'; filename="{part.file_name}"'.encode("utf-8") + CRLF
            body += f"Content-Type: {part.mime_type}".encode("utf-8") + CRLF
        else:
            body += CRLF

        body += CRLF
        body += part.data
        body += CRLF

    body += delimiter + b"--" + CRLF
    return bytes(body)
