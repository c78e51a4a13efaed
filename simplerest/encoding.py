"""Request body encoders for form and multipart payloads.

form_encode produces application/x-www-form-urlencoded text. encode_multipart
produces a multipart/form-data body; the caller sends the matching
Content-Type header built by multipart_content_type().
"""

from __future__ import annotations

import random
import string
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

from simplerest.models import FormFile

LINE_ENDING = b"\r\n"
BOUNDARY_PREFIX = "-" * 27
BOUNDARY_LENGTH = 15
_BOUNDARY_ALPHABET = string.digits + string.ascii_uppercase

# Attempts before giving up on finding a boundary absent from every part
_MAX_BOUNDARY_ATTEMPTS = 10


def form_encode(fields: Mapping[str, str]) -> str:
    """Encode a mapping as k1=v1&k2=v2 with UTF-8 percent-encoding.

    Pairs keep the mapping's iteration order. Spaces become %20. An empty
    mapping encodes to an empty string.
    """
    return "&".join(
        f"{quote(str(key), safe='')}={quote(str(value), safe='')}"
        for key, value in fields.items()
    )


def create_boundary() -> str:
    """Generate a random multipart boundary token."""
    suffix = "".join(random.choices(_BOUNDARY_ALPHABET, k=BOUNDARY_LENGTH))
    return BOUNDARY_PREFIX + suffix


def multipart_content_type(boundary: str) -> str:
    """Content-Type header value for a body encoded with the given boundary."""
    return f"multipart/form-data; boundary={boundary}"


def _part_payload(value: Any) -> bytes:
    if isinstance(value, FormFile):
        return value.content
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return str(value).encode("utf-8")


def _choose_boundary(payloads: list[bytes]) -> str:
    for _ in range(_MAX_BOUNDARY_ATTEMPTS):
        boundary = create_boundary()
        marker = boundary.encode("ascii")
        if not any(marker in payload for payload in payloads):
            return boundary
    raise ValueError("Could not generate a multipart boundary absent from the body parts")


def encode_multipart(
    parts: Mapping[str, Any],
    boundary: str | None = None,
) -> tuple[str, bytes]:
    """Serialize parts into a multipart/form-data body.

    Each value is either a FormFile (sent with filename and Content-Type),
    raw bytes, or anything else rendered with str(). None values are skipped.

    Args:
        parts: Field name -> value mapping, encoded in iteration order.
        boundary: Boundary to use. Generated when None.

    Returns:
        Tuple of (boundary, body).
    """
    present = {name: value for name, value in parts.items() if value is not None}

    if boundary is None:
        boundary = _choose_boundary([_part_payload(v) for v in present.values()])

    delimiter = f"--{boundary}".encode("ascii")
    body = bytearray()

    for name, value in present.items():
        disposition = f'Content-Disposition: form-data; name="{name}"'
        header_lines = [delimiter]
        if isinstance(value, FormFile):
            header_lines.append(f'{disposition}; filename="{value.filename}"'.encode("utf-8"))
            header_lines.append(f"Content-Type: {value.content_type}".encode("utf-8"))
        else:
            header_lines.append(disposition.encode("utf-8"))

        body += LINE_ENDING.join(header_lines)
        body += LINE_ENDING + LINE_ENDING
        body += _part_payload(value)
        body += LINE_ENDING

    body += delimiter + b"--" + LINE_ENDING
    return boundary, bytes(body)
