"""
image_encoder.py — turns a captured photo into the two encodings the
pipeline needs.

  transport encoding  base64 payload + MIME type, no data-URI prefix
                      (embedded in the Gemini request)
  storage encoding    full data URI, JSON-safe and directly displayable
                      (persisted in the history)

Both decode to exactly the captured bytes.
"""
from __future__ import annotations

import base64
import binascii
import io
import logging
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)


class ReadFailure(Exception):
    """The captured image could not be read or decoded."""


@dataclass(frozen=True)
class CapturedImage:
    """Raw photo as delivered by the capture surface."""
    data: bytes
    mime_type: str


@dataclass(frozen=True)
class InlineImage:
    """Transport encoding: base64 payload without the data-URI prefix."""
    data: str
    mime_type: str


@dataclass(frozen=True)
class EncodedImage:
    transport: InlineImage
    storage: str            # data:<mime>;base64,<payload>


def detect_mime_type(data: bytes) -> str:
    """Identify the image format with Pillow. Raises ReadFailure if it isn't an image."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as exc:
        raise ReadFailure(f"Not a decodable image: {exc}") from exc
    mime = Image.MIME.get(fmt or "")
    if not mime:
        raise ReadFailure(f"Unsupported image format: {fmt}")
    return mime


def encode_image(image: CapturedImage) -> EncodedImage:
    """Produce the transport and storage encodings for one captured image."""
    if not image.data:
        raise ReadFailure("Captured image is empty")
    payload = base64.b64encode(image.data).decode("ascii")
    return EncodedImage(
        transport=InlineImage(data=payload, mime_type=image.mime_type),
        storage=f"data:{image.mime_type};base64,{payload}",
    )


def decode_data_uri(uri: str) -> bytes:
    """Return the bytes behind a storage encoding. Raises ValueError if malformed."""
    header, sep, payload = uri.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        raise ValueError("Not a base64 data URI")
    try:
        return base64.b64decode(payload, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Bad base64 payload: {exc}") from exc
