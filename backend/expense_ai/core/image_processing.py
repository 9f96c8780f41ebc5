"""Image processing for receipt uploads.

Oversized photos are shrunk to fit ``RECEIPT_IMAGE_MAX_DIMENSION`` and
re-encoded as JPEG before they are base64-encoded for the provider. PDFs
pass through untouched.
"""

from __future__ import annotations

import base64
import io
import logging
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageOps

from expense_ai.services.ai.common.errors import PayloadTooLargeError, UnsupportedFileError
from expense_ai.services.ai.common.providers.base import EncodedFile

logger = logging.getLogger(__name__)

# ------------------------------------------------------------------
# Constants
# ------------------------------------------------------------------

DOCUMENT_TYPES = {"application/pdf"}
OUTPUT_FORMAT = "JPEG"
OUTPUT_CONTENT_TYPE = "image/jpeg"

_EXTENSION_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "pdf": "application/pdf",
}
_GENERIC_TYPES = {"", "application/octet-stream", "binary/octet-stream"}


@dataclass
class PreparedImage:
    """Bytes that will actually be sent, plus what happened to them."""

    content: bytes
    content_type: str
    optimized: bool = False
    original_size: int = 0


def resolve_content_type(content_type: Optional[str], filename: Optional[str]) -> str:
    """Return the declared MIME type, or infer it from the file extension."""
    declared = (content_type or "").lower().split(";")[0].strip()
    if declared == "image/jpg":
        declared = "image/jpeg"
    if declared not in _GENERIC_TYPES:
        if declared.startswith("image/") or _is_document(declared):
            return declared
        raise UnsupportedFileError(f"Unsupported content type: {declared}")

    ext = filename.rsplit(".", 1)[-1].lower() if filename and "." in filename else ""
    if ext in _EXTENSION_TYPES:
        return _EXTENSION_TYPES[ext]
    raise UnsupportedFileError(f"Unsupported file format: {filename or 'unnamed upload'}")


def _is_document(content_type: str) -> bool:
    return content_type in DOCUMENT_TYPES


def prepare_receipt_image(
    content: bytes,
    content_type: str,
    *,
    max_dimension: int,
    quality: int,
    filename: Optional[str] = None,
) -> PreparedImage:
    """Resize-to-fit and re-encode *content* when it is an image.

    Never upscales and keeps the aspect ratio. Any Pillow failure falls back
    to the original bytes, so optimization can never fail a request.
    """
    if _is_document(content_type) or max_dimension <= 0:
        return PreparedImage(content=content, content_type=content_type, original_size=len(content))

    try:
        img = Image.open(io.BytesIO(content))
        img = ImageOps.exif_transpose(img)  # auto-orient

        resized = img.copy()
        resized.thumbnail((max_dimension, max_dimension), Image.LANCZOS)

        # JPEG has no alpha or palette modes
        if resized.mode not in ("RGB", "L"):
            resized = resized.convert("RGB")

        buf = io.BytesIO()
        resized.save(buf, format=OUTPUT_FORMAT, quality=quality, optimize=True)
        encoded = buf.getvalue()
    except Exception:
        logger.warning("Failed to optimize receipt image %s, using original", filename, exc_info=True)
        return PreparedImage(content=content, content_type=content_type, original_size=len(content))

    logger.info(
        "Optimized receipt image %s: %dx%d -> %dx%d, %d -> %d bytes",
        filename,
        img.width,
        img.height,
        resized.width,
        resized.height,
        len(content),
        len(encoded),
    )
    return PreparedImage(
        content=encoded,
        content_type=OUTPUT_CONTENT_TYPE,
        optimized=True,
        original_size=len(content),
    )


def encode_for_transport(
    prepared: PreparedImage,
    *,
    max_payload_chars: int,
    filename: Optional[str] = None,
) -> EncodedFile:
    """Base64-encode *prepared* and enforce the payload length guard."""
    b64 = base64.b64encode(prepared.content).decode("ascii")
    if len(b64) > max_payload_chars:
        raise PayloadTooLargeError(len(b64), max_payload_chars)
    return EncodedFile(base64_data=b64, mime_type=prepared.content_type, filename=filename or "receipt")
