"""
Image payload helpers.

Images travel through the pipeline as self-describing data URIs
(``data:image/png;base64,...``).
"""

import base64
import re
from pathlib import Path
from typing import Union

from .errors import ValidationError

MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024
DEFAULT_MIME_TYPE = "image/png"

ALLOWED_IMAGE_MIME_TYPES = ("image/png", "image/jpeg", "image/webp", "image/heic")

_EXTENSION_MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".heic": "image/heic",
}

_DATA_URI_PREFIX = re.compile(r"^data:image/(png|jpeg|jpg|webp|heic);base64,")
_MIME_PATTERN = re.compile(r"^data:(image/[a-zA-Z+]+);base64,")


def clean_base64(payload: str) -> str:
    """Strip a data-URI prefix, leaving the raw base64 body."""
    return _DATA_URI_PREFIX.sub("", payload, count=1)


def get_mime_type(payload: str) -> str:
    """Read the MIME type from a data URI; raw base64 is assumed PNG."""
    match = _MIME_PATTERN.match(payload)
    return match.group(1) if match else DEFAULT_MIME_TYPE


def to_data_uri(data: Union[bytes, str], mime_type: str = DEFAULT_MIME_TYPE) -> str:
    """Build a data URI from raw bytes or an already-encoded base64 string."""
    if isinstance(data, bytes):
        data = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{data}"


def decode_base64(body: str, field_name: str = "image") -> bytes:
    """Strictly decode a base64 body; any non-alphabet character is an error.

    Raises:
        ValidationError: If the body is not valid base64
    """
    try:
        return base64.b64decode(body, validate=True)
    except ValueError as e:
        raise ValidationError(
            f"Image payload is not valid base64: {e}",
            {field_name: ["invalid base64"]},
        ) from e


def decode_data_uri(payload: str) -> bytes:
    """Decode the base64 body of a data URI (or raw base64) to bytes.

    Raises:
        ValidationError: If the body is not valid base64
    """
    body = payload.split(",", 1)[1] if payload.startswith("data:") else payload
    return decode_base64(body)


def load_image_file(path: Union[str, Path]) -> str:
    """Read an image file and return it as a data URI.

    Args:
        path: Image file path

    Returns:
        Data URI of the file contents

    Raises:
        ValidationError: If the file is missing, not a supported image type
            or larger than the upload limit
    """
    image_path = Path(path)
    if not image_path.is_file():
        raise ValidationError(f"Image file not found: {path}", {"image": ["file not found"]})

    mime_type = _EXTENSION_MIME_TYPES.get(image_path.suffix.lower())
    if mime_type is None:
        raise ValidationError(
            "The selected file is not a valid image.",
            {"image": [f"extension must be one of: {sorted(_EXTENSION_MIME_TYPES)}"]},
        )

    size = image_path.stat().st_size
    if size > MAX_FILE_SIZE_BYTES:
        limit_mb = MAX_FILE_SIZE_BYTES // (1024 * 1024)
        raise ValidationError(
            f"File size exceeds the {limit_mb}MB limit.",
            {"image": [f"{size} bytes > {MAX_FILE_SIZE_BYTES} bytes"]},
        )

    return to_data_uri(image_path.read_bytes(), mime_type)
