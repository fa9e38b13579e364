"""Data-URL validators used by routes that accept inline file content.

The OCR and PDF routes receive their documents as base64 data URLs. The schema
validator only checks that the field is a non-empty string; these helpers
check the actual media type and encoding after admission.

Complexity:
    - All checks: O(n) single regex match over the value
"""

import re
from typing import Any

BASE64_DATA_URL_PATTERN = re.compile(
    r"data:([a-zA-Z][a-zA-Z0-9]*/[a-zA-Z0-9][a-zA-Z0-9]*);base64,([A-Za-z0-9+/=]+)"
)

IMAGE_DATA_URL_PATTERN = re.compile(
    r"data:image/(png|jpeg|jpg|gif|webp|bmp);base64,([A-Za-z0-9+/=]+)"
)

PDF_DATA_URL_PATTERN = re.compile(r"data:application/pdf;base64,([A-Za-z0-9+/=]+)")


def is_base64_data_url(value: Any) -> bool:
    """Check for a generic ``data:<type>/<subtype>;base64,<payload>`` URL."""
    if not isinstance(value, str):
        return False
    return BASE64_DATA_URL_PATTERN.fullmatch(value) is not None


def is_image_data_url(value: Any) -> bool:
    """Check for a base64 image data URL (png, jpeg, jpg, gif, webp, bmp)."""
    if not isinstance(value, str):
        return False
    return IMAGE_DATA_URL_PATTERN.fullmatch(value) is not None


def is_pdf_data_url(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    return PDF_DATA_URL_PATTERN.fullmatch(value) is not None


def data_url_payload(value: str) -> str:
    """Base64 portion of a data URL (everything after the first comma)."""
    _, _, payload = value.partition(",")
    return payload
