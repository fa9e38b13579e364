"""Payload validation and log-redaction utilities for the gateway."""

from .data_url import is_base64_data_url, is_image_data_url, is_pdf_data_url
from .redaction import DEFAULT_SENSITIVE_FIELDS, mask_credential, redact_payload
from .schema_validator import is_valid_email, is_valid_url, validate

__all__ = [
    'validate',
    'is_valid_url',
    'is_valid_email',
    'redact_payload',
    'mask_credential',
    'DEFAULT_SENSITIVE_FIELDS',
    'is_base64_data_url',
    'is_image_data_url',
    'is_pdf_data_url'
]
