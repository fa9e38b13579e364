"""Schema-driven validation of inbound request payloads.

This module evaluates a route's schema (field name -> FieldRule) against a
decoded request body and returns every violation it finds. It is the first
stage of the admission pipeline.

Validation Model:
    - Only fields named in the schema are inspected; unknown payload fields
      are ignored.
    - A missing required field yields exactly one REQUIRED_FIELD error.
    - A kind mismatch yields INVALID_TYPE and stops checks for that field.
    - All other checks (length, pattern, format, item counts, subfields) are
      independent and accumulate.

Totality:
    validate() never raises. Rules are checked for consistency when they are
    built (see src.models.schema), and a payload that is not a mapping is
    treated as an empty one.

Known Limitations:
    - Email format uses a permissive single-@ pattern, not RFC 5322.
    - URL format accepts any absolute URL of any scheme.

Dependencies:
    - pydantic: AnyUrl parser for the url format check
    - re: Pattern and email checks

Used by:
    - src.gateway.pipeline: Validation stage

Complexity:
    - validate: O(r + s) where r = rules, s = total size of checked strings
"""

import math
import re
from collections.abc import Mapping
from typing import Any

from pydantic import AnyUrl, TypeAdapter, ValidationError

from ..models.schema import (
    ArrayRule,
    ErrorCode,
    FieldError,
    FieldKind,
    ObjectRule,
    Schema,
    StringFormat,
    StringRule,
)

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")

_URL_ADAPTER = TypeAdapter(AnyUrl)


def is_valid_url(value: str) -> bool:
    """Generic URL acceptance test: any syntactically valid absolute URL."""
    try:
        _URL_ADAPTER.validate_python(value)
    except ValidationError:
        return False
    return True


def is_valid_email(value: str) -> bool:
    return EMAIL_PATTERN.fullmatch(value) is not None


def describe_type(value: Any) -> str:
    """JSON-style type name of a payload value, used in INVALID_TYPE errors."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a number in a JSON payload
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value)


def matches_kind(value: Any, kind: str) -> bool:
    """Check a present value against a rule kind."""
    if kind == FieldKind.STRING:
        return isinstance(value, str)
    if kind in (FieldKind.NUMBER, FieldKind.FLOAT):
        return _is_number(value)
    if kind == FieldKind.INTEGER:
        if isinstance(value, float):
            return _is_number(value) and value.is_integer()
        return _is_number(value)
    if kind == FieldKind.BOOLEAN:
        return isinstance(value, bool)
    if kind == FieldKind.ARRAY:
        return isinstance(value, (list, tuple))
    if kind == FieldKind.OBJECT:
        return isinstance(value, Mapping)
    return False


def _is_missing(value: Any, required: bool) -> bool:
    if value is None:
        return True
    # Required text fields must carry something; an optional empty string is
    # still "present" and goes through the string checks.
    return required and isinstance(value, str) and value == ""


def _check_string(name: str, value: str, rule: StringRule) -> list[FieldError]:
    errors = []

    if rule.min_length is not None and len(value) < rule.min_length:
        errors.append(FieldError(
            field=name,
            message=f"{name} must be at least {rule.min_length} characters long",
            code=ErrorCode.MIN_LENGTH,
            extra={"minLength": rule.min_length, "actualLength": len(value)},
        ))

    if rule.max_length is not None and len(value) > rule.max_length:
        errors.append(FieldError(
            field=name,
            message=f"{name} must be no more than {rule.max_length} characters long",
            code=ErrorCode.MAX_LENGTH,
            extra={"maxLength": rule.max_length, "actualLength": len(value)},
        ))

    if rule.pattern is not None and re.search(rule.pattern, value) is None:
        errors.append(FieldError(
            field=name,
            message=f"{name} format is invalid",
            code=ErrorCode.INVALID_PATTERN,
            extra={"pattern": rule.pattern},
        ))

    if rule.format == StringFormat.URL and not is_valid_url(value):
        errors.append(FieldError(
            field=name,
            message=f"{name} must be a valid URL",
            code=ErrorCode.INVALID_URL,
        ))

    if rule.format == StringFormat.EMAIL and not is_valid_email(value):
        errors.append(FieldError(
            field=name,
            message=f"{name} must be a valid email address",
            code=ErrorCode.INVALID_EMAIL,
        ))

    return errors


def _check_array(name: str, value: Any, rule: ArrayRule) -> list[FieldError]:
    errors = []
    count = len(value)

    if rule.min_items is not None and count < rule.min_items:
        errors.append(FieldError(
            field=name,
            message=f"{name} must contain at least {rule.min_items} items",
            code=ErrorCode.MIN_ITEMS,
            extra={"minItems": rule.min_items, "actualItems": count},
        ))

    if rule.max_items is not None and count > rule.max_items:
        errors.append(FieldError(
            field=name,
            message=f"{name} must contain no more than {rule.max_items} items",
            code=ErrorCode.MAX_ITEMS,
            extra={"maxItems": rule.max_items, "actualItems": count},
        ))

    return errors


def _check_object(name: str, value: Mapping, rule: ObjectRule) -> list[FieldError]:
    # sorted() keeps the error order stable for a frozenset of names
    return [
        FieldError(
            field=f"{name}.{subfield}",
            message=f"{subfield} is required in {name}",
            code=ErrorCode.REQUIRED_OBJECT_FIELD,
        )
        for subfield in sorted(rule.required_subfields)
        if subfield not in value
    ]


def validate(schema: Schema, payload: Any) -> list[FieldError]:
    """Validate a payload against a schema and return every violation.

    Args:
        schema: Field name -> FieldRule, typically built with build_schema()
        payload: Decoded request body

    Returns:
        list[FieldError]: Empty when the payload satisfies every rule

    Examples:
        >>> schema = build_schema({"question": {"type": "string", "required": True}})
        >>> validate(schema, {})
        [FieldError(field='question', message='question is required', code=...)]
    """
    if not isinstance(payload, Mapping):
        payload = {}

    errors: list[FieldError] = []

    for name, rule in schema.items():
        value = payload.get(name)

        if _is_missing(value, rule.required):
            if rule.required:
                errors.append(FieldError(
                    field=name,
                    message=f"{name} is required",
                    code=ErrorCode.REQUIRED_FIELD,
                ))
            continue

        if not matches_kind(value, rule.kind):
            errors.append(FieldError(
                field=name,
                message=f"{name} must be of type {rule.kind}",
                code=ErrorCode.INVALID_TYPE,
                extra={"expected": rule.kind, "actual": describe_type(value)},
            ))
            continue

        if isinstance(rule, StringRule):
            errors.extend(_check_string(name, value, rule))
        elif isinstance(rule, ArrayRule):
            errors.extend(_check_array(name, value, rule))
        elif isinstance(rule, ObjectRule):
            errors.extend(_check_object(name, value, rule))
    return errors
