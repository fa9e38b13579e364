"""Declarative field rules and validation error models for request schemas.

This module defines the rule vocabulary that routes use to describe the
payloads they accept, and the error records produced when a payload does not
conform. Rules are typed per kind so that options which make no sense for a
kind (a pattern on a number, item counts on a string) fail when the rule is
built instead of being silently ignored at request time.

Rule Kinds:
    - StringRule: minLength, maxLength, pattern, format (url, email)
    - NumberRule / FloatRule: any finite, non-boolean numeric value
    - IntegerRule: whole numbers only
    - BooleanRule: true/false
    - ArrayRule: minItems, maxItems
    - ObjectRule: requiredSubfields

Dependencies:
    - pydantic: Discriminated unions and construction-time validation
    - re: Pattern compilation checks

Used by:
    - src.security.schema_validator: Evaluates rules against payloads
    - src.service.schemas: Route schema definitions
    - src.gateway.pipeline: Surfaces FieldError lists to clients

Complexity:
    - Rule construction: O(1) per rule (pattern compilation is O(p))
    - build_schema: O(r) where r = number of rules
"""

import re
from collections.abc import Mapping
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)


class FieldKind(str, Enum):
    """Value kinds a field rule can require."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"
    INTEGER = "integer"
    FLOAT = "float"


class StringFormat(str, Enum):
    """Semantic string formats understood by the validator."""

    URL = "url"
    EMAIL = "email"


class ErrorCode(str, Enum):
    """Closed set of validation error codes returned to clients."""

    REQUIRED_FIELD = "REQUIRED_FIELD"
    INVALID_TYPE = "INVALID_TYPE"
    MIN_LENGTH = "MIN_LENGTH"
    MAX_LENGTH = "MAX_LENGTH"
    INVALID_PATTERN = "INVALID_PATTERN"
    INVALID_URL = "INVALID_URL"
    INVALID_EMAIL = "INVALID_EMAIL"
    MIN_ITEMS = "MIN_ITEMS"
    MAX_ITEMS = "MAX_ITEMS"
    REQUIRED_OBJECT_FIELD = "REQUIRED_OBJECT_FIELD"


class SchemaDefinitionError(ValueError):
    """Raised when a schema definition contains an unsupported rule."""
    pass


class _BaseRule(BaseModel):
    # extra="forbid" is what turns e.g. `pattern` on a number rule into a
    # construction error.
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    required: bool = Field(False, description="Reject the request when the field is absent")


def _check_bounds(lower: Optional[int], upper: Optional[int], lower_name: str, upper_name: str):
    if lower is not None and upper is not None and lower > upper:
        raise ValueError(f"{lower_name} ({lower}) cannot exceed {upper_name} ({upper})")


class StringRule(_BaseRule):
    """Rule for text fields.

    All string checks are independent: a value can fail both ``minLength``
    and ``pattern`` and receive one error for each.

    Examples:
        >>> StringRule(required=True, minLength=1, maxLength=2000)
        >>> StringRule(format="url")
        >>> StringRule(pattern=r"^[a-z]{2,3}(-[A-Z]{2})?$")
    """

    kind: Literal["string"] = "string"
    min_length: Optional[int] = Field(None, alias="minLength", ge=0)
    max_length: Optional[int] = Field(None, alias="maxLength", ge=0)
    pattern: Optional[str] = Field(None, description="Regular expression (search semantics)")
    format: Optional[StringFormat] = Field(None, description="Semantic format: url or email")

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, v: Optional[str]) -> Optional[str]:
        """Reject patterns that do not compile so request-time checks cannot raise."""
        if v is None:
            return v
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"Invalid pattern {v!r}: {e}") from e
        return v

    @model_validator(mode="after")
    def validate_length_bounds(self) -> "StringRule":
        _check_bounds(self.min_length, self.max_length, "minLength", "maxLength")
        return self


class NumberRule(_BaseRule):
    """Any finite numeric value."""

    kind: Literal["number"] = "number"


class FloatRule(_BaseRule):
    """Any finite numeric value (alias kind of ``number``)."""

    kind: Literal["float"] = "float"


class IntegerRule(_BaseRule):
    """Whole numbers; integral floats such as ``5.0`` are accepted."""

    kind: Literal["integer"] = "integer"


class BooleanRule(_BaseRule):
    kind: Literal["boolean"] = "boolean"


class ArrayRule(_BaseRule):
    """Rule for list fields with optional item-count bounds."""

    kind: Literal["array"] = "array"
    min_items: Optional[int] = Field(None, alias="minItems", ge=0)
    max_items: Optional[int] = Field(None, alias="maxItems", ge=0)

    @model_validator(mode="after")
    def validate_item_bounds(self) -> "ArrayRule":
        _check_bounds(self.min_items, self.max_items, "minItems", "maxItems")
        return self


class ObjectRule(_BaseRule):
    """Rule for mapping fields.

    ``requiredSubfields`` only checks that the named keys exist in the
    object; their values are not inspected.
    """

    kind: Literal["object"] = "object"
    required_subfields: frozenset[str] = Field(frozenset(), alias="requiredSubfields")


FieldRule = Annotated[
    Union[StringRule, NumberRule, FloatRule, IntegerRule, BooleanRule, ArrayRule, ObjectRule],
    Field(discriminator="kind"),
]

# Schema type consumed by the validator: field name -> rule
Schema = Mapping[str, FieldRule]

_SCHEMA_ADAPTER = TypeAdapter(dict[str, FieldRule])


class FieldError(BaseModel):
    """A single validation failure for one field.

    Attributes:
        field: Field name, or ``parent.child`` for missing object subfields
        message: Human-readable explanation
        code: One of the ErrorCode values
        extra: Diagnostic values of the failed check (bounds, actual sizes)
    """

    field: str
    message: str
    code: ErrorCode
    extra: dict[str, Any] = Field(default_factory=dict)


def _normalize_rule(definition: Any) -> Any:
    """Map the loose route-module spelling onto rule field names.

    Route modules describe fields the way JSON payload schemas are usually
    written (``type`` for the kind, ``requiredFields`` for object subfields).
    Anything that is not a plain mapping (e.g. an already-built rule) is
    passed through untouched.
    """
    if not isinstance(definition, Mapping):
        return definition

    normalized = dict(definition)
    if "type" in normalized and "kind" not in normalized:
        normalized["kind"] = normalized.pop("type")
    if "requiredFields" in normalized and "requiredSubfields" not in normalized:
        normalized["requiredSubfields"] = normalized.pop("requiredFields")
    return normalized


def build_schema(definition: Mapping[str, Any]) -> dict[str, FieldRule]:
    """Build a typed schema from a mapping of field names to rule definitions.

    Args:
        definition: Field name -> rule. Values may be rule instances or plain
            mappings such as ``{"type": "string", "required": True}``.

    Returns:
        dict[str, FieldRule]: Typed, immutable rules keyed by field name

    Raises:
        SchemaDefinitionError: If any rule has an unknown kind, an option that
            does not apply to its kind, an invalid pattern or inverted bounds.
    """
    normalized = {name: _normalize_rule(rule) for name, rule in definition.items()}
    try:
        return _SCHEMA_ADAPTER.validate_python(normalized)
    except ValidationError as e:
        raise SchemaDefinitionError(f"Invalid schema definition: {e}") from e
