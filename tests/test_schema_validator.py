"""Test schema rules and payload validation."""

import pytest
from pydantic import ValidationError

from src.models.schema import (
    ArrayRule,
    ErrorCode,
    IntegerRule,
    NumberRule,
    ObjectRule,
    SchemaDefinitionError,
    StringRule,
    build_schema,
)
from src.security.schema_validator import (
    describe_type,
    is_valid_email,
    is_valid_url,
    matches_kind,
    validate,
)


def codes(errors):
    return [error.code for error in errors]


class TestFieldRuleConstruction:
    """Unsupported rule combinations fail when the rule is built."""

    def test_pattern_on_number_rejected(self):
        with pytest.raises(ValidationError):
            NumberRule(pattern="^[0-9]+$")

    def test_min_items_on_string_rejected(self):
        with pytest.raises(ValidationError):
            StringRule(minItems=1)

    def test_invalid_pattern_rejected(self):
        with pytest.raises(ValidationError, match="Invalid pattern"):
            StringRule(pattern="[unclosed")

    def test_inverted_bounds_rejected(self):
        with pytest.raises(ValidationError, match="cannot exceed"):
            StringRule(minLength=10, maxLength=5)
        with pytest.raises(ValidationError, match="cannot exceed"):
            ArrayRule(minItems=3, maxItems=1)

    def test_negative_bounds_rejected(self):
        with pytest.raises(ValidationError):
            StringRule(minLength=-1)

    def test_unknown_format_rejected(self):
        with pytest.raises(ValidationError):
            StringRule(format="phone")

    def test_camel_and_snake_case_names(self):
        assert StringRule(minLength=2).min_length == 2
        assert StringRule(min_length=2).min_length == 2


class TestBuildSchema:
    """Test the loose mapping form used by route modules."""

    def test_builds_typed_rules(self):
        schema = build_schema({
            "question": {"type": "string", "required": True, "minLength": 1},
            "count": {"type": "integer"},
            "tags": {"type": "array", "maxItems": 5},
            "context": {"type": "object", "requiredFields": ["title"]},
        })

        assert isinstance(schema["question"], StringRule)
        assert schema["question"].required is True
        assert isinstance(schema["count"], IntegerRule)
        assert isinstance(schema["tags"], ArrayRule)
        assert isinstance(schema["context"], ObjectRule)
        assert schema["context"].required_subfields == frozenset({"title"})

    def test_accepts_rule_instances(self):
        schema = build_schema({"name": StringRule(required=True)})
        assert schema["name"].required is True

    def test_unknown_kind(self):
        with pytest.raises(SchemaDefinitionError):
            build_schema({"x": {"type": "date"}})

    def test_option_not_valid_for_kind(self):
        with pytest.raises(SchemaDefinitionError):
            build_schema({"x": {"type": "boolean", "maxLength": 3}})

    def test_schema_definition_error_is_value_error(self):
        with pytest.raises(ValueError):
            build_schema({"x": {"type": "string", "pattern": "("}})


class TestRequiredFields:

    @pytest.fixture
    def schema(self):
        return build_schema({
            "question": {"type": "string", "required": True, "minLength": 5, "pattern": "^Q"},
            "note": {"type": "string"},
        })

    def test_missing_required_field_yields_single_error(self, schema):
        errors = validate(schema, {})

        assert len(errors) == 1
        assert errors[0].field == "question"
        assert errors[0].code == ErrorCode.REQUIRED_FIELD
        assert errors[0].message == "question is required"

    def test_null_and_empty_string_count_as_missing(self, schema):
        assert codes(validate(schema, {"question": None})) == [ErrorCode.REQUIRED_FIELD]
        assert codes(validate(schema, {"question": ""})) == [ErrorCode.REQUIRED_FIELD]

    def test_optional_absent_field_skipped(self, schema):
        assert validate(schema, {"question": "Question?"}) == []
        assert validate(schema, {"question": "Question?", "note": None}) == []

    def test_optional_empty_string_still_checked(self):
        schema = build_schema({"note": {"type": "string", "minLength": 2}})
        assert codes(validate(schema, {"note": ""})) == [ErrorCode.MIN_LENGTH]

    def test_unknown_payload_fields_ignored(self, schema):
        assert validate(schema, {"question": "Question?", "extra": object()}) == []


class TestTypeChecks:

    @pytest.mark.parametrize("kind,value", [
        ("string", "text"),
        ("number", 1),
        ("number", 1.5),
        ("float", 2.25),
        ("integer", 3),
        ("integer", 5.0),
        ("boolean", False),
        ("array", []),
        ("object", {}),
    ])
    def test_matching_values(self, kind, value):
        assert matches_kind(value, kind) is True

    @pytest.mark.parametrize("kind,value", [
        ("string", 5),
        ("number", "5"),
        ("number", True),
        ("number", float("nan")),
        ("float", float("inf")),
        ("integer", 5.5),
        ("integer", False),
        ("boolean", 0),
        ("array", {}),
        ("array", "abc"),
        ("object", []),
        ("object", "abc"),
    ])
    def test_mismatching_values(self, kind, value):
        assert matches_kind(value, kind) is False

    def test_huge_integer_does_not_raise(self):
        assert matches_kind(10 ** 400, "integer") is True
        assert matches_kind(10 ** 400, "number") is True

    def test_type_error_skips_remaining_checks(self):
        schema = build_schema({"name": {"type": "string", "minLength": 10, "pattern": "^x"}})
        errors = validate(schema, {"name": 42})

        assert len(errors) == 1
        assert errors[0].code == ErrorCode.INVALID_TYPE
        assert errors[0].extra == {"expected": "string", "actual": "number"}
        assert errors[0].message == "name must be of type string"

    def test_describe_type(self):
        assert describe_type(None) == "null"
        assert describe_type(True) == "boolean"
        assert describe_type([1]) == "array"
        assert describe_type({"a": 1}) == "object"


class TestStringChecks:

    def test_min_length_and_pattern_both_reported(self):
        schema = build_schema({"code": {"type": "string", "minLength": 5, "pattern": "^[A-Z]+$"}})
        errors = validate(schema, {"code": "ab"})

        assert codes(errors) == [ErrorCode.MIN_LENGTH, ErrorCode.INVALID_PATTERN]
        assert errors[0].extra == {"minLength": 5, "actualLength": 2}
        assert errors[1].extra == {"pattern": "^[A-Z]+$"}

    def test_max_length(self):
        schema = build_schema({"text": {"type": "string", "maxLength": 3}})
        errors = validate(schema, {"text": "abcd"})

        assert codes(errors) == [ErrorCode.MAX_LENGTH]
        assert errors[0].message == "text must be no more than 3 characters long"
        assert errors[0].extra == {"maxLength": 3, "actualLength": 4}

    def test_pattern_uses_search_semantics(self):
        schema = build_schema({"text": {"type": "string", "pattern": "needle"}})
        assert validate(schema, {"text": "hayneedlehay"}) == []

    def test_language_pattern(self):
        schema = build_schema({
            "language": {"type": "string", "pattern": r"^[a-z]{2,3}(-[A-Z]{2})?$"},
        })
        assert validate(schema, {"language": "eng"}) == []
        assert validate(schema, {"language": "en-US"}) == []
        assert codes(validate(schema, {"language": "English"})) == [ErrorCode.INVALID_PATTERN]

    def test_url_format(self):
        schema = build_schema({"url": {"type": "string", "format": "url"}})

        assert validate(schema, {"url": "https://example.com/page?q=1"}) == []
        assert validate(schema, {"url": "ftp://files.example.com/a.txt"}) == []
        assert codes(validate(schema, {"url": "not a url"})) == [ErrorCode.INVALID_URL]
        assert validate(schema, {"url": "not a url"})[0].message == "url must be a valid URL"

    def test_email_format(self):
        schema = build_schema({"email": {"type": "string", "format": "email"}})

        assert validate(schema, {"email": "user@example.com"}) == []
        assert codes(validate(schema, {"email": "user@example"})) == [ErrorCode.INVALID_EMAIL]
        assert codes(validate(schema, {"email": "a@b@c.com"})) == [ErrorCode.INVALID_EMAIL]

    def test_email_pattern_is_permissive(self):
        # Single-@ check only; not RFC 5322
        assert is_valid_email("x@y.z") is True
        assert is_valid_email("has space@example.com") is False
        assert is_valid_email("user@example.com\n") is False

    def test_url_acceptance(self):
        assert is_valid_url("http://localhost:3000") is True
        assert is_valid_url("/relative/path") is False
        assert is_valid_url("") is False


class TestArrayAndObjectChecks:

    def test_item_counts(self):
        schema = build_schema({"tags": {"type": "array", "minItems": 2, "maxItems": 3}})

        too_few = validate(schema, {"tags": ["a"]})
        assert codes(too_few) == [ErrorCode.MIN_ITEMS]
        assert too_few[0].extra == {"minItems": 2, "actualItems": 1}

        too_many = validate(schema, {"tags": ["a", "b", "c", "d"]})
        assert codes(too_many) == [ErrorCode.MAX_ITEMS]
        assert too_many[0].message == "tags must contain no more than 3 items"

        assert validate(schema, {"tags": ["a", "b"]}) == []

    def test_required_subfields(self):
        schema = build_schema({
            "context": {"type": "object", "requiredSubfields": ["title", "body"]},
        })
        errors = validate(schema, {"context": {"title": "x"}})

        assert len(errors) == 1
        assert errors[0].field == "context.body"
        assert errors[0].code == ErrorCode.REQUIRED_OBJECT_FIELD
        assert errors[0].message == "body is required in context"

    def test_subfield_with_null_value_exists(self):
        schema = build_schema({"context": {"type": "object", "requiredSubfields": ["title"]}})
        assert validate(schema, {"context": {"title": None}}) == []


class TestValidateTotality:
    """validate() is deterministic and never raises."""

    @pytest.fixture
    def schema(self):
        return build_schema({
            "question": {"type": "string", "required": True, "minLength": 1, "maxLength": 10},
            "count": {"type": "integer", "required": True},
            "tags": {"type": "array", "minItems": 1},
            "context": {"type": "object", "requiredSubfields": ["title"]},
            "url": {"type": "string", "format": "url"},
        })

    @pytest.mark.parametrize("payload", [None, [], "text", 42, [{"question": "x"}]])
    def test_non_mapping_payload_treated_as_empty(self, schema, payload):
        errors = validate(schema, payload)
        assert codes(errors) == [ErrorCode.REQUIRED_FIELD, ErrorCode.REQUIRED_FIELD]

    def test_accumulates_errors_across_fields(self, schema):
        payload = {
            "question": "far too long question",
            "count": "three",
            "tags": [],
            "context": {},
            "url": "nope",
        }
        errors = validate(schema, payload)

        assert [(e.field, e.code) for e in errors] == [
            ("question", ErrorCode.MAX_LENGTH),
            ("count", ErrorCode.INVALID_TYPE),
            ("tags", ErrorCode.MIN_ITEMS),
            ("context.title", ErrorCode.REQUIRED_OBJECT_FIELD),
            ("url", ErrorCode.INVALID_URL),
        ]

    def test_deterministic(self, schema):
        payload = {"question": "", "count": 1.5, "tags": "x"}
        assert validate(schema, payload) == validate(schema, payload)

    def test_valid_payload(self, schema):
        payload = {
            "question": "Why?",
            "count": 2,
            "tags": ["a"],
            "context": {"title": "t"},
            "url": "https://example.com",
        }
        assert validate(schema, payload) == []

    def test_empty_schema(self):
        assert validate({}, {"anything": 1}) == []

    def test_error_serialization(self, schema):
        error = validate(schema, {"count": 1})[0]
        assert error.model_dump(mode="json") == {
            "field": "question",
            "message": "question is required",
            "code": "REQUIRED_FIELD",
            "extra": {},
        }
