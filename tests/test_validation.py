"""
Tests for request validation.
"""

from typing import Dict

import pytest
from pydantic import BaseModel, Field

from ctrlconnect.models import HTTPMethod, Request
from ctrlconnect.validation import (
    VALIDATIONS_ATTR,
    Validation,
    Validator,
    validate,
    validate_body,
    validate_params,
    validate_query,
)


class Numbers(BaseModel):
    a: int


class WithDefault(BaseModel):
    a: int = 5


class Page(BaseModel):
    page: int
    tag: str


class Token(BaseModel):
    value: str = Field(..., min_length=3)


class TestValidator:
    """Test running validations against a request."""

    def test_no_validations_is_valid(self):
        results = Validator().validate(Request(HTTPMethod.GET, "/"))
        assert results.is_valid is True
        assert len(results) == 0

    def test_valid_body_is_written_back_coerced(self):
        request = Request(HTTPMethod.POST, "/", body={"a": "1"})

        results = Validator([Validation("body", Numbers)]).validate(request)

        assert results.is_valid
        assert request.body == {"a": 1}
        assert results[0].value == {"a": 1}
        assert results[0].validated == Numbers(a=1)

    def test_invalid_body_keeps_raw_value(self):
        request = Request(HTTPMethod.POST, "/", body={"a": "x"})

        results = Validator([Validation("body", Numbers)]).validate(request)

        assert not results.is_valid
        assert request.body == {"a": "x"}
        details = results[0].error.details
        assert details[0]["loc"] == ["a"]
        assert details[0]["type"] == "int_parsing"
        assert "url" not in details[0]

    def test_missing_provider_is_validated_as_empty_mapping(self):
        request = Request(HTTPMethod.POST, "/")

        results = Validator([Validation("body", WithDefault)]).validate(request)

        assert results.is_valid
        assert request.body == {"a": 5}

    def test_query_is_parsed_from_query_string(self):
        request = Request(HTTPMethod.GET, "/", query_string="page=2&tag=x")

        results = Validator([Validation("query", Page)]).validate(request)

        assert results.is_valid
        assert request.query == {"page": 2, "tag": "x"}

    def test_custom_data_accessor(self):
        request = Request(HTTPMethod.GET, "/", headers={"X-Token": "ab"})
        validation = Validation("token", Token, data_accessor=lambda r: {"value": r.headers.get("X-Token")})

        results = Validator([validation]).validate(request)

        assert not results.is_valid
        assert results.failures()[0].provider == "token"

    def test_plain_callable_validator(self):
        def positive(data):
            if int(data["n"]) <= 0:
                raise ValueError("n must be positive")
            return {"n": int(data["n"])}

        ok_request = Request(HTTPMethod.GET, "/", params={"n": "3"})
        bad_request = Request(HTTPMethod.GET, "/", params={"n": "-1"})

        assert Validator([Validation("params", positive)]).validate(ok_request).is_valid
        assert ok_request.params == {"n": 3}

        results = Validator([Validation("params", positive)]).validate(bad_request)
        assert results[0].error.details == [{"type": "ValueError", "msg": "n must be positive"}]

    def test_type_schema_uses_type_adapter(self):
        request = Request(HTTPMethod.GET, "/", params={"id": "3"})

        results = Validator([Validation("params", Dict[str, int])]).validate(request)

        assert results.is_valid
        assert request.params == {"id": 3}

    def test_mapping_request(self):
        request = {"body": {"a": "2"}}

        Validator([Validation("body", Numbers)]).validate(request)

        assert request["body"] == {"a": 2}

    def test_one_result_per_provider_in_order(self):
        request = Request(HTTPMethod.POST, "/", body={"a": "x"}, query_string="page=1&tag=t")
        validator = Validator()
        validator.add_validation(Validation("body", Numbers), Validation("query", Page))

        results = validator.validate(request)

        assert [r.provider for r in results] == ["body", "query"]
        assert [r.provider for r in results.failures()] == ["body"]
        assert request.query == {"page": 1, "tag": "t"}

    def test_unsupported_schema_is_rejected(self):
        with pytest.raises(TypeError):
            Validation("body", 42)


class TestDeclarationHelpers:
    """Test the validation decorators."""

    def test_decorators_keep_written_order(self):
        @validate("body", Numbers)
        @validate_query({"page": (int, 1)})
        def action(self):
            pass

        declared = getattr(action, VALIDATIONS_ATTR)
        assert [v.provider_name for v in declared] == ["body", "query"]

    def test_validate_query_builds_model_from_fields(self):
        @validate_query({"page": (int, 1)})
        def action(self):
            pass

        request = Request(HTTPMethod.GET, "/")
        Validator(list(getattr(action, VALIDATIONS_ATTR))).validate(request)

        assert request.query == {"page": 1}

    def test_field_mapping_rejects_undeclared_keys(self):
        @validate_query({"page": (int, 1)})
        def action(self):
            pass

        request = Request(HTTPMethod.GET, "/", query_string="page=2&sort=name")
        results = Validator(list(getattr(action, VALIDATIONS_ATTR))).validate(request)

        assert not results.is_valid
        details = results[0].error.details
        assert details[0]["type"] == "extra_forbidden"
        assert details[0]["loc"] == ["sort"]
        assert request.query is None

    def test_model_schema_keeps_its_own_extra_handling(self):
        @validate_query(Page)
        def action(self):
            pass

        request = Request(HTTPMethod.GET, "/", query_string="page=2&tag=x&sort=name")
        results = Validator(list(getattr(action, VALIDATIONS_ATTR))).validate(request)

        assert results.is_valid
        assert request.query == {"page": 2, "tag": "x"}

    def test_body_and_params_helpers(self):
        @validate_body(Numbers)
        @validate_params({"id": (int, ...)})
        def action(self):
            pass

        request = Request(HTTPMethod.PUT, "/", body={"a": "4"}, params={"id": "9"})
        results = Validator(list(getattr(action, VALIDATIONS_ATTR))).validate(request)

        assert results.is_valid
        assert request.body == {"a": 4}
        assert request.params == {"id": 9}
