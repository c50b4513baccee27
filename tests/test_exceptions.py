"""
Tests for ControllerError and its wire representation.
"""

import json

import pytest

from ctrlconnect.exceptions import ControllerError
from ctrlconnect.validation import ProviderResult, ValidationFailure, ValidationResults


class TestControllerErrorFactories:
    """Test the predefined error constructors."""

    @pytest.mark.parametrize("factory,status,code,message", [
        (ControllerError.not_found, 404, "not_found", "Resource not Found."),
        (ControllerError.server, 500, "server_error", "Internal Server Error"),
        (ControllerError.client, 400, "client_error", "Client Error"),
        (ControllerError.unauthorized, 401, "not_auth", "Unauthorized"),
        (ControllerError.forbidden, 403, "forbidden", "Forbidden"),
        (ControllerError.not_implemented, 500, "not_implemented", "Method or function is not implemented."),
        (ControllerError.bad_gateway, 502, "bad_gateway", "Bad Gateway"),
    ])
    def test_factory_defaults(self, factory, status, code, message):
        err = factory()
        assert err.status == status
        assert err.code == code
        assert err.message == message
        assert str(err) == message

    def test_factory_custom_message(self):
        assert ControllerError.not_found("No such user").message == "No such user"

    def test_status_defaults_to_500(self):
        err = ControllerError("boom")
        assert err.status == 500
        assert err.to_dict()["status"] == 500

    def test_can_be_raised_and_caught(self):
        with pytest.raises(ControllerError) as exc_info:
            raise ControllerError.forbidden()
        assert exc_info.value.status == 403


class TestControllerErrorSerialization:
    """Test conversion of errors and their causes to the wire format."""

    def test_unset_fields_are_omitted(self):
        assert ControllerError("x").to_dict() == {"message": "x", "status": 500}

    def test_native_inner_error_has_message_and_stack(self):
        try:
            raise ValueError("bad value")
        except ValueError as e:
            err = ControllerError.server(inner_error=e)

        data = err.to_dict()
        assert data["code"] == "server_error"
        assert data["innerErr"]["message"] == "bad value"
        assert "ValueError" in data["innerErr"]["stack"]
        assert err.__cause__ is err.inner_error

    def test_inner_error_without_message_uses_type_name(self):
        err = ControllerError.server(inner_error=KeyError())
        assert err.to_dict()["innerErr"]["message"] == "KeyError"

    def test_nested_controller_errors_are_converted_recursively(self):
        inner = ControllerError.not_found("gone")
        middle = ControllerError("upstream failed", code="bad_gateway", status=502, inner_error=inner)
        outer = ControllerError.server(inner_error=middle)

        data = outer.to_dict()
        assert data["innerErr"]["code"] == "bad_gateway"
        assert data["innerErr"]["innerErr"] == {"message": "gone", "code": "not_found", "status": 404}

    def test_blob_is_included(self):
        err = ControllerError("quota", code=42, status=429, blob={"limit": 10})
        assert err.to_dict() == {"message": "quota", "code": 42, "status": 429, "blob": {"limit": 10}}

    def test_dict_is_json_serializable(self):
        err = ControllerError.server(inner_error=RuntimeError("x"))
        decoded = json.loads(json.dumps(err.to_dict()))
        assert decoded["innerErr"]["message"] == "x"


class TestFromException:
    """Test wrapping arbitrary errors."""

    def test_controller_error_is_returned_unchanged(self):
        err = ControllerError.client()
        assert ControllerError.from_exception(err) is err

    def test_native_error_is_wrapped_as_server_error(self):
        original = ValueError("db down")
        err = ControllerError.from_exception(original)
        assert err.code == "server_error"
        assert err.status == 500
        assert err.inner_error is original

    def test_non_exception_value_is_wrapped(self):
        err = ControllerError.from_exception("plain string")
        assert err.to_dict()["innerErr"]["message"] == "plain string"


class TestValidationError:
    """Test the 422 validation error."""

    def test_blob_has_one_entry_per_failing_provider(self):
        results = ValidationResults()
        results.add_validation("body", ProviderResult("body", error=ValidationFailure("bad", [{"msg": "x"}])))
        results.add_validation("query", ProviderResult("query", value={}))
        results.add_validation("params", ProviderResult("params", error=ValidationFailure("bad", [])))

        err = ControllerError.validation(results)

        assert err.status == 422
        assert err.code == "validation_error"
        assert err.message == "Validation Error"
        assert err.blob == [
            {
                "message": "One or more validation errors in request body",
                "provider": "body",
                "details": [{"msg": "x"}],
            },
            {
                "message": "One or more validation errors in request params",
                "provider": "params",
                "details": [],
            },
        ]

    def test_missing_results_give_empty_blob(self):
        assert ControllerError.validation(None, "Invalid").blob == []
