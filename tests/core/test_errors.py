"""Tests for apispine.core.errors module."""

import pytest

from apispine.core.errors import (
    AccessDeniedError,
    ApiSpineError,
    ConfigurationError,
    ErrorCategory,
    ErrorContext,
    HelperNotFoundError,
    InternalError,
    NotFoundError,
    ParameterError,
    RequestError,
    RoutingError,
    ValidationError,
    error_for,
)


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_create_empty_context(self):
        ctx = ErrorContext()
        assert ctx.controller is None
        assert ctx.action is None
        assert ctx.metadata == {}

    def test_to_dict_excludes_none(self):
        ctx = ErrorContext(controller="users", action="list")
        assert ctx.to_dict() == {"controller": "users", "action": "list"}

    def test_to_dict_includes_metadata(self):
        ctx = ErrorContext(version=1, metadata={"user_id": 5})
        assert ctx.to_dict() == {"version": 1, "user_id": 5}


class TestApiSpineError:
    """Test the base error type."""

    def test_default_category_and_kind(self):
        error = ApiSpineError("boom")
        assert error.message == "boom"
        assert error.category == ErrorCategory.INTERNAL
        assert error.kind == "error"

    def test_detail_is_message(self):
        assert ApiSpineError("boom").detail == {"message": "boom"}

    def test_with_context_known_fields(self):
        error = ApiSpineError("boom").with_context(controller="users", stage="executing")
        assert error.context.controller == "users"
        assert error.context.stage == "executing"

    def test_with_context_unknown_fields_go_to_metadata(self):
        error = ApiSpineError("boom").with_context(user_id=7)
        assert error.context.metadata == {"user_id": 7}

    def test_cause_is_chained(self):
        cause = KeyError("x")
        error = ApiSpineError("boom", cause=cause)
        assert error.__cause__ is cause
        assert error.to_dict()["cause"] == "'x'"

    def test_to_dict(self):
        error = NotFoundError("No such user").with_context(controller="users")
        data = error.to_dict()
        assert data["error_type"] == "NotFoundError"
        assert data["kind"] == "not-found"
        assert data["category"] == "NOT_FOUND"
        assert data["context"] == {"controller": "users"}


class TestRequestErrors:
    """Kinds and hierarchy of client-visible errors."""

    @pytest.mark.parametrize(
        "error_cls,kind",
        [
            (RequestError, "error"),
            (NotFoundError, "not-found"),
            (AccessDeniedError, "access-denied"),
            (ValidationError, "validation-error"),
            (ParameterError, "parameter-error"),
        ],
    )
    def test_kinds(self, error_cls, kind):
        assert error_cls.kind == kind
        assert issubclass(error_cls, RequestError)

    def test_definition_errors_are_not_request_errors(self):
        assert not issubclass(ConfigurationError, RequestError)
        assert not issubclass(RoutingError, RequestError)
        assert not issubclass(InternalError, RequestError)


class TestValidationError:
    """Field error normalization."""

    def test_list_of_field_errors(self):
        error = ValidationError([{"field": "name", "message": "is too short"}])
        assert error.errors == [{"field": "name", "message": "is too short"}]
        assert error.detail == {"errors": error.errors}
        assert error.message == "name: is too short"

    def test_mapping_of_fields(self):
        error = ValidationError({"name": "is blank", "age": "must be positive"})
        assert error.errors == [
            {"field": "name", "message": "is blank"},
            {"field": "age", "message": "must be positive"},
        ]

    def test_plain_message(self):
        error = ValidationError("Something is wrong")
        assert error.errors == [{"field": None, "message": "Something is wrong"}]
        assert error.message == "Something is wrong"

    def test_empty(self):
        error = ValidationError()
        assert error.errors == []
        assert error.message == "Validation failed"

    def test_to_dict_includes_errors(self):
        error = ValidationError([{"field": "x", "message": "bad"}])
        assert error.to_dict()["errors"] == [{"field": "x", "message": "bad"}]


class TestParameterError:
    def test_carries_field_errors(self):
        error = ParameterError([
            {"field": "user", "message": "is required"},
            {"field": "page", "message": "Expected type int, got str"},
        ])
        assert [e["field"] for e in error.errors] == ["user", "page"]
        assert isinstance(error, ValidationError)
        assert error.kind == "parameter-error"


class TestHelperNotFoundError:
    def test_is_attribute_error(self):
        error = HelperNotFoundError("current_user", "users")
        assert isinstance(error, AttributeError)
        assert isinstance(error, ConfigurationError)
        assert "current_user" in error.message
        assert "users" in error.message


class TestRoutingError:
    def test_default_message(self):
        error = RoutingError("users", "explode")
        assert error.controller_name == "users"
        assert error.action_name == "explode"
        assert "explode" in error.message
        assert error.kind == "invalid-controller-or-action"


class TestInternalError:
    def test_wrap(self):
        cause = ZeroDivisionError("division by zero")
        error = InternalError.wrap(cause)
        assert error.cause is cause
        assert error.message == "ZeroDivisionError: division by zero"
        assert error.category == ErrorCategory.INTERNAL


class TestErrorFor:
    """Symbolic kind lookup used by EvalContext.raise_error."""

    def test_not_found(self):
        error = error_for("not_found", "User not found")
        assert isinstance(error, NotFoundError)
        assert error.message == "User not found"

    def test_dash_separator(self):
        assert isinstance(error_for("access-denied", "nope"), AccessDeniedError)

    def test_validation_detail_is_errors(self):
        error = error_for("validation_error", [{"field": "name", "message": "is blank"}])
        assert isinstance(error, ValidationError)
        assert error.errors == [{"field": "name", "message": "is blank"}]

    def test_parameter_error(self):
        error = error_for("parameter_error", [{"field": "page", "message": "is required"}])
        assert isinstance(error, ParameterError)

    def test_unknown_kind_is_plain_request_error(self):
        error = error_for("teapot", "I'm a teapot")
        assert type(error) is RequestError
        assert error.kind == "error"
        assert error.message == "I'm a teapot"

    def test_message_defaults_to_kind(self):
        assert error_for("not_found").message == "not_found"
