"""
Request validation for controller actions.

An action declares an ordered list of ``Validation`` entries, one per request
data provider (body, query, params, headers, ...). The ``Validator`` runs them
against a request and collects one ``ProviderResult`` per entry. Validated
values are written back to the request so later consumers see coerced types.
"""

import json
import logging
from collections.abc import MutableMapping
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Type, Union, get_origin

from pydantic import BaseModel, ConfigDict, TypeAdapter, create_model
from pydantic import ValidationError as PydanticValidationError

from .models import parse_query_string

# Set up logger for this module
logger = logging.getLogger(__name__)

DataAccessor = Callable[[Any], Any]
SchemaRunner = Callable[[Any], Tuple[Any, Any]]


def _read_provider(request: Any, provider: str) -> Any:
    if isinstance(request, MutableMapping):
        return request.get(provider)
    return getattr(request, provider, None)


def _query_accessor(request: Any) -> Any:
    query = _read_provider(request, "query")
    if query is not None:
        return query
    if hasattr(request, "get_query_params"):
        return request.get_query_params()
    return parse_query_string(getattr(request, "query_string", None))


_provider_mapping: Dict[str, DataAccessor] = {
    "query": _query_accessor,
}


def provider_accessor(provider: str) -> DataAccessor:
    """Return the default data accessor for a provider name."""
    if provider in _provider_mapping:
        return _provider_mapping[provider]
    return lambda request: _read_provider(request, provider)


def store_provider_value(request: Any, provider: str, value: Any) -> None:
    """Replace the raw value of a provider on the request."""
    if isinstance(request, MutableMapping):
        request[provider] = value
    else:
        setattr(request, provider, value)


def _compile_schema(schema: Any) -> SchemaRunner:
    """Turn a declared schema into a function returning (validated, plain value)."""
    if isinstance(schema, TypeAdapter):
        adapter = schema

        def run_adapter(data):
            validated = adapter.validate_python(data)
            return validated, adapter.dump_python(validated)
        return run_adapter

    if isinstance(schema, type) and issubclass(schema, BaseModel):
        def run_model(data):
            validated = schema.model_validate(data)
            return validated, validated.model_dump()
        return run_model

    if isinstance(schema, type) or get_origin(schema) is not None:
        return _compile_schema(TypeAdapter(schema))

    if callable(schema):
        def run_callable(data):
            validated = schema(data)
            if isinstance(validated, BaseModel):
                return validated, validated.model_dump()
            return validated, validated
        return run_callable

    raise TypeError(f"Unsupported validation schema: {schema!r}")


@dataclass
class ValidationFailure:
    """Details of a failed provider validation."""

    message: str
    details: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_exception(cls, error: Exception) -> "ValidationFailure":
        if isinstance(error, PydanticValidationError):
            # Round-trip through pydantic's JSON form so ctx values are serializable
            details = json.loads(error.json(include_url=False))
            return cls(message=str(error), details=details)
        return cls(
            message=str(error),
            details=[{"type": type(error).__name__, "msg": str(error)}],
        )


@dataclass
class ProviderResult:
    """Outcome of validating one provider."""

    provider: str
    error: Optional[ValidationFailure] = None
    value: Any = None
    validated: Any = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ValidationResults(List[ProviderResult]):
    """Collection of provider results for one request."""

    @property
    def is_valid(self) -> bool:
        """True if no provider result carries an error."""
        return not any(result.error is not None for result in self)

    def add_validation(self, provider: str, result: ProviderResult) -> None:
        result.provider = provider
        self.append(result)

    def failures(self) -> List[ProviderResult]:
        return [result for result in self if result.error is not None]

    def get(self, provider: str) -> Optional[ProviderResult]:
        for result in self:
            if result.provider == provider:
                return result
        return None


@dataclass
class Validation:
    """A declared validation of one request data provider."""

    provider_name: str
    schema: Any
    data_accessor: Optional[DataAccessor] = None
    _runner: SchemaRunner = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        self._runner = _compile_schema(self.schema)

    def extract(self, request: Any) -> Any:
        accessor = self.data_accessor or provider_accessor(self.provider_name)
        data = accessor(request)
        return {} if data is None else data

    def run(self, request: Any) -> ProviderResult:
        data = self.extract(request)
        try:
            validated, value = self._runner(data)
        except Exception as e:
            logger.debug(f"Validation of provider '{self.provider_name}' failed: {e}")
            return ProviderResult(self.provider_name, error=ValidationFailure.from_exception(e))
        return ProviderResult(self.provider_name, value=value, validated=validated)


class Validator:
    """Ordered collection of validations run against a request."""

    def __init__(self, validations: Optional[List[Validation]] = None):
        self._validations: List[Validation] = list(validations or [])

    def __iter__(self) -> Iterator[Validation]:
        return iter(self._validations)

    def __len__(self) -> int:
        return len(self._validations)

    def add_validation(self, *validations: Validation) -> None:
        self._validations.extend(validations)

    def validate(self, request: Any) -> ValidationResults:
        """Run every validation in order and write validated values back to the request."""
        results = ValidationResults()
        for validation in self._validations:
            result = validation.run(request)
            if result.ok:
                store_provider_value(request, validation.provider_name, result.value)
            results.add_validation(validation.provider_name, result)
        return results


# Declaration helpers. They only leave markers on the function; the registry
# collects them when the controller class is registered.

VALIDATIONS_ATTR = "__ctrlconnect_validations__"


def validate(provider: str, schema: Any, data_accessor: Optional[DataAccessor] = None):
    """Decorator attaching a validation of ``provider`` to an action.

    Validations run in the order the decorators are written.

    Example::

        class Users(BaseController):
            @public_action
            @validate("body", CreateUser)
            def create(self, body):
                ...
    """
    validation = Validation(provider, schema, data_accessor)

    def decorator(func: Callable):
        declared = list(getattr(func, VALIDATIONS_ATTR, ()))
        declared.insert(0, validation)
        setattr(func, VALIDATIONS_ATTR, tuple(declared))
        return func

    return decorator


def _as_schema(name: str, schema: Union[Type[BaseModel], Dict[str, Any], Any]) -> Any:
    if isinstance(schema, dict):
        # Undeclared keys are rejected, write-back would drop them
        return create_model(name, __config__=ConfigDict(extra="forbid"), **schema)
    return schema


def validate_query(schema: Union[Type[BaseModel], Dict[str, Any], Any]):
    """Decorator validating the query string.

    ``schema`` is a model or a mapping of field definitions accepted by
    ``pydantic.create_model``, e.g. ``{"page": (int, 1)}``.
    Models built from a mapping reject undeclared parameters.
    """
    return validate("query", _as_schema("QueryParams", schema))


def validate_body(schema: Union[Type[BaseModel], Dict[str, Any], Any]):
    """Decorator validating the parsed request body."""
    return validate("body", _as_schema("RequestBody", schema))


def validate_params(schema: Union[Type[BaseModel], Dict[str, Any], Any]):
    """Decorator validating route parameters."""
    return validate("params", _as_schema("RouteParams", schema))
