"""
A lightweight dispatch layer between an HTTP framework's router and controller actions.

Actions are resolved on a controller by name or reference, requests are
validated with pydantic schemas, parameters are injected by name and the
result or error is written back to the client.
"""

from http import HTTPStatus

from .context import RequestContext
from .controller import BaseController, error_handler
from .dependencies import ParameterResolver
from .dispatcher import ActionDispatcher
from .error_models import ErrorResponse, ValidationErrorDetail
from .exceptions import (
    ActionRegistrationError,
    ControllerError,
    CtrlConnectError,
    DependencyResolutionError,
)
from .models import HTTPMethod, Request, Response
from .registry import ActionRegistry, ActionSpec, default_registry, private_action, public_action
from .response import ResponseWriter, response
from .validation import (
    Validation,
    ValidationResults,
    Validator,
    validate,
    validate_body,
    validate_params,
    validate_query,
)

__version__ = "0.1.0"
__author__ = "ctrlconnect Contributors"
__license__ = "MIT"

__all__ = [
    "BaseController",
    "ActionDispatcher",
    "ActionRegistry",
    "ActionSpec",
    "default_registry",
    "public_action",
    "private_action",
    "ParameterResolver",
    "RequestContext",
    "ResponseWriter",
    "response",
    "error_handler",
    "ControllerError",
    "CtrlConnectError",
    "ActionRegistrationError",
    "DependencyResolutionError",
    "ErrorResponse",
    "ValidationErrorDetail",
    "Validation",
    "ValidationResults",
    "Validator",
    "validate",
    "validate_body",
    "validate_params",
    "validate_query",
    "Request",
    "Response",
    "HTTPMethod",
    "HTTPStatus",
]
