"""
Exceptions for the dispatch layer.

``ControllerError`` is the structured error every dispatch failure is reported
as. The remaining classes signal programming or configuration errors.
"""

import traceback
from http import HTTPStatus
from typing import TYPE_CHECKING, Any, Dict, Optional, Union

from .error_models import ErrorResponse, ValidationErrorDetail

if TYPE_CHECKING:
    from .validation import ValidationResults


class CtrlConnectError(Exception):
    """Base exception for configuration and programming errors."""

    pass


class ActionRegistrationError(CtrlConnectError):
    """Raised when an action cannot be registered on a controller."""

    pass


class DependencyResolutionError(CtrlConnectError):
    """Raised when a parameter cannot be resolved and strict injection is enabled."""

    pass


class ControllerError(Exception):
    """Structured error which can be raised from any action or hook.

    Example::

        raise ControllerError.not_found("No user with that id")

        raise ControllerError("Quota exceeded", code="quota", status=429, blob={"limit": 10})
    """

    def __init__(
        self,
        message: str,
        code: Optional[Union[str, int]] = None,
        status: int = HTTPStatus.INTERNAL_SERVER_ERROR,
        blob: Any = None,
        inner_error: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = int(status) if status else int(HTTPStatus.INTERNAL_SERVER_ERROR)
        self.blob = blob
        self.inner_error = inner_error
        if inner_error is not None:
            self.__cause__ = inner_error

    def __repr__(self) -> str:
        return f"ControllerError(message={self.message!r}, code={self.code!r}, status={self.status})"

    def to_model(self) -> ErrorResponse:
        """Convert this error and its causal chain to the wire model."""
        return ErrorResponse(
            message=self.message,
            code=self.code,
            status=self.status,
            blob=self.blob,
            inner_err=_inner_to_model(self.inner_error),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-serializable representation of this error."""
        return self.to_model().model_dump(mode="json")

    @classmethod
    def not_found(cls, message: Optional[str] = None) -> "ControllerError":
        return cls(message or "Resource not Found.", code="not_found", status=HTTPStatus.NOT_FOUND)

    @classmethod
    def server(cls, message: Optional[str] = None, inner_error: Optional[BaseException] = None) -> "ControllerError":
        return cls(
            message or "Internal Server Error",
            code="server_error",
            status=HTTPStatus.INTERNAL_SERVER_ERROR,
            inner_error=inner_error,
        )

    @classmethod
    def client(cls, message: Optional[str] = None) -> "ControllerError":
        return cls(message or "Client Error", code="client_error", status=HTTPStatus.BAD_REQUEST)

    @classmethod
    def validation(cls, results: Optional["ValidationResults"], message: Optional[str] = None) -> "ControllerError":
        """Create a 422 error whose blob has one entry per failing provider.

        Args:
            results: The validation results of the request
            message: Optional custom error message

        Returns:
            ControllerError with code ``validation_error``
        """
        blob = []
        for result in results or []:
            if result.error is None:
                continue
            detail = ValidationErrorDetail(
                message=f"One or more validation errors in request {result.provider}",
                provider=result.provider,
                details=result.error.details,
            )
            blob.append(detail.model_dump())
        return cls(
            message or "Validation Error",
            code="validation_error",
            status=HTTPStatus.UNPROCESSABLE_ENTITY,
            blob=blob,
        )

    @classmethod
    def unauthorized(cls, message: Optional[str] = None) -> "ControllerError":
        return cls(message or "Unauthorized", code="not_auth", status=HTTPStatus.UNAUTHORIZED)

    @classmethod
    def forbidden(cls, message: Optional[str] = None) -> "ControllerError":
        return cls(message or "Forbidden", code="forbidden", status=HTTPStatus.FORBIDDEN)

    @classmethod
    def not_implemented(cls, message: Optional[str] = None) -> "ControllerError":
        return cls(
            message or "Method or function is not implemented.",
            code="not_implemented",
            status=HTTPStatus.INTERNAL_SERVER_ERROR,
        )

    @classmethod
    def bad_gateway(cls, message: Optional[str] = None) -> "ControllerError":
        return cls(message or "Bad Gateway", code="bad_gateway", status=HTTPStatus.BAD_GATEWAY)

    @classmethod
    def from_exception(cls, err: Any) -> "ControllerError":
        """Return ``err`` if it is already structured, otherwise wrap it as a server error."""
        if isinstance(err, ControllerError):
            return err
        if not isinstance(err, BaseException):
            err = Exception(str(err))
        return cls.server(inner_error=err)


def _inner_to_model(err: Optional[BaseException]) -> Optional[ErrorResponse]:
    if err is None:
        return None
    if isinstance(err, ControllerError):
        return err.to_model()
    stack = "".join(traceback.format_exception(type(err), err, err.__traceback__))
    return ErrorResponse(message=str(err) or type(err).__name__, stack=stack)
