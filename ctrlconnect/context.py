"""
Per-dispatch request context.
"""

from typing import Any, Optional

from .models import MUTATING_METHODS, method_name
from .validation import ValidationResults, Validator


class RequestContext:
    """State owned by a single dispatch cycle.

    Holds the validator the before hook fills with the action's validations and
    the results of running it. A new context is created for every dispatch.
    """

    def __init__(self, request: Any):
        self.request = request
        self.validator = Validator()
        self.validation_results: Optional[ValidationResults] = None

    def validate(self) -> ValidationResults:
        """Run the accumulated validations against the request."""
        self.validation_results = self.validator.validate(self.request)
        return self.validation_results

    def validated(self, provider: str) -> Any:
        """Return the validated object (e.g. model instance) for a provider."""
        if self.validation_results is None:
            return None
        result = self.validation_results.get(provider)
        return result.validated if result is not None else None

    @property
    def has_body(self) -> bool:
        body = getattr(self.request, "body", None)
        if body is None:
            return False
        try:
            return len(body) > 0
        except TypeError:
            return True

    @property
    def is_mutating(self) -> bool:
        return method_name(getattr(self.request, "method", None)) in MUTATING_METHODS
