"""
Dependency injection for controller actions.

Action parameters are resolved by name. Each name maps to an injector method
``inject_<name>`` on the resolver, so subclasses add injectors by defining more
methods. A leading ``$`` in a declared name is ignored.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .context import RequestContext
from .exceptions import DependencyResolutionError
from .models import ResponseSink, parse_query_string
from .registry import ActionSpec, normalize_parameter_name, parameter_names
from .response import ResponseWriter

# Set up logger for this module
logger = logging.getLogger(__name__)

FailureSink = Callable[..., Any]

_MISSING = object()


class InjectorCache:
    """Cache of injector results for a single dispatch cycle."""

    def __init__(self):
        self._values: Dict[str, Any] = {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value


class ParameterResolver:
    """Resolves the parameters of an action for one request.

    Built-in injectors:

    - ``req``: the raw request
    - ``res``: the raw response sink
    - ``query``: parsed query parameters
    - ``params``: route parameters
    - ``body``: parsed request body
    - ``headers``: request headers
    - ``next`` / ``continuation``: the failure sink
    - ``context``: the RequestContext of this dispatch
    - ``resp``: a ResponseWriter bound to the response
    """

    # Raise DependencyResolutionError for names without an injector instead of passing None
    strict = False

    def __init__(self, request: Any, response: ResponseSink, next: FailureSink, context: RequestContext):
        self.request = request
        self.response = response
        self.next = next
        self.context = context
        self._cache = InjectorCache()

    def get_params(self, action: Union[ActionSpec, Callable]) -> List[Any]:
        """Return the resolved values of the action's parameters, in declaration order."""
        return [self.resolve(name) for name in self.resolve_parameters(action)]

    def resolve_parameters(self, action: Union[ActionSpec, Callable]) -> Tuple[str, ...]:
        """Return the ordered parameter names declared by an action."""
        if isinstance(action, ActionSpec):
            return action.parameters
        return tuple(normalize_parameter_name(name) for name in parameter_names(action))

    def resolve_injector(self, name: str) -> Optional[Callable[[], Any]]:
        """Return the injector method for a parameter name, if any."""
        return getattr(self, f"inject_{normalize_parameter_name(name)}", None)

    def resolve(self, name: str) -> Any:
        name = normalize_parameter_name(name)
        cached = self._cache.get(name, _MISSING)
        if cached is not _MISSING:
            return cached

        injector = self.resolve_injector(name)
        if injector is None:
            if self.strict:
                raise DependencyResolutionError(f"Unable to resolve dependency: {name}")
            logger.warning(f"No injector for parameter '{name}', passing None")
            return None

        value = injector()
        self._cache.set(name, value)
        return value

    @property
    def writer(self) -> Optional[ResponseWriter]:
        """The ResponseWriter handed out as ``resp``, if one was requested."""
        return self._cache.get("resp")

    def inject_req(self) -> Any:
        return self.request

    def inject_res(self) -> ResponseSink:
        return self.response

    def inject_query(self) -> Dict[str, Any]:
        query = getattr(self.request, "query", None)
        if query is not None:
            return query
        if hasattr(self.request, "get_query_params"):
            return self.request.get_query_params()
        return parse_query_string(getattr(self.request, "query_string", None))

    def inject_params(self) -> Dict[str, Any]:
        return getattr(self.request, "params", None) or {}

    def inject_body(self) -> Any:
        body = getattr(self.request, "body", None)
        return body if body is not None else {}

    def inject_headers(self) -> Dict[str, str]:
        return getattr(self.request, "headers", None) or {}

    def inject_next(self) -> FailureSink:
        return self.next

    def inject_continuation(self) -> FailureSink:
        return self.next

    def inject_context(self) -> RequestContext:
        return self.context

    def inject_resp(self) -> ResponseWriter:
        return ResponseWriter(self.response, self.next)
