"""
Base class for controllers exposing actions to an HTTP framework.
"""

import logging
from typing import Any, Awaitable, Callable, List, Optional, Type, Union

from .context import RequestContext
from .dependencies import ParameterResolver
from .dispatcher import ActionDispatcher
from .exceptions import ControllerError
from .models import ResponseSink
from .registry import ActionRegistry, ActionSpec, default_registry
from .response import BINARY_TYPES, ResponseWriter

# Set up logger for this module
logger = logging.getLogger(__name__)

Action = Union[str, Callable]
FailureSink = Callable[..., Any]
Handler = Callable[[Any, ResponseSink, FailureSink], Awaitable[None]]


class BaseController:
    """Base class for controllers.

    Actions are methods defined in the controller's own class body and marked
    with ``public_action`` (or registered through ``action_registry``). Methods
    inherited from a base controller are never dispatched.

    Example::

        class UsersController(BaseController):
            @public_action
            @validate_query({"page": (int, 1)})
            async def list(self, query, context):
                return {"page": query["page"], "users": []}

        users = UsersController()
        router.get("/users", users.action("list"))
    """

    injector_type: Type[ParameterResolver] = ParameterResolver
    dispatcher_type: Type[ActionDispatcher] = ActionDispatcher
    action_registry: ActionRegistry = default_registry

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls.action_registry.register_controller(cls)

    def before_call(self, request: Any, response: ResponseSink, action: ActionSpec, context: RequestContext):
        """Called before an action. Validates the request against the action's validations.

        If an awaitable is returned, the action is called once it completes.
        Raise to abort the request.
        """
        context.validator.add_validation(*action.validations)
        results = context.validate()
        if not results.is_valid:
            raise ControllerError.validation(results)

    def after_call(self, request: Any, response: ResponseSink, action: ActionSpec, context: RequestContext):
        """Called after an action completed and its result was written.

        Not called when validation failed or the action raised.
        """

    async def call_action(
        self,
        action: Action,
        request: Any,
        response: ResponseSink,
        next: FailureSink,
        throw_if_not_found: bool = False,
    ) -> None:
        """Call ``action`` and write its result to the response.

        Failures are passed to ``next``. When the action cannot be found,
        ``next()`` is called without an error unless ``throw_if_not_found`` is
        set, in which case an ``invalid_action`` error is passed.
        """
        dispatcher = self.dispatcher_type(self, request, response, next)
        await dispatcher.dispatch(action, strict_not_found=throw_if_not_found)

    def write_result(self, response: ResponseSink, data: Any, next: FailureSink) -> Awaitable[None]:
        """Write an action result: binary data as octet-stream, everything else as JSON."""
        resp = ResponseWriter(response, next)
        if isinstance(data, BINARY_TYPES):
            return resp.binary(data)
        return resp.json(data)

    def action(self, action: Optional[Action] = None) -> Handler:
        """Return a handler calling ``action``, or the action named by the ``action`` route param.

        An explicit action which cannot be resolved is an ``invalid_action``
        error. A route param naming an unknown action defers to the next handler.
        """
        async def handler(request: Any, response: ResponseSink, next: FailureSink) -> None:
            target = action
            if target is None:
                params = getattr(request, "params", None) or {}
                target = params.get("action")
            await self.call_action(target, request, response, next, action is not None)

        return handler

    def resolve_action(self, action: Optional[Action]) -> Optional[ActionSpec]:
        """Resolve an action name or function to a public action of this controller."""
        if action is None:
            return None
        if isinstance(action, str):
            spec = self.action_registry.lookup(type(self), action)
        else:
            spec = self.action_registry.lookup_function(type(self), action)
        if spec is not None and spec.public:
            return spec
        return None

    @classmethod
    def public_actions(cls) -> List[str]:
        """Names of all actions of this controller which can be dispatched."""
        return [spec.name for spec in cls.action_registry.actions(cls) if spec.public]


def error_handler() -> Callable[..., Awaitable[None]]:
    """Return a handler writing any error as a JSON error response.

    Install it as the framework's final error handler.
    """
    async def handle(err: Any, request: Any, response: ResponseSink, next: Optional[FailureSink] = None) -> None:
        error = ControllerError.from_exception(err)
        if error.status >= 500:
            logger.error(f"Request failed with {error.status}: {error.message}")
        await ResponseWriter(response).error(error)

    return handle
