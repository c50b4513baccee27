"""
Per-request action dispatch.

``ActionDispatcher`` drives one request through

    resolve -> before -> invoke -> respond -> after

Every failure is funneled into the failure sink, at most once per request.
"""

import asyncio
import inspect
import logging
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Union

from .context import RequestContext
from .dependencies import ParameterResolver
from .exceptions import ControllerError
from .models import ResponseSink, method_name
from .registry import ActionSpec

if TYPE_CHECKING:
    from .controller import BaseController

# Set up logger for this module
logger = logging.getLogger(__name__)

Action = Union[str, Callable]
FailureSink = Callable[..., Any]


class DispatchStep:
    """Result of a dispatch step."""

    def __init__(self, continue_processing: bool, value: Any = None):
        self.continue_processing = continue_processing
        self.value = value


class ActionDispatcher:
    """Dispatches a single request to a controller action.

    A new dispatcher is created for every request, so the request context, the
    parameter resolver and the failure state are never shared.
    """

    def __init__(self, controller: "BaseController", request: Any, response: ResponseSink, next: FailureSink):
        self.controller = controller
        self.request = request
        self.response = response
        self.next = next
        self.action: Optional[ActionSpec] = None
        self.context: Optional[RequestContext] = None
        self.resolver: Optional[ParameterResolver] = None
        self.failed = False
        self._followups: List[Any] = []

    @property
    def _label(self) -> str:
        action = self.action.name if self.action else "?"
        return f"{type(self.controller).__name__}.{action}"

    def fail(self, err: Any = None) -> None:
        """Route a failure to the failure sink.

        Errors which are not ControllerErrors are wrapped as server errors. Only
        the first failure of a request is reported, later ones are logged.
        """
        if self.failed:
            logger.warning(f"Additional failure in {self._label} after the request already failed: {err!r}")
            return
        self.failed = True
        self._call_sink(ControllerError.from_exception(err) if err is not None else None)

    def _call_sink(self, err: Any = None) -> None:
        result = self.next(err) if err is not None else self.next()
        if inspect.isawaitable(result):
            self._followups.append(asyncio.ensure_future(result))

    async def _settle(self, value: Any) -> Any:
        if inspect.isawaitable(value):
            return await value
        return value

    async def dispatch(self, action_ref: Action, strict_not_found: bool = False) -> None:
        """Run the dispatch cycle. Never raises, failures go to the failure sink."""
        request_method = method_name(getattr(self.request, "method", None))
        request_path = getattr(self.request, "path", "")
        logger.debug(f"Starting dispatch of {action_ref!r} for {request_method} {request_path}")

        def log_step(step_name: str, step: DispatchStep):
            status = "CONTINUE" if step.continue_processing else "STOP"
            logger.debug(f"Dispatch {self._label} {step_name}: {status}")

        try:
            step = self.step_resolve_action(action_ref, strict_not_found)
            log_step("resolve_action", step)
            if step.continue_processing:
                step = await self.step_before_call()
                log_step("before_call", step)
            if step.continue_processing:
                step = await self.step_invoke()
                log_step("invoke", step)
            if step.continue_processing:
                await self.step_respond(step.value)
                log_step("respond", step)
                await self.step_after_call()
        except Exception as e:
            logger.error(f"Unhandled exception dispatching {self._label}: {e!r}")
            self.fail(e)

        await self._flush()

    async def _flush(self) -> None:
        """Wait for writes started by the action and for async failure sinks."""
        writer = self.resolver.writer if self.resolver is not None else None
        if writer is not None and writer.closed:
            await writer.end()
        while self._followups:
            followups, self._followups = self._followups, []
            for result in await asyncio.gather(*followups, return_exceptions=True):
                if isinstance(result, Exception):
                    logger.error(f"Failure sink raised while handling {self._label}: {result!r}")

    def step_resolve_action(self, action_ref: Action, strict_not_found: bool) -> DispatchStep:
        self.action = self.controller.resolve_action(action_ref)
        if self.action is None:
            requested = action_ref if isinstance(action_ref, str) else getattr(action_ref, "__name__", repr(action_ref))
            if strict_not_found:
                logger.warning(f"Action '{requested}' not found in {type(self.controller).__name__}")
                self.fail(ControllerError(
                    "Could not find the desired action in the current controller",
                    code="invalid_action",
                    status=500,
                    blob={"controller": type(self.controller).__name__, "action": requested},
                ))
            else:
                logger.debug(f"Action '{requested}' not handled by {type(self.controller).__name__}")
                self.failed = True
                self._call_sink()
            return DispatchStep(False)

        self.context = RequestContext(self.request)
        self.resolver = self.controller.injector_type(self.request, self.response, self.fail, self.context)
        return DispatchStep(True)

    async def step_before_call(self) -> DispatchStep:
        try:
            await self._settle(self.controller.before_call(self.request, self.response, self.action, self.context))
        except Exception as e:
            self.fail(e)
            return DispatchStep(False)
        return DispatchStep(True)

    async def step_invoke(self) -> DispatchStep:
        """Call the action. A raise or rejection stops the cycle and skips the after hook."""
        try:
            args = self.resolver.get_params(self.action)
            result = await self._settle(self.action.func(self.controller, *args))
        except Exception as e:
            logger.debug(f"Action {self._label} failed: {e!r}")
            self.fail(e)
            return DispatchStep(False)
        return DispatchStep(True, result)

    async def step_respond(self, result: Any) -> None:
        if result is None or self.failed:
            return
        try:
            await self._settle(self.controller.write_result(self.response, result, self.fail))
        except Exception as e:
            self.fail(e)

    async def step_after_call(self) -> None:
        try:
            await self._settle(self.controller.after_call(self.request, self.response, self.action, self.context))
        except Exception as e:
            self.fail(e)
