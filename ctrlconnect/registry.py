"""
Declaration-time registry of controller actions.

Every dispatchable action is recorded as an immutable ``ActionSpec`` keyed by
(controller class, method name). Registration happens once, when a controller
class is created or during application startup, and the registry is only read
while requests are dispatched.
"""

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Type

from .exceptions import ActionRegistrationError
from .validation import VALIDATIONS_ATTR, Validation

# Set up logger for this module
logger = logging.getLogger(__name__)

PUBLIC_ATTR = "__ctrlconnect_public__"
INJECT_ATTR = "__ctrlconnect_inject__"


def normalize_parameter_name(name: str) -> str:
    """Strip the optional ``$`` prefix of an injector key."""
    return name[1:] if name.startswith("$") else name


def parameter_names(func: Callable) -> Tuple[str, ...]:
    """Return the positional parameter names of an action, excluding ``self``."""
    sig = inspect.signature(func)
    names = []
    for param_name, param in sig.parameters.items():
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        names.append(param_name)
    if names and names[0] in ("self", "cls"):
        names = names[1:]
    return tuple(names)


@dataclass(frozen=True)
class ActionSpec:
    """Registration record of one controller action."""

    name: str
    func: Callable
    public: bool = False
    validations: Tuple[Validation, ...] = ()
    parameters: Tuple[str, ...] = ()


def public_action(func: Optional[Callable] = None, *, inject: Optional[Sequence[str]] = None):
    """Mark a controller method as a public action.

    Can be used bare or with an explicit injection list::

        @public_action
        def list(self, query): ...

        @public_action(inject=["$query", "$resp"])
        def search(self, q, out): ...
    """
    def decorator(f: Callable) -> Callable:
        setattr(f, PUBLIC_ATTR, True)
        if inject is not None:
            setattr(f, INJECT_ATTR, tuple(inject))
        return f

    if func is None:
        return decorator
    return decorator(func)


def private_action(func: Callable) -> Callable:
    """Record a method as an action which is never externally callable."""
    setattr(func, PUBLIC_ATTR, False)
    return func


class ControllerActions:
    """Chainable builder registering actions of one controller class."""

    def __init__(self, registry: "ActionRegistry", controller_cls: Type):
        self.registry = registry
        self.controller_cls = controller_cls

    def action(
        self,
        name: str,
        public: bool = True,
        validations: Iterable[Validation] = (),
        inject: Optional[Sequence[str]] = None,
    ) -> "ControllerActions":
        self.registry.register(
            self.controller_cls, name, public=public, validations=validations, inject=inject
        )
        return self


class ActionRegistry:
    """Mapping of (controller class, method name) to ``ActionSpec``."""

    def __init__(self):
        self._actions: Dict[Tuple[Type, str], ActionSpec] = {}

    def register(
        self,
        controller_cls: Type,
        name: str,
        public: bool = False,
        validations: Iterable[Validation] = (),
        inject: Optional[Sequence[str]] = None,
    ) -> ActionSpec:
        """Register a method defined in the body of ``controller_cls`` as an action.

        Args:
            controller_cls: The controller class owning the method
            name: Name of the method
            public: Whether the action can be dispatched
            validations: Ordered validations run before the action
            inject: Ordered injector keys for the action's parameters. Taken from
                the method signature when omitted.

        Returns:
            The registered ActionSpec
        """
        func = controller_cls.__dict__.get(name)
        if isinstance(func, (staticmethod, classmethod)):
            raise ActionRegistrationError(
                f"{controller_cls.__name__}.{name} must be a plain method to be used as an action"
            )
        if not callable(func):
            raise ActionRegistrationError(
                f"{controller_cls.__name__} does not define a method named '{name}'"
            )

        key = (controller_cls, name)
        if key in self._actions:
            raise ActionRegistrationError(f"Action {controller_cls.__name__}.{name} is already registered")

        names = parameter_names(func) if inject is None else tuple(inject)
        spec = ActionSpec(
            name=name,
            func=func,
            public=bool(public),
            validations=tuple(validations),
            parameters=tuple(normalize_parameter_name(n) for n in names),
        )
        self._actions[key] = spec
        logger.debug(
            f"Registered {'public' if spec.public else 'private'} action "
            f"{controller_cls.__name__}.{name}{list(spec.parameters)}"
        )
        return spec

    def controller(self, controller_cls: Type) -> ControllerActions:
        """Return a builder registering actions of ``controller_cls``."""
        return ControllerActions(self, controller_cls)

    def register_controller(self, controller_cls: Type) -> List[ActionSpec]:
        """Register every method of the class body carrying action markers."""
        specs = []
        for name, member in vars(controller_cls).items():
            if not callable(member) or isinstance(member, type):
                continue
            marked_public = getattr(member, PUBLIC_ATTR, None)
            validations = getattr(member, VALIDATIONS_ATTR, None)
            if marked_public is None and validations is None:
                continue
            specs.append(
                self.register(
                    controller_cls,
                    name,
                    public=bool(marked_public),
                    validations=validations or (),
                    inject=getattr(member, INJECT_ATTR, None),
                )
            )
        return specs

    def lookup(self, controller_cls: Type, name: str) -> Optional[ActionSpec]:
        return self._actions.get((controller_cls, name))

    def lookup_function(self, controller_cls: Type, func: Any) -> Optional[ActionSpec]:
        """Find the action registered for a function or bound method."""
        target = getattr(func, "__func__", func)
        name = getattr(target, "__name__", None)
        if name is None:
            return None
        spec = self.lookup(controller_cls, name)
        if spec is not None and spec.func is target:
            return spec
        return None

    def actions(self, controller_cls: Type) -> List[ActionSpec]:
        return [spec for (cls, _), spec in self._actions.items() if cls is controller_cls]


# Process-wide registry used by controllers unless they configure their own
default_registry = ActionRegistry()
