"""Decorator based routing of commands, events, queries and interceptors.

Handler methods are marked with a decorator and discovered when their class
is defined. The type annotation of the first argument after ``self`` decides
which messages a method receives, and dispatch is done with
``functools.singledispatch`` so subclasses of a message type are routed to
the closest registered handler.
"""

import inspect
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from functools import singledispatch
from typing import Any, TypeVar

from pydantic import BaseModel

T = TypeVar("T")

_WANTS_RECORD_ATTR = "_wants_record"


class DefaultHandler(ABC):
    """What a router does with a message no handler is registered for."""

    __slots__ = ("base_type", "operation_name")

    def __init__(self, base_type: type, operation_name: str):
        self.base_type = base_type
        self.operation_name = operation_name

    @abstractmethod
    def __call__(self, message: Any, instance: Any, *args: Any, **kwargs: Any) -> Any: ...


class RaiseHandler(DefaultHandler):
    __slots__ = ()

    def __call__(self, message: Any, instance: Any, *args: Any, **kwargs: Any) -> Any:
        raise NotImplementedError(
            f"No {self.operation_name} registered for "
            f"{self.base_type.__name__} type {type(message).__name__}"
        )


class IgnoreHandler(DefaultHandler):
    __slots__ = ()

    def __call__(self, message: Any, instance: Any, *args: Any, **kwargs: Any) -> Any:
        return None


def _extract_handler_type(func: Callable[..., Any], param_index: int = 1) -> tuple[type, bool]:
    """Read the message type a handler accepts from its signature.

    Returns:
        The annotation of the parameter at ``param_index`` and whether
        exactly one more positional parameter follows it. Event handlers
        use that extra parameter to receive the ``EventRecord``.

    Raises:
        ValueError: If the handler has too few parameters or the message
            parameter is not annotated.
    """
    name = getattr(func, "__name__", repr(func))
    params = list(inspect.signature(func).parameters.values())
    if len(params) <= param_index:
        raise ValueError(f"Handler {name} must have at least {param_index + 1} parameters")

    message_param = params[param_index]
    if message_param.annotation is inspect.Parameter.empty:
        raise ValueError(
            f"Handler {name} parameter '{message_param.name}' must have a type annotation"
        )

    trailing = [
        p
        for p in params[param_index + 1 :]
        if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
    ]
    return message_param.annotation, len(trailing) == 1


class MessageRouter:
    """Dispatches messages to the handler registered for their type.

    Besides the singledispatch table the router keeps a second table from
    persisted event type names to payload models. Aggregates and projections
    use it to decode an ``EventRecord`` before routing the payload.
    """

    __slots__ = ("_dispatch", "_event_types")

    def __init__(self, default_handler: DefaultHandler):
        @singledispatch
        def dispatch(message: object, instance: object, *args: Any, **kwargs: Any) -> object:
            return default_handler(message, instance, *args, **kwargs)

        self._dispatch = dispatch
        self._event_types: dict[str, type[BaseModel]] = {}

    def register(
        self,
        message_type: type,
        handler: Callable[..., object],
        wants_record: bool = False,
    ) -> None:
        """Register ``handler`` for ``message_type``.

        Pydantic message types are also entered into the event type table.
        When ``wants_record`` is set, the ``record`` keyword passed to
        ``route`` is handed to the handler as its second argument; otherwise
        it is dropped.
        """
        from .domain.event import event_type_name

        if isinstance(message_type, type) and issubclass(message_type, BaseModel):
            self._event_types[event_type_name(message_type)] = message_type

        def call_handler(
            message: object, instance: object, *args: Any, **kwargs: Any
        ) -> object:
            record = kwargs.pop("record", None)
            if wants_record:
                return handler(instance, message, record, *args, **kwargs)
            return handler(instance, message, *args, **kwargs)

        self._dispatch.register(message_type)(call_handler)

    def event_type(self, name: str) -> type[BaseModel] | None:
        return self._event_types.get(name)

    @property
    def event_types(self) -> dict[str, type[BaseModel]]:
        return dict(self._event_types)

    def route(self, instance: Any, message: Any, *args: Any, **kwargs: Any) -> object:
        """Call the handler for ``message`` on ``instance`` and return its result."""
        return self._dispatch(message, instance, *args, **kwargs)


@dataclass(frozen=True)
class HandlerDecorator:
    """Marks a method as a handler of the message type in its annotation.

    Attributes:
        marker_attr: Attribute set to True on decorated methods.
        type_attr: Attribute holding the annotated message type.
        record_aware: Whether decorated methods may declare a second
            parameter to receive the EventRecord.
    """

    marker_attr: str
    type_attr: str
    record_aware: bool = False

    def __call__(self, func: Callable[..., T]) -> Callable[..., T]:
        message_type, wants_record = _extract_handler_type(func)
        setattr(func, self.marker_attr, True)
        setattr(func, self.type_attr, message_type)
        setattr(func, _WANTS_RECORD_ATTR, self.record_aware and wants_record)
        return func

    def build_router(self, cls: type, default_handler: DefaultHandler) -> MessageRouter:
        """Collect the methods of ``cls`` marked by this decorator into a router."""
        router = MessageRouter(default_handler)
        # Base classes first so that overrides in subclasses win
        for klass in reversed(cls.__mro__):
            for member in klass.__dict__.values():
                if getattr(member, self.marker_attr, None) is True:
                    router.register(
                        getattr(member, self.type_attr),
                        member,
                        wants_record=getattr(member, _WANTS_RECORD_ATTR, False),
                    )
        return router


handles_command = HandlerDecorator("_is_command_handler", "_handles_command_type")
applies_event = HandlerDecorator("_is_event_applier", "_applies_event_type", record_aware=True)
handles_event = HandlerDecorator("_is_event_handler", "_handles_event_type", record_aware=True)
handles_query = HandlerDecorator("_is_query_handler", "_handles_query_type")
intercepts = HandlerDecorator("_is_command_interceptor", "_intercepts_command_type")


def setup_command_routing(cls: type) -> MessageRouter:
    from .domain.command import Command

    return handles_command.build_router(cls, RaiseHandler(Command, "handler"))


def setup_event_applying(cls: type) -> MessageRouter:
    return applies_event.build_router(cls, RaiseHandler(BaseModel, "applier"))


def setup_event_handling(cls: type) -> MessageRouter:
    # Projections skip events they have no handler for
    return handles_event.build_router(cls, IgnoreHandler(BaseModel, "handler"))


def setup_query_routing(cls: type) -> MessageRouter:
    from .domain.query import Query

    return handles_query.build_router(cls, RaiseHandler(Query, "handler"))


def setup_middleware_routing(cls: type) -> MessageRouter:
    return intercepts.build_router(cls, IgnoreHandler(BaseModel, "interceptor"))
