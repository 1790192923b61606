"""Base middleware class for commands.

Middleware components wrap the root command handler to provide
cross-cutting concerns like logging, retries or context propagation.
"""

import inspect
from collections.abc import Callable, Coroutine
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel

if TYPE_CHECKING:
    from ...routing import MessageRouter

Handler = Callable[[BaseModel], Coroutine[Any, Any, Any]]


class Middleware:
    """Base class for middleware with annotation-based routing.

    Interceptor methods are declared with ``@intercepts``; the annotation of
    their first parameter decides which commands they see. Use the
    ``Command`` base type to intercept every command. If no interceptor
    matches, the middleware forwards to the next handler.

    Examples:
        >>> class TimingMiddleware(Middleware):
        ...     @intercepts
        ...     async def time_command(self, cmd: Command, next: Handler) -> Any:
        ...         started = time.monotonic()
        ...         try:
        ...             return await next(cmd)
        ...         finally:
        ...             LOGGER.info("took %.3fs", time.monotonic() - started)
    """

    _command_router: ClassVar["MessageRouter"]

    def __init_subclass__(cls, **kwargs: object) -> None:
        super().__init_subclass__(**kwargs)
        from ...routing import setup_middleware_routing

        cls._command_router = setup_middleware_routing(cls)

    async def intercept(self, message: BaseModel, next: Handler) -> Any:
        """Route message to an interceptor method or forward to next."""
        result = self._command_router.route(self, message, next)

        # IgnoreHandler returns None when nothing intercepts this type
        if result is None:
            return await next(message)
        elif inspect.isawaitable(result):
            return await result
        else:
            return result
