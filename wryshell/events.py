"""In-process event bus for shell signals.

Delivery is synchronous on the loop that owns shell state; a slow handler
delays every later handler and all bus traffic.
"""

from __future__ import annotations

import asyncio
import inspect
import itertools

from collections.abc import Awaitable, Callable
from typing import Any

from .log import debug, log_handler_error, warn
from .models import Signal
from .utils import TaskSet


# Type alias for handler functions (sync or async)
HandlerFunc = Callable[..., None] | Callable[..., Awaitable[None]]


class EventBus:
    """Registry of signal handlers.

    Handlers receive the signal arguments positionally:
    ``window-toggled`` passes ``(name, visible)``, ``config-parsed`` passes
    nothing.
    """

    def __init__(self) -> None:
        """Initialize the bus."""
        # Structure: {signal: {handler_id: handler}}
        self._handlers: dict[Signal, dict[int, HandlerFunc]] = {signal: {} for signal in Signal}
        self._ids = itertools.count(1)
        self._tasks = TaskSet()

    @staticmethod
    def _coerce(signal: Signal | str) -> Signal | None:
        try:
            return Signal(signal)
        except ValueError:
            return None

    def connect(self, signal: Signal | str, handler: HandlerFunc) -> int:
        """Register a handler.

        Parameters
        ----------
        signal : Signal or str
            ``"window-toggled"`` or ``"config-parsed"``.
        handler : HandlerFunc
            The callback, sync or async.

        Returns
        -------
        int
            Handler id for :meth:`disconnect`, or 0 if the signal is unknown.
        """
        sig = self._coerce(signal)
        if sig is None:
            warn(f"Invalid signal '{signal}'. Must be one of: {', '.join(s.value for s in Signal)}")
            return 0

        handler_id = next(self._ids)
        self._handlers[sig][handler_id] = handler
        debug(f"Connected handler {handler_id} to '{sig.value}'")
        return handler_id

    def disconnect(self, handler_id: int) -> bool:
        """Remove a handler by id.

        Returns
        -------
        bool
            True if a handler was removed.
        """
        for handlers in self._handlers.values():
            if handlers.pop(handler_id, None) is not None:
                debug(f"Disconnected handler {handler_id}")
                return True
        return False

    def emit(self, signal: Signal | str, *args: Any) -> int:
        """Deliver a signal to every connected handler, in connection order.

        A handler that raises is logged and does not stop delivery.

        Returns
        -------
        int
            Number of handlers invoked successfully.
        """
        sig = self._coerce(signal)
        if sig is None:
            warn(f"Ignoring emit of unknown signal '{signal}'")
            return 0

        debug(f"Emitting '{sig.value}' {args!r}")
        called = 0
        for handler in list(self._handlers[sig].values()):
            if self._invoke(sig, handler, args):
                called += 1
        return called

    def _invoke(self, signal: Signal, handler: HandlerFunc, args: tuple[Any, ...]) -> bool:
        """Invoke a single handler.

        Sync handlers run inline. Async handlers are scheduled as tasks on
        the running loop.
        """
        if inspect.iscoroutinefunction(handler):
            return self._invoke_async(signal, handler, args)
        try:
            handler(*args)
        except Exception as exc:
            log_handler_error(signal.value, exc)
            return False
        return True

    def _invoke_async(self, signal: Signal, handler: HandlerFunc, args: tuple[Any, ...]) -> bool:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            warn(f"No running loop to deliver '{signal.value}' to async handler")
            return False

        async def run_async() -> None:
            try:
                await handler(*args)  # type: ignore[misc]
            except Exception as exc:
                log_handler_error(signal.value, exc)

        self._tasks.spawn(run_async(), name=f"signal:{signal.value}")
        return True

    def handler_count(self, signal: Signal | str) -> int:
        """Number of handlers connected to a signal."""
        sig = self._coerce(signal)
        return len(self._handlers[sig]) if sig is not None else 0

    def cancel_pending(self) -> int:
        """Cancel async handlers that are still running."""
        return self._tasks.cancel_all()

    async def join(self) -> None:
        """Wait for async handlers to finish."""
        await self._tasks.join()

    def clear(self) -> None:
        """Remove all handlers.

        Use with caution - primarily for testing.
        """
        for handlers in self._handlers.values():
            handlers.clear()
        debug("Cleared all signal handlers")


__all__ = ["EventBus", "HandlerFunc"]
