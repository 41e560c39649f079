from __future__ import annotations

import contextvars
import logging
from collections import defaultdict
from concurrent.futures import Executor
from typing import Any, Callable, DefaultDict, List


Handler = Callable[[dict[str, Any]], None]


class EventBus:
    """In-process publish/subscribe.

    Handler failures are logged and never reach the publisher. With an
    executor configured, handlers run off the caller's thread in a copy of
    the caller's context.
    """

    def __init__(self, executor: Executor | None = None) -> None:
        self._handlers: DefaultDict[str, List[Handler]] = defaultdict(list)
        self._executor = executor
        self._logger = logging.getLogger(__name__)

    def emit(self, event_name: str, payload: dict[str, Any]) -> None:
        handlers = list(self._handlers.get(event_name, []))
        if not handlers:
            self._logger.debug("EventBus: no handlers for %s", event_name)
            return
        for handler in handlers:
            if self._executor is None:
                self._run(event_name, handler, payload)
            else:
                ctx = contextvars.copy_context()
                self._executor.submit(ctx.run, self._run, event_name, handler, payload)

    def _run(self, event_name: str, handler: Handler, payload: dict[str, Any]) -> None:
        try:
            handler(payload)
        except Exception:
            self._logger.exception("EventBus handler failed for %s", event_name, extra={"event": event_name})

    def subscribe(self, event_name: str, handler: Handler) -> None:
        self._handlers[event_name].append(handler)

    def unsubscribe(self, event_name: str, handler: Handler) -> None:
        handlers = self._handlers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)

    def set_executor(self, executor: Executor | None) -> None:
        self._executor = executor


event_bus = EventBus()
