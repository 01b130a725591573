"""Registry mapping step types to handler instances."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

import httpx

from .config import FlowRunnerConfig
from .errors import DuplicateHandlerError, HandlerNotFoundError
from .steps import StepHandler, get_all_handlers


class HandlerRegistry:
    """Explicit type-string to handler lookup.

    Registering the same type twice and looking up an unknown type both
    raise; there is no fallback handler.
    """

    def __init__(self, handlers: Iterable[StepHandler] = ()) -> None:
        self._handlers: Dict[str, StepHandler] = {}
        for handler in handlers:
            self.register(handler)

    def register(self, handler: StepHandler) -> None:
        if not handler.type:
            raise ValueError(f"{type(handler).__name__} does not declare a step type")
        if handler.type in self._handlers:
            raise DuplicateHandlerError(handler.type)
        self._handlers[handler.type] = handler

    def get(self, step_type: str) -> StepHandler:
        try:
            return self._handlers[step_type]
        except KeyError:
            raise HandlerNotFoundError(step_type) from None

    def has(self, step_type: str) -> bool:
        return step_type in self._handlers

    def types(self) -> List[str]:
        return list(self._handlers)

    def __contains__(self, step_type: object) -> bool:
        return step_type in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


def create_registry(
    config: Optional[FlowRunnerConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> HandlerRegistry:
    """Return a registry holding every built-in handler."""
    return HandlerRegistry(get_all_handlers(config, transport))


__all__ = ["HandlerRegistry", "create_registry"]
