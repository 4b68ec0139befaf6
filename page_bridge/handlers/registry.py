"""
Action registry with dispatch table.

Maps an action name to its async handler; the executor looks names up here
and falls back to raw code evaluation when a name is not registered.
"""

from __future__ import annotations

import logging
from typing import Any

from ..errors import UnknownActionError
from ..protocol import TaskAction
from .base import ActionContext, HandlerFunc

logger = logging.getLogger("page_bridge.registry")


class ActionRegistry:
    """Registry for action handlers."""

    def __init__(self) -> None:
        self._handlers: dict[str, HandlerFunc] = {}

    def register_many(self, handlers: dict[str, HandlerFunc]) -> None:
        """Register multiple handlers at once."""
        self._handlers.update(handlers)

    def has(self, name: str) -> bool:
        return name in self._handlers

    async def dispatch(self, ctx: ActionContext, action: TaskAction) -> Any:
        """
        Run the handler registered for `action.type`.

        Raises:
            UnknownActionError: If no handler is registered under that name
        """
        handler = self._handlers.get(action.type)
        if handler is None:
            raise UnknownActionError(action.type)
        logger.debug("action=%s params=%s", action.type, sorted(action.params))
        return await handler(ctx, action)

    @property
    def names(self) -> list[str]:
        return sorted(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)


def create_default_registry() -> ActionRegistry:
    """Registry with the built-in DOM/navigation actions."""
    from .dom import click, get
    from .evaluate import evaluate
    from .forms import fill, type_text
    from .navigation import navigate
    from .wait import wait

    registry = ActionRegistry()
    registry.register_many(
        {
            "navigate": navigate,
            "fill": fill,
            "click": click,
            "type": type_text,
            "wait": wait,
            "eval": evaluate,
            "get": get,
        }
    )
    return registry
