"""Shared pieces for action handlers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass, field
from typing import Any

from ..config import BridgeConfig
from ..errors import ActionError, ElementNotFoundError
from ..page import Element, Page
from ..protocol import TaskAction

logger = logging.getLogger("page_bridge.handlers")


@dataclass
class ActionContext:
    """What a handler may touch: the page and the bridge settings."""

    page: Page
    config: BridgeConfig = field(default_factory=BridgeConfig)
    _background: set[asyncio.Task] = field(default_factory=set, repr=False)

    def call_later(self, delay: float, factory: Callable[[], Coroutine[Any, Any, Any]], *, label: str) -> None:
        """Run `factory()` as a background task after `delay` seconds (fire and forget)."""
        loop = asyncio.get_running_loop()

        def _done(task: asyncio.Task) -> None:
            self._background.discard(task)
            if task.cancelled():
                return
            exc = task.exception()
            if exc is not None:
                logger.warning("deferred_failed label=%s error=%s", label, exc)

        def _fire() -> None:
            task = loop.create_task(factory())
            self._background.add(task)
            task.add_done_callback(_done)

        loop.call_later(max(0.0, delay), _fire)


HandlerFunc = Callable[[ActionContext, TaskAction], Awaitable[Any]]


def require_str(action: TaskAction, key: str) -> str:
    value = action.get(key)
    if not isinstance(value, str):
        raise ActionError(f"Action '{action.type}' requires a '{key}' string")
    return value


def positive_ms(raw: Any, default: int) -> int | float:
    """Millisecond parameter; missing, zero or non-numeric falls back to `default`."""
    if isinstance(raw, bool) or not isinstance(raw, (int, float)) or raw <= 0:
        return default
    return raw


async def require_element(ctx: ActionContext, action: TaskAction) -> tuple[str, Element]:
    selector = require_str(action, "selector")
    el = await ctx.page.query_selector(selector)
    if el is None:
        raise ElementNotFoundError(selector)
    return selector, el
