"""
Form input handlers.

Provides:
- fill: set a field value in one step, then fire input + change
- type: append characters one at a time with a human-like cadence
"""

from __future__ import annotations

import asyncio
from typing import Any

from ..protocol import TaskAction
from .base import ActionContext, positive_ms, require_element, require_str


async def fill(ctx: ActionContext, action: TaskAction) -> dict[str, Any]:
    selector, el = await require_element(ctx, action)
    value = action.get("value")
    await el.set_value("" if value is None else str(value))
    await el.dispatch_event("input")
    await el.dispatch_event("change")
    return {"filled": selector, "value": value}


async def type_text(ctx: ActionContext, action: TaskAction) -> dict[str, Any]:
    _selector, el = await require_element(ctx, action)
    text = require_str(action, "text")
    delay_ms = positive_ms(action.get("delay"), ctx.config.type_delay_ms)

    await el.focus()
    for char in text:
        await el.append_value(char)
        await el.dispatch_event("input")
        await asyncio.sleep(delay_ms / 1000.0)
    return {"typed": f"{len(text)} chars"}
