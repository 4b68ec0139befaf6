from __future__ import annotations

from typing import Any

from ..protocol import ABSENT, TaskAction
from .base import ActionContext, require_element


async def click(ctx: ActionContext, action: TaskAction) -> dict[str, Any]:
    selector, el = await require_element(ctx, action)
    await el.click()
    return {"clicked": selector}


async def get(ctx: ActionContext, action: TaskAction) -> dict[str, Any]:
    """Read visible text and form value; inner markup only when `html` is set."""
    _selector, el = await require_element(ctx, action)
    out: dict[str, Any] = {"text": await el.inner_text()}
    value = await el.value()
    if value is not ABSENT:
        out["value"] = value
    if action.get("html"):
        out["html"] = await el.inner_html()
    return out
