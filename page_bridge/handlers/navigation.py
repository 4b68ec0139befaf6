from __future__ import annotations

from typing import Any

from ..protocol import TaskAction
from .base import ActionContext, require_str


async def navigate(ctx: ActionContext, action: TaskAction) -> dict[str, Any]:
    """Navigate the page to `url`.

    The navigation is deferred by a short delay so the result frame leaves
    before the page starts unloading.
    """
    url = require_str(action, "url")
    page = ctx.page
    ctx.call_later(ctx.config.navigate_delay_ms / 1000.0, lambda: page.navigate(url), label=f"navigate {url}")
    return {"navigating": url}
