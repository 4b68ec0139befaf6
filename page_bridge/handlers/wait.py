from __future__ import annotations

import asyncio
from typing import Any

from ..errors import ActionError, WaitTimeoutError
from ..protocol import ABSENT, TaskAction
from .base import ActionContext, positive_ms


async def wait(ctx: ActionContext, action: TaskAction) -> Any:
    """Wait for `selector` to appear (polling, bounded by `timeout` ms) or sleep `ms`.

    With neither parameter there is nothing to wait for and no value is returned.
    """
    selector = action.get("selector")
    if selector:
        if not isinstance(selector, str):
            raise ActionError("Action 'wait' requires 'selector' to be a string")
        timeout_s = positive_ms(action.get("timeout"), ctx.config.wait_timeout_ms) / 1000.0
        poll_s = ctx.config.poll_interval_ms / 1000.0
        loop = asyncio.get_running_loop()
        start = loop.time()
        while loop.time() - start < timeout_s:
            if await ctx.page.query_selector(selector) is not None:
                return {"found": selector}
            await asyncio.sleep(poll_s)
        raise WaitTimeoutError(selector)

    ms = action.get("ms")
    if ms:
        if isinstance(ms, bool) or not isinstance(ms, (int, float)):
            raise ActionError("Action 'wait' requires 'ms' to be a number")
        await asyncio.sleep(max(0.0, ms / 1000.0))
        return {"waited": ms}
    return ABSENT
