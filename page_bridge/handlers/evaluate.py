"""Raw execution.

`eval` runs arbitrary code in the page with full page privileges. This is an
intentional trust boundary: whoever can push tasks owns the page. Nothing
here sandboxes or filters the code.
"""

from __future__ import annotations

from typing import Any

from ..protocol import TaskAction
from .base import ActionContext, require_str


async def evaluate(ctx: ActionContext, action: TaskAction) -> Any:
    return await ctx.page.evaluate(require_str(action, "code"))
