"""
Task execution: one task in, exactly one correlated result out.

Dispatch order:
1. `action.type` names a registered handler -> run it
2. else `code` is present -> evaluate it in the page (raw execution)
3. else -> explicit error (unknown action, or nothing to do)

The outcome always goes through `serialize_value`, and any failure becomes
the result's `error` string. Nothing raised by a task escapes `execute`.
"""

from __future__ import annotations

import logging
from typing import Any

from .config import BridgeConfig
from .errors import ActionError, UnknownActionError
from .handlers import ActionContext, ActionRegistry, create_default_registry
from .page import Page
from .protocol import ABSENT, ResultMessage, TaskMessage
from .serialize import serialize_value

logger = logging.getLogger("page_bridge.executor")


def _error_message(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


class TaskExecutor:
    def __init__(
        self,
        page: Page,
        registry: ActionRegistry | None = None,
        config: BridgeConfig | None = None,
    ) -> None:
        self.page = page
        self.registry = registry if registry is not None else create_default_registry()
        self.context = ActionContext(page=page, config=config or BridgeConfig())

    async def _run(self, task: TaskMessage) -> Any:
        action = task.action
        if action is not None and self.registry.has(action.type):
            return await self.registry.dispatch(self.context, action)
        if task.code is not None:
            return await self.page.evaluate(task.code)
        if action is not None:
            raise UnknownActionError(action.type)
        raise ActionError("Task has no action or code")

    async def execute(self, task: TaskMessage) -> ResultMessage:
        label = task.action.type if task.action is not None else "code"
        try:
            raw = await self._run(task)
            value = await serialize_value(raw)
        except Exception as exc:  # noqa: BLE001
            message = _error_message(exc)
            logger.info("task_failed id=%s kind=%s error=%s", task.task_id, label, message)
            return ResultMessage(task_id=task.task_id, result=ABSENT, error=message)
        logger.info("task_done id=%s kind=%s", task.task_id, label)
        return ResultMessage(task_id=task.task_id, result=value)
