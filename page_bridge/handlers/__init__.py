"""Action handlers: one coroutine per DOM/navigation primitive."""

from __future__ import annotations

from .base import ActionContext, HandlerFunc
from .registry import ActionRegistry, create_default_registry

__all__ = ["ActionContext", "ActionRegistry", "HandlerFunc", "create_default_registry"]
