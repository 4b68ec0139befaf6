"""How DOM values cross the wire.

Applied once to every handler return value and every raw evaluation:
an element becomes its outer markup, a list of values becomes a list with
each element replaced by its outer markup. Everything else passes through.
"""

from __future__ import annotations

from typing import Any

from .page import Element


async def serialize_value(value: Any) -> Any:
    if isinstance(value, Element):
        return await value.outer_html()
    if isinstance(value, (list, tuple)):
        return [await item.outer_html() if isinstance(item, Element) else item for item in value]
    return value
