"""
Page interface the action handlers run against.

Handlers and the executor only see `Page` and `Element`; the CDP-backed
implementation lives in `cdp_page.py`. Every operation may suspend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

NavigationListener = Callable[[str], None]


class Element(ABC):
    """Handle to one DOM element in the controlled page."""

    @abstractmethod
    async def outer_html(self) -> str: ...

    @abstractmethod
    async def inner_html(self) -> str: ...

    @abstractmethod
    async def inner_text(self) -> str: ...

    @abstractmethod
    async def value(self) -> Any:
        """Form value, or ABSENT when the element has no `value` property."""

    @abstractmethod
    async def set_value(self, value: str) -> None: ...

    @abstractmethod
    async def append_value(self, chunk: str) -> None: ...

    @abstractmethod
    async def dispatch_event(self, name: str) -> None:
        """Fire a bubbling DOM event of the given type."""

    @abstractmethod
    async def click(self) -> None: ...

    @abstractmethod
    async def focus(self) -> None: ...


class ElementList(list):
    """Ordered DOM query result (the NodeList / HTMLCollection analogue)."""


class Page(ABC):
    def __init__(self) -> None:
        self._navigation_listeners: list[NavigationListener] = []

    def on_navigated(self, listener: NavigationListener) -> None:
        """Call `listener(url)` whenever the top-level document changes."""
        self._navigation_listeners.append(listener)

    def _notify_navigated(self, url: str) -> None:
        for listener in list(self._navigation_listeners):
            listener(url)

    @abstractmethod
    async def url(self) -> str: ...

    @abstractmethod
    async def query_selector(self, selector: str) -> Element | None: ...

    @abstractmethod
    async def evaluate(self, code: str) -> Any:
        """Evaluate an expression in the page (promises awaited).

        Elements come back as `Element`, array-likes as lists; `ABSENT` for undefined.
        Raises EvaluationError when the code throws.
        """

    @abstractmethod
    async def navigate(self, url: str) -> None: ...
