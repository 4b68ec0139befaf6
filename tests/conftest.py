from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from page_bridge.errors import EvaluationError
from page_bridge.page import Element, ElementList, Page
from page_bridge.protocol import ABSENT

_FORM_TAGS = {"input", "textarea", "select"}


class FakeElement(Element):
    """In-memory element: enough DOM for handler tests."""

    def __init__(
        self,
        tag: str,
        *,
        id: str | None = None,  # noqa: A002
        classes: tuple[str, ...] = (),
        text: str = "",
        html: str | None = None,
        value: Any = ABSENT,
    ) -> None:
        self.tag = tag
        self.id = id
        self.classes = classes
        self.text = text
        self.html = html if html is not None else text
        self._value = "" if value is ABSENT and tag in _FORM_TAGS else value
        self.events: list[str] = []
        self.clicks = 0
        self.focused = False

    def matches(self, selector: str) -> bool:
        if selector.startswith("#"):
            return self.id == selector[1:]
        if selector.startswith("."):
            return selector[1:] in self.classes
        return self.tag == selector

    async def outer_html(self) -> str:
        attrs = f' id="{self.id}"' if self.id else ""
        if self.classes:
            attrs += f' class="{" ".join(self.classes)}"'
        if self.tag == "input":
            return f"<input{attrs}>"
        return f"<{self.tag}{attrs}>{self.html}</{self.tag}>"

    async def inner_html(self) -> str:
        return self.html

    async def inner_text(self) -> str:
        return self.text

    async def value(self) -> Any:
        return self._value

    async def set_value(self, value: str) -> None:
        self._value = value

    async def append_value(self, chunk: str) -> None:
        self._value = f"{self._value}{chunk}"

    async def dispatch_event(self, name: str) -> None:
        self.events.append(name)

    async def click(self) -> None:
        self.clicks += 1

    async def focus(self) -> None:
        self.focused = True


class FakePage(Page):
    """Page double: elements in document order plus a table of evaluable snippets."""

    def __init__(
        self,
        elements: list[FakeElement] | None = None,
        *,
        url: str = "https://shop.example.com/checkout",
        scripts: dict[str, Callable[[FakePage], Any]] | None = None,
    ) -> None:
        super().__init__()
        self.elements = list(elements or [])
        self._url = url
        self.scripts = dict(scripts or {})
        self.navigations: list[str] = []
        self.queries: list[str] = []

    async def url(self) -> str:
        return self._url

    async def query_selector(self, selector: str) -> Element | None:
        self.queries.append(selector)
        for el in self.elements:
            if el.matches(selector):
                return el
        return None

    def query_all(self, selector: str) -> ElementList:
        return ElementList(el for el in self.elements if el.matches(selector))

    async def evaluate(self, code: str) -> Any:
        fn = self.scripts.get(code)
        if fn is None:
            raise EvaluationError(f"{code} is not defined")
        value = fn(self)
        if asyncio.iscoroutine(value):
            value = await value
        return value

    async def navigate(self, url: str) -> None:
        self.navigations.append(url)
        self._url = url
        self._notify_navigated(url)


class FakeSocket:
    """Stand-in for a websockets client connection (and its `connect()` context)."""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.closed = False

    async def __aenter__(self) -> FakeSocket:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.closed = True

    def __aiter__(self) -> FakeSocket:
        return self

    async def __anext__(self) -> Any:
        item = await self.inbox.get()
        if item is None:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item

    async def send(self, data: str) -> None:
        if self.closed:
            raise ConnectionError("socket closed")
        self.sent.append(data)

    async def close(self) -> None:
        self.closed = True
        self.inbox.put_nowait(None)

    def feed(self, frame: Any) -> None:
        self.inbox.put_nowait(frame)


@pytest.fixture
def fake_page() -> Callable[..., FakePage]:
    return FakePage


@pytest.fixture
def element() -> Callable[..., FakeElement]:
    return FakeElement


@pytest.fixture
def fake_socket() -> Callable[[], FakeSocket]:
    return FakeSocket
