"""
`Page` backed by a Chrome tab over CDP.

Values stay remote objects until converted: nodes become `CdpElement`
handles, array-likes (arrays, NodeList, HTMLCollection) are expanded entry by
entry so their elements are still handles when the serialization step sees
them. Everything else is fetched by value.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any, Protocol

from .errors import CdpError, EvaluationError
from .page import Element, ElementList, Page
from .protocol import ABSENT

_AS_ARRAY_JS = "function() { return Array.from(this); }"
_SELF_JS = "function() { return this; }"
_COLLECTION_CLASSES = {"NodeList", "HTMLCollection", "RadioNodeList", "HTMLAllCollection"}


class CdpSender(Protocol):
    async def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]: ...

    def set_event_sink(self, sink: Callable[[dict[str, Any]], None] | None) -> None: ...


def _exception_message(details: dict[str, Any]) -> str:
    exc = details.get("exception")
    if isinstance(exc, dict):
        if "value" in exc and exc.get("type") != "object":
            return str(exc.get("value"))
        desc = exc.get("description")
        if isinstance(desc, str) and desc:
            first = desc.splitlines()[0]
            cls_name = exc.get("className")
            if isinstance(cls_name, str) and first.startswith(cls_name + ": "):
                return first[len(cls_name) + 2 :]
            if first == cls_name:
                return ""
            return first
    text = details.get("text")
    return str(text) if text else "Evaluation failed"


class CdpPage(Page):
    def __init__(self, conn: CdpSender) -> None:
        super().__init__()
        self.conn = conn

    async def attach(self) -> None:
        """Follow top-level navigations so listeners learn about new documents."""
        self.conn.set_event_sink(self._on_cdp_event)
        await self.conn.send("Page.enable")

    # ─────────────────────────────────────────────────────────────────────────
    # Page API
    # ─────────────────────────────────────────────────────────────────────────

    async def url(self) -> str:
        res = await self.conn.send("Runtime.evaluate", {"expression": "location.href", "returnByValue": True})
        value = self._plain(self._unwrap(res))
        return value if isinstance(value, str) else ""

    async def query_selector(self, selector: str) -> Element | None:
        res = await self.conn.send(
            "Runtime.evaluate",
            {"expression": f"document.querySelector({json.dumps(selector)})", "returnByValue": False},
        )
        obj = self._unwrap(res)
        if obj.get("subtype") != "node" or not obj.get("objectId"):
            return None
        return CdpElement(self, obj["objectId"])

    async def evaluate(self, code: str) -> Any:
        res = await self.conn.send(
            "Runtime.evaluate",
            {"expression": code, "awaitPromise": True, "returnByValue": False, "userGesture": True},
        )
        return await self._to_python(self._unwrap(res))

    async def navigate(self, url: str) -> None:
        res = await self.conn.send("Page.navigate", {"url": url})
        if isinstance(res, dict) and res.get("errorText"):
            raise CdpError(f"Navigation to {url} failed: {res['errorText']}")

    def _on_cdp_event(self, event: dict[str, Any]) -> None:
        if event.get("method") != "Page.frameNavigated":
            return
        params = event.get("params")
        frame = params.get("frame") if isinstance(params, dict) else None
        if not isinstance(frame, dict) or frame.get("parentId"):
            return  # iframes keep the tab on the same document
        url = frame.get("url")
        if isinstance(url, str):
            self._notify_navigated(url)

    # ─────────────────────────────────────────────────────────────────────────
    # Remote object helpers
    # ─────────────────────────────────────────────────────────────────────────

    async def call_function(
        self,
        object_id: str,
        declaration: str,
        *args: Any,
        by_value: bool = True,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "objectId": object_id,
            "functionDeclaration": declaration,
            "returnByValue": by_value,
            "awaitPromise": True,
        }
        if args:
            params["arguments"] = [{"value": a} for a in args]
        res = await self.conn.send("Runtime.callFunctionOn", params)
        return self._unwrap(res)

    @staticmethod
    def _unwrap(res: dict[str, Any]) -> dict[str, Any]:
        details = res.get("exceptionDetails") if isinstance(res, dict) else None
        if isinstance(details, dict):
            raise EvaluationError(_exception_message(details))
        obj = res.get("result") if isinstance(res, dict) else None
        return obj if isinstance(obj, dict) else {}

    @staticmethod
    def _plain(obj: dict[str, Any]) -> Any:
        if obj.get("type") == "undefined":
            return ABSENT
        if obj.get("subtype") == "null":
            return None
        if "unserializableValue" in obj:
            # NaN / Infinity / -0 / bigint have no JSON form.
            return None
        return obj.get("value")

    async def _to_python(self, obj: dict[str, Any], *, expand: bool = True) -> Any:
        object_id = obj.get("objectId")
        subtype = obj.get("subtype")
        if not object_id or obj.get("type") != "object":
            return self._plain(obj)
        if subtype == "null":
            return None
        if subtype == "node":
            return CdpElement(self, object_id)
        if expand and (subtype == "array" or obj.get("className") in _COLLECTION_CLASSES):
            items = await self._array_items(object_id)
            return ElementList(items) if obj.get("className") in _COLLECTION_CLASSES else items
        return self._plain(await self.call_function(object_id, _SELF_JS, by_value=True))

    async def _array_items(self, object_id: str) -> list[Any]:
        array = await self.call_function(object_id, _AS_ARRAY_JS, by_value=False)
        array_id = array.get("objectId")
        if not array_id:
            return []
        res = await self.conn.send("Runtime.getProperties", {"objectId": array_id, "ownProperties": True})
        props = res.get("result") if isinstance(res, dict) else None
        indexed: list[tuple[int, dict[str, Any]]] = []
        for prop in props if isinstance(props, list) else []:
            name = prop.get("name") if isinstance(prop, dict) else None
            if isinstance(name, str) and name.isdigit() and isinstance(prop.get("value"), dict):
                indexed.append((int(name), prop["value"]))
        indexed.sort(key=lambda pair: pair[0])
        return [await self._to_python(value, expand=False) for _, value in indexed]


class CdpElement(Element):
    def __init__(self, page: CdpPage, object_id: str) -> None:
        self.page = page
        self.object_id = object_id

    def __repr__(self) -> str:
        return f"CdpElement({self.object_id!r})"

    async def _call(self, declaration: str, *args: Any) -> Any:
        return self.page._plain(await self.page.call_function(self.object_id, declaration, *args))

    async def outer_html(self) -> str:
        return str(await self._call("function() { return this.outerHTML; }") or "")

    async def inner_html(self) -> str:
        return str(await self._call("function() { return this.innerHTML; }") or "")

    async def inner_text(self) -> str:
        value = await self._call("function() { return this.innerText; }")
        return value if isinstance(value, str) else ""

    async def value(self) -> Any:
        return await self._call("function() { return this.value; }")

    async def set_value(self, value: str) -> None:
        await self._call("function(v) { this.value = v; }", value)

    async def append_value(self, chunk: str) -> None:
        await self._call("function(s) { this.value += s; }", chunk)

    async def dispatch_event(self, name: str) -> None:
        await self._call("function(name) { this.dispatchEvent(new Event(name, { bubbles: true })); }", name)

    async def click(self) -> None:
        await self._call("function() { this.click(); }")

    async def focus(self) -> None:
        await self._call("function() { this.focus(); }")
