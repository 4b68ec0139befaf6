"""CDP transport: target discovery over HTTP and an async command connection."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import Callable
from typing import Any
from urllib.error import URLError
from urllib.request import urlopen

import websockets

from .errors import CdpError

logger = logging.getLogger("page_bridge.cdp")


def _http_get_json(url: str, timeout: float = 2.0) -> Any:
    """Fetch JSON from URL."""
    try:
        with urlopen(url, timeout=timeout) as resp:
            return json.loads(resp.read().decode())
    except (URLError, TimeoutError, ValueError) as e:
        raise CdpError(f"{url}: {e}") from e


def discover_page_target(
    host: str = "127.0.0.1",
    port: int = 9222,
    url_hint: str | None = None,
    *,
    timeout: float = 2.0,
) -> dict[str, Any]:
    """Pick the tab to control from the DevTools `/json/list` endpoint.

    Prefers the first `page` target whose url contains `url_hint`; without a
    hint the first page target wins.
    """
    targets = _http_get_json(f"http://{host}:{int(port)}/json/list", timeout=timeout)
    if not isinstance(targets, list):
        raise CdpError("Unexpected /json/list payload")
    pages = [
        t
        for t in targets
        if isinstance(t, dict) and t.get("type") == "page" and isinstance(t.get("webSocketDebuggerUrl"), str)
    ]
    if url_hint:
        pages = [t for t in pages if url_hint in str(t.get("url") or "")]
    if not pages:
        hint = f" matching {url_hint!r}" if url_hint else ""
        raise CdpError(f"No page target{hint} on {host}:{port}")
    return pages[0]


class CdpConnection:
    """Async CDP WebSocket connection.

    Commands are correlated by id with futures; a single reader task routes
    responses and hands events to an optional sink.
    """

    def __init__(self, ws_url: str, timeout: float = 10.0) -> None:
        self.ws_url = ws_url
        self.timeout = timeout
        self._ws: Any | None = None
        self._reader: asyncio.Task | None = None
        self._next_id = 1
        self._pending: dict[int, asyncio.Future] = {}
        self._event_sink: Callable[[dict[str, Any]], None] | None = None
        self._closed = asyncio.Event()

    @classmethod
    async def open(cls, ws_url: str, timeout: float = 10.0) -> CdpConnection:
        conn = cls(ws_url, timeout=timeout)
        try:
            conn._ws = await asyncio.wait_for(websockets.connect(ws_url, max_size=None), timeout=timeout)
        except Exception as exc:  # noqa: BLE001
            raise CdpError(f"CDP connect failed: {exc}") from exc
        conn._reader = asyncio.get_running_loop().create_task(conn._read_loop())
        return conn

    @property
    def connected(self) -> bool:
        return self._ws is not None and self._reader is not None and not self._reader.done()

    async def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send CDP command and wait for its response."""
        ws = self._ws
        if ws is None or not self.connected:
            raise CdpError("CDP connection is closed")

        msg_id = self._next_id
        self._next_id += 1
        msg: dict[str, Any] = {"id": msg_id, "method": method}
        if params:
            msg["params"] = params

        fut: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[msg_id] = fut
        try:
            await ws.send(json.dumps(msg))
            return await asyncio.wait_for(fut, timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise CdpError(f"CDP response timed out: {method}") from exc
        except websockets.ConnectionClosed as exc:
            raise CdpError(f"CDP connection closed: {exc}") from exc
        finally:
            self._pending.pop(msg_id, None)

    def set_event_sink(self, sink: Callable[[dict[str, Any]], None] | None) -> None:
        """Attach a best-effort event sink called for every received CDP event."""
        self._event_sink = sink

    async def wait_closed(self) -> None:
        """Return once the DevTools socket is gone (tab closed, browser exited, or close())."""
        await self._closed.wait()

    async def close(self) -> None:
        ws = self._ws
        self._ws = None
        if ws is not None:
            with contextlib.suppress(Exception):
                await ws.close()
        reader = self._reader
        if reader is not None:
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await reader
        self._closed.set()

    async def _read_loop(self) -> None:
        ws = self._ws
        try:
            async for raw in ws:
                try:
                    data = json.loads(raw)
                except ValueError:
                    continue
                if not isinstance(data, dict):
                    continue
                if "id" in data:
                    self._resolve(data)
                elif isinstance(data.get("method"), str):
                    self._push_event(data)
        except websockets.ConnectionClosed as exc:
            logger.info("cdp_closed url=%s reason=%s", self.ws_url, exc)
        finally:
            self._fail_pending(CdpError("CDP connection closed"))
            self._closed.set()

    def _push_event(self, event: dict[str, Any]) -> None:
        sink = self._event_sink
        if sink is None:
            return
        try:
            sink(event)
        except Exception:  # noqa: BLE001
            logger.exception("cdp_event_sink_failed method=%s", event.get("method"))

    def _resolve(self, data: dict[str, Any]) -> None:
        fut = self._pending.get(data.get("id"))  # type: ignore[arg-type]
        if fut is None or fut.done():
            return
        err = data.get("error")
        if err is not None:
            message = err.get("message") if isinstance(err, dict) else None
            fut.set_exception(CdpError(str(message or err)))
            return
        result = data.get("result")
        fut.set_result(result if isinstance(result, dict) else {})

    def _fail_pending(self, exc: Exception) -> None:
        pending = list(self._pending.values())
        self._pending.clear()
        for fut in pending:
            if not fut.done():
                fut.set_exception(exc)
