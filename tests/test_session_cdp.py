from __future__ import annotations

import asyncio
import json
import socket
from typing import Any

import pytest

from page_bridge import session_cdp
from page_bridge.errors import CdpError
from page_bridge.session_cdp import CdpConnection, discover_page_target

TARGETS = [
    {"id": "sw", "type": "service_worker", "url": "https://a.example/sw.js", "webSocketDebuggerUrl": "ws://x/sw"},
    {"id": "t1", "type": "page", "url": "https://a.example/home", "webSocketDebuggerUrl": "ws://x/t1"},
    {"id": "t2", "type": "page", "url": "https://shop.example.com/checkout", "webSocketDebuggerUrl": "ws://x/t2"},
    {"id": "t3", "type": "page", "url": "chrome://newtab/"},
]


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return int(s.getsockname()[1])


def test_discover_page_target_prefers_hint(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[str] = []

    def fake_get(url: str, timeout: float = 2.0) -> Any:
        seen.append(url)
        return TARGETS

    monkeypatch.setattr(session_cdp, "_http_get_json", fake_get)
    assert discover_page_target(port=9333)["id"] == "t1"
    assert discover_page_target(port=9333, url_hint="checkout")["id"] == "t2"
    assert seen[0] == "http://127.0.0.1:9333/json/list"

    with pytest.raises(CdpError, match="No page target matching"):
        discover_page_target(url_hint="nowhere")


def test_cdp_connection_correlates_responses_and_feeds_event_sink() -> None:
    try:
        import websockets  # type: ignore[import-not-found]
    except Exception:  # noqa: BLE001
        pytest.skip("websockets not installed")

    port = _free_port()

    async def _chrome(ws: Any) -> None:
        async for raw in ws:
            msg = json.loads(raw)
            await ws.send(json.dumps({"method": "Page.loadEventFired", "params": {"timestamp": 1}}))
            if msg["method"] == "Runtime.evaluate":
                await ws.send(json.dumps({"id": msg["id"], "result": {"result": {"type": "string", "value": "ok"}}}))
            else:
                await ws.send(json.dumps({"id": msg["id"], "error": {"code": -32601, "message": "not found"}}))

    async def _main() -> None:
        async with websockets.serve(_chrome, "127.0.0.1", port):
            conn = await CdpConnection.open(f"ws://127.0.0.1:{port}/devtools/page/t1", timeout=2.0)
            events: list[dict[str, Any]] = []
            conn.set_event_sink(events.append)
            try:
                res = await conn.send("Runtime.evaluate", {"expression": "'ok'"})
                assert res == {"result": {"type": "string", "value": "ok"}}
                with pytest.raises(CdpError, match="not found"):
                    await conn.send("Nope.method")
                assert events[0] == {"method": "Page.loadEventFired", "params": {"timestamp": 1}}
                assert [e["method"] for e in events] == ["Page.loadEventFired", "Page.loadEventFired"]
            finally:
                await conn.close()
            await asyncio.wait_for(conn.wait_closed(), timeout=1.0)
            with pytest.raises(CdpError, match="closed"):
                await conn.send("Runtime.evaluate")

    asyncio.run(_main())


def test_cdp_connection_open_failure_is_cdp_error() -> None:
    port = _free_port()

    async def _main() -> None:
        with pytest.raises(CdpError, match="CDP connect failed"):
            await CdpConnection.open(f"ws://127.0.0.1:{port}/devtools/page/x", timeout=1.0)

    asyncio.run(_main())


def test_cdp_connection_reports_remote_close_and_survives_bad_sink() -> None:
    try:
        import websockets  # type: ignore[import-not-found]
    except Exception:  # noqa: BLE001
        pytest.skip("websockets not installed")

    port = _free_port()

    async def _chrome(ws: Any) -> None:
        await ws.send(json.dumps({"method": "Inspector.detached", "params": {"reason": "target_closed"}}))
        msg = json.loads(await ws.recv())
        await ws.send(json.dumps({"id": msg["id"], "result": {}}))
        await ws.close()

    def _bad_sink(event: dict[str, Any]) -> None:
        raise RuntimeError("sink blew up")

    async def _main() -> None:
        async with websockets.serve(_chrome, "127.0.0.1", port):
            conn = await CdpConnection.open(f"ws://127.0.0.1:{port}/devtools/page/t1", timeout=2.0)
            conn.set_event_sink(_bad_sink)
            try:
                assert await conn.send("Runtime.enable") == {}
                await asyncio.wait_for(conn.wait_closed(), timeout=2.0)
                assert conn.connected is False
            finally:
                await conn.close()

    asyncio.run(_main())
