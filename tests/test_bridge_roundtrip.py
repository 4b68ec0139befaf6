from __future__ import annotations

import asyncio
import contextlib
import json
import socket
from typing import Any

import pytest

from page_bridge.config import BridgeConfig
from page_bridge.connection import ConnectionManager
from page_bridge.executor import TaskExecutor


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return int(s.getsockname()[1])


def test_control_server_roundtrip_and_reconnect(fake_page, element) -> None:  # noqa: ANN001
    try:
        import websockets  # type: ignore[import-not-found]
    except Exception:  # noqa: BLE001
        pytest.skip("websockets not installed")

    port = _free_port()
    box = element("input", id="q")
    page = fake_page([box], url="https://shop.example.com/search")
    hellos: list[dict[str, Any]] = []
    results: list[dict[str, Any]] = []
    second_hello = asyncio.Event()

    async def _control(ws: Any) -> None:
        hello = json.loads(await ws.recv())
        hellos.append(hello)
        client_id = f"client-{len(hellos)}"
        await ws.send(json.dumps({"type": "welcome", "clientId": client_id}))
        if len(hellos) == 1:
            await ws.send(
                json.dumps(
                    {"type": "task", "taskId": "1", "action": {"type": "fill", "selector": "#q", "value": "hello"}}
                )
            )
            await ws.send("not json at all")
            await ws.send(json.dumps({"type": "task", "taskId": "2", "code": "document.title"}))
            for _ in range(2):
                results.append(json.loads(await ws.recv()))
            # Drop the bridge; it must come back on its own.
            await ws.close()
            return
        second_hello.set()
        with contextlib.suppress(Exception):
            async for _ in ws:
                pass

    async def _main() -> None:
        async with websockets.serve(_control, "127.0.0.1", port):
            mgr = ConnectionManager(
                page,
                TaskExecutor(page),
                endpoint=f"ws://127.0.0.1:{port}/bridge",
                config=BridgeConfig(reconnect_delay=0.1),
            )
            runner = asyncio.get_running_loop().create_task(mgr.run_forever())
            await asyncio.wait_for(second_hello.wait(), timeout=5.0)
            assert mgr.connection.attempts == 2
            await mgr.stop()
            await asyncio.wait_for(runner, timeout=2.0)

    asyncio.run(_main())

    assert hellos == [
        {"type": "hello", "url": "https://shop.example.com/search"},
        {"type": "hello", "url": "https://shop.example.com/search"},
    ]
    assert results[0] == {"type": "result", "taskId": "1", "result": {"filled": "#q", "value": "hello"}}
    assert results[1] == {"type": "result", "taskId": "2", "error": "document.title is not defined"}
    assert asyncio.run(box.value()) == "hello"
