"""
Connection manager: owns the control-server socket for the whole bridge lifetime.

Lifecycle: disconnected -> connecting -> open -> (closed | error) -> disconnected.

- The endpoint is resolved on every attempt: a tab with no usable host just
  waits for the next reconnect.
- On open the bridge says `hello` with the page url.
- A top-level navigation closes the socket; the prompt reconnect says
  `hello` again with the new url.
- `welcome` only records the assigned client id (diagnostics).
- Every close schedules exactly one reconnect after a fixed delay (no delay
  after a navigation); a newer close replaces a pending timer instead of
  adding another.
- Errors are logged; the close that follows drives the reconnect.
- Frames are handled one at a time: a slow task holds back the next frame.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import websockets
from websockets.uri import parse_uri

from .config import BridgeConfig
from .executor import TaskExecutor
from .page import Page
from .protocol import HelloMessage, Message, ResultMessage, TaskMessage, WelcomeMessage, encode_message, parse_message

logger = logging.getLogger("page_bridge.connection")


def _now_ms() -> int:
    return int(time.time() * 1000)


class ConnectionState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    ERROR = "error"


@dataclass
class Connection:
    """Everything mutable about the link; owned by one ConnectionManager."""

    endpoint: str | None = None
    socket: Any | None = None
    state: ConnectionState = ConnectionState.DISCONNECTED
    client_id: Any | None = None
    reconnect_timer: asyncio.TimerHandle | None = None
    socket_task: asyncio.Task | None = None
    attempts: int = 0
    last_error: str | None = None
    connected_at_ms: int | None = None


class ConnectionManager:
    def __init__(
        self,
        page: Page,
        executor: TaskExecutor,
        *,
        endpoint: str | None = None,
        config: BridgeConfig | None = None,
        connect_factory: Callable[[str], Any] | None = None,
    ) -> None:
        self.page = page
        self.executor = executor
        self.config = config or BridgeConfig()
        self.connection = Connection(endpoint=endpoint)
        self._endpoint = endpoint
        self._connect_factory = connect_factory or websockets.connect
        self._stopping = False
        self._stopped = asyncio.Event()
        self._navigated = False
        self._closing_task: asyncio.Task | None = None
        page.on_navigated(self._on_page_navigated)

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    def connect(self) -> None:
        """Open the socket unless one is already open (or opening)."""
        conn = self.connection
        if self._stopping:
            return
        if conn.state in (ConnectionState.OPEN, ConnectionState.CONNECTING):
            return

        try:
            if self._endpoint is not None:
                parse_uri(self._endpoint)
            loop = asyncio.get_running_loop()
            conn.attempts += 1
            conn.state = ConnectionState.CONNECTING
            conn.socket_task = loop.create_task(self._run_socket())
        except Exception as exc:  # noqa: BLE001
            conn.state = ConnectionState.DISCONNECTED
            conn.last_error = str(exc)
            logger.error("bridge_connect_failed endpoint=%s error=%s", conn.endpoint, exc)
            self._schedule_reconnect()

    async def run_forever(self) -> None:
        """Connect and keep reconnecting until `stop()`."""
        self.connect()
        await self._stopped.wait()

    async def stop(self) -> None:
        """Tear down: no more reconnects, close the socket."""
        self._stopping = True
        conn = self.connection
        closing = self._closing_task
        if closing is not None and closing is not asyncio.current_task():
            with contextlib.suppress(Exception):
                await closing
        if conn.reconnect_timer is not None:
            conn.reconnect_timer.cancel()
            conn.reconnect_timer = None
        task = conn.socket_task
        ws = conn.socket
        if ws is not None:
            with contextlib.suppress(Exception):
                await ws.close()
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task
        conn.socket = None
        conn.socket_task = None
        conn.state = ConnectionState.DISCONNECTED
        self._stopped.set()

    async def resolve_endpoint(self) -> str:
        """Fixed endpoint, or one derived from the url the tab shows right now."""
        endpoint = self._endpoint or self.config.resolve_endpoint(await self.page.url())
        parse_uri(endpoint)
        self.connection.endpoint = endpoint
        return endpoint

    def status(self) -> dict[str, Any]:
        conn = self.connection
        return {
            "state": conn.state.value,
            "endpoint": conn.endpoint,
            "attempts": conn.attempts,
            "reconnectPending": conn.reconnect_timer is not None,
            **({"clientId": conn.client_id} if conn.client_id is not None else {}),
            **({"connectedAtMs": conn.connected_at_ms} if conn.connected_at_ms is not None else {}),
            **({"lastError": conn.last_error} if conn.last_error else {}),
        }

    # ─────────────────────────────────────────────────────────────────────────
    # Socket callbacks
    # ─────────────────────────────────────────────────────────────────────────

    async def on_open(self, ws: Any) -> None:
        conn = self.connection
        conn.socket = ws
        conn.state = ConnectionState.OPEN
        conn.connected_at_ms = _now_ms()
        conn.last_error = None
        logger.info("bridge_connected endpoint=%s", conn.endpoint)
        url = await self.page.url()
        await self._send(HelloMessage(url=url))

    async def on_message(self, raw: str | bytes) -> None:
        """Handle one inbound frame. Never raises: bad frames are logged and dropped."""
        try:
            msg = parse_message(raw)
            if isinstance(msg, WelcomeMessage):
                self.connection.client_id = msg.client_id
                logger.info("bridge_welcome client_id=%s", msg.client_id)
                return
            if isinstance(msg, TaskMessage):
                result = await self.executor.execute(msg)
                await self.send_result(result)
                return
            logger.debug("bridge_ignored type=%s", msg.type)
        except Exception:  # noqa: BLE001
            logger.exception("bridge_message_error")

    def on_error(self, exc: BaseException) -> None:
        conn = self.connection
        conn.state = ConnectionState.ERROR
        conn.last_error = str(exc) or exc.__class__.__name__
        logger.error("bridge_error endpoint=%s error=%s", conn.endpoint, conn.last_error)

    def on_close(self) -> None:
        conn = self.connection
        conn.socket = None
        conn.client_id = None
        if self._stopping:
            conn.state = ConnectionState.DISCONNECTED
            return
        conn.state = ConnectionState.CLOSED
        delay = 0.0 if self._navigated else self.config.reconnect_delay
        self._navigated = False
        logger.info("bridge_disconnected reconnect_in=%.1fs", delay)
        self._schedule_reconnect(delay)
        conn.state = ConnectionState.DISCONNECTED

    async def send_result(self, result: ResultMessage) -> None:
        """Send over whatever socket is open now; drop the result if there is none."""
        if self.connection.state is not ConnectionState.OPEN or self.connection.socket is None:
            logger.warning("result_dropped id=%s reason=not_connected", result.task_id)
            return
        try:
            await self._send(result)
        except websockets.ConnectionClosed as exc:
            logger.warning("result_dropped id=%s reason=%s", result.task_id, exc)

    # ─────────────────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────────────────

    async def _run_socket(self) -> None:
        try:
            endpoint = await self.resolve_endpoint()
            async with self._connect_factory(endpoint) as ws:
                await self.on_open(ws)
                async for raw in ws:
                    await self.on_message(raw)
        except asyncio.CancelledError:
            raise
        except websockets.ConnectionClosed as exc:
            logger.info("bridge_closed code=%s", getattr(exc.rcvd, "code", None))
        except Exception as exc:  # noqa: BLE001
            self.on_error(exc)
        finally:
            if self.connection.socket_task is asyncio.current_task():
                self.connection.socket_task = None
            self.on_close()

    def _schedule_reconnect(self, delay: float | None = None) -> None:
        conn = self.connection
        if conn.reconnect_timer is not None:
            conn.reconnect_timer.cancel()
        loop = asyncio.get_running_loop()
        if delay is None:
            delay = self.config.reconnect_delay
        conn.reconnect_timer = loop.call_later(delay, self._reconnect)

    def _on_page_navigated(self, url: str) -> None:
        conn = self.connection
        ws = conn.socket
        if self._stopping:
            return
        if ws is None:
            if conn.reconnect_timer is not None:
                # Waiting out a failed attempt; the new url may resolve now.
                self._schedule_reconnect(0.0)
            return
        logger.info("page_navigated url=%s; reopening bridge socket", url)
        self._navigated = True
        self._closing_task = asyncio.get_running_loop().create_task(self._close_socket(ws))

    async def _close_socket(self, ws: Any) -> None:
        try:
            await ws.close()
        except Exception as exc:  # noqa: BLE001
            logger.warning("bridge_close_failed error=%s", exc)

    def _reconnect(self) -> None:
        self.connection.reconnect_timer = None
        self.connect()

    async def _send(self, msg: Message) -> None:
        ws = self.connection.socket
        if ws is None:
            return
        await ws.send(encode_message(msg))
