"""
Page bridge entry point.

Attaches to a Chrome tab over CDP, then keeps a socket to the control server
open and runs the tasks it pushes against that tab.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import sys

from .cdp_page import CdpPage
from .config import BridgeConfig
from .connection import ConnectionManager
from .errors import BridgeError, CdpError
from .executor import TaskExecutor
from .handlers import create_default_registry
from .session_cdp import CdpConnection, discover_page_target

logger = logging.getLogger("page_bridge")

__all__ = ["main", "run_bridge"]


async def run_bridge(config: BridgeConfig) -> None:
    target = await asyncio.to_thread(discover_page_target, config.cdp_host, config.cdp_port, config.target_url)
    logger.info("cdp_target id=%s url=%s", target.get("id"), target.get("url"))
    cdp = await CdpConnection.open(target["webSocketDebuggerUrl"], timeout=config.cdp_timeout)
    try:
        page = CdpPage(cdp)
        await page.attach()
        executor = TaskExecutor(page, create_default_registry(), config)
        manager = ConnectionManager(page, executor, config=config)

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(sig, lambda: loop.create_task(manager.stop()))

        runner = loop.create_task(manager.run_forever())
        cdp_gone = loop.create_task(cdp.wait_closed())
        try:
            await asyncio.wait({runner, cdp_gone}, return_when=asyncio.FIRST_COMPLETED)
            if cdp_gone.done() and not runner.done():
                logger.error("cdp_lost url=%s; stopping bridge", target.get("url"))
                await manager.stop()
                await runner
                raise CdpError("CDP connection closed")
            await runner
        finally:
            cdp_gone.cancel()
            if not runner.done():
                runner.cancel()
    finally:
        await cdp.close()


def main() -> None:
    """Main entry point for the page bridge."""
    config = BridgeConfig.from_env()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )
    try:
        asyncio.run(run_bridge(config))
    except KeyboardInterrupt:
        pass
    except BridgeError as exc:
        logger.error("bridge_start_failed: %s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
