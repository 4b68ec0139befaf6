from __future__ import annotations

import os
import urllib.parse
from dataclasses import dataclass

from .errors import BridgeError

ADMIN_PREFIX = "admin."
BRIDGE_PATH = "/bridge"

DEFAULT_RECONNECT_DELAY = 3.0
DEFAULT_WAIT_TIMEOUT_MS = 10_000
DEFAULT_POLL_INTERVAL_MS = 100
DEFAULT_TYPE_DELAY_MS = 20
DEFAULT_NAVIGATE_DELAY_MS = 50


def admin_host(hostname: str) -> str:
    """Return the control-server host for a page host (`admin.` prefix, never doubled)."""
    host = (hostname or "").strip()
    return host if host.startswith(ADMIN_PREFIX) else ADMIN_PREFIX + host


def bridge_endpoint(hostname: str, scheme: str = "wss") -> str:
    return f"{scheme}://{admin_host(hostname)}{BRIDGE_PATH}"


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name) or default)
    except Exception:
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name) or default)
    except Exception:
        return default


@dataclass
class BridgeConfig:
    endpoint: str | None = None
    reconnect_delay: float = DEFAULT_RECONNECT_DELAY
    cdp_host: str = "127.0.0.1"
    cdp_port: int = 9222
    target_url: str | None = None
    cdp_timeout: float = 10.0
    wait_timeout_ms: int = DEFAULT_WAIT_TIMEOUT_MS
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    type_delay_ms: int = DEFAULT_TYPE_DELAY_MS
    navigate_delay_ms: int = DEFAULT_NAVIGATE_DELAY_MS
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> BridgeConfig:
        endpoint = (os.environ.get("PAGE_BRIDGE_ENDPOINT") or "").strip() or None
        target_url = (os.environ.get("PAGE_BRIDGE_TARGET_URL") or "").strip() or None
        return cls(
            endpoint=endpoint,
            reconnect_delay=max(0.0, _env_float("PAGE_BRIDGE_RECONNECT_DELAY", DEFAULT_RECONNECT_DELAY)),
            cdp_host=(os.environ.get("PAGE_BRIDGE_CDP_HOST") or "127.0.0.1").strip() or "127.0.0.1",
            cdp_port=_env_int("PAGE_BRIDGE_CDP_PORT", 9222),
            target_url=target_url,
            cdp_timeout=max(0.5, _env_float("PAGE_BRIDGE_CDP_TIMEOUT", 10.0)),
            wait_timeout_ms=_env_int("PAGE_BRIDGE_WAIT_TIMEOUT_MS", DEFAULT_WAIT_TIMEOUT_MS),
            poll_interval_ms=max(1, _env_int("PAGE_BRIDGE_POLL_INTERVAL_MS", DEFAULT_POLL_INTERVAL_MS)),
            type_delay_ms=_env_int("PAGE_BRIDGE_TYPE_DELAY_MS", DEFAULT_TYPE_DELAY_MS),
            navigate_delay_ms=_env_int("PAGE_BRIDGE_NAVIGATE_DELAY_MS", DEFAULT_NAVIGATE_DELAY_MS),
            log_level=(os.environ.get("PAGE_BRIDGE_LOG_LEVEL") or "INFO").strip().upper() or "INFO",
        )

    def resolve_endpoint(self, page_url: str) -> str:
        """Pick the control endpoint: explicit override, else derived from the page host."""
        if self.endpoint:
            return self.endpoint
        host = urllib.parse.urlsplit(page_url or "").hostname
        if not host:
            raise BridgeError(f"Cannot derive bridge endpoint from page url: {page_url!r}")
        return bridge_endpoint(host)
