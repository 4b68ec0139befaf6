#!/usr/bin/env python3
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

print(
    f"[bridge] endpoint={os.environ.get('PAGE_BRIDGE_ENDPOINT', 'auto')} | "
    f"cdp={os.environ.get('PAGE_BRIDGE_CDP_HOST', '127.0.0.1')}:{os.environ.get('PAGE_BRIDGE_CDP_PORT', '9222')} | "
    f"target={os.environ.get('PAGE_BRIDGE_TARGET_URL', 'first page')} | "
    f"reconnect={os.environ.get('PAGE_BRIDGE_RECONNECT_DELAY', '3')}s",
    file=sys.stderr,
)

from page_bridge.main import main  # noqa: E402

if __name__ == "__main__":
    main()
