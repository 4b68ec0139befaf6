"""Remote-control bridge for a browser page.

Keep this package import light: the CDP transport and the websocket client
are only pulled in by the modules that need them.
"""

from __future__ import annotations

__version__ = "0.1.0"
