"""Exception hierarchy for the page bridge.

`str(exc)` is exactly what goes into a result's `error` field, so messages
are kept short and stable.
"""

from __future__ import annotations


class BridgeError(Exception):
    pass


class ProtocolError(BridgeError):
    """Inbound frame could not be decoded into a known message."""


class CdpError(BridgeError):
    """DevTools transport failure (timeout, closed socket, protocol error)."""


class EvaluationError(BridgeError):
    """Code evaluated in the page threw."""


class ActionError(BridgeError):
    """A handler could not complete its action."""


class ElementNotFoundError(ActionError):
    def __init__(self, selector: str) -> None:
        super().__init__(f"Element not found: {selector}")
        self.selector = selector


class WaitTimeoutError(ActionError):
    def __init__(self, selector: str) -> None:
        super().__init__(f"Timeout waiting for: {selector}")
        self.selector = selector


class UnknownActionError(ActionError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown action: {name}")
        self.name = name
