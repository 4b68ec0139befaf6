"""
Wire protocol between the bridge and the control server.

JSON text frames, one message per frame:

- hello    (bridge -> server): {"type": "hello", "url": ...}
- welcome  (server -> bridge): {"type": "welcome", "clientId": ...}
- task     (server -> bridge): {"type": "task", "taskId": ..., "action": {"type": ..., ...} | "code": ...}
- result   (bridge -> server): {"type": "result", "taskId": ..., "result"?: ..., "error"?: ...}

`taskId` and `clientId` are opaque and echoed back untouched.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Union

from .errors import ProtocolError


class _Absent:
    """Marker for "no value" (distinct from JSON null)."""

    _instance: _Absent | None = None

    def __new__(cls) -> _Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT: Any = _Absent()


@dataclass(frozen=True)
class TaskAction:
    type: str
    params: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.params.get(key, default)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> TaskAction:
        name = raw.get("type")
        params = {k: v for k, v in raw.items() if k != "type"}
        return cls(type=name if isinstance(name, str) else "", params=params)


@dataclass(frozen=True)
class HelloMessage:
    url: str
    type: str = field(default="hello", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "url": self.url}


@dataclass(frozen=True)
class WelcomeMessage:
    client_id: Any
    type: str = field(default="welcome", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "clientId": self.client_id}


@dataclass(frozen=True)
class TaskMessage:
    task_id: Any
    action: TaskAction | None = None
    code: str | None = None
    type: str = field(default="task", init=False)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type, "taskId": self.task_id}
        if self.action is not None:
            out["action"] = {"type": self.action.type, **self.action.params}
        if self.code is not None:
            out["code"] = self.code
        return out


@dataclass(frozen=True)
class ResultMessage:
    task_id: Any
    result: Any = ABSENT
    error: str | None = None
    type: str = field(default="result", init=False)

    def to_dict(self) -> dict[str, Any]:
        # Absent members are dropped, the same way a JSON encoder drops `undefined`.
        out: dict[str, Any] = {"type": self.type, "taskId": self.task_id}
        if self.result is not ABSENT:
            out["result"] = self.result
        if self.error is not None:
            out["error"] = self.error
        return out


Message = Union[HelloMessage, WelcomeMessage, TaskMessage, ResultMessage]


def _parse_task(data: dict[str, Any]) -> TaskMessage:
    if "taskId" not in data or data.get("taskId") is None:
        raise ProtocolError("task message without taskId")
    raw_action = data.get("action")
    action = TaskAction.from_dict(raw_action) if isinstance(raw_action, dict) and raw_action else None
    code = data.get("code")
    return TaskMessage(
        task_id=data["taskId"],
        action=action,
        code=code if isinstance(code, str) and code else None,
    )


def _parse_result(data: dict[str, Any]) -> ResultMessage:
    error = data.get("error")
    return ResultMessage(
        task_id=data.get("taskId"),
        result=data["result"] if "result" in data else ABSENT,
        error=str(error) if error is not None else None,
    )


def parse_message(raw: str | bytes) -> Message:
    """Decode one inbound frame. Raises ProtocolError for anything unusable."""
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ProtocolError(f"frame is not valid UTF-8: {exc}") from exc
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise ProtocolError(f"malformed JSON frame: {exc}") from exc
    if not isinstance(data, dict):
        raise ProtocolError("frame is not a JSON object")

    mtype = data.get("type")
    if mtype == "task":
        return _parse_task(data)
    if mtype == "welcome":
        return WelcomeMessage(client_id=data.get("clientId"))
    if mtype == "hello":
        url = data.get("url")
        return HelloMessage(url=url if isinstance(url, str) else "")
    if mtype == "result":
        return _parse_result(data)
    raise ProtocolError(f"unknown message type: {mtype!r}")


def encode_message(msg: Message) -> str:
    return json.dumps(msg.to_dict(), ensure_ascii=False, default=str)
