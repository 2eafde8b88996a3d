"""Request and response messages of the device's JSON-RPC protocol."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional, Union


@dataclass(frozen=True)
class ASIAirRequest:
    """An incoming request; the id may be a number or a string."""

    id: Any
    method: str
    name: Optional[str] = None
    params: Optional[Any] = None

    @classmethod
    def from_json(cls, data: Union[str, bytes, bytearray]) -> "ASIAirRequest":
        """Decode a request; raise ValueError if it is malformed."""
        try:
            message = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ValueError(f"invalid JSON: {exc}") from exc
        if not isinstance(message, dict):
            raise ValueError("request must be a JSON object")
        if "id" not in message:
            raise ValueError("missing field `id`")
        method = message.get("method")
        if not isinstance(method, str):
            raise ValueError("field `method` must be a string")
        name = message.get("name")
        if name is not None and not isinstance(name, str):
            raise ValueError("field `name` must be a string")
        return cls(message["id"], method, name, message.get("params"))


@dataclass(frozen=True)
class ASIAirResponse:
    """An outgoing response; error and result are left out when absent."""

    id: Any
    code: int
    method: str
    timestamp: str
    jsonrpc: str = "2.0"
    error: Optional[str] = None
    result: Optional[Any] = None

    def __post_init__(self) -> None:
        if not 0 <= self.code <= 255:
            raise ValueError("code must fit in one byte")

    def to_json(self) -> str:
        """Encode the response as compact JSON."""
        message = {
            "id": self.id,
            "code": self.code,
            "jsonrpc": self.jsonrpc,
            "Timestamp": self.timestamp,
            "method": self.method,
        }
        if self.error is not None:
            message["error"] = self.error
        if self.result is not None:
            message["result"] = self.result
        return json.dumps(message, separators=(",", ":"))