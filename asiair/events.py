"""Framing of the command port and decoding of the events the device pushes."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, List, Mapping, Optional, Tuple

from .models import (
    AnnotateEvent,
    ASIAirPage,
    ExposureEvent,
    ExposureState,
    PiStatusEvent,
    PlateSolveEvent,
)

FRAME_TERMINATOR = b"\r\n"


class EventKind(str, Enum):
    """Name carried in the ``Event`` field of an unsolicited message."""

    TEMPERATURE = "Temperature"
    COOLER_POWER = "CoolerPower"
    CAMERA_CONTROL_CHANGE = "CameraControlChange"
    CAMERA_STATE_CHANGE = "CameraStateChange"
    EXPOSURE = "Exposure"
    PI_STATUS = "PiStatus"
    ANNOTATE = "Annotate"
    PLATE_SOLVE = "PlateSolve"


class FrameBuffer:
    """Collects received bytes and splits them into CRLF-terminated frames."""

    def __init__(self) -> None:
        self._pending = bytearray()

    def feed(self, data: bytes) -> List[bytes]:
        """Add received bytes and return every frame now complete, without its terminator."""
        self._pending.extend(data)
        frames: List[bytes] = []
        while True:
            end = self._pending.find(FRAME_TERMINATOR)
            if end < 0:
                return frames
            frames.append(bytes(self._pending[:end]))
            del self._pending[: end + len(FRAME_TERMINATOR)]

    @property
    def pending(self) -> bytes:
        """Bytes received that do not yet form a complete frame."""
        return bytes(self._pending)


def encode_request(request_id: int, method: str, params: Optional[Any] = None) -> bytes:
    """Encode a request as a compact JSON line; params is left out when None."""
    message: dict = {"id": request_id, "method": method}
    if params is not None:
        message["params"] = params
    return json.dumps(message, separators=(",", ":")).encode("utf-8") + FRAME_TERMINATOR


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_unsigned(value: Any) -> bool:
    return _is_integer(value) and value >= 0


def _page(value: Any) -> Optional[ASIAirPage]:
    if not isinstance(value, str):
        return None
    try:
        return ASIAirPage.parse(value)
    except ValueError:
        return None


def _strings(message: Mapping[str, Any], *keys: str) -> Optional[Tuple[str, ...]]:
    values = tuple(message.get(key) for key in keys)
    if all(isinstance(value, str) for value in values):
        return values
    return None


def _exposure(message: Mapping[str, Any]) -> Optional[ExposureEvent]:
    state = message.get("state")
    if state == ExposureState.START.value:
        exp_us = message.get("exp_us")
        gain = message.get("gain")
        if not (_is_unsigned(exp_us) and _is_unsigned(gain)):
            return None
        page = _page(message.get("page"))
        if page is None:
            return None
        return ExposureEvent(ExposureState.START, page, exp_us, gain)
    if state == ExposureState.COMPLETE.value:
        return ExposureEvent(ExposureState.COMPLETE)
    if state == ExposureState.DOWNLOADING.value:
        return ExposureEvent(ExposureState.DOWNLOADING)
    return None


def _pi_status(message: Mapping[str, Any]) -> Optional[PiStatusEvent]:
    flags = [message.get(key) for key in ("is_overtemp", "is_undervolt", "is_over_current")]
    temp = message.get("temp")
    if not all(isinstance(flag, bool) for flag in flags) or not _is_number(temp):
        return None
    is_overtemp, is_undervolt, is_over_current = flags
    return PiStatusEvent(is_overtemp, float(temp), is_undervolt, is_over_current)


def _job(message: Mapping[str, Any], event_type: type) -> Optional[Any]:
    fields = _strings(message, "page", "tag", "state")
    if fields is None:
        return None
    page = _page(fields[0])
    if page is None:
        return None
    return event_type(page, fields[1], fields[2])


def parse_event(message: Mapping[str, Any]) -> Optional[Tuple[EventKind, Any]]:
    """Decode an unsolicited message into its kind and payload.

    Temperature gives a float, CoolerPower an int, the change notifications
    None, and the other kinds their event objects. Messages that are not
    events, name an unknown event or lack a required field give None.
    """
    name = message.get("Event")
    if not isinstance(name, str):
        return None
    try:
        kind = EventKind(name)
    except ValueError:
        return None

    payload: Any
    if kind is EventKind.TEMPERATURE:
        value = message.get("value")
        if not _is_number(value):
            return None
        payload = float(value)
    elif kind is EventKind.COOLER_POWER:
        value = message.get("value")
        if not _is_integer(value):
            return None
        payload = value
    elif kind in (EventKind.CAMERA_CONTROL_CHANGE, EventKind.CAMERA_STATE_CHANGE):
        return kind, None
    elif kind is EventKind.EXPOSURE:
        payload = _exposure(message)
    elif kind is EventKind.PI_STATUS:
        payload = _pi_status(message)
    elif kind is EventKind.ANNOTATE:
        payload = _job(message, AnnotateEvent)
    else:
        payload = _job(message, PlateSolveEvent)

    if payload is None:
        return None
    return kind, payload