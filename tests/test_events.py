import json

import pytest

from asiair.events import EventKind, FrameBuffer, encode_request, parse_event
from asiair.models import (
    AnnotateEvent,
    ASIAirPage,
    ExposureEvent,
    ExposureState,
    PiStatusEvent,
    PlateSolveEvent,
)


def test_frame_buffer_splits_complete_frames():
    buffer = FrameBuffer()
    frames = buffer.feed(b'{"a":1}\r\n{"b":2}\r\n')
    assert frames == [b'{"a":1}', b'{"b":2}']
    assert buffer.pending == b""


def test_frame_buffer_keeps_partial_frame():
    buffer = FrameBuffer()
    assert buffer.feed(b'{"a":') == []
    assert buffer.pending == b'{"a":'
    assert buffer.feed(b"1}\r") == []
    assert buffer.feed(b"\n") == [b'{"a":1}']
    assert buffer.pending == b""


def test_frame_buffer_byte_by_byte_matches_whole():
    data = b'{"x":1}\r\n{"y":"z"}\r\ntail'
    whole = FrameBuffer()
    expected = whole.feed(data)
    split = FrameBuffer()
    collected = []
    for byte in data:
        collected.extend(split.feed(bytes([byte])))
    assert collected == expected
    assert split.pending == whole.pending == b"tail"


def test_encode_request_without_params():
    assert encode_request(1, "test_connection", None) == b'{"id":1,"method":"test_connection"}\r\n'


def test_encode_request_with_params_round_trip():
    line = encode_request(7, "set_page", ["preview"])
    assert line.endswith(b"\r\n")
    assert json.loads(line) == {"id": 7, "method": "set_page", "params": ["preview"]}


def test_encode_request_through_frame_buffer():
    buffer = FrameBuffer()
    frames = buffer.feed(encode_request(3, "get_camera_info") + encode_request(4, "close_camera"))
    assert [json.loads(frame)["id"] for frame in frames] == [3, 4]


def test_parse_temperature_accepts_integer():
    assert parse_event({"Event": "Temperature", "value": -10}) == (EventKind.TEMPERATURE, -10.0)
    assert parse_event({"Event": "Temperature", "value": 2.5}) == (EventKind.TEMPERATURE, 2.5)


def test_parse_temperature_missing_value():
    assert parse_event({"Event": "Temperature"}) is None
    assert parse_event({"Event": "Temperature", "value": "cold"}) is None


def test_parse_cooler_power_requires_integer():
    assert parse_event({"Event": "CoolerPower", "value": 42}) == (EventKind.COOLER_POWER, 42)
    assert parse_event({"Event": "CoolerPower", "value": 4.5}) is None
    assert parse_event({"Event": "CoolerPower", "value": True}) is None


@pytest.mark.parametrize(
    "name, kind",
    [
        ("CameraControlChange", EventKind.CAMERA_CONTROL_CHANGE),
        ("CameraStateChange", EventKind.CAMERA_STATE_CHANGE),
    ],
)
def test_parse_change_notifications(name, kind):
    message = {"Event": name, "Timestamp": "2025-05-06T00:00:00Z"}
    assert parse_event(message) == (kind, None)


def test_parse_exposure_start():
    message = {
        "Event": "Exposure",
        "Timestamp": "2025-05-06T00:00:00Z",
        "page": "preview",
        "state": "start",
        "exp_us": 1000000,
        "gain": 100,
    }
    assert parse_event(message) == (
        EventKind.EXPOSURE,
        ExposureEvent(ExposureState.START, ASIAirPage.PREVIEW, 1000000, 100),
    )


def test_parse_exposure_start_incomplete_or_bad_page():
    base = {"Event": "Exposure", "state": "start", "page": "preview", "exp_us": 1, "gain": 1}
    assert parse_event({k: v for k, v in base.items() if k != "gain"}) is None
    assert parse_event({**base, "page": "nowhere"}) is None
    assert parse_event({**base, "exp_us": -1}) is None


@pytest.mark.parametrize(
    "state, expected",
    [("downloading", ExposureState.DOWNLOADING), ("complete", ExposureState.COMPLETE)],
)
def test_parse_exposure_phases(state, expected):
    assert parse_event({"Event": "Exposure", "state": state}) == (
        EventKind.EXPOSURE,
        ExposureEvent(expected),
    )


def test_parse_exposure_unknown_state():
    assert parse_event({"Event": "Exposure", "state": "paused"}) is None


def test_parse_pi_status():
    message = {
        "Event": "PiStatus",
        "is_overtemp": False,
        "temp": 51,
        "is_undervolt": True,
        "is_over_current": False,
    }
    assert parse_event(message) == (
        EventKind.PI_STATUS,
        PiStatusEvent(is_overtemp=False, temp=51.0, is_undervolt=True, is_over_current=False),
    )


def test_parse_pi_status_missing_flag():
    message = {"Event": "PiStatus", "is_overtemp": False, "temp": 51, "is_undervolt": True}
    assert parse_event(message) is None


def test_parse_annotate_and_plate_solve():
    fields = {"page": "focus", "tag": "solve", "state": "complete"}
    assert parse_event({"Event": "Annotate", **fields}) == (
        EventKind.ANNOTATE,
        AnnotateEvent(ASIAirPage.FOCUS, "solve", "complete"),
    )
    assert parse_event({"Event": "PlateSolve", **fields}) == (
        EventKind.PLATE_SOLVE,
        PlateSolveEvent(ASIAirPage.FOCUS, "solve", "complete"),
    )


def test_parse_annotate_bad_page_or_missing_tag():
    assert parse_event({"Event": "Annotate", "page": "x", "tag": "t", "state": "s"}) is None
    assert parse_event({"Event": "PlateSolve", "page": "pa", "state": "s"}) is None


def test_parse_non_events():
    assert parse_event({"jsonrpc": "2.0", "id": 1, "result": 0}) is None
    assert parse_event({"Event": "Unknown"}) is None
    assert parse_event({"Event": 5}) is None


@pytest.mark.parametrize(
    "name, kind",
    [
        ("Temperature", EventKind.TEMPERATURE),
        ("CoolerPower", EventKind.COOLER_POWER),
        ("CameraControlChange", EventKind.CAMERA_CONTROL_CHANGE),
        ("CameraStateChange", EventKind.CAMERA_STATE_CHANGE),
        ("Exposure", EventKind.EXPOSURE),
        ("PiStatus", EventKind.PI_STATUS),
        ("Annotate", EventKind.ANNOTATE),
        ("PlateSolve", EventKind.PLATE_SOLVE),
    ],
)
def test_event_kind_values_match_wire_names(name, kind):
    assert EventKind(name) is kind


def test_event_kind_rejects_unknown_name():
    with pytest.raises(ValueError):
        EventKind("Unknown")