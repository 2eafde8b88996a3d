import json

import pytest

from asiair.protocol import ASIAirRequest, ASIAirResponse

STAMP = "2025-05-06T00:00:00Z"


def test_request_with_params():
    raw = json.dumps({"id": 7, "method": "open_camera", "params": [0]})
    request = ASIAirRequest.from_json(raw)
    assert request.id == 7
    assert request.method == "open_camera"
    assert request.params == [0]
    assert request.name is None


def test_request_string_id_and_name_from_bytes():
    raw = json.dumps({"id": "abc", "method": "scan_air", "name": "iphone"}).encode()
    request = ASIAirRequest.from_json(raw)
    assert request.id == "abc"
    assert request.name == "iphone"


def test_request_null_params():
    request = ASIAirRequest.from_json('{"id":1,"method":"test_connection","params":null}')
    assert request.params is None


@pytest.mark.parametrize(
    "raw",
    ['{"method":"test_connection"}', '{"id":1}', '{"id":1,"method":3}', "[1,2]", "not json"],
)
def test_request_malformed(raw):
    with pytest.raises(ValueError):
        ASIAirRequest.from_json(raw)


def test_response_key_order_and_absent_fields():
    response = ASIAirResponse(id=1, code=0, method="test_connection", timestamp=STAMP)
    decoded = json.loads(response.to_json())
    assert list(decoded) == ["id", "code", "jsonrpc", "Timestamp", "method"]
    assert decoded["jsonrpc"] == "2.0"


def test_response_with_result_round_trip():
    response = ASIAirResponse(
        id=42, code=0, method="test_connection", timestamp=STAMP, result="server connected!"
    )
    decoded = json.loads(response.to_json())
    assert decoded["result"] == "server connected!"
    assert decoded["id"] == 42
    assert decoded["Timestamp"] == STAMP


def test_response_with_error():
    response = ASIAirResponse(id=3, code=1, method="x", timestamp=STAMP, error="Unknown method")
    decoded = json.loads(response.to_json())
    assert decoded["error"] == "Unknown method"
    assert decoded["code"] == 1
    assert "result" not in decoded


def test_response_is_compact():
    text = ASIAirResponse(id=1, code=0, method="m", timestamp=STAMP, result=0).to_json()
    assert " " not in text.replace(STAMP, "")


def test_response_code_range():
    with pytest.raises(ValueError):
        ASIAirResponse(id=1, code=256, method="m", timestamp=STAMP)