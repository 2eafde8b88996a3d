"""High-level device API: camera control and device settings."""

from __future__ import annotations

import io
import logging
import zipfile
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, List, Mapping, Optional, Tuple, Union
from zoneinfo import ZoneInfo

from .connection import ASIAirClient, ASIAirError
from .models import ASIAirLanguage

logger = logging.getLogger(__name__)

_U32_LIMIT = 1 << 32
_U64_LIMIT = 1 << 64
_I64_MIN = -(1 << 63)
_I64_LIMIT = 1 << 63


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _unsigned(value: Any, what: str, limit: int = _U64_LIMIT) -> int:
    if not _is_int(value) or not 0 <= value < limit:
        raise ASIAirError(f"invalid {what}: {value!r}")
    return value


def _signed(value: Any, what: str) -> int:
    if not _is_int(value) or not _I64_MIN <= value < _I64_LIMIT:
        raise ASIAirError(f"invalid {what}: {value!r}")
    return value


def _number(value: Any, what: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ASIAirError(f"invalid {what}: {value!r}")
    return float(value)


def _string(value: Any, what: str) -> str:
    if not isinstance(value, str):
        raise ASIAirError(f"invalid {what}: {value!r}")
    return value


def _flag(value: Any, what: str) -> bool:
    if not isinstance(value, bool):
        raise ASIAirError(f"invalid {what}: {value!r}")
    return value


def _mapping(value: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ASIAirError(f"invalid {what}: expected an object, got {value!r}")
    return value


def _member(result: Any, key: str) -> Any:
    """Look up a key the way a missing JSON member reads as null."""
    if isinstance(result, Mapping):
        return result.get(key)
    return None


@dataclass(frozen=True)
class ConnectedCamera:
    """A camera attached to the device."""

    name: str
    id: int
    path: str
    dslr: bool

    @classmethod
    def from_dict(cls, data: Any) -> "ConnectedCamera":
        """Decode a camera entry; raise ASIAirError if it is malformed."""
        data = _mapping(data, "camera")
        return cls(
            name=_string(data.get("name"), "camera name"),
            id=_unsigned(data.get("id"), "camera id", _U32_LIMIT),
            path=_string(data.get("path"), "camera path"),
            dslr=_flag(data.get("dslr"), "camera dslr flag"),
        )


@dataclass(frozen=True)
class CameraState:
    """State of the main camera: ``close``, or ``idle`` with its name and path."""

    state: str
    name: Optional[str] = None
    path: Optional[str] = None

    CLOSE = "close"
    IDLE = "idle"

    def __post_init__(self) -> None:
        if self.state == self.IDLE:
            if self.name is None or self.path is None:
                raise ValueError("an idle camera state needs name and path")
        elif self.state != self.CLOSE:
            raise ValueError(f"unknown camera state: {self.state!r}")

    @property
    def is_open(self) -> bool:
        return self.state == self.IDLE

    @classmethod
    def from_dict(cls, data: Any) -> "CameraState":
        """Decode a camera state; raise ASIAirError if it is malformed."""
        data = _mapping(data, "camera state")
        state = data.get("state")
        if state == cls.CLOSE:
            return cls(cls.CLOSE)
        if state == cls.IDLE:
            return cls(
                cls.IDLE,
                _string(data.get("name"), "camera name"),
                _string(data.get("path"), "camera path"),
            )
        raise ASIAirError(f"unknown camera state: {state!r}")

    def to_dict(self) -> dict:
        if self.is_open:
            return {"state": self.state, "name": self.name, "path": self.path}
        return {"state": self.state}


@dataclass(frozen=True)
class CameraInfo:
    """Sensor description of the main camera."""

    chip_size: Tuple[int, int]
    bins: List[int]
    pixel_size_um: float
    unity_gain: int
    has_cooler: bool
    is_color: bool
    is_usb3_host: bool
    debayer_pattern: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "CameraInfo":
        """Decode camera information; raise ASIAirError if it is malformed."""
        data = _mapping(data, "camera info")
        chip_size = data.get("chip_size")
        if not isinstance(chip_size, list) or len(chip_size) != 2:
            raise ASIAirError(f"invalid chip size: {chip_size!r}")
        bins = data.get("bins")
        if not isinstance(bins, list):
            raise ASIAirError(f"invalid bins: {bins!r}")
        pattern = data.get("debayer_pattern")
        return cls(
            chip_size=(
                _unsigned(chip_size[0], "chip width", _U32_LIMIT),
                _unsigned(chip_size[1], "chip height", _U32_LIMIT),
            ),
            bins=[_unsigned(b, "bin", _U32_LIMIT) for b in bins],
            pixel_size_um=_number(data.get("pixel_size_um"), "pixel size"),
            unity_gain=_unsigned(data.get("unity_gain"), "unity gain", _U32_LIMIT),
            has_cooler=_flag(data.get("has_cooler"), "cooler flag"),
            is_color=_flag(data.get("is_color"), "color flag"),
            is_usb3_host=_flag(data.get("is_usb3_host"), "USB3 flag"),
            debayer_pattern=None if pattern is None else _string(pattern, "debayer pattern"),
        )


class CameraControl(str, Enum):
    """Names of the camera's adjustable controls."""

    EXPOSURE = "Exposure"
    GAIN = "Gain"
    COOLER_ON = "CoolerOn"
    TEMPERATURE = "Temperature"
    COOL_POWER_PERC = "CoolPowerPerc"
    TARGET_TEMP = "TargetTemp"
    ANTI_DEW_HEATER = "AntiDewHeater"
    LED_ON = "LedOn"
    FAN_HALF_SPEED = "FanHalfSpeed"
    FRAME_SIZE = "FrameSize"
    RED = "Red"
    BLUE = "Blue"
    MONO_BIN = "MonoBin"


def _require_unsigned(value: Any, what: str, limit: int = _U64_LIMIT) -> int:
    if not _is_int(value) or not 0 <= value < limit:
        raise ValueError(f"{what} must be a non-negative integer, got {value!r}")
    return value


class ASIAir(ASIAirClient):
    """Client for the device with camera and settings commands."""

    # Cameras

    async def get_connected_cameras(self) -> List[ConnectedCamera]:
        """List the cameras attached to the device."""
        result = await self.rpc_request_4700("get_connected_cameras")
        if not isinstance(result, list):
            raise ASIAirError(f"invalid camera list: {result!r}")
        return [ConnectedCamera.from_dict(entry) for entry in result]

    async def main_camera_get_state(self) -> CameraState:
        """Return the state of the main camera."""
        result = await self.rpc_request_4700("get_camera_state")
        return CameraState.from_dict(result)

    async def main_camera_set_name(self, camera_name: str) -> None:
        await self.rpc_request_4700("set_app_setting", [{"main_camera_name": camera_name}])

    async def main_camera_get_name(self) -> str:
        result = await self.rpc_request_4700("get_app_setting")
        return _string(_member(result, "main_camera_name"), "main camera name")

    async def guide_camera_set_name(self, camera_name: str) -> None:
        await self.rpc_request_4700("set_app_setting", [{"guide_camera_name": camera_name}])

    async def guide_camera_get_name(self) -> str:
        result = await self.rpc_request_4700("get_app_setting")
        return _string(_member(result, "guide_camera_name"), "guide camera name")

    async def main_camera_open(self, camera_id: int) -> None:
        """Open the camera with the given index as the main camera."""
        _require_unsigned(camera_id, "camera_id", _U32_LIMIT)
        await self.rpc_request_4700("open_camera", [camera_id])

    async def main_camera_close(self) -> None:
        await self.rpc_request_4700("close_camera")

    async def main_camera_start_exposure(self) -> None:
        """Start a light exposure with the current settings."""
        await self.rpc_request_4700("start_exposure", ["light"])

    async def main_camera_get_info(self) -> CameraInfo:
        result = await self.rpc_request_4700("get_camera_info")
        return CameraInfo.from_dict(result)

    # Controls

    async def _get_control(self, control: CameraControl) -> Any:
        result = await self.rpc_request_4700("get_control_value", [control.value, True])
        return _member(result, "value")

    async def _set_control(self, control: CameraControl, value: Union[int, float]) -> None:
        await self.rpc_request_4700("set_control_value", [control.value, value])

    async def _get_switch(self, control: CameraControl) -> bool:
        value = _unsigned(await self._get_control(control), control.value)
        return value == 1

    async def _set_switch(self, control: CameraControl, on: bool) -> None:
        await self._set_control(control, 1 if on else 0)

    async def main_camera_get_exposure(self) -> int:
        """Exposure time in microseconds."""
        return _unsigned(await self._get_control(CameraControl.EXPOSURE), "exposure")

    async def main_camera_set_exposure(self, exposure: int) -> None:
        await self._set_control(CameraControl.EXPOSURE, _require_unsigned(exposure, "exposure"))

    async def main_camera_get_temperature(self) -> int:
        return _signed(await self._get_control(CameraControl.TEMPERATURE), "temperature")

    async def main_camera_get_cooler(self) -> bool:
        return await self._get_switch(CameraControl.COOLER_ON)

    async def main_camera_set_cooler(self, cooler_on: bool) -> None:
        await self._set_switch(CameraControl.COOLER_ON, cooler_on)

    async def main_camera_get_gain(self) -> int:
        return _signed(await self._get_control(CameraControl.GAIN), "gain")

    async def main_camera_set_gain(self, gain: int) -> None:
        if not _is_int(gain):
            raise ValueError(f"gain must be an integer, got {gain!r}")
        await self._set_control(CameraControl.GAIN, gain)

    async def main_camera_get_cooler_percentage(self) -> int:
        return _unsigned(
            await self._get_control(CameraControl.COOL_POWER_PERC), "cooler percentage"
        )

    async def main_camera_get_target_temperature(self) -> float:
        return _number(
            await self._get_control(CameraControl.TARGET_TEMP), "target temperature"
        )

    async def main_camera_set_target_temperature(self, target_temperature: float) -> None:
        await self._set_control(CameraControl.TARGET_TEMP, float(target_temperature))

    async def main_camera_get_anti_dew_heater(self) -> bool:
        return await self._get_switch(CameraControl.ANTI_DEW_HEATER)

    async def main_camera_set_anti_dew_heater(self, anti_dew_heater: bool) -> None:
        await self._set_switch(CameraControl.ANTI_DEW_HEATER, anti_dew_heater)

    async def main_camera_get_red_gain(self) -> int:
        return _unsigned(await self._get_control(CameraControl.RED), "red gain")

    async def main_camera_set_red_gain(self, red_gain: int) -> None:
        await self._set_control(CameraControl.RED, _require_unsigned(red_gain, "red_gain"))

    async def main_camera_get_blue_gain(self) -> int:
        return _unsigned(await self._get_control(CameraControl.BLUE), "blue gain")

    async def main_camera_set_blue_gain(self, blue_gain: int) -> None:
        await self._set_control(CameraControl.BLUE, _require_unsigned(blue_gain, "blue_gain"))

    async def main_camera_get_mono_bin(self) -> bool:
        return await self._get_switch(CameraControl.MONO_BIN)

    async def main_camera_set_mono_bin(self, mono_bin: bool) -> None:
        await self._set_switch(CameraControl.MONO_BIN, mono_bin)

    async def main_camera_get_bin(self) -> int:
        result = await self.rpc_request_4700("get_camera_bin")
        return _unsigned(result, "camera bin", _U32_LIMIT)

    async def main_camera_set_bin(self, bin: int) -> None:
        _require_unsigned(bin, "bin", _U32_LIMIT)
        await self.rpc_request_4700("set_camera_bin", [bin])

    async def main_camera_get_current_img(self) -> Tuple[bytes, int, int]:
        """Fetch the latest image: raw data of the archive's first file, width, height."""
        result = await self.rpc_request_4800("get_current_img")
        try:
            with zipfile.ZipFile(io.BytesIO(result.data)) as archive:
                entries = archive.infolist()
                if not entries:
                    raise ASIAirError("Zip archive is empty")
                data = archive.read(entries[0])
        except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError) as exc:
            raise ASIAirError(f"invalid image archive: {exc}") from exc
        return data, result.width, result.height

    # Settings

    async def _expect_zero(self, method: str, params: Any) -> None:
        try:
            result = await self.rpc_request_4700(method, params)
        except ASIAirError as exc:
            logger.debug("%s failed: %s", method, exc)
            raise
        if not (_is_int(result) and result == 0):
            raise ASIAirError("unexpected response")

    async def set_time(self, date_time: datetime) -> None:
        """Set the device clock; ``date_time`` must carry a named time zone."""
        zone = date_time.tzinfo
        if not isinstance(zone, ZoneInfo):
            raise ValueError("date_time must carry a named time zone")
        params = [
            {
                "time_zone": zone.key,
                "hour": date_time.hour,
                "min": date_time.minute,
                "sec": date_time.second,
                "day": date_time.day,
                "year": date_time.year,
                "mon": date_time.month,
            }
        ]
        await self._expect_zero("pi_set_time", params)

    async def set_language(self, lang: ASIAirLanguage) -> None:
        """Set the user interface language of the device."""
        lang = ASIAirLanguage(lang)
        await self._expect_zero("set_setting", {"lang": lang.value})