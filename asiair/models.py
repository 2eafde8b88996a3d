"""Value types shared by the client: pages, languages, events and binary frames."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum
from typing import Optional

HEADER_SIZE = 80

# Only the first 32 bytes of the header carry data; the rest is padding.
_HEADER_STRUCT = struct.Struct(">IHI5sBHHHIHHH")


class ASIAirPage(str, Enum):
    """Application page of the device."""

    PREVIEW = "preview"
    FOCUS = "focus"
    PA = "pa"
    STACK = "stack"
    AUTOSAVE = "autosave"
    PLAN = "plan"
    RMTP = "rmtp"

    @classmethod
    def parse(cls, text: str) -> "ASIAirPage":
        """Return the page named by ``text``; raise ValueError if unknown."""
        for page in cls:
            if page.value == text:
                return page
        raise ValueError(f"unknown page: {text!r}")


class ASIAirLanguage(str, Enum):
    """User interface language of the device."""

    ENGLISH = "en"


class ExposureState(str, Enum):
    """Phase reported by an exposure event."""

    START = "start"
    DOWNLOADING = "downloading"
    COMPLETE = "complete"


@dataclass(frozen=True)
class ExposureEvent:
    """Exposure progress; page, exposure and gain accompany the start phase."""

    state: ExposureState = ExposureState.COMPLETE
    page: Optional[ASIAirPage] = None
    exp_us: Optional[int] = None
    gain: Optional[int] = None

    def __post_init__(self) -> None:
        if self.state is ExposureState.START:
            if self.page is None or self.exp_us is None or self.gain is None:
                raise ValueError("a start event needs page, exp_us and gain")


@dataclass(frozen=True)
class PiStatusEvent:
    """Health report of the device's computer."""

    is_overtemp: bool = False
    temp: float = 0.0
    is_undervolt: bool = False
    is_over_current: bool = False


@dataclass(frozen=True)
class AnnotateEvent:
    """Progress of an annotation job."""

    page: ASIAirPage = ASIAirPage.PREVIEW
    tag: str = ""
    state: str = ""


@dataclass(frozen=True)
class PlateSolveEvent:
    """Progress of a plate-solve job."""

    page: ASIAirPage = ASIAirPage.PREVIEW
    tag: str = ""
    state: str = ""


@dataclass(frozen=True)
class BinaryResult:
    """Payload of a binary-port reply with the image dimensions."""

    data: bytes
    width: int
    height: int


@dataclass(frozen=True)
class BinaryHeader:
    """The 80-byte big-endian header that precedes each binary-port payload."""

    magic0: int
    magic1: int
    payload_size: int
    unknown1: bytes
    id: int
    width: int
    height: int
    unknown2: int
    unknown3: int
    unknown4: int
    bin: int
    unknown5: int

    @classmethod
    def parse(cls, buf: bytes) -> "BinaryHeader":
        """Decode a header from exactly 80 bytes."""
        if len(buf) != HEADER_SIZE:
            raise ValueError(f"binary header must be {HEADER_SIZE} bytes, got {len(buf)}")
        return cls(*_HEADER_STRUCT.unpack_from(bytes(buf)))