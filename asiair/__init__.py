"""Asyncio client for ASIAir astrophotography controllers."""

__version__ = "0.1.0"

__all__ = [
    "connection",
    "device",
    "events",
    "models",
    "protocol",
    "rtc",
    "watch",
]