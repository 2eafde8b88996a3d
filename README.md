# asiair

An asyncio client for ASIAir astrophotography controllers.

The device listens on two TCP ports:

- **4700** (the command port) takes JSON requests terminated by `\r\n`,
  answers them and pushes events.
- **4800** (the binary port) returns binary results, such as the current
  camera frame as a zip archive. Each result comes behind an 80-byte header.

The client talks to both ports. Once connected, a watchdog sends
`test_connection` on both ports every two seconds. When the link is lost, the
client reconnects with exponential backoff until `disconnect()` is called.
Events the device pushes are published through watch channels you can
subscribe to.

The package uses only the standard library.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Usage

```python
import asyncio
from datetime import datetime
from zoneinfo import ZoneInfo

from asiair.device import ASIAir
from asiair.models import ASIAirLanguage


async def main():
    async with ASIAir("192.168.1.50") as air:
        await air.test_connection()
        await air.initialize()  # switches the device to the preview page
        await air.set_language(ASIAirLanguage.ENGLISH)
        await air.set_time(datetime.now(ZoneInfo("Europe/Berlin")))

        for camera in await air.get_connected_cameras():
            print(camera.id, camera.name)

        await air.main_camera_open(0)
        info = await air.main_camera_get_info()
        print("chip size:", info.chip_size, "bins:", info.bins)

        await air.main_camera_set_exposure(2_000_000)  # microseconds
        await air.main_camera_set_gain(100)
        await air.main_camera_start_exposure()

        data, width, height = await air.main_camera_get_current_img()
        print(f"{width}x{height} frame, {len(data)} bytes")


asyncio.run(main())
```

`ASIAir(addr, command_port=4700, binary_port=4800, cmd_timeout=5.0,
binary_cmd_timeout=120.0)` lets you change the ports and the reply timeouts,
which are in seconds. You can call `connect()` and `disconnect()` directly
instead of using `async with`. `connect()` raises `OSError` when the device
cannot be reached.

### Camera and settings commands

`asiair.device.ASIAir` provides these commands:

- Cameras: `get_connected_cameras()` returns a list of `ConnectedCamera`.
  `main_camera_get_state()` returns a `CameraState`, which is either `close`
  or `idle` with a name and path. The other camera commands are
  `main_camera_open(camera_id)`, `main_camera_close()`,
  `main_camera_get_info()` (returns a `CameraInfo`),
  `main_camera_start_exposure()` and `main_camera_get_current_img()`.
  The last one returns the first file of the image archive together with the
  width and height.
- Camera names: `main_camera_get_name()` / `main_camera_set_name(name)` and
  `guide_camera_get_name()` / `guide_camera_set_name(name)`.
- Controls: get and set pairs for exposure, gain, cooler, target temperature,
  anti-dew heater, red and blue gain, mono bin, and bin. Temperature and
  cooler percentage can only be read.
- Settings: `set_time(date_time)` and `set_language(lang)`. `set_time` needs
  a `datetime` whose time zone is a `zoneinfo.ZoneInfo`.

### Events

Every `subscribe_*` method returns a `WatchReceiver`. Its `changed()`
coroutine waits until a newer value arrives, and `borrow()` returns the
latest value:

```python
receiver = air.subscribe_exposure()
await receiver.changed()
print(receiver.borrow())
```

The channels are:

| Channel | Value |
|---|---|
| connection state | `bool` |
| camera temperature | `float` |
| cooler power | `int` |
| camera state change | `None` |
| camera control change | `None` |
| exposure | `ExposureEvent` |
| Pi status | `PiStatusEvent` |
| annotation | `AnnotateEvent` |
| plate solving | `PlateSolveEvent` |

For the camera state change and camera control change channels, only the
notification matters; the value is always `None`.

### Errors

A request that fails, times out or gets an unexpected answer raises
`ASIAirError`. A request made while the client is not connected raises
`NotConnectedError`, which is a subclass of `ASIAirError`. Arguments that
are out of range, such as a negative exposure, raise `ValueError`.

### Lower-level pieces

- `asiair.connection.ASIAirClient` handles the connections, the watchdog and
  reconnection. It also provides the raw `rpc_request_4700(method, params)`
  and `rpc_request_4800(method, params)` calls, `test_connection()`,
  `initialize()` and `set_page(page)`.
- `asiair.events` contains `FrameBuffer`, which splits the stream at `\r\n`,
  along with `encode_request()` and `parse_event()`.
- `asiair.models` contains `ASIAirPage`, `ASIAirLanguage`, the event types,
  `BinaryResult` and the `BinaryHeader` parser.
- `asiair.watch` contains the `Watch` / `WatchReceiver` broadcast channel.
- `asiair.protocol` contains `ASIAirRequest` and `ASIAirResponse`, the
  request and response messages as the device side sees them.
- `asiair.rtc` contains `RTC`, a clock you set to a local time in a named
  zone, which then keeps running.

## What this package does not do

The package is a client library only. It has no command-line tool. It cannot
discover devices on the network. It has no server or simulator that answers
requests: `ASIAirRequest`, `ASIAirResponse` and `RTC` are building blocks,
and nothing in the package serves them over a socket.