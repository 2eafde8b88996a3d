"""Connection to the device: a JSON command port and a binary image port."""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from typing import Any, Dict, Iterator, List, Optional, Union

from .events import EventKind, FrameBuffer, encode_request, parse_event
from .models import (
    HEADER_SIZE,
    AnnotateEvent,
    ASIAirPage,
    BinaryHeader,
    BinaryResult,
    ExposureEvent,
    PiStatusEvent,
    PlateSolveEvent,
)
from .watch import Watch, WatchReceiver

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_PORT = 4700
DEFAULT_BINARY_PORT = 4800

_WATCHDOG_INTERVAL = 2.0
_WATCHDOG_TIMEOUT = 2.0
_WATCHDOG_BINARY_TIMEOUT = 60.0
_READ_SIZE = 2048
_CONNECTED_REPLY = "server connected!"


class ASIAirError(Exception):
    """A request to the device failed or was answered unexpectedly."""


class NotConnectedError(ASIAirError):
    """The client is not connected to the device."""


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class ASIAirClient:
    """Keeps both device connections alive and routes requests, replies and events.

    Once connected, a watchdog checks the link every two seconds and the
    client reconnects with exponential backoff whenever the link is lost,
    until ``disconnect`` is called.
    """

    def __init__(
        self,
        addr: Any,
        command_port: int = DEFAULT_COMMAND_PORT,
        binary_port: int = DEFAULT_BINARY_PORT,
        cmd_timeout: float = 5.0,
        binary_cmd_timeout: float = 120.0,
    ) -> None:
        self.addr = str(addr)
        self.command_port = command_port
        self.binary_port = binary_port
        self.cmd_timeout = cmd_timeout
        self.binary_cmd_timeout = binary_cmd_timeout

        self._should_be_connected = False
        self._connected = False
        self._command_writer: Optional[asyncio.StreamWriter] = None
        self._binary_writer: Optional[asyncio.StreamWriter] = None
        self._command_ids: Iterator[int] = itertools.count(1)
        self._binary_ids: Iterator[int] = itertools.count(1)
        self._pending: Dict[int, asyncio.Future] = {}
        self._pending_binary: Dict[int, asyncio.Future] = {}
        self._tasks: List[asyncio.Task] = []
        self._reconnect_signal: Optional[asyncio.Queue] = None
        self._reconnect_task: Optional[asyncio.Task] = None

        self._connection_state: Watch[bool] = Watch(False)
        self._camera_temperature: Watch[float] = Watch(0.0)
        self._cooler_power: Watch[int] = Watch(0)
        self._camera_control_change: Watch[None] = Watch(None)
        self._camera_state_change: Watch[None] = Watch(None)
        self._exposure: Watch[ExposureEvent] = Watch(ExposureEvent())
        self._pi_status: Watch[PiStatusEvent] = Watch(PiStatusEvent())
        self._annotate: Watch[AnnotateEvent] = Watch(AnnotateEvent())
        self._plate_solve: Watch[PlateSolveEvent] = Watch(PlateSolveEvent())
        self._event_watches: Dict[EventKind, Watch] = {
            EventKind.TEMPERATURE: self._camera_temperature,
            EventKind.COOLER_POWER: self._cooler_power,
            EventKind.CAMERA_CONTROL_CHANGE: self._camera_control_change,
            EventKind.CAMERA_STATE_CHANGE: self._camera_state_change,
            EventKind.EXPOSURE: self._exposure,
            EventKind.PI_STATUS: self._pi_status,
            EventKind.ANNOTATE: self._annotate,
            EventKind.PLATE_SOLVE: self._plate_solve,
        }

    async def __aenter__(self) -> "ASIAirClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.disconnect()

    # Connection lifecycle

    async def connect(self) -> None:
        """Connect to both ports; raise OSError if the device cannot be reached.

        Does nothing while the client is already meant to be connected, since a
        lost link is then being restored in the background.
        """
        if self._should_be_connected:
            return
        logger.info("Connecting to ASIAir at %s", self.addr)
        signal: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._reconnect_signal = signal
        await self._try_connect()
        self._reconnect_task = asyncio.create_task(self._reconnect_loop(signal))
        self._should_be_connected = True

    async def disconnect(self) -> None:
        """Close both connections and stop reconnecting."""
        if not self._should_be_connected:
            return
        self._should_be_connected = False
        stopped = self._cleanup()
        task, self._reconnect_task = self._reconnect_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            stopped.append(task)
        await asyncio.gather(*stopped, return_exceptions=True)
        logger.info("Disconnected from ASIAir")

    def is_connected(self) -> bool:
        """Whether both connections are currently open."""
        return self._connected

    async def _try_connect(self) -> None:
        command_reader, command_writer = await asyncio.open_connection(
            self.addr, self.command_port
        )
        try:
            binary_reader, binary_writer = await asyncio.open_connection(
                self.addr, self.binary_port
            )
        except BaseException:
            command_writer.close()
            raise

        self._command_writer = command_writer
        self._binary_writer = binary_writer
        self._command_ids = itertools.count(1)
        self._binary_ids = itertools.count(1)
        self._connected = True
        self._connection_state.send(True)
        self._tasks = [
            asyncio.create_task(self._watchdog()),
            asyncio.create_task(self._read_commands(command_reader)),
            asyncio.create_task(self._read_binary(binary_reader)),
        ]

    async def _reconnect_loop(self, signal: asyncio.Queue) -> None:
        while True:
            await signal.get()
            if not self._should_be_connected:
                return
            # Signals already queued came from the link being replaced.
            while not signal.empty():
                signal.get_nowait()
            try:
                await self._reconnect()
            except ASIAirError as exc:
                logger.info("Reconnection failed: %s", exc)

    async def _reconnect(self) -> None:
        self._cleanup()
        retries = 0
        while self._should_be_connected:
            logger.info("Attempting to connect to ASIAir...")
            try:
                await self._try_connect()
            except OSError:
                retries += 1
                logger.warning("Reconnect attempt %d failed", retries)
                await asyncio.sleep(2**retries)
            else:
                logger.info("Reconnected successfully to ASIAir.")
                return
        raise ASIAirError("Aborting reconnections because connection canceled")

    def _cleanup(self) -> List[asyncio.Task]:
        """Stop the connection tasks, fail pending requests and publish the disconnect."""
        logger.debug("Cleaning up previous connections")
        current = asyncio.current_task()
        stopped = [task for task in self._tasks if task is not current]
        for task in stopped:
            task.cancel()
        self._tasks = []

        for writer in (self._command_writer, self._binary_writer):
            if writer is not None:
                writer.close()
        self._command_writer = None
        self._binary_writer = None

        for pending in (self._pending, self._pending_binary):
            for future in pending.values():
                if not future.done():
                    future.set_exception(ASIAirError("Failed to get response"))
            pending.clear()

        self._connected = False
        self._connection_state.send(False)
        return stopped

    def _request_reconnect(self) -> None:
        signal = self._reconnect_signal
        if signal is None:
            return
        try:
            signal.put_nowait(None)
        except asyncio.QueueFull:
            pass

    # Background tasks

    async def _watchdog(self) -> None:
        while True:
            await asyncio.sleep(_WATCHDOG_INTERVAL)
            try:
                await self._command_request("test_connection", None, _WATCHDOG_TIMEOUT)
            except NotConnectedError:
                pass
            except ASIAirError:
                logger.warning("Connection to ASIAir lost or timed out")
                self._request_reconnect()

            try:
                await self._binary_request(
                    "test_connection", None, _WATCHDOG_BINARY_TIMEOUT
                )
            except NotConnectedError:
                pass
            except ASIAirError:
                logger.warning("Connection to ASIAir lost or timed out")
                self._request_reconnect()

    async def _read_commands(self, reader: asyncio.StreamReader) -> None:
        frames = FrameBuffer()
        while True:
            try:
                chunk = await reader.read(_READ_SIZE)
            except (ConnectionError, OSError) as exc:
                logger.error("Read error: %s", exc)
                return
            if not chunk:
                if self._should_be_connected:
                    self._request_reconnect()
                return
            for frame in frames.feed(chunk):
                self._handle_frame(frame)

    def _handle_frame(self, frame: bytes) -> None:
        try:
            message = json.loads(frame)
        except ValueError:
            logger.warning("Failed to parse JSON from frame: %r", frame)
            return
        if not isinstance(message, dict):
            logger.warning("Unexpected response: %r", message)
            return

        if "Event" in message:
            decoded = parse_event(message)
            if decoded is not None:
                kind, payload = decoded
                self._event_watches[kind].send(payload)
        elif "jsonrpc" in message:
            request_id = message.get("id")
            if _is_int(request_id) and request_id >= 0:
                future = self._pending.pop(request_id, None)
                if future is None:
                    logger.warning("No pending response for ID %d: %r", request_id, message)
                elif not future.done():
                    future.set_result(message.get("result"))
        else:
            logger.warning("Unexpected response: %r", message)

    async def _read_binary(self, reader: asyncio.StreamReader) -> None:
        while True:
            try:
                raw_header = await reader.readexactly(HEADER_SIZE)
                header = BinaryHeader.parse(raw_header)
                payload = await reader.readexactly(header.payload_size)
            except (asyncio.IncompleteReadError, ConnectionError, OSError) as exc:
                logger.error("Read error (%d): %s", self.binary_port, exc)
                return

            future = self._pending_binary.pop(header.id, None)
            if future is None:
                logger.warning("No pending response for ID %d: %r", header.id, raw_header)
            elif not future.done():
                future.set_result(BinaryResult(payload, header.width, header.height))

    # Requests

    async def _write(self, writer: asyncio.StreamWriter, data: bytes, port: int) -> None:
        try:
            writer.write(data)
            await writer.drain()
        except (ConnectionError, OSError) as exc:
            logger.error("Write error (%d): %s", port, exc)

    @staticmethod
    async def _await_reply(
        future: asyncio.Future, pending: Dict[int, asyncio.Future], key: int, timeout: float
    ) -> Any:
        try:
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            raise ASIAirError("Failed to get response") from None
        finally:
            if pending.get(key) is future:
                del pending[key]

    async def _command_request(self, method: str, params: Any, timeout: float) -> Any:
        writer = self._command_writer
        if writer is None:
            raise NotConnectedError("Not connected")
        request_id = next(self._command_ids)
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        await self._write(writer, encode_request(request_id, method, params), self.command_port)
        return await self._await_reply(future, self._pending, request_id, timeout)

    async def _binary_request(self, method: str, params: Any, timeout: float) -> BinaryResult:
        writer = self._binary_writer
        if writer is None:
            raise NotConnectedError("Not connected")
        request_id = next(self._binary_ids)
        # The reply header carries only the low byte of the request id.
        key = request_id & 0xFF
        future = asyncio.get_running_loop().create_future()
        self._pending_binary[key] = future
        await self._write(writer, encode_request(request_id, method, params), self.binary_port)
        return await self._await_reply(future, self._pending_binary, key, timeout)

    async def rpc_request_4700(self, method: str, params: Any = None) -> Any:
        """Send a request on the command port and return the reply's result."""
        if not self._should_be_connected:
            raise NotConnectedError("Not connected")
        return await self._command_request(method, params, self.cmd_timeout)

    async def rpc_request_4800(self, method: str, params: Any = None) -> BinaryResult:
        """Send a request on the binary port and return its payload."""
        if not self._should_be_connected:
            raise NotConnectedError("Not connected")
        return await self._binary_request(method, params, self.binary_cmd_timeout)

    async def test_connection(self) -> None:
        """Check that the device answers; raise ASIAirError otherwise."""
        try:
            result = await self.rpc_request_4700("test_connection")
        except ASIAirError as exc:
            logger.debug("Connection test failed: %s", exc)
            raise
        if result != _CONNECTED_REPLY:
            raise ASIAirError("Connection test failed: unexpected response")

    async def initialize(self) -> None:
        """Bring the device to a known state."""
        if not self._should_be_connected:
            raise NotConnectedError("Not connected")
        await self.set_page(ASIAirPage.PREVIEW)

    async def set_page(self, page: Union[ASIAirPage, str]) -> None:
        """Switch the device to the given application page."""
        if not isinstance(page, ASIAirPage):
            page = ASIAirPage.parse(page)
        try:
            result = await self.rpc_request_4700("set_page", [page.value])
        except ASIAirError as exc:
            logger.debug("set_page failed: %s", exc)
            raise
        if not (_is_int(result) and result == 0):
            raise ASIAirError("unexpected response")

    # Subscriptions

    def subscribe_connection_state(self) -> WatchReceiver[bool]:
        return self._connection_state.subscribe()

    def subscribe_camera_temperature(self) -> WatchReceiver[float]:
        return self._camera_temperature.subscribe()

    def subscribe_camera_state_change(self) -> WatchReceiver[None]:
        return self._camera_state_change.subscribe()

    def subscribe_cooler_power(self) -> WatchReceiver[int]:
        return self._cooler_power.subscribe()

    def subscribe_camera_control_change(self) -> WatchReceiver[None]:
        return self._camera_control_change.subscribe()

    def subscribe_exposure(self) -> WatchReceiver[ExposureEvent]:
        return self._exposure.subscribe()

    def subscribe_pi_status(self) -> WatchReceiver[PiStatusEvent]:
        return self._pi_status.subscribe()

    def subscribe_annotate(self) -> WatchReceiver[AnnotateEvent]:
        return self._annotate.subscribe()

    def subscribe_plate_solve(self) -> WatchReceiver[PlateSolveEvent]:
        return self._plate_solve.subscribe()