"""One-request-at-a-time RPC over the half-duplex board bus.

A session owns the open serial stream, a background reader task that
feeds received bytes into a framer, and at most one pending request.
Replies carry no request ID, so they are matched to requests purely by
that single-flight rule:

- a new :meth:`Session.send` rejects the pending request with
  :class:`Superseded` before writing anything;
- :meth:`Session.disconnect` rejects it with :class:`SessionClosed`;
- so does the reader task when the stream hits EOF or a read error;
- frames that arrive with nothing pending are dropped.

Lifecycle::

    CLOSED -> OPENING -> OPEN <-> AWAITING_RESPONSE
      ^                   |
      +-- disconnect, ----+
          EOF, read error

Timeouts and write failures are retried inside :meth:`Session.send` up to
``LinkSettings.max_attempts``. Corrupt frames are not: they surface as
:class:`InvalidResponse` because retrying without resynchronising the
stream risks pairing the next request with a stale reply.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any

from ..config import ASCII_LINK, BINARY_LINK, LinkSettings
from ..exceptions import (
    ConnectFailed,
    FrameError,
    InvalidResponse,
    ResponseTimeout,
    SessionClosed,
    Superseded,
    TransportError,
    WriteFailed,
)
from ..protocol.ascii_framing import (
    AsciiFrame,
    DelimiterFramer,
    encode_ascii_frame,
    parse_ascii_frame,
)
from ..protocol.commands import Command
from ..protocol.framing import Response, SilenceFramer, build_frame, parse_frame
from .serial_link import Opener, open_serial_stream

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 256


class SessionState(Enum):
    CLOSED = "closed"
    OPENING = "opening"
    OPEN = "open"
    AWAITING_RESPONSE = "awaiting_response"


class Session:
    """Serial RPC channel shared by both protocol variants.

    Subclasses provide the framer and the request/reply codec.

    Usage::

        async with BinarySession("/dev/ttyUSB0") as session:
            response = await session.send(build_slots(0))
    """

    default_settings: LinkSettings = BINARY_LINK

    def __init__(
        self,
        port: str,
        settings: LinkSettings | None = None,
        opener: Opener | None = None,
    ) -> None:
        self.port = port
        self.settings = settings or self.default_settings
        self._opener = opener or open_serial_stream
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._read_task: asyncio.Task | None = None
        self._framer = self._make_framer()
        self._state = SessionState.CLOSED
        self._pending: asyncio.Future | None = None
        self._generation = 0
        self._last_exchange: float | None = None

    # ─── codec hooks ──────────────────────────────────────────────────

    def _make_framer(self):
        raise NotImplementedError

    def _encode(self, request: Any) -> bytes:
        raise NotImplementedError

    def _decode(self, frame: bytes) -> Any:
        raise NotImplementedError

    # ─── lifecycle ────────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state in (SessionState.OPEN, SessionState.AWAITING_RESPONSE)

    async def connect(self) -> None:
        """Open the port. Calling it on an open session does nothing."""
        if self._state is not SessionState.CLOSED:
            logger.debug("Port %s already connected", self.port)
            return

        self._state = SessionState.OPENING
        logger.info("Connecting to %s at %d baud", self.port, self.settings.baudrate)
        try:
            self._reader, self._writer = await self._opener(self.port, self.settings)
        except OSError as e:
            self._state = SessionState.CLOSED
            raise ConnectFailed(f"Failed to open {self.port}: {e}") from e

        self._framer.reset()
        self._last_exchange = None
        self._read_task = asyncio.create_task(self._read_loop())
        self._state = SessionState.OPEN
        logger.info("Connected to %s", self.port)

    async def disconnect(self) -> None:
        """Close the port and fail any pending request with SessionClosed."""
        if self._state is SessionState.CLOSED:
            return

        self._state = SessionState.CLOSED
        self._generation += 1
        self._reject_pending(SessionClosed("Session closed while awaiting a response"))

        if self._read_task is not None:
            self._read_task.cancel()
            try:
                await self._read_task
            except asyncio.CancelledError:
                pass
            self._read_task = None

        if self._writer is not None:
            try:
                self._writer.close()
                await self._writer.wait_closed()
            except OSError as e:
                logger.warning("Error closing %s: %s", self.port, e)

        self._reader = None
        self._writer = None
        self._framer.reset()
        self._last_exchange = None
        logger.info("Disconnected from %s", self.port)

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    # ─── requests ─────────────────────────────────────────────────────

    async def send(self, request: Any) -> Any:
        """Write ``request`` and wait for the decoded reply.

        Raises:
            SessionClosed: the session is not open, or closed mid-request.
            Superseded: another send started before this one finished.
            InvalidResponse: a reply arrived but failed validation.
            ResponseTimeout | WriteFailed: the last error once every
                attempt has failed.
        """
        self._ensure_open()
        frame = self._encode(request)
        generation = self._take_channel()
        await self._wait_bus_settle()

        attempts = self.settings.max_attempts
        last_error: TransportError | None = None
        for attempt in range(1, attempts + 1):
            self._check_current(generation)
            try:
                result = await self._exchange(frame)
            except (ResponseTimeout, WriteFailed) as e:
                last_error = e
                logger.warning("Attempt %d/%d failed: %s", attempt, attempts, e)
                if attempt < attempts:
                    await asyncio.sleep(self.settings.retry_delay)
                continue

            if attempt > 1:
                logger.info("Request succeeded on attempt %d", attempt)
            self._last_exchange = asyncio.get_running_loop().time()
            return result

        logger.error("All %d attempts failed. Last error: %s", attempts, last_error)
        raise last_error

    async def send_no_reply(self, request: Any) -> None:
        """Write ``request`` without waiting for a reply.

        Write failures are retried like in :meth:`send`.
        """
        self._ensure_open()
        frame = self._encode(request)
        generation = self._take_channel()
        await self._wait_bus_settle()

        attempts = self.settings.max_attempts
        last_error: WriteFailed | None = None
        for attempt in range(1, attempts + 1):
            self._check_current(generation)
            self._flush_input()
            try:
                await self._write(frame)
            except WriteFailed as e:
                last_error = e
                logger.warning("Attempt %d/%d failed: %s", attempt, attempts, e)
                if attempt < attempts:
                    await asyncio.sleep(self.settings.retry_delay)
                continue
            self._last_exchange = asyncio.get_running_loop().time()
            return

        logger.error("All %d attempts failed. Last error: %s", attempts, last_error)
        raise last_error

    async def _exchange(self, frame: bytes) -> Any:
        loop = asyncio.get_running_loop()
        self._flush_input()

        # Registered before writing so a fast reply cannot find nothing pending.
        future = loop.create_future()
        self._pending = future
        self._state = SessionState.AWAITING_RESPONSE
        try:
            await self._write(frame)
            # The deadline starts once the frame has left the buffer.
            try:
                return await asyncio.wait_for(future, timeout=self.settings.response_timeout)
            except asyncio.TimeoutError:
                raise ResponseTimeout(
                    f"No response within {self.settings.response_timeout:.3f}s"
                ) from None
        finally:
            if self._pending is future:
                self._pending = None
                if self._state is SessionState.AWAITING_RESPONSE:
                    self._state = SessionState.OPEN
            if not future.done():
                future.cancel()
            elif not future.cancelled():
                future.exception()

    async def _write(self, frame: bytes) -> None:
        if self._writer is None:
            raise SessionClosed("Port not connected")
        try:
            self._writer.write(frame)
            await self._writer.drain()
        except OSError as e:
            raise WriteFailed(f"Write to {self.port} failed: {e}") from e
        logger.debug("TX %s", frame.hex(" "))

    def _ensure_open(self) -> None:
        if not self.is_open:
            raise SessionClosed(f"Port {self.port} not connected")

    def _take_channel(self) -> int:
        """Claim the channel for a new request, superseding the current one."""
        self._generation += 1
        self._reject_pending(Superseded("Request superseded by a newer command"))
        return self._generation

    def _check_current(self, generation: int) -> None:
        if not self.is_open:
            raise SessionClosed("Session closed before the request completed")
        if generation != self._generation:
            raise Superseded("Request superseded by a newer command")

    def _reject_pending(self, error: Exception) -> None:
        pending = self._pending
        self._pending = None
        if pending is not None and not pending.done():
            pending.set_exception(error)
        if self._state is SessionState.AWAITING_RESPONSE:
            self._state = SessionState.OPEN

    async def _wait_bus_settle(self) -> None:
        if self._last_exchange is None:
            return
        loop = asyncio.get_running_loop()
        remaining = self._last_exchange + self.settings.inter_command_delay - loop.time()
        if remaining > 0:
            await asyncio.sleep(remaining)

    def _flush_input(self) -> None:
        self._framer.reset()
        transport = getattr(self._writer, "transport", None)
        port = getattr(transport, "serial", None)
        if port is not None:
            port.reset_input_buffer()

    # ─── receive side ─────────────────────────────────────────────────

    async def _read_loop(self) -> None:
        loop = asyncio.get_running_loop()
        quiet = self.settings.quiet_interval
        while True:
            # Only wait on a silence window while a partial frame is buffered.
            timeout = quiet if quiet > 0 and self._framer.pending else None
            try:
                chunk = await asyncio.wait_for(
                    self._reader.read(READ_CHUNK_SIZE), timeout=timeout
                )
            except asyncio.TimeoutError:
                self._deliver(self._framer.poll(loop.time()))
                continue
            except OSError as e:
                logger.error("Read from %s failed: %s", self.port, e)
                self._link_lost(e)
                return

            if not chunk:
                logger.warning("Serial stream %s reached EOF", self.port)
                self._link_lost(None)
                return
            logger.debug("RX %s", chunk.hex(" "))
            self._deliver(self._framer.feed(chunk, loop.time()))

    def _link_lost(self, cause: Exception | None) -> None:
        """Close the session from inside the reader task after the stream died."""
        self._generation += 1
        error = SessionClosed(f"Connection to {self.port} lost")
        error.__cause__ = cause
        self._reject_pending(error)
        self._state = SessionState.CLOSED
        self._read_task = None

        if self._writer is not None:
            try:
                self._writer.close()
            except OSError as e:
                logger.warning("Error closing %s: %s", self.port, e)

        self._reader = None
        self._writer = None
        self._framer.reset()
        self._last_exchange = None
        logger.info("Connection to %s closed; connect() reopens it", self.port)

    def _deliver(self, frames: list[bytes]) -> None:
        for frame in frames:
            pending = self._pending
            if pending is None or pending.done():
                logger.warning("Dropping unsolicited frame: %s", frame.hex(" "))
                continue
            try:
                result = self._decode(frame)
            except FrameError as e:
                logger.debug("Rejected frame %s: %s", frame.hex(" "), e)
                error = InvalidResponse(f"Invalid response frame: {e}")
                error.__cause__ = e
                pending.set_exception(error)
            else:
                pending.set_result(result)


class BinarySession(Session):
    """Session for the CRC-framed binary protocol; replies are :class:`Response`."""

    default_settings = BINARY_LINK

    def _make_framer(self) -> SilenceFramer:
        return SilenceFramer(self.settings.quiet_interval)

    def _encode(self, request: Command) -> bytes:
        return build_frame(request.to_bytes())

    def _decode(self, frame: bytes) -> Response:
        return Response.from_payload(parse_frame(frame))


class AsciiSession(Session):
    """Session for the bracket protocol; requests are frame text."""

    default_settings = ASCII_LINK

    def _make_framer(self) -> DelimiterFramer:
        return DelimiterFramer()

    def _encode(self, request: str) -> bytes:
        return encode_ascii_frame(request)

    def _decode(self, frame: bytes) -> AsciiFrame:
        return parse_ascii_frame(frame)
