"""Shared fixtures: an in-memory serial bus with scripted board replies."""

from __future__ import annotations

import asyncio

import pytest

from powerbank_station.config import ASCII_LINK, BINARY_LINK
from powerbank_station.protocol.framing import build_frame, parse_frame
from powerbank_station.transport.session import AsciiSession, BinarySession

FAST_LINK = BINARY_LINK.with_timing(
    response_timeout=0.05,
    quiet_interval=0.005,
    retry_delay=0.0,
    inter_command_delay=0.0,
)

FAST_ASCII_LINK = ASCII_LINK.with_timing(
    response_timeout=0.05,
    retry_delay=0.0,
    inter_command_delay=0.0,
)


class FakeWriter:
    """StreamWriter stand-in that hands every write to a responder.

    Replies are fed to the paired reader on the next loop iteration, the
    way bytes from a real port would arrive after the write.
    """

    def __init__(self, reader: asyncio.StreamReader, respond) -> None:
        self.reader = reader
        self._respond = respond
        self.written: list[bytes] = []
        self.write_times: list[float] = []
        self.fail_writes = 0
        self.closed = False

    def write(self, data: bytes) -> None:
        if self.fail_writes:
            self.fail_writes -= 1
            raise OSError("Input/output error")
        loop = asyncio.get_running_loop()
        self.written.append(bytes(data))
        self.write_times.append(loop.time())
        reply = self._respond(bytes(data))
        if reply:
            loop.call_soon(self.reader.feed_data, reply)

    async def drain(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True

    async def wait_closed(self) -> None:
        pass


class FakeLink:
    """Opener for sessions; ``respond(frame) -> bytes | None`` scripts the device."""

    def __init__(self, respond=None) -> None:
        self.respond = respond or (lambda frame: None)
        self.writers: list[FakeWriter] = []

    async def open(self, port, settings):
        reader = asyncio.StreamReader()
        writer = FakeWriter(reader, self._dispatch)
        self.writers.append(writer)
        return reader, writer

    def _dispatch(self, frame: bytes):
        return self.respond(frame)

    @property
    def writer(self) -> FakeWriter:
        return self.writers[-1]


class FakeBoards(FakeLink):
    """Binary boards keyed by (address, opcode).

    A handler receives the argument bytes and returns ``(status, data)``,
    raw reply bytes, or ``None`` to stay silent.
    """

    def __init__(self) -> None:
        super().__init__()
        self.handlers = {}
        self.requests: list[tuple[int, int, bytes]] = []

    def on(self, address: int, opcode: int, handler) -> None:
        self.handlers[(address, opcode)] = handler

    def answer(self, address: int, opcode: int, status: int = 0, data: bytes = b"") -> None:
        self.on(address, opcode, lambda args: (status, data))

    def sent(self, opcode: int) -> list[tuple[int, bytes]]:
        return [(address, args) for address, op, args in self.requests if op == opcode]

    def _dispatch(self, frame: bytes):
        interior = parse_frame(frame)
        address, opcode, args = interior[0], interior[1], bytes(interior[2:])
        self.requests.append((address, opcode, args))
        handler = self.handlers.get((address, opcode))
        if handler is None:
            return None
        outcome = handler(args)
        if outcome is None or isinstance(outcome, bytes):
            return outcome
        status, data = outcome
        return reply_frame(opcode, status, data)


def reply_frame(opcode: int, status: int = 0, data: bytes = b"") -> bytes:
    return build_frame(bytes([opcode, status]) + data)


def status_payload(
    serial: str = "PB00000001",
    total: int = 10000,
    current: int = 5000,
    cutoff: int = 1000,
    cycles: int = 0,
    state: int = 1,
    timestamp: int = 1700000000,
) -> bytes:
    return (
        serial.encode("ascii").ljust(10, b"\x00")
        + timestamp.to_bytes(4, "little")
        + total.to_bytes(2, "little")
        + current.to_bytes(2, "little")
        + cutoff.to_bytes(2, "little")
        + cycles.to_bytes(2, "little")
        + bytes([state])
    )


@pytest.fixture
def boards():
    return FakeBoards()


@pytest.fixture
async def session(boards):
    session = BinarySession("/dev/ttyFAKE0", FAST_LINK, opener=boards.open)
    await session.connect()
    yield session
    await session.disconnect()


@pytest.fixture
def station_link():
    return FakeLink()


@pytest.fixture
async def ascii_session(station_link):
    session = AsciiSession("/dev/ttyFAKE1", FAST_ASCII_LINK, opener=station_link.open)
    await session.connect()
    yield session
    await session.disconnect()


@pytest.fixture
def make_status_payload():
    return status_payload


@pytest.fixture
def make_reply():
    return reply_frame


@pytest.fixture
def fast_link():
    return FAST_LINK
