"""Binary frame builder and parser for the board serial bus.

Frame layout::

    +-------+---------+--------+-------------------+----------+
    | Start | Address | Opcode |       Args        |  CRC16   |
    | 0xEA  | 1 byte  | 1 byte |  0-17 bytes       |  2 bytes |
    +-------+---------+--------+-------------------+----------+

- Start: fixed marker 0xEA, not covered by the checksum
- CRC16: MODBUS CRC-16 over (address + opcode + args), little-endian

Boards answer with the same envelope around ``<msgType> <status> [payload]``.
There is no length prefix; a reply is complete once the line has been
quiet for the inter-byte silence window (see :class:`SilenceFramer`).
"""

from __future__ import annotations

from dataclasses import dataclass

from ..exceptions import BadStartMarker, ChecksumMismatch, TooShort
from ..utils.crc import crc16
from .constants import FRAME_START_BYTE, MIN_FRAME_SIZE, Status


@dataclass
class Response:
    """Interior of a board reply: echoed opcode, status byte and payload."""

    msg_type: int
    status: int
    data: bytes = b""

    @property
    def success(self) -> bool:
        return self.status == Status.OK

    @classmethod
    def from_payload(cls, payload: bytes) -> Response:
        if len(payload) < 2:
            raise TooShort(
                f"Response needs msgType and status bytes, got {payload.hex(' ') or '(empty)'}"
            )
        return cls(msg_type=payload[0], status=payload[1], data=bytes(payload[2:]))

    def __repr__(self) -> str:
        return (
            f"Response(msg_type=0x{self.msg_type:02X}, status=0x{self.status:02X}, "
            f"data={self.data.hex(' ') if self.data else '(empty)'})"
        )


def build_frame(payload: bytes) -> bytes:
    """Wrap address + opcode + args in a start marker and CRC trailer.

    Args:
        payload: Board address followed by the encoded command.

    Returns:
        The frame ready to write to the serial port.
    """
    checksum = crc16(payload).to_bytes(2, "little")
    return bytes([FRAME_START_BYTE]) + bytes(payload) + checksum


def parse_frame(data: bytes) -> bytes:
    """Validate a received frame and return its interior bytes.

    Raises:
        TooShort: fewer than four bytes.
        BadStartMarker: first byte is not 0xEA.
        ChecksumMismatch: the trailing CRC does not cover the interior.
    """
    if len(data) < MIN_FRAME_SIZE:
        raise TooShort(f"Frame too short: {bytes(data).hex(' ') or '(empty)'}")

    if data[0] != FRAME_START_BYTE:
        raise BadStartMarker(f"Invalid start byte 0x{data[0]:02X}")

    payload = bytes(data[1:-2])
    received = int.from_bytes(data[-2:], "little")
    expected = crc16(payload)
    if received != expected:
        raise ChecksumMismatch(expected=expected, received=received)

    return payload


class SilenceFramer:
    """Split a byte stream into frames on inter-byte silence.

    Bytes are accumulated by :meth:`feed`. :meth:`poll` releases them as a
    single frame once no byte has arrived for ``quiet_interval`` seconds,
    so each silence window yields at most one frame. Time is passed in by
    the caller, which keeps the boundary logic independent of any clock.
    """

    def __init__(self, quiet_interval: float) -> None:
        self.quiet_interval = quiet_interval
        self._buffer = bytearray()
        self._last_byte_at: float | None = None

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet released as a frame."""
        return len(self._buffer)

    def feed(self, data: bytes, now: float) -> list[bytes]:
        if data:
            self._buffer.extend(data)
            self._last_byte_at = now
        # Completion is only ever decided by silence, never by content.
        return []

    def poll(self, now: float) -> list[bytes]:
        if not self._buffer or self._last_byte_at is None:
            return []
        if now - self._last_byte_at < self.quiet_interval:
            return []
        frame = bytes(self._buffer)
        self.reset()
        return [frame]

    def reset(self) -> None:
        self._buffer.clear()
        self._last_byte_at = None
