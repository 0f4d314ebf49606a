"""Bracket-delimited ASCII frames used by the legacy board family.

Frame layout::

    {<addr>@<CMD>,<field>,<field>,...}\\r\\n

The envelope carries no checksum. Some station reports end with a
4-hex-digit field that looks like one; it is kept as an informational
value by the report parser and never verified.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..exceptions import MalformedEnvelope, ValidationError
from .constants import (
    ADDRESS_SEPARATOR,
    FIELD_SEPARATOR,
    FRAME_END_CHAR,
    FRAME_START_CHAR,
    LINE_TERMINATOR,
)

_START = FRAME_START_CHAR.encode("ascii")
_END = FRAME_END_CHAR.encode("ascii")


@dataclass
class AsciiFrame:
    """A parsed ASCII frame."""

    address: str
    command: str
    fields: list[str] = field(default_factory=list)

    def to_text(self) -> str:
        return build_ascii_frame(self.address, self.command, self.fields)


def build_ascii_frame(address: int | str, command: str, fields=()) -> str:
    """Render ``{addr@CMD,f1,f2,...}`` without the line terminator."""
    if len(command) != 2 or not command.isalpha():
        raise ValidationError(f"Command mnemonic must be two letters, got {command!r}")
    body = FIELD_SEPARATOR.join([command.upper(), *(str(f) for f in fields)])
    return f"{FRAME_START_CHAR}{address}{ADDRESS_SEPARATOR}{body}{FRAME_END_CHAR}"


def encode_ascii_frame(text: str) -> bytes:
    """Bytes to put on the wire for a frame, CR LF terminated."""
    return (text + LINE_TERMINATOR).encode("ascii")


def parse_ascii_frame(text: str | bytes) -> AsciiFrame:
    """Split a ``{addr@CMD,...}`` frame into its parts.

    Raises:
        MalformedEnvelope: missing delimiters, or the ``@`` split does not
            yield exactly an address and a command-and-fields segment.
    """
    if isinstance(text, (bytes, bytearray)):
        text = bytes(text).decode("ascii", errors="replace")
    text = text.strip()

    if not (text.startswith(FRAME_START_CHAR) and text.endswith(FRAME_END_CHAR)):
        raise MalformedEnvelope(f"Frame is not bracket-delimited: {text!r}")

    parts = text[1:-1].split(ADDRESS_SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise MalformedEnvelope(f"Expected <addr>@<CMD>,... in {text!r}")

    address, command_and_fields = parts
    fields = command_and_fields.split(FIELD_SEPARATOR)
    return AsciiFrame(address=address, command=fields[0], fields=fields[1:])


class DelimiterFramer:
    """Extract ``{...}`` frames from an accumulating byte stream.

    Same ``feed``/``poll``/``reset`` shape as
    :class:`~powerbank_station.protocol.framing.SilenceFramer`, but a frame
    is complete as soon as its end delimiter arrives. Bytes ahead of the
    start delimiter (echoes, line noise, CR LF) are discarded.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    @property
    def pending(self) -> int:
        return len(self._buffer)

    def feed(self, data: bytes, now: float = 0.0) -> list[bytes]:
        self._buffer.extend(data)
        frames: list[bytes] = []
        while True:
            start = self._buffer.find(_START)
            if start < 0:
                self._buffer.clear()
                break
            if start > 0:
                del self._buffer[:start]
            end = self._buffer.find(_END, 1)
            if end < 0:
                break
            frames.append(bytes(self._buffer[: end + 1]))
            del self._buffer[: end + 1]
        return frames

    def poll(self, now: float = 0.0) -> list[bytes]:
        return []

    def reset(self) -> None:
        self._buffer.clear()
