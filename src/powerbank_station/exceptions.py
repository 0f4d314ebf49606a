"""Exception hierarchy for the station protocol engine.

Three families let callers tell apart invalid arguments
(:class:`ValidationError`), a corrupted or unexpected reply
(:class:`FrameError` / :class:`InvalidResponse`) and an unreliable link
(:class:`TransportError`). A board that answers with a nonzero status is
not an error here; it comes back as a failed ``CommandResult``.
"""

from __future__ import annotations


class StationError(Exception):
    """Base class for all errors raised by this package."""


# ─── VALIDATION ───────────────────────────────────────────────────────

class ValidationError(StationError, ValueError):
    """Argument shape or range rejected before any byte is sent."""


class InvalidArgumentLength(ValidationError):
    """Argument payload does not match the opcode's fixed width."""


class SlotOutOfRange(ValidationError):
    """Slot index outside the board-local or flat range."""


class BoardOutOfRange(ValidationError):
    """Board address above the configured maximum."""


class UnsupportedCommand(ValidationError):
    """Opcode or mnemonic with no encoder or decoder."""


# ─── FRAMING ──────────────────────────────────────────────────────────

class FrameError(StationError):
    """A wire frame could not be parsed."""


class TooShort(FrameError):
    """Fewer bytes than the smallest valid frame."""


class BadStartMarker(FrameError):
    """First byte is not the protocol start marker."""


class ChecksumMismatch(FrameError):
    """Trailing CRC does not match the frame body."""

    def __init__(self, expected: int, received: int) -> None:
        super().__init__(
            f"CRC mismatch: received 0x{received:04X}, "
            f"calculated 0x{expected:04X}"
        )
        self.expected = expected
        self.received = received


class MalformedEnvelope(FrameError):
    """ASCII frame is missing its delimiters or address separator."""


class InvalidResponse(StationError):
    """A reply arrived but failed validation or decoding."""


# ─── TRANSPORT ────────────────────────────────────────────────────────

class TransportError(StationError):
    """The serial link failed to carry a request."""


class ConnectFailed(TransportError):
    """The serial port could not be opened."""


class WriteFailed(TransportError):
    """Writing a frame to the port failed."""


class ResponseTimeout(TransportError):
    """No complete frame arrived before the response deadline."""


class SessionClosed(TransportError):
    """The session is closed, or was closed while a request was pending."""


class Superseded(TransportError):
    """A newer request replaced this one before it was answered."""


__all__ = [
    "StationError",
    "ValidationError",
    "InvalidArgumentLength",
    "SlotOutOfRange",
    "BoardOutOfRange",
    "UnsupportedCommand",
    "FrameError",
    "TooShort",
    "BadStartMarker",
    "ChecksumMismatch",
    "MalformedEnvelope",
    "InvalidResponse",
    "TransportError",
    "ConnectFailed",
    "WriteFailed",
    "ResponseTimeout",
    "SessionClosed",
    "Superseded",
]
