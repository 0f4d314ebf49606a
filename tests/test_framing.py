"""Tests for binary frame building, parsing and silence framing."""

import pytest

from powerbank_station.exceptions import (
    BadStartMarker,
    ChecksumMismatch,
    FrameError,
    TooShort,
)
from powerbank_station.protocol.framing import (
    Response,
    SilenceFramer,
    build_frame,
    parse_frame,
)
from powerbank_station.utils.crc import crc16


def test_build_frame_layout():
    """Start marker, interior, then little-endian CRC over the interior."""
    frame = build_frame(b"\x00\x05")
    assert frame[0] == 0xEA
    assert frame[1:3] == b"\x00\x05"
    assert frame[3:] == crc16(b"\x00\x05").to_bytes(2, "little")


def test_crc_excludes_start_marker():
    """The checksum covers address and opcode only."""
    frame = build_frame(b"\x02\x01\x03")
    assert int.from_bytes(frame[-2:], "little") == crc16(b"\x02\x01\x03")
    assert int.from_bytes(frame[-2:], "little") != crc16(frame[:-2])


def test_parse_frame_round_trip():
    """Parsing a built frame returns the original interior."""
    interior = b"\x01\x00" + bytes(range(23))
    assert parse_frame(build_frame(interior)) == interior


def test_parse_frame_too_short():
    """Fewer than four bytes is TooShort."""
    with pytest.raises(TooShort):
        parse_frame(b"\xEA\x00\x01")
    with pytest.raises(TooShort):
        parse_frame(b"")


def test_parse_frame_bad_start():
    """A wrong first byte is BadStartMarker."""
    frame = bytearray(build_frame(b"\x00\x05"))
    frame[0] = 0xEB
    with pytest.raises(BadStartMarker):
        parse_frame(bytes(frame))


def test_parse_frame_detects_any_bit_flip():
    """Flipping any single interior or CRC bit is a checksum mismatch."""
    frame = build_frame(b"\x03\x07\x02\x01")
    for position in range(1, len(frame)):
        for bit in range(8):
            corrupted = bytearray(frame)
            corrupted[position] ^= 1 << bit
            with pytest.raises(ChecksumMismatch):
                parse_frame(bytes(corrupted))


def test_checksum_mismatch_reports_both_values():
    """The error carries the expected and received CRC."""
    frame = bytearray(build_frame(b"\x00\x05"))
    frame[-1] ^= 0xFF
    with pytest.raises(ChecksumMismatch) as excinfo:
        parse_frame(bytes(frame))
    assert excinfo.value.expected == crc16(b"\x00\x05")
    assert excinfo.value.received == int.from_bytes(frame[-2:], "little")


def test_frame_errors_share_base():
    """All codec failures derive from FrameError."""
    for cls in (TooShort, BadStartMarker, ChecksumMismatch):
        assert issubclass(cls, FrameError)


def test_response_from_payload():
    """msgType, status and trailing data are split out."""
    response = Response.from_payload(b"\x05\x00\x07\x30")
    assert response.msg_type == 0x05
    assert response.status == 0x00
    assert response.data == b"\x07\x30"
    assert response.success


def test_response_nonzero_status():
    """A nonzero status byte is not a success."""
    assert not Response.from_payload(b"\x06\x03").success


def test_response_needs_two_bytes():
    """A one-byte interior cannot hold msgType and status."""
    with pytest.raises(TooShort):
        Response.from_payload(b"\x05")


def test_silence_framer_waits_for_quiet():
    """Bytes are released as one frame only after the quiet interval."""
    framer = SilenceFramer(quiet_interval=5.0)
    assert framer.feed(b"\xEA\x00", now=0.0) == []
    assert framer.poll(3.0) == []
    framer.feed(b"\x05", now=4.0)
    assert framer.poll(8.0) == []
    assert framer.poll(9.0) == [b"\xEA\x00\x05"]
    assert framer.pending == 0


def test_silence_framer_one_frame_per_window():
    """Bytes after a boundary start a new frame."""
    framer = SilenceFramer(quiet_interval=1.0)
    framer.feed(b"\x01\x02", now=0.0)
    assert framer.poll(1.0) == [b"\x01\x02"]
    framer.feed(b"\x03", now=5.0)
    assert framer.poll(6.0) == [b"\x03"]


def test_silence_framer_reset_discards():
    """reset() drops partially received bytes."""
    framer = SilenceFramer(quiet_interval=1.0)
    framer.feed(b"\xEA\x00", now=0.0)
    framer.reset()
    assert framer.pending == 0
    assert framer.poll(10.0) == []
