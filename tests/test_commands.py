"""Tests for opcode tables and command builders."""

import pytest

from powerbank_station.exceptions import (
    BoardOutOfRange,
    InvalidArgumentLength,
    SlotOutOfRange,
    UnsupportedCommand,
    ValidationError,
)
from powerbank_station.protocol.ascii_commands import (
    Mnemonic,
    build_ascii_unlock,
    build_query,
    build_unlock_with,
    to_mnemonic,
)
from powerbank_station.protocol.commands import (
    BUILDERS,
    PAYLOAD_LENGTHS,
    Command,
    build_command,
    build_firmware_version,
    build_model,
    build_set_battery_info,
    build_set_charge,
    build_set_led,
    build_set_pdo,
    build_set_powerbank_info,
    build_slots,
    build_status,
    build_unlock,
    encode_command,
)
from powerbank_station.protocol.constants import Opcode
from powerbank_station.protocol.framing import build_frame, parse_frame
from powerbank_station.protocol.nonce import MonotonicNonce
from powerbank_station.protocol.parser import DECODERS


def test_opcode_values():
    """Opcode bytes match the board firmware."""
    assert Opcode.STATUS == 0x01
    assert Opcode.SET_CHARGE == 0x02
    assert Opcode.SLOTS == 0x05
    assert Opcode.UNLOCK == 0x06
    assert Opcode.SET_LED == 0x07
    assert Opcode.SET_POWERBANK_INFO == 0x08
    assert Opcode.SET_BATTERY_INFO == 0x09
    assert Opcode.MODEL == 0x0A
    assert Opcode.FIRMWARE_VERSION == 0x50


def test_tables_cover_every_opcode():
    """Every opcode has a width, a builder and a decoder."""
    for opcode in Opcode:
        assert opcode in PAYLOAD_LENGTHS
        assert opcode in BUILDERS
        assert opcode in DECODERS


def test_payload_widths():
    """Fixed argument widths per opcode."""
    assert PAYLOAD_LENGTHS[Opcode.STATUS] == 1
    assert PAYLOAD_LENGTHS[Opcode.SET_PDO] == 3
    assert PAYLOAD_LENGTHS[Opcode.SET_POWERBANK_INFO] == 17
    assert PAYLOAD_LENGTHS[Opcode.SET_BATTERY_INFO] == 7
    assert PAYLOAD_LENGTHS[Opcode.SLOTS] == 0


def test_encode_command_wrong_length():
    """Argument length must match the opcode exactly."""
    with pytest.raises(InvalidArgumentLength):
        encode_command(Opcode.STATUS, b"")
    with pytest.raises(InvalidArgumentLength):
        encode_command(Opcode.SLOTS, b"\x00")


def test_encode_command_slot_out_of_range():
    """A slot byte above 5 is rejected."""
    with pytest.raises(SlotOutOfRange):
        encode_command(Opcode.UNLOCK, b"\x06")


def test_encode_command_unknown_opcode():
    """Unknown opcodes fail closed."""
    with pytest.raises(UnsupportedCommand):
        encode_command(0x42, b"")


def test_validation_errors_are_value_errors():
    """Callers may catch argument problems as ValueError."""
    with pytest.raises(ValueError):
        build_status(0, 9)


def test_build_status_bytes():
    """Status query body is address, opcode, slot."""
    command = build_status(2, 3)
    assert command == Command(address=2, opcode=Opcode.STATUS, args=b"\x03")
    assert command.to_bytes() == b"\x02\x01\x03"


def test_build_slots_frame():
    """A slots query frames to marker + body + CRC."""
    frame = build_frame(build_slots(0).to_bytes())
    assert parse_frame(frame) == b"\x00\x05"


def test_build_set_charge():
    """Enable flag is the second argument byte."""
    assert build_set_charge(0, 4, True).args == b"\x04\x01"
    assert build_set_charge(0, 4, False).args == b"\x04\x00"


def test_led_slot_is_inverted():
    """LED commands address slot 5 - n on the wire."""
    assert build_set_led(1, 0, True).args == b"\x05\x01"
    assert build_set_led(1, 5, False).args == b"\x00\x00"
    assert build_set_led(1, 2, True).args == b"\x03\x01"


def test_other_slot_commands_not_inverted():
    """Only the LED command uses the inverted slot."""
    assert build_unlock(1, 0).args == b"\x00"
    assert build_status(1, 5).args == b"\x05"


def test_build_set_pdo():
    """Voltage and current selectors follow the slot."""
    assert build_set_pdo(0, 1, 9, 3).args == b"\x01\x09\x03"
    with pytest.raises(ValidationError):
        build_set_pdo(0, 1, 256, 3)


def test_build_set_powerbank_info_layout():
    """Serial is null padded to 10 bytes, then u32 timestamp and u16 cycles."""
    command = build_set_powerbank_info(0, 2, "PB123", 0x01020304, cycles=7)
    assert len(command.args) == 17
    assert command.args[0] == 2
    assert command.args[1:11] == b"PB123\x00\x00\x00\x00\x00"
    assert command.args[11:15] == b"\x04\x03\x02\x01"
    assert command.args[15:17] == b"\x07\x00"


def test_build_set_powerbank_info_rejects_long_serial():
    """Serial numbers longer than 10 characters are rejected."""
    with pytest.raises(ValidationError):
        build_set_powerbank_info(0, 0, "PB1234567890", 0)
    with pytest.raises(ValidationError):
        build_set_powerbank_info(0, 0, "", 0)


def test_build_set_battery_info_defaults():
    """Default capacities are encoded little-endian."""
    command = build_set_battery_info(0, 1)
    assert command.args == (
        b"\x01"
        + (13925).to_bytes(2, "little")
        + (11625).to_bytes(2, "little")
        + (10625).to_bytes(2, "little")
    )


def test_board_commands_take_no_args():
    """Model and firmware queries carry only address and opcode."""
    assert build_model(4).to_bytes() == b"\x04\x0A"
    assert build_firmware_version(3).to_bytes() == b"\x03\x50"


def test_build_command_board_out_of_range():
    """Board addresses above 4 are rejected."""
    with pytest.raises(BoardOutOfRange):
        build_command(5, Opcode.SLOTS)
    with pytest.raises(BoardOutOfRange):
        build_status(-1, 0)


def test_build_query():
    """The station query is fixed text."""
    assert build_query() == "{0@CQ,0,0,0000}"


def test_build_ascii_unlock():
    """Unlock carries the nonce and slot number."""
    assert build_ascii_unlock(3, 1700000000123) == "{0@FB,0,1700000000123,3,0000}"
    with pytest.raises(SlotOutOfRange):
        build_ascii_unlock(0, 1)


def test_build_unlock_with_draws_nonce():
    """Each unlock uses a fresh, increasing nonce."""
    nonce = MonotonicNonce(clock=lambda: 500)
    first, a = build_unlock_with(nonce, 1)
    second, b = build_unlock_with(nonce, 1)
    assert (a, b) == (500, 501)
    assert first != second


def test_to_mnemonic():
    """Known mnemonics resolve, others are unsupported."""
    assert to_mnemonic("ac") is Mnemonic.REPORT
    with pytest.raises(UnsupportedCommand):
        to_mnemonic("ZZ")
