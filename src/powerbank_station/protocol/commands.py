"""Opcode table and command builders for the binary board protocol.

Every opcode has a fixed argument width. :func:`encode_command` is the
single validation point: it rejects unknown opcodes, wrong widths and
slot bytes beyond the board's last slot before any I/O happens. The
``build_*`` helpers turn typed arguments into a validated
:class:`Command` addressed to one board.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..exceptions import (
    InvalidArgumentLength,
    SlotOutOfRange,
    UnsupportedCommand,
    ValidationError,
)
from .addressing import check_board_address, check_slot_in_board, wire_slot
from .constants import (
    DEFAULT_CURRENT_CHARGE,
    DEFAULT_CUTOFF_CHARGE,
    DEFAULT_TOTAL_CHARGE,
    MAXIMUM_SLOT_ADDRESS,
    SERIAL_NUMBER_LENGTH,
    Opcode,
)

# Fixed argument width (bytes after the opcode) for each opcode
PAYLOAD_LENGTHS: dict[Opcode, int] = {
    Opcode.STATUS: 1,              # slot
    Opcode.SET_CHARGE: 2,          # slot, enable
    Opcode.RESET: 1,               # slot
    Opcode.SET_PDO: 3,             # slot, voltage, current
    Opcode.SLOTS: 0,
    Opcode.UNLOCK: 1,              # slot
    Opcode.SET_LED: 2,             # slot, state
    Opcode.SET_POWERBANK_INFO: 17, # slot, serial(10), timestamp(4), cycles(2)
    Opcode.SET_BATTERY_INFO: 7,    # slot, total(2), current(2), cutoff(2)
    Opcode.MODEL: 0,
    Opcode.FIRMWARE_VERSION: 0,
}

# Opcodes whose first argument byte is a board-local slot
SLOT_OPCODES: frozenset[Opcode] = frozenset(
    op for op, width in PAYLOAD_LENGTHS.items() if width > 0
)


def to_opcode(value: int) -> Opcode:
    """Resolve a raw opcode byte, failing closed on unknown values."""
    try:
        return Opcode(value)
    except ValueError:
        raise UnsupportedCommand(f"Unsupported opcode 0x{value:02X}") from None


def encode_command(opcode: int, args: bytes = b"") -> bytes:
    """Validate ``args`` against ``opcode`` and return opcode + args.

    Raises:
        UnsupportedCommand: opcode not in the table.
        InvalidArgumentLength: ``len(args)`` differs from the fixed width.
        SlotOutOfRange: slot byte above the board's last slot.
    """
    op = to_opcode(opcode)
    expected = PAYLOAD_LENGTHS[op]
    if len(args) != expected:
        raise InvalidArgumentLength(
            f"{op.name} takes {expected} argument bytes, got {len(args)}"
        )
    if op in SLOT_OPCODES and args[0] > MAXIMUM_SLOT_ADDRESS:
        raise SlotOutOfRange(
            f"{op.name} slot must be between 0 and {MAXIMUM_SLOT_ADDRESS}, got {args[0]}"
        )
    return bytes([op]) + bytes(args)


@dataclass(frozen=True)
class Command:
    """One request addressed to a single board."""

    address: int
    opcode: Opcode
    args: bytes = b""

    def to_bytes(self) -> bytes:
        """Address followed by the encoded command (the CRC-covered body)."""
        return bytes([self.address]) + encode_command(self.opcode, self.args)

    def __repr__(self) -> str:
        return (
            f"Command(address={self.address}, opcode={self.opcode.name}, "
            f"args={self.args.hex(' ') if self.args else '(empty)'})"
        )


def _u8(name: str, value: int) -> bytes:
    if not 0 <= value <= 0xFF:
        raise ValidationError(f"{name} must be 0-255, got {value}")
    return bytes([value])


def _uint_le(name: str, value: int, width: int) -> bytes:
    if not 0 <= value < 1 << (8 * width):
        raise ValidationError(f"{name} must fit in {width} bytes, got {value}")
    return value.to_bytes(width, "little")


def _slot_byte(opcode: Opcode, slot: int) -> bytes:
    return bytes([wire_slot(opcode, check_slot_in_board(slot))])


def build_command(address: int, opcode: int, args: bytes = b"") -> Command:
    """Build and validate a raw command for one board."""
    check_board_address(address)
    command = Command(address=address, opcode=to_opcode(opcode), args=bytes(args))
    command.to_bytes()
    return command


def build_status(address: int, slot: int) -> Command:
    """Query the powerbank held in ``slot``."""
    return build_command(address, Opcode.STATUS, _slot_byte(Opcode.STATUS, slot))


def build_set_charge(address: int, slot: int, enabled: bool) -> Command:
    args = _slot_byte(Opcode.SET_CHARGE, slot) + bytes([1 if enabled else 0])
    return build_command(address, Opcode.SET_CHARGE, args)


def build_reset(address: int, slot: int) -> Command:
    return build_command(address, Opcode.RESET, _slot_byte(Opcode.RESET, slot))


def build_set_pdo(address: int, slot: int, voltage: int, current: int) -> Command:
    """Set the USB-PD power profile offered on ``slot``.

    Args:
        voltage: Profile voltage selector (0-255).
        current: Profile current selector (0-255).
    """
    args = _slot_byte(Opcode.SET_PDO, slot) + _u8("voltage", voltage) + _u8("current", current)
    return build_command(address, Opcode.SET_PDO, args)


def build_slots(address: int) -> Command:
    """Query the fill and lock bitmaps of a board."""
    return build_command(address, Opcode.SLOTS)


def build_unlock(address: int, slot: int) -> Command:
    return build_command(address, Opcode.UNLOCK, _slot_byte(Opcode.UNLOCK, slot))


def build_set_led(address: int, slot: int, on: bool) -> Command:
    """Switch the LED of a physical slot.

    The slot byte is inverted on the wire (``5 - slot``).
    """
    args = _slot_byte(Opcode.SET_LED, slot) + bytes([1 if on else 0])
    return build_command(address, Opcode.SET_LED, args)


def build_set_powerbank_info(
    address: int,
    slot: int,
    serial_number: str,
    timestamp: int,
    cycles: int = 0,
) -> Command:
    """Write manufacturing metadata to the powerbank in ``slot``.

    Args:
        serial_number: Up to 10 ASCII characters, zero-padded on the wire.
        timestamp: Manufacturing time, seconds since the epoch (u32).
        cycles: Charge cycle count (u16).
    """
    if not serial_number:
        raise ValidationError("Serial number must not be empty")
    try:
        serial_bytes = serial_number.encode("ascii")
    except UnicodeEncodeError:
        raise ValidationError(f"Serial number must be ASCII, got {serial_number!r}") from None
    if len(serial_bytes) > SERIAL_NUMBER_LENGTH:
        raise ValidationError(
            f"Serial number must be at most {SERIAL_NUMBER_LENGTH} characters, "
            f"got {len(serial_bytes)}"
        )
    args = (
        _slot_byte(Opcode.SET_POWERBANK_INFO, slot)
        + serial_bytes.ljust(SERIAL_NUMBER_LENGTH, b"\x00")
        + _uint_le("timestamp", timestamp, 4)
        + _uint_le("cycles", cycles, 2)
    )
    return build_command(address, Opcode.SET_POWERBANK_INFO, args)


def build_set_battery_info(
    address: int,
    slot: int,
    total_charge: int = DEFAULT_TOTAL_CHARGE,
    current_charge: int = DEFAULT_CURRENT_CHARGE,
    cutoff_charge: int = DEFAULT_CUTOFF_CHARGE,
) -> Command:
    """Write the battery capacity fields (mAh) of the powerbank in ``slot``."""
    args = (
        _slot_byte(Opcode.SET_BATTERY_INFO, slot)
        + _uint_le("total_charge", total_charge, 2)
        + _uint_le("current_charge", current_charge, 2)
        + _uint_le("cutoff_charge", cutoff_charge, 2)
    )
    return build_command(address, Opcode.SET_BATTERY_INFO, args)


def build_model(address: int) -> Command:
    return build_command(address, Opcode.MODEL)


def build_firmware_version(address: int) -> Command:
    return build_command(address, Opcode.FIRMWARE_VERSION)


BUILDERS = {
    Opcode.STATUS: build_status,
    Opcode.SET_CHARGE: build_set_charge,
    Opcode.RESET: build_reset,
    Opcode.SET_PDO: build_set_pdo,
    Opcode.SLOTS: build_slots,
    Opcode.UNLOCK: build_unlock,
    Opcode.SET_LED: build_set_led,
    Opcode.SET_POWERBANK_INFO: build_set_powerbank_info,
    Opcode.SET_BATTERY_INFO: build_set_battery_info,
    Opcode.MODEL: build_model,
    Opcode.FIRMWARE_VERSION: build_firmware_version,
}
