"""Wire-level constants shared by the binary and ASCII board protocols."""

from __future__ import annotations

from enum import IntEnum

# Binary frame: <0xEA> <address> <opcode> [args] <crc16 LE>
FRAME_START_BYTE = 0xEA
MIN_FRAME_SIZE = 4  # start + one body byte + crc(2)

# ASCII frame: {<addr>@<CMD>,<field>,...}
FRAME_START_CHAR = "{"
FRAME_END_CHAR = "}"
ADDRESS_SEPARATOR = "@"
FIELD_SEPARATOR = ","
LINE_TERMINATOR = "\r\n"


class Opcode(IntEnum):
    """Binary command identifiers, echoed back as the reply's msgType."""

    STATUS = 0x01
    SET_CHARGE = 0x02
    RESET = 0x03
    SET_PDO = 0x04
    SLOTS = 0x05
    UNLOCK = 0x06
    SET_LED = 0x07
    SET_POWERBANK_INFO = 0x08
    SET_BATTERY_INFO = 0x09
    MODEL = 0x0A
    FIRMWARE_VERSION = 0x50


class Status(IntEnum):
    """Status byte reported by a board after the echoed opcode."""

    OK = 0x00
    TIMEOUT = 0x01
    INVALID_CMD = 0x02
    INVALID_ARGS = 0x03
    INTERNAL = 0x04
    INVALID_RESPONSE = 0x80


STATUS_MESSAGES: dict[int, str] = {
    Status.OK: "Command successful",
    Status.TIMEOUT: "Device timeout - device not responding",
    Status.INVALID_CMD: "Invalid command - command not supported",
    Status.INVALID_ARGS: "Invalid arguments - check command parameters",
    Status.INTERNAL: "Internal device error - device may need reset",
    Status.INVALID_RESPONSE: "Invalid response format from device",
}


def status_message(status: int) -> str:
    """Human-readable text for a board status code."""
    return STATUS_MESSAGES.get(status, f"Unknown error (code: {status})")


# Powerbank status reported in the STATUS payload
PB_STATUS_IDLE = 1
PB_STATUS_PLUGGED_IN = 2
PB_STATUS_CHARGING = 3
PB_STATUS_DISCHARGING = 4
PB_STATUS_CUTOFF = 5

PB_STATUS_NAMES = {
    PB_STATUS_IDLE: "idle",
    PB_STATUS_PLUGGED_IN: "plugged_in",
    PB_STATUS_CHARGING: "charging",
    PB_STATUS_DISCHARGING: "discharging",
    PB_STATUS_CUTOFF: "cutoff",
}


def powerbank_state_name(status: int) -> str:
    return PB_STATUS_NAMES.get(status, "unknown")


# Lock bitmap value of a slot holding a powerbank
SLOT_LOCKED = 0

# Layout limits
SLOTS_PER_BOARD = 6
MAXIMUM_BOARD_ADDRESS = 4
MAXIMUM_SLOT_ADDRESS = SLOTS_PER_BOARD - 1
SLOT_INDEX_MINIMUM = 1
SLOT_INDEX_MAXIMUM = (MAXIMUM_BOARD_ADDRESS + 1) * SLOTS_PER_BOARD
MINIMUM_POWER_LEVEL = 0
MAXIMUM_POWER_LEVEL = 100
MAXIMUM_POWERBANK_TO_CHARGE_PER_BOARD = 1

# Manufacturing metadata field widths
SERIAL_NUMBER_LENGTH = 10
MODEL_NAME_LENGTH = 8

# Battery defaults written by initialize-powerbank (mAh)
DEFAULT_TOTAL_CHARGE = 13925
DEFAULT_CURRENT_CHARGE = 11625
DEFAULT_CUTOFF_CHARGE = 10625
