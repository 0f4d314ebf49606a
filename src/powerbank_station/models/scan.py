"""Result of a full station scan."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum


class SlotState(str, Enum):
    AVAILABLE = "available"
    EMPTY = "empty"
    UNKNOWN = "unknown"


class SlotError(str, Enum):
    STATUS_COMMAND_FAILED = "status_command_failed"
    SLOTS_COMMAND_FAILED = "slots_command_failed"
    CHARGE_COMMAND_FAILED = "charge_command_failed"
    INVALID_RESPONSE = "invalid_response"
    CONNECTION_ERROR = "connection_error"


@dataclass
class PowerbankSummary:
    id: str
    power_level: int


@dataclass
class SlotInfo:
    """One slot as seen by the scan."""

    index: int
    board_address: int
    slot_index: int
    powerbank: PowerbankSummary | None = None
    is_charging: bool = False
    is_locked: bool = True
    state: SlotState = SlotState.EMPTY
    disabled: bool = False


@dataclass
class SlotErrorInfo:
    """A board or slot the scan could not read.

    Board-level failures use ``index = -1`` and ``slot_index = -1``.
    """

    index: int
    board_address: int
    slot_index: int
    error: SlotError
    message: str = ""


@dataclass
class ScanResult:
    slots: list[SlotInfo] = field(default_factory=list)
    errors: list[SlotErrorInfo] = field(default_factory=list)
    execution_time_ms: int = 0
    timestamp: str = ""

    def charging_slots(self, board_address: int) -> list[SlotInfo]:
        return [
            s for s in self.slots
            if s.board_address == board_address and s.is_charging
        ]

    def to_dict(self) -> dict:
        result = asdict(self)
        for slot in result["slots"]:
            slot["state"] = SlotState(slot["state"]).value
        for error in result["errors"]:
            error["error"] = SlotError(error["error"]).value
        return result
