"""Powerbank record reported by the STATUS command.

Payload layout (after the status byte)::

    +------------+-----------+-------+---------+--------+--------+----------+
    | Serial     | Timestamp | Total | Current | Cutoff | Cycles | PB state |
    | 10 B ASCII | u32 LE    | u16   | u16     | u16    | u16    | u8       |
    +------------+-----------+-------+---------+--------+--------+----------+
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from ..exceptions import InvalidResponse
from ..protocol.constants import (
    MAXIMUM_POWER_LEVEL,
    MINIMUM_POWER_LEVEL,
    SERIAL_NUMBER_LENGTH,
    powerbank_state_name,
)

OFF_SERIAL = 0
OFF_TIMESTAMP = 10
OFF_TOTAL_CHARGE = 14
OFF_CURRENT_CHARGE = 16
OFF_CUTOFF_CHARGE = 18
OFF_CYCLES = 20
OFF_STATUS = 22
STATUS_PAYLOAD_SIZE = 23


def decode_fixed_ascii(data: bytes) -> str:
    """Decode a fixed-width, zero-padded ASCII field."""
    return data.decode("ascii", errors="replace").replace("\x00", "").strip()


def calculate_power_level(current_charge: int, total_charge: int) -> int:
    """Charge as a whole percentage, 0 when the capacity is unknown."""
    if total_charge <= 0:
        return MINIMUM_POWER_LEVEL
    level = int(current_charge * 100 / total_charge)
    return max(MINIMUM_POWER_LEVEL, min(level, MAXIMUM_POWER_LEVEL))


@dataclass
class PowerbankInfo:
    """Metadata and charge state of one powerbank."""

    serial: str
    timestamp: int
    total_charge: int
    current_charge: int
    cutoff_charge: int
    cycles: int
    status: int

    @property
    def power_level(self) -> int:
        return calculate_power_level(self.current_charge, self.total_charge)

    @property
    def state(self) -> str:
        """Name of the powerbank state byte, "unknown" for unlisted codes."""
        return powerbank_state_name(self.status)

    def to_dict(self) -> dict:
        result = asdict(self)
        result["power_level"] = self.power_level
        result["state"] = self.state
        return result

    @classmethod
    def from_bytes(cls, data: bytes) -> PowerbankInfo:
        if len(data) < STATUS_PAYLOAD_SIZE:
            raise InvalidResponse(
                f"Status payload must be {STATUS_PAYLOAD_SIZE} bytes, got {len(data)}"
            )

        def u16(offset: int) -> int:
            return int.from_bytes(data[offset : offset + 2], "little")

        return cls(
            serial=decode_fixed_ascii(data[OFF_SERIAL : OFF_SERIAL + SERIAL_NUMBER_LENGTH]),
            timestamp=int.from_bytes(data[OFF_TIMESTAMP : OFF_TIMESTAMP + 4], "little"),
            total_charge=u16(OFF_TOTAL_CHARGE),
            current_charge=u16(OFF_CURRENT_CHARGE),
            cutoff_charge=u16(OFF_CUTOFF_CHARGE),
            cycles=u16(OFF_CYCLES),
            status=data[OFF_STATUS],
        )
