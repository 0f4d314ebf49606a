"""AC station report returned by the ASCII protocol's CQ query.

Report fields (after the ``AC`` mnemonic)::

    messageId,deviceId,firmwareVersion,slotCount,status1,status2,status3,
    slot1,...,slotN[,checksum]

Each slot field is ``slotNumber:fillStatus:serialOrNULL:powerLevel:status``
where ``status`` is three digits: charging, contact (0 = in contact),
lock (1 = lock engaged).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from ..exceptions import InvalidResponse

HEADER_FIELDS = 7
SLOT_FIELDS = 5
NULL_SERIAL = "NULL"
_CHECKSUM_RE = re.compile(r"^[0-9a-fA-F]{4}$")


def _int(name: str, value: str) -> int:
    try:
        return int(value or "0", 10)
    except ValueError:
        raise InvalidResponse(f"{name} is not a number: {value!r}") from None


@dataclass
class AsciiSlot:
    """One slot entry of an AC report."""

    slot_number: int
    fill_status: int
    serial_number: str | None
    power_level: int
    status: str

    @property
    def charging(self) -> bool:
        return len(self.status) >= 3 and self.status[0] == "1"

    @property
    def in_contact(self) -> bool:
        return len(self.status) >= 3 and self.status[1] == "0"

    @property
    def locked(self) -> bool:
        return len(self.status) >= 3 and self.status[2] == "1"

    @property
    def available(self) -> bool:
        return self.in_contact and self.locked and self.serial_number is not None

    @property
    def outputting(self) -> bool:
        return self.available and not self.charging

    def to_dict(self) -> dict:
        return {
            "slot_number": self.slot_number,
            "powerbank": (
                {"id": self.serial_number, "power_level": self.power_level}
                if self.serial_number is not None
                else None
            ),
            "available": self.available,
            "charging": self.charging,
            "outputting": self.outputting,
            "status": self.status,
        }

    @classmethod
    def from_field(cls, text: str) -> AsciiSlot | None:
        parts = text.split(":")
        if len(parts) < SLOT_FIELDS:
            return None
        serial = parts[2] if parts[2] and parts[2] != NULL_SERIAL else None
        return cls(
            slot_number=_int("slot number", parts[0]),
            fill_status=_int("fill status", parts[1]),
            serial_number=serial,
            power_level=_int("power level", parts[3]),
            status=parts[4],
        )


@dataclass
class StationReport:
    """Decoded AC report."""

    message_id: str
    device_id: str
    firmware_version: str
    slot_count: int
    status1: int
    status2: int
    status3: int
    slots: list[AsciiSlot] = field(default_factory=list)
    checksum: str | None = None

    def to_dict(self) -> dict:
        return {
            "message_id": self.message_id,
            "device_id": self.device_id,
            "firmware_version": self.firmware_version,
            "slot_count": self.slot_count,
            "status1": self.status1,
            "status2": self.status2,
            "status3": self.status3,
            "slots": [s.to_dict() for s in self.slots],
            "checksum": self.checksum,
        }

    @classmethod
    def from_fields(cls, fields: list[str]) -> StationReport:
        fields = [f.strip().strip("\x00") for f in fields]
        if len(fields) < HEADER_FIELDS:
            raise InvalidResponse(
                f"AC report needs {HEADER_FIELDS} header fields, got {len(fields)}"
            )

        body = fields[HEADER_FIELDS:]
        checksum = None
        # Informational only; no algorithm is known to verify it against.
        if body and _CHECKSUM_RE.match(body[-1]):
            checksum = body.pop()

        slots = []
        for text in body:
            if not text:
                continue
            slot = AsciiSlot.from_field(text)
            if slot is not None:
                slots.append(slot)

        return cls(
            message_id=fields[0] or "0",
            device_id=fields[1],
            firmware_version=fields[2],
            slot_count=_int("slot count", fields[3]),
            status1=_int("status1", fields[4]),
            status2=_int("status2", fields[5]),
            status3=_int("status3", fields[6]),
            slots=slots,
            checksum=checksum,
        )
