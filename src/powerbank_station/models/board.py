"""Board-level replies: slot bitmaps, model and firmware version."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field

from ..exceptions import InvalidResponse
from ..protocol.constants import MODEL_NAME_LENGTH, SLOT_LOCKED, SLOTS_PER_BOARD
from .powerbank import decode_fixed_ascii


@dataclass
class SlotsInfo:
    """Fill and lock state of the six slots of a board, slot 0 first."""

    filled_slots: list[int] = field(default_factory=lambda: [0] * SLOTS_PER_BOARD)
    locked_slots: list[int] = field(default_factory=lambda: [0] * SLOTS_PER_BOARD)

    def is_occupied(self, slot: int) -> bool:
        """A slot holds a powerbank when its lock bit reads locked."""
        return self.locked_slots[slot] == SLOT_LOCKED

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_bytes(cls, data: bytes) -> SlotsInfo:
        if len(data) < 2:
            raise InvalidResponse(f"Slots payload must be 2 bytes, got {len(data)}")
        fill_byte, lock_byte = data[0], data[1]
        return cls(
            filled_slots=[(fill_byte >> i) & 1 for i in range(SLOTS_PER_BOARD)],
            locked_slots=[(lock_byte >> i) & 1 for i in range(SLOTS_PER_BOARD)],
        )


@dataclass
class ModelInfo:
    """Station model name and the number of boards it was built with."""

    model: str
    board_count: int

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_bytes(cls, data: bytes) -> ModelInfo:
        if len(data) < MODEL_NAME_LENGTH + 1:
            raise InvalidResponse(
                f"Model payload must be {MODEL_NAME_LENGTH + 1} bytes, got {len(data)}"
            )
        return cls(
            model=decode_fixed_ascii(data[:MODEL_NAME_LENGTH]),
            board_count=data[MODEL_NAME_LENGTH],
        )


@dataclass
class FirmwareInfo:
    """Board firmware version, one byte per version component."""

    version: str
    raw: bytes = b""

    def to_dict(self) -> dict:
        return {"version": self.version, "raw_hex": self.raw.hex(" ")}

    @classmethod
    def from_bytes(cls, data: bytes) -> FirmwareInfo:
        if not data:
            raise InvalidResponse("Firmware version payload is empty")
        return cls(version=".".join(str(b) for b in data), raw=bytes(data))
