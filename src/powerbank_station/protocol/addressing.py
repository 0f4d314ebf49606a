"""Flat slot index <-> (board address, slot in board) translation.

Slots are numbered 1-30 across the station, six per board::

    Slots 1-6   -> board 0, slots 0-5
    Slots 7-12  -> board 1, slots 0-5
    ...
    Slots 25-30 -> board 4, slots 0-5

Out-of-range values on either side are rejected before anything is
encoded; the boards are never relied on to reject them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from ..exceptions import BoardOutOfRange, SlotOutOfRange
from .constants import (
    MAXIMUM_BOARD_ADDRESS,
    MAXIMUM_SLOT_ADDRESS,
    SLOT_INDEX_MAXIMUM,
    SLOT_INDEX_MINIMUM,
    SLOTS_PER_BOARD,
    Opcode,
)


@dataclass(frozen=True)
class SlotAddress:
    """Where a flat slot index lives on the bus."""

    board_address: int
    slot_in_board: int
    zero_based_index: int


def check_board_address(board_address: int) -> int:
    if not 0 <= board_address <= MAXIMUM_BOARD_ADDRESS:
        raise BoardOutOfRange(
            f"Board address must be between 0 and {MAXIMUM_BOARD_ADDRESS}, "
            f"got {board_address}"
        )
    return board_address


def check_slot_in_board(slot_in_board: int) -> int:
    if not 0 <= slot_in_board <= MAXIMUM_SLOT_ADDRESS:
        raise SlotOutOfRange(
            f"Slot must be between 0 and {MAXIMUM_SLOT_ADDRESS}, got {slot_in_board}"
        )
    return slot_in_board


def map_slot_to_board(index: int) -> SlotAddress:
    """Map a 1-based flat slot index to its board and local slot.

    Raises:
        SlotOutOfRange: index outside 1-30.
        BoardOutOfRange: the derived board exceeds the maximum address.
    """
    if not SLOT_INDEX_MINIMUM <= index <= SLOT_INDEX_MAXIMUM:
        raise SlotOutOfRange(
            f"Slot index must be between {SLOT_INDEX_MINIMUM} and "
            f"{SLOT_INDEX_MAXIMUM}, got {index}"
        )
    zero_based = index - 1
    board_address, slot_in_board = divmod(zero_based, SLOTS_PER_BOARD)
    check_board_address(board_address)
    return SlotAddress(
        board_address=board_address,
        slot_in_board=slot_in_board,
        zero_based_index=zero_based,
    )


def map_board_to_slot(board_address: int, slot_in_board: int) -> int:
    """Inverse of :func:`map_slot_to_board`."""
    check_board_address(board_address)
    check_slot_in_board(slot_in_board)
    return board_address * SLOTS_PER_BOARD + slot_in_board + 1


# ─── PER-OPERATION SLOT TRANSFORMS ────────────────────────────────────

def identity_slot(slot_in_board: int) -> int:
    return slot_in_board


def inverted_led_slot(slot_in_board: int) -> int:
    """LED strips are wired in reverse: slot 0 is LED 5."""
    return MAXIMUM_SLOT_ADDRESS - check_slot_in_board(slot_in_board)


SLOT_TRANSFORMS: dict[Opcode, Callable[[int], int]] = {
    Opcode.SET_LED: inverted_led_slot,
}


def wire_slot(opcode: Opcode, slot_in_board: int) -> int:
    """Slot byte to encode for ``opcode`` given the physical slot."""
    return SLOT_TRANSFORMS.get(opcode, identity_slot)(slot_in_board)
