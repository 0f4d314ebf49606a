"""Command builders for the ASCII bracket protocol."""

from __future__ import annotations

from enum import Enum

from ..exceptions import SlotOutOfRange, UnsupportedCommand
from .ascii_framing import build_ascii_frame
from .constants import SLOT_INDEX_MAXIMUM
from .nonce import MonotonicNonce


class Mnemonic(str, Enum):
    """Two-letter command codes."""

    QUERY = "CQ"
    UNLOCK = "FB"
    REPORT = "AC"


def to_mnemonic(value: str) -> Mnemonic:
    try:
        return Mnemonic(value.upper())
    except ValueError:
        raise UnsupportedCommand(f"Unsupported ASCII command {value!r}") from None


def build_query(address: int = 0) -> str:
    """Station status query, answered with an AC report.

    Always ``{<addr>@CQ,0,0,0000}``.
    """
    return build_ascii_frame(address, Mnemonic.QUERY.value, ["0", "0", "0000"])


def build_ascii_unlock(slot: int, nonce: int, address: int = 0) -> str:
    """Unlock request ``{<addr>@FB,0,<nonce>,<slot>,0000}``.

    Args:
        slot: Slot number as printed on the station (1-30).
        nonce: Strictly increasing value, see :class:`MonotonicNonce`.
    """
    if not 1 <= slot <= SLOT_INDEX_MAXIMUM:
        raise SlotOutOfRange(f"Slot must be between 1 and {SLOT_INDEX_MAXIMUM}, got {slot}")
    return build_ascii_frame(address, Mnemonic.UNLOCK.value, ["0", nonce, slot, "0000"])


def build_unlock_with(nonce: MonotonicNonce, slot: int, address: int = 0) -> tuple[str, int]:
    """Draw a fresh nonce and build the unlock frame with it."""
    value = nonce.next()
    return build_ascii_unlock(slot, value, address), value
