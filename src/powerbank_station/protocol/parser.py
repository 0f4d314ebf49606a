"""Turn board replies into typed command results."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from ..exceptions import UnsupportedCommand
from ..models.board import FirmwareInfo, ModelInfo, SlotsInfo
from ..models.powerbank import PowerbankInfo
from .constants import Opcode, status_message
from .framing import Response

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of one dispatcher operation.

    ``success`` mirrors a zero status byte. ``payload`` is the decoded
    record for read operations, the raw trailing bytes otherwise.
    """

    success: bool
    status: int
    payload: Any = b""

    @property
    def message(self) -> str:
        return status_message(self.status)

    def to_dict(self) -> dict[str, Any]:
        payload = self.payload
        if hasattr(payload, "to_dict"):
            payload = payload.to_dict()
        elif isinstance(payload, (bytes, bytearray)):
            payload = payload.hex(" ")
        result: dict[str, Any] = {
            "success": self.success,
            "status": self.status,
            "payload": payload,
        }
        if not self.success:
            result["error"] = {"code": self.status, "message": self.message}
        return result


def _raw(data: bytes) -> bytes:
    return bytes(data)


# Payload decoder per opcode. Write-only commands pass their bytes through.
DECODERS: dict[Opcode, Callable[[bytes], Any]] = {
    Opcode.STATUS: PowerbankInfo.from_bytes,
    Opcode.SET_CHARGE: _raw,
    Opcode.RESET: _raw,
    Opcode.SET_PDO: _raw,
    Opcode.SLOTS: SlotsInfo.from_bytes,
    Opcode.UNLOCK: _raw,
    Opcode.SET_LED: _raw,
    Opcode.SET_POWERBANK_INFO: _raw,
    Opcode.SET_BATTERY_INFO: _raw,
    Opcode.MODEL: ModelInfo.from_bytes,
    Opcode.FIRMWARE_VERSION: FirmwareInfo.from_bytes,
}


def decode_payload(opcode: int, data: bytes) -> Any:
    """Decode the bytes after the status byte for ``opcode``.

    Raises:
        UnsupportedCommand: no decoder is registered for ``opcode``.
        InvalidResponse: the payload is too short for its layout.
    """
    try:
        decoder = DECODERS[Opcode(opcode)]
    except (ValueError, KeyError):
        raise UnsupportedCommand(f"No payload layout for opcode 0x{opcode:02X}") from None
    return decoder(data)


def parse_response(opcode: int, response: Response) -> CommandResult:
    """Map a board reply to a :class:`CommandResult`.

    A nonzero status is a normal result with ``success=False`` and the raw
    trailing bytes; only successful replies are decoded.
    """
    if response.msg_type != opcode:
        logger.warning(
            "Reply msgType 0x%02X does not echo opcode 0x%02X", response.msg_type, opcode
        )
    if not response.success:
        return CommandResult(success=False, status=response.status, payload=response.data)
    return CommandResult(
        success=True,
        status=response.status,
        payload=decode_payload(opcode, response.data),
    )
