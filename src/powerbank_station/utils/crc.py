"""MODBUS CRC-16 used by the binary board protocol.

Reflected polynomial 0xA001, initial value 0xFFFF, no final XOR. The
checksum is transmitted little-endian after the frame body.
"""

from __future__ import annotations

CRC16_POLY = 0xA001
CRC16_INIT = 0xFFFF


def _build_table() -> list[int]:
    table = []
    for byte in range(256):
        crc = byte
        for _ in range(8):
            if crc & 1:
                crc = (crc >> 1) ^ CRC16_POLY
            else:
                crc >>= 1
        table.append(crc)
    return table


_CRC16_TABLE = _build_table()


def crc16(data: bytes) -> int:
    """Compute the MODBUS CRC-16 of ``data``.

    Returns:
        An integer in the range 0x0000-0xFFFF.
    """
    crc = CRC16_INIT
    for byte in data:
        crc = (crc >> 8) ^ _CRC16_TABLE[(crc ^ byte) & 0xFF]
    return crc
