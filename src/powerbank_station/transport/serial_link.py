"""Opening the serial port as an asyncio stream pair.

Uses pyserial-asyncio so the session's reader task and writes share the
event loop instead of a reader thread.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import serial.tools.list_ports
from serial_asyncio import open_serial_connection

from ..config import LinkSettings

logger = logging.getLogger(__name__)

StreamPair = tuple[asyncio.StreamReader, asyncio.StreamWriter]
Opener = Callable[[str, LinkSettings], Awaitable[StreamPair]]


async def open_serial_stream(port: str, settings: LinkSettings) -> StreamPair:
    """Open ``port`` with the framing of ``settings``.

    The port is opened for exclusive access so no second process or
    session can interleave bytes on the same bus.
    """
    logger.debug(
        "Opening %s at %d baud (%d%s%s)",
        port,
        settings.baudrate,
        settings.bytesize,
        settings.parity,
        settings.stopbits,
    )
    return await open_serial_connection(
        url=port,
        baudrate=settings.baudrate,
        bytesize=settings.bytesize,
        parity=settings.parity,
        stopbits=settings.stopbits,
        xonxoff=False,
        rtscts=False,
        exclusive=True,
    )


def list_ports() -> list[str]:
    """Device paths of the serial ports present on this machine."""
    return sorted(port.device for port in serial.tools.list_ports.comports())
