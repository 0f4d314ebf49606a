"""Serial link settings for the two board protocol variants.

The values in :data:`BINARY_LINK` and :data:`ASCII_LINK` are protocol
constants. Sessions accept a :class:`LinkSettings` so that tests can run
the same state machine against shorter timing windows.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace

import serial

PORT_ENV_VAR = "POWERBANK_PORT"


@dataclass(frozen=True)
class LinkSettings:
    """Physical framing and timing of one protocol variant."""

    baudrate: int
    bytesize: int = serial.EIGHTBITS
    parity: str = serial.PARITY_NONE
    stopbits: float = serial.STOPBITS_ONE
    response_timeout: float = 2.0
    quiet_interval: float = 0.005
    max_attempts: int = 5
    retry_delay: float = 0.1
    inter_command_delay: float = 0.05

    def with_timing(self, **changes) -> LinkSettings:
        """Return a copy with some timing fields replaced."""
        return replace(self, **changes)


BINARY_LINK = LinkSettings(
    baudrate=115200,
    stopbits=serial.STOPBITS_ONE,
    response_timeout=2.0,
    quiet_interval=0.005,
)

ASCII_LINK = LinkSettings(
    baudrate=9600,
    stopbits=serial.STOPBITS_TWO,
    response_timeout=10.0,
    quiet_interval=0.0,
)


def default_port() -> str | None:
    """Serial port path from the environment, if set."""
    return os.environ.get(PORT_ENV_VAR) or None
