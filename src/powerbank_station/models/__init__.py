"""Typed records decoded from board and station replies."""

from .powerbank import PowerbankInfo, calculate_power_level
from .board import SlotsInfo, ModelInfo, FirmwareInfo
from .scan import (
    SlotState,
    SlotError,
    PowerbankSummary,
    SlotInfo,
    SlotErrorInfo,
    ScanResult,
)
from .station import AsciiSlot, StationReport
