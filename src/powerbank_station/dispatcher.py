"""Typed station operations on top of a transport session.

:class:`Dispatcher` drives the binary board family, :class:`AsciiDispatcher`
the legacy bracket-protocol stations. Each operation validates and
addresses its arguments, sends one request and returns a
:class:`~powerbank_station.protocol.parser.CommandResult`. A board that
answers with a nonzero status yields ``success=False``; only link and
framing problems raise.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

from .exceptions import InvalidResponse, StationError
from .models.board import SlotsInfo
from .models.powerbank import PowerbankInfo
from .models.scan import (
    PowerbankSummary,
    ScanResult,
    SlotError,
    SlotErrorInfo,
    SlotInfo,
    SlotState,
)
from .models.station import StationReport
from .protocol.addressing import check_board_address, map_board_to_slot, map_slot_to_board
from .protocol.ascii_commands import Mnemonic, build_query, build_unlock_with
from .protocol.commands import (
    Command,
    build_firmware_version,
    build_model,
    build_reset,
    build_set_battery_info,
    build_set_charge,
    build_set_led,
    build_set_pdo,
    build_set_powerbank_info,
    build_slots,
    build_status,
    build_unlock,
)
from .protocol.constants import (
    DEFAULT_CURRENT_CHARGE,
    DEFAULT_CUTOFF_CHARGE,
    DEFAULT_TOTAL_CHARGE,
    MAXIMUM_BOARD_ADDRESS,
    MAXIMUM_POWER_LEVEL,
    MAXIMUM_POWERBANK_TO_CHARGE_PER_BOARD,
    SLOTS_PER_BOARD,
    Status,
    status_message,
)
from .protocol.nonce import MonotonicNonce
from .protocol.parser import CommandResult, parse_response
from .transport.session import AsciiSession, BinarySession

logger = logging.getLogger(__name__)


def _error_kind(error: Exception) -> SlotError:
    if isinstance(error, InvalidResponse):
        return SlotError.INVALID_RESPONSE
    return SlotError.CONNECTION_ERROR


class Dispatcher:
    """Operations of the binary board protocol.

    Slot-oriented operations take either a flat station index (1-30) or a
    board address plus board-local slot (0-5), matching how each command
    is used by operators.
    """

    def __init__(self, session: BinarySession) -> None:
        self.session = session

    async def execute(self, command: Command) -> CommandResult:
        """Send a prepared command and decode its reply."""
        logger.debug("Executing %r", command)
        response = await self.session.send(command)
        result = parse_response(command.opcode, response)
        if not result.success:
            logger.info(
                "Board %d rejected %s: %s",
                command.address,
                command.opcode.name,
                status_message(result.status),
            )
        return result

    # ─── single-slot operations ───────────────────────────────────────

    async def status(self, board_address: int, slot: int) -> CommandResult:
        """Read the powerbank record of a board-local slot."""
        return await self.execute(build_status(board_address, slot))

    async def unlock(self, index: int) -> CommandResult:
        """Release the lock of flat slot ``index``."""
        address = map_slot_to_board(index)
        return await self.execute(build_unlock(address.board_address, address.slot_in_board))

    async def release(self, index: int) -> CommandResult:
        """Unlock a slot and, if that worked, switch its LED off."""
        result = await self.unlock(index)
        if result.success:
            await self.led(index, False)
        return result

    async def charge(self, index: int, enabled: bool) -> CommandResult:
        address = map_slot_to_board(index)
        return await self.execute(
            build_set_charge(address.board_address, address.slot_in_board, enabled)
        )

    async def led(self, index: int, on: bool) -> CommandResult:
        address = map_slot_to_board(index)
        return await self.execute(build_set_led(address.board_address, address.slot_in_board, on))

    async def reset(self, board_address: int, slot: int) -> CommandResult:
        return await self.execute(build_reset(board_address, slot))

    async def set_pdo(
        self, board_address: int, slot: int, voltage: int, current: int
    ) -> CommandResult:
        return await self.execute(build_set_pdo(board_address, slot, voltage, current))

    async def initialize_powerbank(
        self,
        board_address: int,
        slot: int,
        serial_number: str,
        timestamp: int | None = None,
        cycles: int = 0,
        total_charge: int = DEFAULT_TOTAL_CHARGE,
        current_charge: int = DEFAULT_CURRENT_CHARGE,
        cutoff_charge: int = DEFAULT_CUTOFF_CHARGE,
    ) -> CommandResult:
        """Write manufacturing metadata, then battery capacities.

        Both commands are validated before the first is sent. If the board
        rejects the metadata write its result is returned and the battery
        write is skipped.
        """
        if timestamp is None:
            timestamp = int(time.time())
        info = build_set_powerbank_info(board_address, slot, serial_number, timestamp, cycles)
        battery = build_set_battery_info(
            board_address, slot, total_charge, current_charge, cutoff_charge
        )

        result = await self.execute(info)
        if not result.success:
            return result
        return await self.execute(battery)

    # ─── board-level operations ───────────────────────────────────────

    async def slots(self, board_address: int) -> CommandResult:
        """Fill and lock bitmaps of a board, decoded to :class:`SlotsInfo`."""
        return await self.execute(build_slots(board_address))

    async def model(self, board_address: int) -> CommandResult:
        return await self.execute(build_model(board_address))

    async def firmware_version(self, board_address: int) -> CommandResult:
        return await self.execute(build_firmware_version(board_address))

    # ─── station scan ─────────────────────────────────────────────────

    async def scan(self, max_board: int = MAXIMUM_BOARD_ADDRESS) -> ScanResult:
        """Read every slot of boards ``0..max_board`` and balance charging.

        For each board: read the slot bitmaps, light the LED and read the
        powerbank of every occupied slot, enable charging on the first
        powerbank below full charge (ascending slot order) and disable it on
        every other occupied slot. A board or slot that cannot be read is
        recorded in ``errors`` and the scan moves on.
        """
        check_board_address(max_board)
        started = time.monotonic()
        result = ScanResult()

        for board_address in range(max_board + 1):
            try:
                slots_result = await self.slots(board_address)
            except StationError as e:
                logger.warning("Slots query failed on board %d: %s", board_address, e)
                result.errors.append(
                    SlotErrorInfo(-1, board_address, -1, _error_kind(e), str(e))
                )
                continue

            if not slots_result.success:
                result.errors.append(
                    SlotErrorInfo(
                        -1,
                        board_address,
                        -1,
                        SlotError.SLOTS_COMMAND_FAILED,
                        status_message(slots_result.status),
                    )
                )
                continue

            result.slots.extend(
                await self._scan_board(board_address, slots_result.payload, result.errors)
            )

        result.execution_time_ms = int((time.monotonic() - started) * 1000)
        result.timestamp = datetime.now(timezone.utc).isoformat()
        return result

    async def _scan_board(
        self,
        board_address: int,
        slots_info: SlotsInfo,
        errors: list[SlotErrorInfo],
    ) -> list[SlotInfo]:
        slots: list[SlotInfo] = []
        charging_claimed = 0

        for slot in range(SLOTS_PER_BOARD):
            index = map_board_to_slot(board_address, slot)
            info = SlotInfo(index=index, board_address=board_address, slot_index=slot)
            slots.append(info)
            if not slots_info.is_occupied(slot):
                continue

            await self._light_slot(index)
            powerbank = await self._read_powerbank(board_address, slot, index, errors)
            if powerbank is None:
                info.state = SlotState.UNKNOWN
            else:
                info.state = SlotState.AVAILABLE
                info.powerbank = PowerbankSummary(
                    id=powerbank.serial, power_level=powerbank.power_level
                )

            wants_charge = (
                charging_claimed < MAXIMUM_POWERBANK_TO_CHARGE_PER_BOARD
                and powerbank is not None
                and powerbank.power_level < MAXIMUM_POWER_LEVEL
            )
            if wants_charge:
                # Claimed even if the enable fails: the board may have
                # applied it, and a second charger would exceed the budget.
                charging_claimed += 1
            info.is_charging = (
                await self._set_charging(index, wants_charge, board_address, slot, errors)
                and wants_charge
            )

        return slots

    async def _light_slot(self, index: int) -> None:
        try:
            result = await self.led(index, True)
        except StationError as e:
            logger.warning("LED on failed for slot %d: %s", index, e)
            return
        if not result.success:
            logger.warning("LED on rejected for slot %d: %s", index, result.message)

    async def _read_powerbank(
        self,
        board_address: int,
        slot: int,
        index: int,
        errors: list[SlotErrorInfo],
    ) -> PowerbankInfo | None:
        try:
            result = await self.status(board_address, slot)
        except StationError as e:
            logger.warning("Status query failed for slot %d: %s", index, e)
            errors.append(SlotErrorInfo(index, board_address, slot, _error_kind(e), str(e)))
            return None
        if not result.success:
            errors.append(
                SlotErrorInfo(
                    index,
                    board_address,
                    slot,
                    SlotError.STATUS_COMMAND_FAILED,
                    result.message,
                )
            )
            return None
        return result.payload

    async def _set_charging(
        self,
        index: int,
        enabled: bool,
        board_address: int,
        slot: int,
        errors: list[SlotErrorInfo],
    ) -> bool:
        try:
            result = await self.charge(index, enabled)
        except StationError as e:
            logger.warning("Charge %s failed for slot %d: %s", enabled, index, e)
            errors.append(SlotErrorInfo(index, board_address, slot, _error_kind(e), str(e)))
            return False
        if not result.success:
            errors.append(
                SlotErrorInfo(
                    index,
                    board_address,
                    slot,
                    SlotError.CHARGE_COMMAND_FAILED,
                    result.message,
                )
            )
            return False
        return True


class AsciiDispatcher:
    """Operations of the ASCII bracket protocol."""

    def __init__(self, session: AsciiSession, nonce: MonotonicNonce | None = None) -> None:
        self.session = session
        self.nonce = nonce or MonotonicNonce()

    async def query(self, address: int = 0) -> CommandResult:
        """Send ``CQ`` and decode the AC station report."""
        frame = await self.session.send(build_query(address))
        if frame.command.upper() != Mnemonic.REPORT.value:
            raise InvalidResponse(f"Expected an AC report, got {frame.command!r}")
        report = StationReport.from_fields(frame.fields)
        return CommandResult(success=True, status=Status.OK, payload=report)

    async def unlock(self, slot: int, address: int = 0) -> CommandResult:
        """Send ``FB`` with a fresh nonce. The station does not answer it."""
        text, nonce = build_unlock_with(self.nonce, slot, address)
        logger.info("Unlocking slot %d with nonce %d", slot, nonce)
        await self.session.send_no_reply(text)
        return CommandResult(
            success=True,
            status=Status.OK,
            payload={"slot": slot, "nonce": nonce},
        )
