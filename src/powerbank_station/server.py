"""MCP server entry point for powerbank rental stations.

Exposes the station dispatcher as tools and resources via the Model
Context Protocol using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .config import ASCII_LINK, BINARY_LINK, default_port
from .dispatcher import AsciiDispatcher, Dispatcher
from .exceptions import StationError
from .protocol.constants import (
    DEFAULT_CURRENT_CHARGE,
    DEFAULT_CUTOFF_CHARGE,
    DEFAULT_TOTAL_CHARGE,
    MAXIMUM_BOARD_ADDRESS,
)
from .transport import serial_link
from .transport.session import AsciiSession, BinarySession, Session

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "powerbank-station",
    instructions="MCP server for powerbank rental station control boards",
)

PROTOCOLS = ("binary", "ascii")

# Global connection state
_session: Session | None = None
_dispatcher: Dispatcher | None = None
_ascii_dispatcher: AsciiDispatcher | None = None


def _get_dispatcher() -> Dispatcher:
    """Get the binary dispatcher, raising if not connected."""
    if _dispatcher is None or not _dispatcher.session.is_open:
        raise RuntimeError(
            "Not connected to a binary station. Use the 'connect' tool first."
        )
    return _dispatcher


def _get_ascii_dispatcher() -> AsciiDispatcher:
    if _ascii_dispatcher is None or not _ascii_dispatcher.session.is_open:
        raise RuntimeError(
            "Not connected to an ASCII station. "
            "Use 'connect' with protocol='ascii' first."
        )
    return _ascii_dispatcher


async def _run(operation) -> dict[str, Any]:
    """Await a dispatcher call and render it, or the error it raised."""
    try:
        result = await operation
    except StationError as e:
        logger.warning("%s: %s", type(e).__name__, e)
        return {"error": str(e), "type": type(e).__name__}
    return result.to_dict()


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
async def connect(port: str | None = None, protocol: str = "binary") -> dict[str, Any]:
    """Open the serial link to a station.

    Args:
        port: Serial device path. Defaults to the POWERBANK_PORT environment variable.
        protocol: "binary" for CRC-framed boards, "ascii" for bracket-protocol stations.
    """
    global _session, _dispatcher, _ascii_dispatcher
    if protocol not in PROTOCOLS:
        return {"error": f"Protocol must be one of {', '.join(PROTOCOLS)}"}

    port = port or default_port()
    if not port:
        return {"error": "No port given and POWERBANK_PORT is not set"}

    if _session is not None and _session.is_open:
        same_protocol = isinstance(_session, AsciiSession) == (protocol == "ascii")
        if _session.port == port and same_protocol:
            return {
                "connected": True,
                "message": "Already connected",
                "port": port,
                "protocol": protocol,
            }
        await _session.disconnect()

    if protocol == "ascii":
        session = AsciiSession(port, ASCII_LINK)
    else:
        session = BinarySession(port, BINARY_LINK)

    try:
        await session.connect()
    except StationError as e:
        return {"error": str(e)}

    _session = session
    if protocol == "ascii":
        _dispatcher = None
        _ascii_dispatcher = AsciiDispatcher(session)
    else:
        _dispatcher = Dispatcher(session)
        _ascii_dispatcher = None

    return {
        "connected": True,
        "port": port,
        "protocol": protocol,
        "baudrate": session.settings.baudrate,
    }


@mcp.tool()
async def disconnect() -> dict[str, bool]:
    """Close the serial link."""
    global _session, _dispatcher, _ascii_dispatcher
    if _session is not None:
        await _session.disconnect()
    _session = None
    _dispatcher = None
    _ascii_dispatcher = None
    return {"disconnected": True}


@mcp.tool()
def list_ports() -> dict[str, list[str]]:
    """List the serial ports present on this machine."""
    return {"ports": serial_link.list_ports()}


# ─── SLOT TOOLS ───────────────────────────────────────────────────────

@mcp.tool()
async def status(board_address: int, slot: int) -> dict[str, Any]:
    """Read the powerbank in a slot.

    Args:
        board_address: Board address (0-4).
        slot: Slot on the board (0-5).
    """
    return await _run(_get_dispatcher().status(board_address, slot))


@mcp.tool()
async def unlock(index: int) -> dict[str, Any]:
    """Release a powerbank and switch its slot LED off.

    Args:
        index: Station slot number (1-30).
    """
    return await _run(_get_dispatcher().release(index))


@mcp.tool()
async def charge(index: int, enabled: bool) -> dict[str, Any]:
    """Enable or disable charging on a slot.

    Args:
        index: Station slot number (1-30).
        enabled: True to charge.
    """
    return await _run(_get_dispatcher().charge(index, enabled))


@mcp.tool()
async def led(index: int, on: bool) -> dict[str, Any]:
    """Switch a slot LED.

    Args:
        index: Station slot number (1-30).
        on: True to light it.
    """
    return await _run(_get_dispatcher().led(index, on))


@mcp.tool()
async def initialize_powerbank(
    board_address: int,
    slot: int,
    serial_number: str,
    cycles: int = 0,
    total_charge: int = DEFAULT_TOTAL_CHARGE,
    current_charge: int = DEFAULT_CURRENT_CHARGE,
    cutoff_charge: int = DEFAULT_CUTOFF_CHARGE,
) -> dict[str, Any]:
    """Write serial number and battery capacities to a fresh powerbank.

    Args:
        board_address: Board address (0-4).
        slot: Slot on the board (0-5).
        serial_number: Up to 10 ASCII characters.
        cycles: Charge cycle counter to store.
        total_charge: Design capacity.
        current_charge: Present charge.
        cutoff_charge: Charge level at which output stops.
    """
    return await _run(
        _get_dispatcher().initialize_powerbank(
            board_address,
            slot,
            serial_number,
            cycles=cycles,
            total_charge=total_charge,
            current_charge=current_charge,
            cutoff_charge=cutoff_charge,
        )
    )


# ─── BOARD TOOLS ──────────────────────────────────────────────────────

@mcp.tool()
async def slots(board_address: int) -> dict[str, Any]:
    """Read which slots of a board are filled and locked."""
    return await _run(_get_dispatcher().slots(board_address))


@mcp.tool()
async def model(board_address: int) -> dict[str, Any]:
    """Read the model name and board count."""
    return await _run(_get_dispatcher().model(board_address))


@mcp.tool()
async def firmware_version(board_address: int) -> dict[str, Any]:
    """Read the board firmware version."""
    return await _run(_get_dispatcher().firmware_version(board_address))


@mcp.tool()
async def scan(max_board: int = MAXIMUM_BOARD_ADDRESS) -> dict[str, Any]:
    """Read every slot of the station and hand charging to one powerbank per board.

    Args:
        max_board: Highest board address to scan (0-4).
    """
    return await _run(_get_dispatcher().scan(max_board))


# ─── ASCII STATION TOOLS ──────────────────────────────────────────────

@mcp.tool()
async def query_station(address: int = 0) -> dict[str, Any]:
    """Read the slot report of an ASCII-protocol station."""
    return await _run(_get_ascii_dispatcher().query(address))


@mcp.tool()
async def unlock_station(slot: int, address: int = 0) -> dict[str, Any]:
    """Unlock a slot on an ASCII-protocol station. The station sends no reply.

    Args:
        slot: Station slot number.
        address: Station address.
    """
    return await _run(_get_ascii_dispatcher().unlock(slot, address))


# ─── RESOURCES ────────────────────────────────────────────────────────

@mcp.resource("powerbank://connection")
def resource_connection() -> str:
    """Current serial link as JSON."""
    if _session is None:
        return json.dumps({"connected": False})
    return json.dumps({
        "connected": _session.is_open,
        "port": _session.port,
        "protocol": "ascii" if isinstance(_session, AsciiSession) else "binary",
        "state": _session.state.value,
    })


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
