"""MCP server entry point for the HS321 frequency inverter.

Exposes tools, resources, and prompts via the Model Context Protocol
using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .drive import DEFAULT_SLAVE_ADDRESS, HS321Drive
from .errors import HS321Error, SlaveException
from .protocol.commands import (
    GROUP_DESCRIPTIONS,
    ControlCommand,
    build_address,
    parameter_name,
    parse_control_command,
    parse_group,
)
from .transport.serial_connection import DEFAULT_BAUDRATE, SerialSettings

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "hs321",
    instructions="MCP server for the HS321 frequency inverter over Modbus RTU",
)

# Global connection state
_drive: HS321Drive | None = None


def _get_drive() -> HS321Drive:
    """Get the open drive, raising if not connected."""
    if _drive is None or not _drive.is_ready:
        raise RuntimeError(
            "Not connected to drive. Use the 'connect' tool first."
        )
    return _drive


def _error(e: Exception) -> dict[str, Any]:
    result: dict[str, Any] = {"error": str(e), "type": type(e).__name__}
    if isinstance(e, SlaveException):
        result["exception_code"] = e.code
    return result


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(
    port: str,
    baudrate: int = DEFAULT_BAUDRATE,
    slave_address: int = DEFAULT_SLAVE_ADDRESS,
    serial_format: str = "N81",
    direction: str = "rts",
) -> dict[str, Any]:
    """Open the RS485 adapter and get ready to talk to the drive.

    Args:
        port: Serial device, e.g. /dev/ttyUSB0 or COM3.
        baudrate: Must match drive parameter FC.00 (default 9600).
        slave_address: Drive address from FC.02, 1-247.
        serial_format: N81, N82, E81 or O81; must match FC.01.
        direction: How DE/RE is driven: "rts", "rts-inverted" or "none".
    """
    global _drive
    if _drive is not None and _drive.is_ready:
        return {
            "connected": True,
            "message": "Already connected",
            "slave_address": _drive.slave_address,
        }

    settings = SerialSettings(
        port=port,
        baudrate=baudrate,
        serial_format=serial_format,
        direction=direction,
    )
    try:
        drive = HS321Drive.from_settings(settings, slave_address)
    except (HS321Error, ConnectionError) as e:
        return _error(e)
    try:
        _drive = drive.open()
    except HS321Error as e:
        drive.close()
        return _error(e)

    return {
        "connected": True,
        "port": port,
        "baudrate": baudrate,
        "slave_address": slave_address,
    }


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the serial connection to the drive."""
    global _drive
    if _drive is None:
        return {"disconnected": True}
    _drive.close()
    _drive = None
    return {"disconnected": True}


# ─── REGISTER TOOLS ──────────────────────────────────────────────────

@mcp.tool()
def read_registers(address: int, count: int = 1) -> dict[str, Any]:
    """Read raw holding registers.

    Args:
        address: First register address (0-65535).
        count: Number of registers, 1-125.
    """
    drive = _get_drive()
    try:
        values = drive.read_registers(address, count)
    except HS321Error as e:
        return _error(e)
    return {"address": address, "values": values}


@mcp.tool()
def write_register(address: int, value: int) -> dict[str, Any]:
    """Write one raw register (function 0x06)."""
    drive = _get_drive()
    try:
        drive.write_register(address, value)
    except HS321Error as e:
        return _error(e)
    return {"address": address, "value": value}


@mcp.tool()
def write_registers(address: int, values: list[int]) -> dict[str, Any]:
    """Write consecutive raw registers (function 0x10, up to 123 values)."""
    drive = _get_drive()
    try:
        drive.write_registers(address, values)
    except HS321Error as e:
        return _error(e)
    return {"address": address, "values": values}


# ─── PARAMETER TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def read_parameter(group: str, index: int, count: int = 1) -> dict[str, Any]:
    """Read drive parameters by group and index, e.g. group "F0", index 3.

    Args:
        group: F0-FC, FP, or d for monitoring values.
        index: Parameter number within the group (0-255).
        count: Number of consecutive parameters to read.
    """
    drive = _get_drive()
    try:
        parameter_group = parse_group(group)
        values = drive.read_group_parameters(parameter_group, index, count)
    except HS321Error as e:
        return _error(e)
    first = build_address(parameter_group, index)
    return {
        "parameters": {
            parameter_name(first + i): v for i, v in enumerate(values)
        }
    }


@mcp.tool()
def write_parameter(group: str, index: int, values: list[int]) -> dict[str, Any]:
    """Write one or more consecutive drive parameters.

    Args:
        group: F0-FC or FP.
        index: First parameter number within the group.
        values: Raw register values to write.
    """
    drive = _get_drive()
    try:
        parameter_group = parse_group(group)
        drive.write_group_parameters(parameter_group, index, values)
    except HS321Error as e:
        return _error(e)
    return {"group": parameter_group.name, "index": index, "values": values}


# ─── CONTROL AND STATUS TOOLS ────────────────────────────────────────

@mcp.tool()
def read_fault_code() -> dict[str, Any]:
    """Read the current fault code (0 means no fault)."""
    drive = _get_drive()
    try:
        code = drive.read_fault_code()
    except HS321Error as e:
        return _error(e)
    return {"fault_code": code, "faulted": code != 0}


@mcp.tool()
def read_running_state() -> dict[str, Any]:
    """Read the raw run state register."""
    drive = _get_drive()
    try:
        state = drive.read_running_state()
    except HS321Error as e:
        return _error(e)
    return {"running_state": state}


@mcp.tool()
def send_control_command(command: str) -> dict[str, Any]:
    """Send a run/stop command to the drive.

    Args:
        command: forward_run, reverse_run, forward_jog, reverse_jog,
            free_stop, decelerate_stop or fault_reset.
    """
    drive = _get_drive()
    try:
        control = parse_control_command(command)
        drive.write_control_command(control)
    except HS321Error as e:
        return _error(e)
    return {"command": control.name.lower(), "value": control.value}


@mcp.tool()
def check_communication_settings() -> dict[str, Any]:
    """Read back the drive's RS485 settings (FC.00-FC.04)."""
    drive = _get_drive()
    try:
        settings = drive.check_communication_settings()
    except HS321Error as e:
        return _error(e)
    return {"settings": settings.to_dict()}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("hs321://device/status")
def resource_device_status() -> str:
    """Connection status."""
    connected = _drive is not None and _drive.is_ready
    status: dict[str, Any] = {"connected": connected}
    if connected:
        status["slave_address"] = _drive.slave_address
    return json.dumps(status)


@mcp.resource("hs321://catalog/groups")
def resource_group_catalog() -> str:
    """Parameter groups and their register base addresses."""
    groups = [
        {"name": g.name, "id": g.value, "base_address": g.value << 8, "description": d}
        for g, d in GROUP_DESCRIPTIONS.items()
    ]
    return json.dumps({"groups": groups})


@mcp.resource("hs321://catalog/commands")
def resource_command_catalog() -> str:
    """Control commands accepted by send_control_command."""
    commands = [{"name": c.name.lower(), "value": c.value} for c in ControlCommand]
    return json.dumps({"commands": commands})


# ─── MCP PROMPTS ─────────────────────────────────────────────────────

@mcp.prompt()
def diagnose_fault() -> str:
    """Walk through reading and clearing a drive fault."""
    return """Diagnose the HS321 drive.
Steps:
- Read the fault code with read_fault_code
- Read the run state with read_running_state
- Read monitoring values with read_parameter (group "d", index 0, count 8)
- Check communication settings with check_communication_settings

Explain what the values suggest. Only send fault_reset with
send_control_command after the user confirms the cause is resolved."""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
