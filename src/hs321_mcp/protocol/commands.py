"""Function codes, register map constants and the logical address mapper.

HS321 parameters are addressed as ``(group, index)`` pairs such as ``F0.03``
or ``d.00``. On the wire the group becomes the high byte of the register
address and the index the low byte.
"""

from __future__ import annotations

from enum import IntEnum

from ..errors import ArgumentError


class FunctionCode(IntEnum):
    """Modbus function codes used by the drive."""

    READ_HOLDING_REGISTERS = 0x03
    WRITE_SINGLE_REGISTER = 0x06
    WRITE_MULTIPLE_REGISTERS = 0x10


EXCEPTION_FLAG = 0x80

# Register ceilings for a single request
MAX_READ_REGISTERS = 125
MAX_WRITE_REGISTERS = 123

MIN_SLAVE_ADDRESS = 1
MAX_SLAVE_ADDRESS = 247


class ParameterGroup(IntEnum):
    """Parameter groups of the HS321 register map."""

    F0 = 0    # basic operation
    F1 = 1    # V/F control
    F2 = 2    # vector control
    F3 = 3    # auxiliary operation 1
    F4 = 4    # auxiliary operation 2
    F5 = 5    # digital inputs/outputs
    F6 = 6    # analog inputs/outputs
    F7 = 7    # program run (PLC)
    F8 = 8    # PID
    F9 = 9    # motor
    FA = 10   # protection
    FB = 11   # display and special functions
    FC = 12   # RS485 communication
    FP = 13   # factory
    D = 112   # monitoring (real-time data)


GROUP_DESCRIPTIONS: dict[ParameterGroup, str] = {
    ParameterGroup.F0: "Basic operating parameters",
    ParameterGroup.F1: "V/F control parameters",
    ParameterGroup.F2: "Vector control parameters",
    ParameterGroup.F3: "Auxiliary operating parameters 1",
    ParameterGroup.F4: "Auxiliary operating parameters 2",
    ParameterGroup.F5: "Digital input/output parameters",
    ParameterGroup.F6: "Analog input/output parameters",
    ParameterGroup.F7: "Program run (PLC) parameters",
    ParameterGroup.F8: "PID controller parameters",
    ParameterGroup.F9: "Motor parameters",
    ParameterGroup.FA: "Protection parameters",
    ParameterGroup.FB: "Display and special function parameters",
    ParameterGroup.FC: "RS485 communication parameters",
    ParameterGroup.FP: "Factory parameters",
    ParameterGroup.D: "Monitoring parameters",
}


class ControlCommand(IntEnum):
    """Values accepted by the control register."""

    FORWARD_RUN = 0
    REVERSE_RUN = 1
    FORWARD_JOG = 2
    REVERSE_JOG = 3
    FREE_STOP = 4
    DECELERATE_STOP = 5
    FAULT_RESET = 6


# Fixed control/status registers
CONTROL_REGISTER = 0x2000
RUNNING_STATE_REGISTER = 0x3000
FAULT_CODE_REGISTER = 0x8000


def build_address(group: int, sub_index: int) -> int:
    """Pack a parameter group and sub-index into a 16-bit register address.

    The sub-index is not checked against any device parameter table, only
    against the byte it has to fit in.

    Args:
        group: Group id (0-13 or 112 for the monitoring group).
        sub_index: Parameter index within the group, 0-255.

    Returns:
        ``(group << 8) | sub_index``.
    """
    if not 0 <= group <= 0xFF:
        raise ArgumentError(f"Group must be 0-255, got {group}")
    if not 0 <= sub_index <= 0xFF:
        raise ArgumentError(f"Sub-index must be 0-255, got {sub_index}")
    return (int(group) << 8) | sub_index


def split_address(address: int) -> tuple[int, int]:
    """Inverse of :func:`build_address`."""
    return (address >> 8) & 0xFF, address & 0xFF


def parameter_name(address: int) -> str:
    """Display name of a register address, e.g. ``0x0C02`` -> ``"FC.02"``.

    Addresses outside the parameter groups are shown as hex.
    """
    group, sub_index = split_address(address)
    try:
        return f"{ParameterGroup(group).name}.{sub_index:02d}"
    except ValueError:
        return f"0x{address:04X}"


def parse_group(name: str) -> ParameterGroup:
    """Resolve a group name such as ``"F0"``, ``"fc"`` or ``"d"``.

    Raises:
        ArgumentError: If the name is not a known group.
    """
    key = name.strip().upper()
    try:
        return ParameterGroup[key]
    except KeyError:
        valid = ", ".join(g.name for g in ParameterGroup)
        raise ArgumentError(f"Unknown parameter group {name!r}. Valid: {valid}") from None


def parse_control_command(name: str) -> ControlCommand:
    """Resolve a control command by name, e.g. ``"forward_run"``."""
    key = name.strip().upper().replace("-", "_").replace(" ", "_")
    try:
        return ControlCommand[key]
    except KeyError:
        valid = ", ".join(c.name.lower() for c in ControlCommand)
        raise ArgumentError(f"Unknown control command {name!r}. Valid: {valid}") from None
