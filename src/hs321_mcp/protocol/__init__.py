"""Protocol layer: Modbus RTU framing, response validation and register map."""

from .commands import ControlCommand, FunctionCode, ParameterGroup, build_address
from .framing import (
    build_read_request,
    build_write_multiple_request,
    build_write_single_request,
    parse_request,
)
from .parser import decode_registers, validate_response
