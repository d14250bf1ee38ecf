"""Modbus RTU master for the HS321 frequency inverter, with an MCP server."""

import logging

from .drive import HS321Drive
from .errors import (
    ArgumentError,
    HS321Error,
    NotReadyError,
    ProtocolMismatch,
    SlaveException,
    TransportError,
    TransportTimeout,
)
from .protocol.commands import ControlCommand, ParameterGroup
from .transport.serial_connection import SerialSettings, SerialTransport

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
