"""Serial transport for the RS485 bus."""

from .serial_connection import (
    CallbackDirection,
    Direction,
    NoDirection,
    RtsDirection,
    SerialSettings,
    SerialTransport,
)
