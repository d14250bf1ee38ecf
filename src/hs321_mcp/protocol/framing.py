"""Modbus RTU request frame builder and decoder.

Frame layout::

    +---------+----------+---------------------------+---------+---------+
    |  Slave  | Function |          Payload          | CRC lo  | CRC hi  |
    | 1 byte  |  1 byte  |  function specific (BE)   | 1 byte  | 1 byte  |
    +---------+----------+---------------------------+---------+---------+

- 0x03 payload: start address (2), register count (2)
- 0x06 payload: register address (2), value (2)
- 0x10 payload: start address (2), register count (2), byte count (1), values
- Addresses, counts and register values are big-endian
- CRC-16/MODBUS over every preceding byte, low byte first

RTU has no end-of-frame marker, so the size of every reply is computed
up front from the request and the receiver waits for exactly that many bytes.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

from ..errors import ArgumentError, CrcMismatch, LengthMismatch
from ..utils.crc import crc16, crc16_bytes
from .commands import (
    FunctionCode,
    MAX_READ_REGISTERS,
    MAX_WRITE_REGISTERS,
)

WRITE_RESPONSE_LENGTH = 8  # slave(1) + func(1) + addr(2) + value/count(2) + crc(2)
EXCEPTION_RESPONSE_LENGTH = 5  # slave(1) + func|0x80(1) + code(1) + crc(2)


@dataclass
class Request:
    """A decoded request frame."""

    slave: int
    function: int
    address: int
    count: int
    values: list[int] = field(default_factory=list)

    def __repr__(self) -> str:
        return (
            f"Request(slave={self.slave}, function=0x{self.function:02X}, "
            f"address=0x{self.address:04X}, count={self.count}, values={self.values})"
        )


def _check_slave(slave: int) -> None:
    # 0 is the broadcast address
    if not 0 <= slave <= 0xFF:
        raise ArgumentError(f"Slave address must be 0-255, got {slave}")


def _check_word(name: str, value: int) -> None:
    if not 0 <= value <= 0xFFFF:
        raise ArgumentError(f"{name} must be 0-0xFFFF, got {value}")


def _seal(body: bytes) -> bytes:
    return body + crc16_bytes(body)


def read_response_length(count: int) -> int:
    """Size of a 0x03 reply carrying ``count`` registers."""
    return 5 + 2 * count


def build_read_request(slave: int, address: int, count: int) -> bytes:
    """Build a Read Holding Registers (0x03) request.

    Args:
        slave: Slave address.
        address: First register address.
        count: Number of registers, 1-125.

    Raises:
        ArgumentError: If any argument is out of range.
    """
    _check_slave(slave)
    _check_word("Register address", address)
    if not 1 <= count <= MAX_READ_REGISTERS:
        raise ArgumentError(
            f"Read count must be 1-{MAX_READ_REGISTERS}, got {count}"
        )
    body = struct.pack(
        ">BBHH", slave, FunctionCode.READ_HOLDING_REGISTERS, address, count
    )
    return _seal(body)


def build_write_single_request(slave: int, address: int, value: int) -> bytes:
    """Build a Write Single Register (0x06) request. Always 8 bytes."""
    _check_slave(slave)
    _check_word("Register address", address)
    _check_word("Register value", value)
    body = struct.pack(
        ">BBHH", slave, FunctionCode.WRITE_SINGLE_REGISTER, address, value
    )
    return _seal(body)


def build_write_multiple_request(slave: int, address: int, values: list[int]) -> bytes:
    """Build a Write Multiple Registers (0x10) request.

    The frame is ``9 + 2 * len(values)`` bytes long.

    Raises:
        ArgumentError: If ``values`` is empty, longer than 123, or holds a
            value outside 0-0xFFFF.
    """
    _check_slave(slave)
    _check_word("Register address", address)
    count = len(values)
    if not 1 <= count <= MAX_WRITE_REGISTERS:
        raise ArgumentError(
            f"Write count must be 1-{MAX_WRITE_REGISTERS}, got {count}"
        )
    for value in values:
        _check_word("Register value", value)
    body = struct.pack(
        ">BBHHB",
        slave,
        FunctionCode.WRITE_MULTIPLE_REGISTERS,
        address,
        count,
        count * 2,
    )
    body += struct.pack(f">{count}H", *values)
    return _seal(body)


def parse_request(frame: bytes) -> Request:
    """Decode a request frame built by one of the ``build_*`` functions.

    Raises:
        LengthMismatch: If the frame is truncated for its function code.
        CrcMismatch: If the trailer does not match.
        ArgumentError: If the function code is not supported.
    """
    if len(frame) < 8:
        raise LengthMismatch(f"Request too short: {len(frame)} bytes")

    received = int.from_bytes(frame[-2:], "little")
    if crc16(frame[:-2]) != received:
        raise CrcMismatch(f"Request CRC mismatch: 0x{received:04X}")

    slave, function, address, word = struct.unpack(">BBHH", frame[:6])

    if function == FunctionCode.READ_HOLDING_REGISTERS:
        return Request(slave, function, address, count=word)

    if function == FunctionCode.WRITE_SINGLE_REGISTER:
        return Request(slave, function, address, count=1, values=[word])

    if function == FunctionCode.WRITE_MULTIPLE_REGISTERS:
        byte_count = frame[6]
        if byte_count != word * 2 or len(frame) != 9 + byte_count:
            raise LengthMismatch(
                f"Request declares {word} registers / {byte_count} bytes "
                f"in a {len(frame)}-byte frame"
            )
        values = list(struct.unpack(f">{word}H", frame[7 : 7 + byte_count]))
        return Request(slave, function, address, count=word, values=values)

    raise ArgumentError(f"Unsupported function code 0x{function:02X}")


# Slave-side replies, used by simulators and tests

def build_read_response(slave: int, values: list[int]) -> bytes:
    """Build the reply a slave sends to a 0x03 request."""
    count = len(values)
    body = struct.pack(
        f">BBB{count}H", slave, FunctionCode.READ_HOLDING_REGISTERS, count * 2, *values
    )
    return _seal(body)


def build_write_response(slave: int, function: int, address: int, word: int) -> bytes:
    """Build the 8-byte acknowledgement for a 0x06 or 0x10 request.

    ``word`` is the written value for 0x06 and the register count for 0x10.
    """
    return _seal(struct.pack(">BBHH", slave, function, address, word))


def build_exception_response(slave: int, function: int, code: int) -> bytes:
    """Build a 5-byte exception reply for ``function``."""
    return _seal(bytes([slave, (function | 0x80) & 0xFF, code]))
