"""Response validation and register decoding."""

from __future__ import annotations

import logging
import struct

from ..errors import (
    AddressMismatch,
    CrcMismatch,
    FunctionMismatch,
    LengthMismatch,
    SlaveException,
)
from ..utils.crc import crc16
from .commands import EXCEPTION_FLAG, FunctionCode
from .framing import EXCEPTION_RESPONSE_LENGTH

logger = logging.getLogger(__name__)

MIN_RESPONSE_LENGTH = 4  # slave + function + crc


def validate_response(
    response: bytes,
    expected_slave: int,
    expected_function: int,
    expected_count: int | None = None,
) -> None:
    """Check a reply against the request it answers.

    Checks run in order: minimum length, slave address, exception flag,
    function code, declared byte count (reads only, when ``expected_count``
    is given) and finally the CRC trailer.

    Args:
        response: The complete reply frame.
        expected_slave: Slave address the request went to.
        expected_function: Function code of the request.
        expected_count: Number of registers requested by a 0x03 read.

    Raises:
        LengthMismatch: Frame shorter than 4 bytes or wrong byte count.
        AddressMismatch: Reply from another slave.
        SlaveException: Slave rejected the request.
        FunctionMismatch: Reply carries another function code.
        CrcMismatch: Trailer does not match the frame contents.
    """
    if len(response) < MIN_RESPONSE_LENGTH:
        raise LengthMismatch(f"Response too short: {len(response)} bytes")

    if response[0] != expected_slave:
        raise AddressMismatch(
            f"Response from slave {response[0]}, expected {expected_slave}"
        )

    if response[1] == expected_function | EXCEPTION_FLAG:
        raise SlaveException(expected_function, response[2])

    if response[1] != expected_function:
        raise FunctionMismatch(
            f"Response function 0x{response[1]:02X}, "
            f"expected 0x{expected_function:02X}"
        )

    if (
        expected_function == FunctionCode.READ_HOLDING_REGISTERS
        and expected_count is not None
    ):
        declared = response[2]
        if declared != expected_count * 2:
            raise LengthMismatch(
                f"Response declares {declared} data bytes, "
                f"expected {expected_count * 2}"
            )

    calculated = crc16(response[:-2])
    received = response[-2] | (response[-1] << 8)
    if calculated != received:
        raise CrcMismatch(
            f"CRC mismatch: calculated 0x{calculated:04X}, received 0x{received:04X}"
        )


def decode_registers(response: bytes) -> list[int]:
    """Extract the big-endian register values from a validated 0x03 reply."""
    byte_count = response[2]
    data = response[3 : 3 + byte_count]
    return list(struct.unpack(f">{byte_count // 2}H", data))


def parse_exception_response(
    data: bytes, expected_slave: int, expected_function: int
) -> SlaveException | None:
    """Recognise an exception reply at the start of a truncated read.

    Exception replies are 5 bytes, shorter than any normal reply, so they
    show up as the partial data of a timed-out receive.

    Returns:
        A ``SlaveException`` ready to raise, or ``None`` if ``data`` is not a
        CRC-valid exception reply from the expected slave.
    """
    if len(data) != EXCEPTION_RESPONSE_LENGTH:
        return None
    if data[0] != expected_slave or data[1] != expected_function | EXCEPTION_FLAG:
        return None
    if crc16(data[:-2]) != int.from_bytes(data[-2:], "little"):
        logger.debug("Exception reply with bad CRC: %s", data.hex(" "))
        return None
    return SlaveException(expected_function, data[2])
