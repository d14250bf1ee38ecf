"""Tests for response validation and register decoding."""

import pytest

from hs321_mcp.errors import (
    AddressMismatch,
    CrcMismatch,
    FunctionMismatch,
    HS321Error,
    LengthMismatch,
    SlaveException,
)
from hs321_mcp.protocol.commands import FunctionCode
from hs321_mcp.protocol.framing import (
    build_exception_response,
    build_read_response,
    build_write_response,
)
from hs321_mcp.protocol.parser import (
    decode_registers,
    parse_exception_response,
    validate_response,
)

READ = FunctionCode.READ_HOLDING_REGISTERS
WRITE_ONE = FunctionCode.WRITE_SINGLE_REGISTER


def test_valid_read_response_passes():
    response = build_read_response(1, [10, 20, 30])
    validate_response(response, 1, READ, 3)


def test_valid_write_response_passes():
    response = build_write_response(1, WRITE_ONE, 0x2000, 0)
    validate_response(response, 1, WRITE_ONE)


def test_too_short():
    with pytest.raises(LengthMismatch):
        validate_response(b"\x01\x03\x00", 1, READ)


def test_wrong_slave():
    response = build_read_response(2, [1])
    with pytest.raises(AddressMismatch):
        validate_response(response, 1, READ, 1)


def test_exception_response():
    """Function | 0x80 surfaces the slave's exception code."""
    response = build_exception_response(1, READ, 0x02)
    with pytest.raises(SlaveException) as excinfo:
        validate_response(response, 1, READ, 1)
    assert excinfo.value.code == 0x02
    assert excinfo.value.function == READ
    assert excinfo.value.description == "Illegal data address"


def test_exception_check_precedes_function_check():
    """An exception reply is not reported as a plain function mismatch."""
    response = build_exception_response(1, WRITE_ONE, 0x03)
    with pytest.raises(SlaveException):
        validate_response(response, 1, WRITE_ONE)


def test_wrong_function():
    response = build_write_response(1, FunctionCode.WRITE_MULTIPLE_REGISTERS, 0, 1)
    with pytest.raises(FunctionMismatch):
        validate_response(response, 1, WRITE_ONE)


def test_wrong_byte_count():
    response = build_read_response(1, [1, 2])
    with pytest.raises(LengthMismatch):
        validate_response(response, 1, READ, 3)


def test_bad_crc():
    response = bytearray(build_read_response(1, [1]))
    response[-2] ^= 0x01
    with pytest.raises(CrcMismatch):
        validate_response(bytes(response), 1, READ, 1)


def test_single_bit_flip_in_payload_or_trailer_is_crc_mismatch():
    """Any flipped bit after the header makes the CRC check fail."""
    valid = build_read_response(1, [0x1234, 0xABCD, 0x0000])
    for position in range(3, len(valid)):
        for bit in range(8):
            corrupted = bytearray(valid)
            corrupted[position] ^= 1 << bit
            with pytest.raises(CrcMismatch):
                validate_response(bytes(corrupted), 1, READ, 3)


def test_single_bit_flip_in_header_is_rejected():
    """Header flips are caught by the earlier address/function/length checks."""
    valid = build_read_response(1, [0x1234])
    for position in range(3):
        for bit in range(8):
            corrupted = bytearray(valid)
            corrupted[position] ^= 1 << bit
            with pytest.raises(HS321Error):
                validate_response(bytes(corrupted), 1, READ, 1)


def test_decode_registers_big_endian():
    response = build_read_response(1, [0x1234, 0x00FF, 0xFF00])
    assert decode_registers(response) == [0x1234, 0x00FF, 0xFF00]


def test_parse_exception_response():
    data = build_exception_response(1, WRITE_ONE, 0x04)
    error = parse_exception_response(data, 1, WRITE_ONE)
    assert isinstance(error, SlaveException)
    assert error.code == 0x04


def test_parse_exception_response_ignores_other_data():
    assert parse_exception_response(b"\x01\x06\x20", 1, WRITE_ONE) is None
    data = build_exception_response(2, WRITE_ONE, 0x04)
    assert parse_exception_response(data, 1, WRITE_ONE) is None
    corrupted = bytearray(build_exception_response(1, WRITE_ONE, 0x04))
    corrupted[-1] ^= 0xFF
    assert parse_exception_response(bytes(corrupted), 1, WRITE_ONE) is None
