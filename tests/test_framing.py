"""Tests for Modbus RTU request building and decoding."""

import pytest

from hs321_mcp.errors import ArgumentError, CrcMismatch, LengthMismatch
from hs321_mcp.protocol.commands import FunctionCode
from hs321_mcp.protocol.framing import (
    WRITE_RESPONSE_LENGTH,
    build_exception_response,
    build_read_request,
    build_read_response,
    build_write_multiple_request,
    build_write_response,
    build_write_single_request,
    parse_request,
    read_response_length,
)
from hs321_mcp.utils.crc import crc16


def test_build_read_request_bytes():
    """Read 10 registers from slave 1 at address 0: the textbook frame."""
    frame = build_read_request(1, 0x0000, 10)
    assert frame == bytes.fromhex("01 03 00 00 00 0A C5 CD")


def test_build_read_request_layout():
    """Address and count are big-endian, CRC is low byte first."""
    frame = build_read_request(1, 0x0C02, 5)
    assert len(frame) == 8
    assert frame[0] == 0x01
    assert frame[1] == FunctionCode.READ_HOLDING_REGISTERS
    assert frame[2:4] == b"\x0C\x02"
    assert frame[4:6] == b"\x00\x05"
    expected_crc = crc16(frame[:6])
    assert frame[6] == expected_crc & 0xFF
    assert frame[7] == (expected_crc >> 8) & 0xFF


def test_read_request_decodes_to_its_arguments():
    request = parse_request(build_read_request(1, 0x0C02, 5))
    assert request.slave == 1
    assert request.function == FunctionCode.READ_HOLDING_REGISTERS
    assert request.address == 0x0C02
    assert request.count == 5


def test_read_request_count_bounds():
    build_read_request(1, 0, 1)
    build_read_request(1, 0, 125)
    with pytest.raises(ArgumentError):
        build_read_request(1, 0, 0)
    with pytest.raises(ArgumentError):
        build_read_request(1, 0, 126)


def test_read_request_address_bounds():
    with pytest.raises(ArgumentError):
        build_read_request(1, 0x10000, 1)


def test_build_write_single_request():
    """0x06 frames are always 8 bytes with a big-endian value."""
    frame = build_write_single_request(1, 0x2000, 0x1234)
    assert len(frame) == 8
    assert frame[:6] == bytes([0x01, 0x06, 0x20, 0x00, 0x12, 0x34])
    request = parse_request(frame)
    assert request.values == [0x1234]


def test_write_single_value_bounds():
    with pytest.raises(ArgumentError):
        build_write_single_request(1, 0x2000, 0x10000)
    with pytest.raises(ArgumentError):
        build_write_single_request(1, 0x2000, -1)


def test_build_write_multiple_request():
    values = [0x0001, 0xABCD, 0xFFFF]
    frame = build_write_multiple_request(2, 0x0100, values)
    assert len(frame) == 9 + 2 * len(values)
    assert frame[:7] == bytes([0x02, 0x10, 0x01, 0x00, 0x00, 0x03, 0x06])
    assert frame[7:13] == bytes([0x00, 0x01, 0xAB, 0xCD, 0xFF, 0xFF])
    request = parse_request(frame)
    assert request.slave == 2
    assert request.address == 0x0100
    assert request.count == 3
    assert request.values == values


def test_write_multiple_count_bounds():
    build_write_multiple_request(1, 0, [0] * 123)
    with pytest.raises(ArgumentError):
        build_write_multiple_request(1, 0, [])
    with pytest.raises(ArgumentError):
        build_write_multiple_request(1, 0, [0] * 124)


def test_parse_request_rejects_bad_crc():
    frame = bytearray(build_read_request(1, 0, 1))
    frame[-1] ^= 0xFF
    with pytest.raises(CrcMismatch):
        parse_request(bytes(frame))


def test_parse_request_rejects_short_frame():
    with pytest.raises(LengthMismatch):
        parse_request(b"\x01\x03\x00")


def test_response_lengths():
    assert read_response_length(1) == 7
    assert read_response_length(125) == 255
    assert WRITE_RESPONSE_LENGTH == 8


def test_build_read_response():
    response = build_read_response(1, [0x1234, 0x0001])
    assert response[:7] == bytes([0x01, 0x03, 0x04, 0x12, 0x34, 0x00, 0x01])
    assert len(response) == read_response_length(2)


def test_build_write_response_is_eight_bytes():
    single = build_write_response(1, FunctionCode.WRITE_SINGLE_REGISTER, 0x2000, 5)
    multiple = build_write_response(1, FunctionCode.WRITE_MULTIPLE_REGISTERS, 0x0100, 3)
    assert len(single) == len(multiple) == WRITE_RESPONSE_LENGTH


def test_build_exception_response():
    response = build_exception_response(1, FunctionCode.READ_HOLDING_REGISTERS, 0x02)
    assert response[:3] == bytes([0x01, 0x83, 0x02])
    assert len(response) == 5
