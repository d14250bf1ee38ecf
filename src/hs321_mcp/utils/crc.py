"""CRC-16/MODBUS checksum.

Reflected CRC-16 (polynomial 0x8005, reflected to 0xA001) with an initial
value of 0xFFFF and no final XOR. The checksum travels low byte first,
unlike register values which are big-endian.
"""

from __future__ import annotations

CRC_INIT = 0xFFFF
CRC_POLY = 0xA001


def crc16(data: bytes) -> int:
    """Calculate the Modbus RTU CRC-16 of ``data``.

    Args:
        data: Bytes to checksum (everything in a frame except the trailer).

    Returns:
        The 16-bit checksum as an integer.
    """
    crc = CRC_INIT
    for byte in data:
        crc ^= byte
        for _ in range(8):
            if crc & 0x0001:
                crc = (crc >> 1) ^ CRC_POLY
            else:
                crc >>= 1
    return crc & 0xFFFF


def crc16_bytes(data: bytes) -> bytes:
    """Return the CRC trailer for ``data`` in wire order (low, high)."""
    return crc16(data).to_bytes(2, "little")
