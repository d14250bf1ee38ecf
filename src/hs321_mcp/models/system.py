"""Communication settings model (parameter group FC)."""

from __future__ import annotations

from dataclasses import dataclass

# FC.00 baud rate codes
BAUD_RATE_CODES: dict[int, int] = {
    0: 1200,
    1: 2400,
    2: 4800,
    3: 9600,
    4: 19200,
    5: 38400,
}

COMMUNICATION_REGISTER_COUNT = 5


@dataclass
class CommunicationSettings:
    """FC.00-FC.04 as read back from the drive."""

    baud_rate_code: int = 0
    data_format: int = 0
    address: int = 0
    timeout: int = 0
    reserved: int = 0

    @property
    def baud_rate(self) -> int | None:
        return BAUD_RATE_CODES.get(self.baud_rate_code)

    def to_dict(self) -> dict:
        return {
            "baud_rate_code": self.baud_rate_code,
            "baud_rate": self.baud_rate,
            "data_format": self.data_format,
            "address": self.address,
            "timeout": self.timeout,
            "reserved": self.reserved,
        }

    @classmethod
    def from_registers(cls, values: list[int]) -> CommunicationSettings:
        if len(values) < COMMUNICATION_REGISTER_COUNT:
            raise ValueError(
                f"Need {COMMUNICATION_REGISTER_COUNT} registers, got {len(values)}"
            )
        return cls(*values[:COMMUNICATION_REGISTER_COUNT])
