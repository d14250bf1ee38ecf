"""Exception hierarchy for the HS321 Modbus master."""

from __future__ import annotations

# Standard Modbus exception codes
EXCEPTION_CODES: dict[int, str] = {
    0x01: "Illegal function",
    0x02: "Illegal data address",
    0x03: "Illegal data value",
    0x04: "Slave device failure",
    0x05: "Acknowledge",
    0x06: "Slave device busy",
    0x08: "Memory parity error",
    0x0A: "Gateway path unavailable",
    0x0B: "Gateway target device failed to respond",
}


class HS321Error(Exception):
    """Base class for every error raised by this package."""


class ArgumentError(HS321Error, ValueError):
    """A request could not be built from the given arguments."""


class NotReadyError(HS321Error, ConnectionError):
    """The drive was used before ``open()`` or after ``close()``."""


class TransportTimeout(HS321Error, TimeoutError):
    """The expected number of bytes did not arrive in time.

    Attributes:
        expected: Number of bytes the call waited to receive, or to send for
            ``"write"``.
        received: Bytes collected before the timeout fired.
        reason: ``"stall"``, ``"inter-character"`` or ``"write"``.
    """

    def __init__(self, expected: int, received: bytes, reason: str) -> None:
        self.expected = expected
        self.received = bytes(received)
        self.reason = reason
        super().__init__(
            f"{reason} timeout: received {len(self.received)}/{expected} bytes"
        )


class TransportError(HS321Error, ConnectionError):
    """The serial channel failed outside of a timeout (port gone, I/O error)."""


class ProtocolMismatch(HS321Error):
    """A response frame did not match the request it answers."""


class AddressMismatch(ProtocolMismatch):
    """Response came from a different slave address."""


class FunctionMismatch(ProtocolMismatch):
    """Response carries a different function code."""


class LengthMismatch(ProtocolMismatch):
    """Response is too short or declares the wrong byte count."""


class CrcMismatch(ProtocolMismatch):
    """Response checksum does not match its contents."""


class SlaveException(HS321Error):
    """The slave answered with a Modbus exception response.

    Attributes:
        function: Function code of the rejected request.
        code: Exception code reported by the slave.
    """

    def __init__(self, function: int, code: int) -> None:
        self.function = function
        self.code = code
        super().__init__(
            f"Slave exception 0x{code:02X} ({self.description}) "
            f"for function 0x{function:02X}"
        )

    @property
    def description(self) -> str:
        return EXCEPTION_CODES.get(self.code, "Unknown exception")
